# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Deferred executors (Adapters Layer)

Exports:
    - InProcessExecutor: asyncio workers inside the current process.
    - SqlAlchemyJobQueue: database-backed queue worked off by worker processes.
"""

from __future__ import annotations

from .in_process import DeadLetter, InProcessExecutor
from .sqlalchemy_queue import FailedJob, SqlAlchemyJobQueue, WorkResult

__all__ = ["DeadLetter", "FailedJob", "InProcessExecutor", "SqlAlchemyJobQueue", "WorkResult"]

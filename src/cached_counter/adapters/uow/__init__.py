# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Unit of Work implementations (Adapters Layer)

Purpose:
    Provide concrete transaction scopes satisfying the application-layer
    `TransactionHook` protocol.

Exports:
    - SqlAlchemyUnitOfWork: AsyncSession-backed unit of work that runs
      rollback compensators or after-commit handoffs.
"""

from __future__ import annotations

from .sqlalchemy_uow import SqlAlchemyUnitOfWork

__all__ = ["SqlAlchemyUnitOfWork"]

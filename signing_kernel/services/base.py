"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor and session contract for the write-side services.
    Every service receives a SQLAlchemy ``Session`` and persists through
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- infrastructure.

Invariants enforced:
    - Transaction boundaries belong to the caller.  A lifecycle step that
      writes a signature record, moves the status and appends audit
      events either commits as a whole or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from signing_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only reporting queries -- those belong in
          ``signing_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session

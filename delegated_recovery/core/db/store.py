"""
Persistence for recovery token records.

The lifecycle manager talks to a RecordStore. Two implementations exist:
SqlRecordStore for the running service and InMemoryRecordStore for tools and
tests. Neither the lifecycle nor the controller may assume records survive a
restart, so both go through the same not-found handling.
"""
import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from delegated_recovery.core.db.tables.recoverytoken import RecoveryTokenRecord, TokenStatus
from delegated_recovery.core.logger import get_logger

logger = get_logger(__name__)


class RecordStore(Protocol):
    def put(self, record: RecoveryTokenRecord) -> None: ...

    def get_by_id(self, token_id: str) -> RecoveryTokenRecord | None: ...

    def delete_by_id(self, token_id: str) -> bool: ...

    def list_by_username_and_status(
        self, username: str, status: TokenStatus
    ) -> list[RecoveryTokenRecord]: ...


class InMemoryRecordStore:
    """Dictionary backed store. Contents are lost when the process exits."""

    def __init__(self):
        self._records: dict[str, RecoveryTokenRecord] = {}
        self._order: dict[str, int] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def put(self, record: RecoveryTokenRecord) -> None:
        with self._lock:
            if record.created_at is None:
                record.created_at = datetime.now(timezone.utc)
            if record.id not in self._order:
                self._counter += 1
                self._order[record.id] = self._counter
            self._records[record.id] = record

    def get_by_id(self, token_id: str) -> RecoveryTokenRecord | None:
        with self._lock:
            return self._records.get(token_id)

    def delete_by_id(self, token_id: str) -> bool:
        with self._lock:
            self._order.pop(token_id, None)
            return self._records.pop(token_id, None) is not None

    def list_by_username_and_status(
        self, username: str, status: TokenStatus
    ) -> list[RecoveryTokenRecord]:
        with self._lock:
            matches = [
                r for r in self._records.values()
                if r.username == username and r.status == status
            ]
            # Newest first
            return sorted(matches, key=lambda r: self._order[r.id], reverse=True)


class SqlRecordStore:
    """Store backed by a SQLAlchemy session. Each write commits."""

    def __init__(self, session: Session):
        self.session = session

    def _commit(self, action: str, token_id: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.error(f"Database error during {action} of recovery token {token_id}")
            raise

    def put(self, record: RecoveryTokenRecord) -> None:
        self.session.add(record)
        self._commit("put", record.id)

    def get_by_id(self, token_id: str) -> RecoveryTokenRecord | None:
        return self.session.get(RecoveryTokenRecord, token_id)

    def delete_by_id(self, token_id: str) -> bool:
        record = self.session.get(RecoveryTokenRecord, token_id)
        if record is None:
            return False
        self.session.delete(record)
        self._commit("delete", token_id)
        return True

    def list_by_username_and_status(
        self, username: str, status: TokenStatus
    ) -> list[RecoveryTokenRecord]:
        return list(
            self.session.execute(
                select(RecoveryTokenRecord)
                .where(
                    RecoveryTokenRecord.username == username,
                    RecoveryTokenRecord.status == status,
                )
                .order_by(RecoveryTokenRecord.created_at.desc())
            ).scalars().all()
        )

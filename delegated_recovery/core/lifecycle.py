"""
Recovery token record lifecycle.

    provisional --confirm--> confirmed --invalidate--> invalid
         |                                                ^
         +---------------------invalidate-----------------+
         |
         +--reject--> (deleted)

TokenLifecycle is the only writer of RecoveryTokenRecord. Lookups that find
nothing return None; callers decide how to present an unknown token.
"""
from datetime import datetime, timezone

from delegated_recovery.core.db.store import RecordStore
from delegated_recovery.core.db.tables.recoverytoken import RecoveryTokenRecord, TokenStatus
from delegated_recovery.core.errors import DuplicateTokenError, InvalidTransitionError
from delegated_recovery.core.logger import get_logger

logger = get_logger(__name__)


class TokenLifecycle:
    def __init__(self, store: RecordStore):
        self.store = store

    def _set_status(self, record: RecoveryTokenRecord, status: TokenStatus) -> None:
        previous = record.status
        record.status = status
        record.updated_at = datetime.now(timezone.utc)
        self.store.put(record)
        logger.info(
            f"Recovery token {record.id} for {record.username}: "
            f"{previous.value} -> {status.value}"
        )

    def get(self, token_id: str) -> RecoveryTokenRecord | None:
        return self.store.get_by_id(token_id)

    def provision(
        self,
        username: str,
        audience: str,
        token_id: str,
        token_hash: str,
    ) -> RecoveryTokenRecord:
        """
        Record a freshly issued token in provisional status.

        Raises:
            DuplicateTokenError: If a record with this ID already exists
        """
        if self.store.get_by_id(token_id) is not None:
            raise DuplicateTokenError(f"Recovery token {token_id} already exists")

        record = RecoveryTokenRecord(
            id=token_id,
            username=username,
            audience=audience,
            token_hash=token_hash,
            status=TokenStatus.PROVISIONAL,
            created_at=datetime.now(timezone.utc),
        )
        self.store.put(record)
        logger.info(f"Provisioned recovery token {token_id} for {username} (audience {audience})")
        return record

    def confirm(self, token_id: str) -> RecoveryTokenRecord | None:
        """
        Mark a provisional token as saved by the recovery provider.

        Any other confirmed token of the same user is invalidated afterwards,
        so a user never ends up with two confirmed tokens.

        Returns:
            The confirmed record, or None if the ID is unknown

        Raises:
            InvalidTransitionError: If the record was already invalidated
        """
        record = self.store.get_by_id(token_id)
        if record is None:
            logger.warning(f"Confirm requested for unknown recovery token {token_id}")
            return None

        if record.status == TokenStatus.INVALID:
            raise InvalidTransitionError(token_id, record.status.value, TokenStatus.CONFIRMED.value)

        if record.status == TokenStatus.PROVISIONAL:
            self._set_status(record, TokenStatus.CONFIRMED)

        for other in self.store.list_by_username_and_status(record.username, TokenStatus.CONFIRMED):
            if other.id != record.id:
                logger.warning(
                    f"Recovery token {other.id} for {record.username} superseded by {record.id}"
                )
                self._set_status(other, TokenStatus.INVALID)

        return record

    def invalidate(self, token_id: str) -> RecoveryTokenRecord | None:
        """
        Mark a token as no longer usable. Invalidating an invalid token is a no-op.

        Returns:
            The invalidated record, or None if the ID is unknown
        """
        record = self.store.get_by_id(token_id)
        if record is None:
            logger.warning(f"Invalidate requested for unknown recovery token {token_id}")
            return None

        if record.status != TokenStatus.INVALID:
            self._set_status(record, TokenStatus.INVALID)
        return record

    def reject(self, token_id: str) -> bool:
        """
        Drop a provisional token the user declined to save.

        Returns:
            True if a record was removed. Confirmed and invalid records are
            kept, and False is returned for them and for unknown IDs.
        """
        record = self.store.get_by_id(token_id)
        if record is None:
            logger.warning(f"Reject requested for unknown recovery token {token_id}")
            return False

        if record.status != TokenStatus.PROVISIONAL:
            logger.warning(
                f"Refusing to reject recovery token {token_id} in status {record.status.value}"
            )
            return False

        self.store.delete_by_id(token_id)
        logger.info(f"Rejected recovery token {token_id} for {record.username}")
        return True

    def find_confirmed_for_user(self, username: str) -> RecoveryTokenRecord | None:
        records = self.store.list_by_username_and_status(username, TokenStatus.CONFIRMED)
        if len(records) > 1:
            logger.warning(f"User {username} has {len(records)} confirmed recovery tokens")
        return records[0] if records else None

import enum
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from delegated_recovery.core.db.tables.base import Base


class TokenStatus(str, enum.Enum):
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"
    INVALID = "invalid"


class RecoveryTokenRecord(Base):
    """
    Local record of a recovery token issued to a recovery provider.

    - id: Hex encoded random token ID, never reused
    - username: Account the token recovers
    - audience: Recovery provider the token was issued to
    - token_hash: Hex SHA-256 of the exact token bytes handed out
    - status: provisional until the provider reports the save outcome
    """
    __tablename__ = "recovery_token"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(256), index=True)
    audience: Mapped[str] = mapped_column(String(512))
    token_hash: Mapped[str] = mapped_column(String(64))
    status: Mapped[TokenStatus] = mapped_column(
        Enum(TokenStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        default=TokenStatus.PROVISIONAL,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    def __repr__(self) -> str:
        return f"RecoveryTokenRecord(id={self.id!r}, username={self.username!r}, status={self.status.value!r})"

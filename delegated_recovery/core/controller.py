"""
Save-token orchestration.

The controller drives TokenLifecycle for the two external triggers of the
protocol: a user asking to save a recovery token at the provider, and the
provider sending the user back with the outcome. It returns plain values;
the HTTP layer turns them into pages and redirects.
"""
import enum
from dataclasses import dataclass

from delegated_recovery.core.errors import InvalidTransitionError, MissingUsernameError
from delegated_recovery.core.lifecycle import TokenLifecycle
from delegated_recovery.core.logger import get_logger
from delegated_recovery.core.security import encode_hex, new_token_id, sha256
from delegated_recovery.core.token import TokenIssuer

logger = get_logger(__name__)

SAVE_SUCCESS = "save-success"
STATE_SEPARATOR = ","


@dataclass(frozen=True)
class RecoveryState:
    """
    The opaque state value round-tripped through the recovery provider.

    It is the only thing guaranteed to come back unmodified, so it carries
    the new token ID and, on renewal, the ID of the token being replaced.
    """
    token_id: str
    obsoleted_id: str | None = None

    @classmethod
    def parse(cls, raw: str | None) -> "RecoveryState":
        """
        Split on the first separator. A token cannot obsolete itself, so a
        second part equal to the first is dropped.
        """
        parts = (raw or "").split(STATE_SEPARATOR, 1)
        token_id = parts[0].strip()
        obsoleted_id = parts[1].strip() if len(parts) > 1 else ""
        if obsoleted_id == token_id:
            obsoleted_id = ""
        return cls(token_id=token_id, obsoleted_id=obsoleted_id or None)

    def format(self) -> str:
        if self.obsoleted_id:
            return f"{self.token_id}{STATE_SEPARATOR}{self.obsoleted_id}"
        return self.token_id

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class SaveTokenOffer:
    username: str
    token_id: str
    encoded_token: str
    save_token_url: str
    state: RecoveryState
    obsoletes: str | None = None

    @property
    def is_renewal(self) -> bool:
        return self.obsoletes is not None


class SaveResult(str, enum.Enum):
    SAVED = "saved"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SaveOutcome:
    result: SaveResult
    token_id: str
    username: str | None = None
    obsoleted_id: str | None = None


class RecoveryController:
    def __init__(self, lifecycle: TokenLifecycle, issuer: TokenIssuer, save_token_url: str):
        self.lifecycle = lifecycle
        self.issuer = issuer
        self.save_token_url = save_token_url

    def begin_save(self, username: str | None) -> SaveTokenOffer:
        """
        Mint a new token for the user and record it as provisional.

        A fresh token is issued whether or not the user already has a
        confirmed one. When they do, the offer carries the old ID so the
        provider can replace it and the callback can retire it.

        Raises:
            MissingUsernameError: If no username was given
        """
        if not username or not username.strip():
            raise MissingUsernameError("A username is required to save a recovery token")

        existing = self.lifecycle.find_confirmed_for_user(username)

        raw_id = new_token_id()
        token_id = encode_hex(raw_id)
        token = self.issuer.issue(raw_id)

        self.lifecycle.provision(
            username=username,
            audience=token.audience,
            token_id=token_id,
            token_hash=encode_hex(sha256(token.decoded)),
        )

        obsoletes = existing.id if existing else None
        if obsoletes:
            logger.info(f"Offering renewal of recovery token {obsoletes} with {token_id} for {username}")

        return SaveTokenOffer(
            username=username,
            token_id=token_id,
            encoded_token=token.encoded,
            save_token_url=self.save_token_url,
            state=RecoveryState(token_id, obsoletes),
            obsoletes=obsoletes,
        )

    def complete_save(self, raw_state: str | None, status: str | None) -> SaveOutcome:
        """Apply the provider's save-token callback to the local records."""
        state = RecoveryState.parse(raw_state)

        record = self.lifecycle.get(state.token_id) if state.token_id else None
        if record is None:
            logger.warning(f"Save-token callback for unknown recovery token {state.token_id!r}")
            return SaveOutcome(SaveResult.UNKNOWN, token_id=state.token_id)

        username = record.username

        if status != SAVE_SUCCESS:
            logger.info(f"Recovery provider reported status {status!r} for token {state.token_id}")
            self.lifecycle.reject(state.token_id)
            return SaveOutcome(SaveResult.FAILED, token_id=state.token_id, username=username)

        try:
            self.lifecycle.confirm(state.token_id)
        except InvalidTransitionError as exc:
            logger.warning(f"Save-token callback for retired recovery token: {exc}")
            return SaveOutcome(SaveResult.UNKNOWN, token_id=state.token_id, username=username)

        return SaveOutcome(
            SaveResult.SAVED,
            token_id=state.token_id,
            username=username,
            obsoleted_id=self._retire_obsoleted(state, username),
        )

    def _retire_obsoleted(self, state: RecoveryState, username: str) -> str | None:
        """
        Invalidate the token a renewal replaced.

        Returns the retired ID, or None when nothing of this user was retired.
        An unknown ID is expected after a restart and is not an error.
        """
        if not state.obsoleted_id or state.obsoleted_id == state.token_id:
            return None

        obsoleted = self.lifecycle.get(state.obsoleted_id)
        if obsoleted is None:
            logger.info(f"Obsoleted recovery token {state.obsoleted_id} is not known, nothing to retire")
            return None
        if obsoleted.username != username:
            logger.warning(
                f"Ignoring obsoleted token {state.obsoleted_id}: "
                f"owned by {obsoleted.username}, not {username}"
            )
            return None

        self.lifecycle.invalidate(state.obsoleted_id)
        return obsoleted.id

    def invalidate(self, token_id: str | None, username: str | None) -> bool:
        """
        Locally retire a token at the user's request.

        An unknown ID counts as already invalidated.
        """
        if not token_id:
            return False
        record = self.lifecycle.invalidate(token_id)
        if record is not None:
            logger.info(f"Recovery token {token_id} invalidated on request of {username}")
        return record is not None

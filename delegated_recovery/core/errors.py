"""
Exception types raised by the recovery core.
"""


class RecoveryError(Exception):
    """Base class for all recovery service errors."""
    pass


class ConfigurationError(RecoveryError):
    """Raised at startup when required configuration is missing or malformed."""
    pass


class MissingUsernameError(RecoveryError):
    """Raised when a save-token request carries no username."""
    pass


class DuplicateTokenError(RecoveryError):
    """Raised when a token ID is provisioned twice."""
    pass


class InvalidTransitionError(RecoveryError):
    """Raised when a record cannot move to the requested status."""

    def __init__(self, token_id: str, current: str, target: str):
        super().__init__(f"Token {token_id} cannot move from {current} to {target}")
        self.token_id = token_id
        self.current = current
        self.target = target


class TokenFormatError(RecoveryError):
    """Raised when an encoded recovery token cannot be parsed."""
    pass


class TokenSigningError(RecoveryError):
    """Raised when a recovery token cannot be signed."""
    pass

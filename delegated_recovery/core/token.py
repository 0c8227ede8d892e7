"""
Recovery token codec.

A recovery token is a small binary structure signed with the account
provider's P-256 key and handed to the recovery provider as standard base64:

    version (1) | type (1) | id (16) | options (1)
    | issuer | audience | issued time | data | binding   (2-byte length + bytes each)
    | ECDSA SHA-256 signature (DER) over everything before it
"""
import base64
import binascii
import struct
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from delegated_recovery.core.errors import TokenFormatError, TokenSigningError
from delegated_recovery.core.security import TOKEN_ID_LENGTH


VERSION = 0x00
TYPE_RECOVERY_TOKEN = 0x00

LOW_FRICTION_REQUESTED_FLAG = 0x01
STATUS_REQUESTED_FLAG = 0x02

ISSUED_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
MAX_FIELD_LENGTH = 0xFFFF

_HEADER = struct.Struct(f">BB{TOKEN_ID_LENGTH}sB")
_LENGTH = struct.Struct(">H")


def _pack_field(value: bytes) -> bytes:
    if len(value) > MAX_FIELD_LENGTH:
        raise TokenSigningError(f"Token field too long ({len(value)} bytes)")
    return _LENGTH.pack(len(value)) + value


def _read_field(raw: bytes, offset: int) -> tuple[bytes, int]:
    if offset + _LENGTH.size > len(raw):
        raise TokenFormatError("Token truncated in field length")
    (length,) = _LENGTH.unpack_from(raw, offset)
    offset += _LENGTH.size
    if offset + length > len(raw):
        raise TokenFormatError("Token truncated in field value")
    return raw[offset:offset + length], offset + length


def _ascii(value: str, name: str) -> bytes:
    try:
        return value.encode("ascii")
    except UnicodeEncodeError as exc:
        raise TokenSigningError(f"Token {name} must be ASCII") from exc


@dataclass(frozen=True)
class RecoveryToken:
    token_id: bytes
    options: int
    issuer: str
    audience: str
    issued_time: str
    data: bytes
    binding: bytes
    signature: bytes
    version: int = VERSION
    token_type: int = TYPE_RECOVERY_TOKEN

    @classmethod
    def issue(
        cls,
        private_key: ec.EllipticCurvePrivateKey,
        token_id: bytes,
        options: int,
        issuer: str,
        audience: str,
        data: bytes = b"",
        binding: bytes = b"",
        issued_at: datetime | None = None,
    ) -> "RecoveryToken":
        """
        Build and sign a new recovery token.

        Args:
            private_key: Account provider signing key
            token_id: 16 random bytes identifying the token
            options: Bit flags (STATUS_REQUESTED_FLAG, LOW_FRICTION_REQUESTED_FLAG)
            issuer: Origin of the account provider (this service)
            audience: Origin of the recovery provider
            data: Opaque application data
            binding: Opaque binding data
            issued_at: Issue time, defaults to now (UTC, truncated to seconds)

        Raises:
            TokenSigningError: If a field cannot be encoded or signing fails
        """
        if len(token_id) != TOKEN_ID_LENGTH:
            raise TokenSigningError(f"Token ID must be {TOKEN_ID_LENGTH} bytes")
        if not 0 <= options <= 0xFF:
            raise TokenSigningError("Token options must fit in one byte")

        issued_at = issued_at or datetime.now(timezone.utc)
        unsigned = cls(
            token_id=token_id,
            options=options,
            issuer=issuer,
            audience=audience,
            issued_time=issued_at.astimezone(timezone.utc).strftime(ISSUED_TIME_FORMAT),
            data=data,
            binding=binding,
            signature=b"",
        )
        payload = unsigned.unsigned_bytes()
        try:
            signature = private_key.sign(payload, ec.ECDSA(hashes.SHA256()))
        except (ValueError, TypeError) as exc:
            raise TokenSigningError(f"Failed to sign recovery token: {exc}") from exc

        return replace(unsigned, signature=signature)

    def unsigned_bytes(self) -> bytes:
        """The signed portion of the token."""
        return b"".join([
            _HEADER.pack(self.version, self.token_type, self.token_id, self.options),
            _pack_field(_ascii(self.issuer, "issuer")),
            _pack_field(_ascii(self.audience, "audience")),
            _pack_field(_ascii(self.issued_time, "issued time")),
            _pack_field(self.data),
            _pack_field(self.binding),
        ])

    @property
    def decoded(self) -> bytes:
        return self.unsigned_bytes() + self.signature

    @property
    def encoded(self) -> str:
        return base64.b64encode(self.decoded).decode("ascii")

    @property
    def status_requested(self) -> bool:
        return bool(self.options & STATUS_REQUESTED_FLAG)

    @property
    def issued_at(self) -> datetime:
        return datetime.strptime(self.issued_time, ISSUED_TIME_FORMAT).replace(tzinfo=timezone.utc)

    @classmethod
    def decode(cls, encoded: str) -> "RecoveryToken":
        """
        Parse a base64 encoded token. The signature is not checked; call
        verify() with the issuer's public key for that.

        Raises:
            TokenFormatError: If the token is not valid base64 or is malformed
        """
        try:
            raw = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TokenFormatError("Token is not valid base64") from exc

        if len(raw) < _HEADER.size:
            raise TokenFormatError("Token shorter than its header")
        version, token_type, token_id, options = _HEADER.unpack_from(raw, 0)
        if version != VERSION:
            raise TokenFormatError(f"Unsupported token version {version}")
        if token_type != TYPE_RECOVERY_TOKEN:
            raise TokenFormatError(f"Unsupported token type {token_type}")

        offset = _HEADER.size
        fields = []
        for _ in range(5):
            value, offset = _read_field(raw, offset)
            fields.append(value)
        issuer, audience, issued_time, data, binding = fields

        signature = raw[offset:]
        if not signature:
            raise TokenFormatError("Token carries no signature")

        try:
            return cls(
                token_id=token_id,
                options=options,
                issuer=issuer.decode("ascii"),
                audience=audience.decode("ascii"),
                issued_time=issued_time.decode("ascii"),
                data=data,
                binding=binding,
                signature=signature,
                version=version,
                token_type=token_type,
            )
        except UnicodeDecodeError as exc:
            raise TokenFormatError("Token text fields must be ASCII") from exc

    def verify(self, public_key: ec.EllipticCurvePublicKey) -> bool:
        """Check the signature against the given public key."""
        try:
            public_key.verify(self.signature, self.unsigned_bytes(), ec.ECDSA(hashes.SHA256()))
        except (InvalidSignature, TokenSigningError):
            return False
        return True


@dataclass(frozen=True)
class TokenIssuer:
    """
    Signing identity of this service, built once at startup.

    Holds the private key together with the issuer/audience pair every
    token minted by the save-token flow carries.
    """
    private_key: ec.EllipticCurvePrivateKey
    issuer: str
    audience: str

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.private_key.public_key()

    def issue(self, token_id: bytes) -> RecoveryToken:
        """Mint a token that asks the provider for lifecycle callbacks."""
        return RecoveryToken.issue(
            self.private_key,
            token_id,
            STATUS_REQUESTED_FLAG,
            self.issuer,
            self.audience,
            data=b"",
            binding=b"",
        )

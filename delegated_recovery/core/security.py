import os
import base64
import hashlib

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from delegated_recovery.core.errors import ConfigurationError


TOKEN_ID_LENGTH = 16


def new_token_id() -> bytes:
    """Generate a cryptographically secure random token ID."""
    return os.urandom(TOKEN_ID_LENGTH)


def encode_hex(data: bytes) -> str:
    """Lowercase hex encoding used for token IDs in URLs and records."""
    return data.hex()


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    """Create a new P-256 signing key."""
    return ec.generate_private_key(ec.SECP256R1())


def private_key_to_pem(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def load_private_key(pem: str | None) -> ec.EllipticCurvePrivateKey:
    """
    Load the token signing key from a PEM string.

    Both PKCS#8 ("BEGIN PRIVATE KEY") and SEC1 ("BEGIN EC PRIVATE KEY")
    encodings are accepted. Literal "\\n" sequences are expanded so the key
    can be passed through single-line environment variables.

    Raises:
        ConfigurationError: If the key is missing, unreadable or not a
            P-256 elliptic curve key
    """
    if not pem or not pem.strip():
        raise ConfigurationError("RECOVERY_PRIVATE_KEY is not set")

    pem = pem.strip().replace("\\n", "\n")
    try:
        key = serialization.load_pem_private_key(pem.encode("ascii"), password=None)
    except (ValueError, TypeError, UnicodeEncodeError) as exc:
        raise ConfigurationError(f"RECOVERY_PRIVATE_KEY is not a valid PEM private key: {exc}") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ConfigurationError("RECOVERY_PRIVATE_KEY must be an elliptic curve key")
    if not isinstance(key.curve, ec.SECP256R1):
        raise ConfigurationError(
            f"RECOVERY_PRIVATE_KEY must use the secp256r1 curve, got {key.curve.name}"
        )
    return key


def public_key_to_b64(public_key: ec.EllipticCurvePublicKey) -> str:
    """Base64 of the DER SubjectPublicKeyInfo, as published in the well-known config."""
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der).decode("ascii")

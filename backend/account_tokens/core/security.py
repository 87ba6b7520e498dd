"""Token value generation and hashing.

Plain token values leave the system exactly once (returned to the caller for
delivery). Only the SHA-256 hash is persisted, so a leaked table or audit row
never yields a usable token.
"""

import hashlib
import secrets

# 32 bytes = 256 bits of entropy, URL-safe base64 (43 chars)
DEFAULT_TOKEN_BYTES = 32

# Floor for configured token length: 128 bits
MIN_TOKEN_BYTES = 16


def generate_token(nbytes: int = DEFAULT_TOKEN_BYTES) -> str:
    """Generate an unguessable URL-safe token value.

    Args:
        nbytes: Number of random bytes drawn from the OS CSPRNG.

    Returns:
        URL-safe token string.
    """
    return secrets.token_urlsafe(nbytes)


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest stored in place of ``token``."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_token_pair(nbytes: int = DEFAULT_TOKEN_BYTES) -> tuple[str, str]:
    """Generate a token and its hash.

    Returns:
        (plain_token, token_hash): plain for delivery, hash for DB storage.
    """
    plain = generate_token(nbytes)
    return plain, hash_token(plain)

"""Session errors.

Inbound (cookie loading) errors never leave the storage: they degrade to an
empty session. Outbound errors are raised from ``save()``; configuration
errors are raised when the storage is built.
"""
from typing import Optional


class SessionError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(SessionError, ValueError):
    """Malformed session options."""


class SessionStateError(SessionError, RuntimeError):
    """Operation not allowed in the current session state."""


class CryptoError(SessionError):
    """A pluggable encrypt/decrypt function failed."""

    def __init__(self, label: str, message: Optional[str] = None):
        self.label = label
        super().__init__(message or f"{label} function failed")


class CryptoTimeoutError(CryptoError, TimeoutError):
    """A pluggable encrypt/decrypt function did not settle in time."""

    def __init__(self, label: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            label,
            f"{label} function timed out. Ensure it completes "
            f"(calls back or returns) within {timeout}ms."
        )


class CryptoOperationError(CryptoError):
    """A pluggable encrypt/decrypt function raised or reported an error."""


class DecryptionError(CryptoOperationError):
    """Ciphertext is malformed, tampered or encrypted with another key."""

    def __init__(self, message: str = "Unable to decrypt session cookie"):
        super().__init__("Decryption", message)


class EnvelopeError(SessionError):
    """Base class for envelope codec errors."""


class EnvelopeParseError(EnvelopeError):
    """Decrypted text is not a valid session envelope."""


class EnvelopeEncodeError(EnvelopeError):
    """Session data cannot be serialized into an envelope."""


class ExpiredEnvelopeError(SessionError):
    """Envelope decrypted and parsed, but its expiry has passed."""

    def __init__(self, expire_at: int):
        self.expire_at = expire_at
        super().__init__(f"Session envelope expired at {expire_at}")


class SizeLimitExceeded(SessionError):
    """Encoded cookie value is larger than the configured budget."""

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"Cookie size exceeds limit: {size} bytes, "
            f"max allowed is {max_size} bytes."
        )


class EncryptionCheckError(SessionError):
    """Custom encrypt/decrypt functions failed the startup round-trip."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(message)

"""Navigator Cookie Session.

Stateless sessions for aiohttp: the whole session travels in a single
encrypted, authenticated and expiring cookie.
"""
from .version import __version__
from .conf import SESSION_KEY, SESSION_STORAGE
from .config import (
    CookieOptions,
    SessionConfig,
    generate_signing_key,
    load_signing_keys,
)
from .data import CookieMetadata, SessionData, SessionState
from .envelope import Envelope, parse_envelope, serialize_envelope
from .exceptions import (
    SessionError,
    ConfigurationError,
    SessionStateError,
    CryptoError,
    CryptoTimeoutError,
    CryptoOperationError,
    DecryptionError,
    EnvelopeError,
    EnvelopeParseError,
    EnvelopeEncodeError,
    ExpiredEnvelopeError,
    SizeLimitExceeded,
    EncryptionCheckError,
)
from .storage import EncryptedCookieStorage
from .middleware import STORAGE_APP_KEY, get_session, session_middleware, setup

__all__ = [
    "__version__",
    "SESSION_KEY",
    "SESSION_STORAGE",
    "STORAGE_APP_KEY",
    "CookieOptions",
    "SessionConfig",
    "generate_signing_key",
    "load_signing_keys",
    "CookieMetadata",
    "SessionData",
    "SessionState",
    "Envelope",
    "parse_envelope",
    "serialize_envelope",
    "SessionError",
    "ConfigurationError",
    "SessionStateError",
    "CryptoError",
    "CryptoTimeoutError",
    "CryptoOperationError",
    "DecryptionError",
    "EnvelopeError",
    "EnvelopeParseError",
    "EnvelopeEncodeError",
    "ExpiredEnvelopeError",
    "SizeLimitExceeded",
    "EncryptionCheckError",
    "EncryptedCookieStorage",
    "get_session",
    "session_middleware",
    "setup",
]

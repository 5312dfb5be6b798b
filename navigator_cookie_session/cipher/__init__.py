"""Cookie cipher — encryption providers, deadlines and key rotation.

Security Note (Threat Model):
    The session lives entirely in the client cookie. Confidentiality and
    integrity rest on the AEAD cipher and on keeping signing keys secret;
    a leaked key lets anyone forge sessions until it is removed from the
    key set. Replay of a still-valid cookie is not prevented.
"""

from .crypto import AEADCryptoProvider, encrypt_cookie, decrypt_cookie, derive_key
from .providers import (
    CryptoProvider,
    CallbackCryptoProvider,
    AsyncCryptoProvider,
    provider_from_functions,
)
from .timeout import with_timeout
from .key_rotation import KeyRotationResolver, Resolution, ResolutionState
from .selfcheck import verify_provider

__all__ = [
    "AEADCryptoProvider",
    "encrypt_cookie",
    "decrypt_cookie",
    "derive_key",
    "CryptoProvider",
    "CallbackCryptoProvider",
    "AsyncCryptoProvider",
    "provider_from_functions",
    "with_timeout",
    "KeyRotationResolver",
    "Resolution",
    "ResolutionState",
    "verify_provider",
]

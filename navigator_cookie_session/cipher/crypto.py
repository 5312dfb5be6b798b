"""
Cookie Crypto Core — key derivation and AEAD encryption of session envelopes.

Wire format: base64( IV 12B || TAG 16B || CIPHERTEXT ).

Security Note:
    Never log plaintext, ciphertext or signing keys.
    IVs are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import binascii
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..conf import CIPHER_BACKEND, IV_LENGTH, TAG_LENGTH
from ..exceptions import ConfigurationError, DecryptionError
from .providers import CryptoProvider

logger = logging.getLogger("navigator.session.cipher")

CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def get_cipher_cls(backend: str = CIPHER_BACKEND) -> type:
    """Return the AEAD cipher class for a backend name."""
    try:
        return CIPHERS[backend.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported cipher backend: {backend}"
        ) from None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(signing_key: str) -> bytes:
    """Derive a 32-byte key from a signing key with a single SHA-256 round."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(signing_key.encode("utf-8"))
    return digest.finalize()


# ---------------------------------------------------------------------------
# Envelope encryption
# ---------------------------------------------------------------------------

def encrypt_cookie(data: str, signing_key: str, cipher_cls: type = AESGCM) -> str:
    """Encrypt a serialized envelope into a cookie value.

    Args:
        data: Serialized envelope text.
        signing_key: Secret string the key is derived from.
        cipher_cls: AEAD cipher class (AESGCM or ChaCha20Poly1305).

    Returns:
        Base64 of [iv 12B][tag 16B][ciphertext].
    """
    cipher = cipher_cls(derive_key(signing_key))
    iv = os.urandom(IV_LENGTH)
    # cryptography appends the tag to the ciphertext
    sealed = cipher.encrypt(iv, data.encode("utf-8"), None)
    ct, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(iv + tag + ct).decode("ascii")


def decrypt_cookie(data: str, signing_key: str, cipher_cls: type = AESGCM) -> str:
    """Decrypt a cookie value produced by :func:`encrypt_cookie`.

    Raises:
        DecryptionError: On bad base64, short input, tag mismatch
            (tampering or wrong key) or non UTF-8 plaintext.
    """
    try:
        buffer = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError("Session cookie is not valid base64") from err
    _min = IV_LENGTH + TAG_LENGTH
    if len(buffer) < _min:
        raise DecryptionError(
            f"Session cookie too short: {len(buffer)} bytes (minimum {_min})"
        )
    iv = buffer[:IV_LENGTH]
    tag = buffer[IV_LENGTH:_min]
    ct = buffer[_min:]
    cipher = cipher_cls(derive_key(signing_key))
    try:
        plaintext = cipher.decrypt(iv, ct + tag, None)
    except InvalidTag as err:
        raise DecryptionError("Session cookie failed authentication") from err
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Session cookie plaintext is not UTF-8") from err


class AEADCryptoProvider(CryptoProvider):
    """Default provider: SHA-256 derived key, random IV, AES-256-GCM."""

    custom = False

    def __init__(self, cipher_backend: str = CIPHER_BACKEND):
        self.cipher_backend = cipher_backend.lower()
        self._cipher_cls = get_cipher_cls(cipher_backend)

    async def encrypt(self, data: str, key: str) -> str:
        return encrypt_cookie(data, key, self._cipher_cls)

    async def decrypt(self, data: str, key: str) -> str:
        return decrypt_cookie(data, key, self._cipher_cls)

    def __repr__(self) -> str:
        return f"<AEADCryptoProvider backend={self.cipher_backend}>"

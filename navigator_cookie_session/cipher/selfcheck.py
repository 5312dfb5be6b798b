"""
Startup self-check for custom encrypt/decrypt functions.

Round-trips a synthetic payload once, before the application accepts
traffic, so a broken provider is reported at boot instead of silently
emptying every session.
"""
import logging

import orjson

from ..conf import CHECK_MARKER, DEFAULT_TIMEOUT
from ..envelope import now_ms
from ..exceptions import CryptoError, EncryptionCheckError
from .providers import CryptoProvider
from .timeout import with_timeout

logger = logging.getLogger("navigator.session.cipher")


async def verify_provider(
    provider: CryptoProvider,
    key: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> None:
    """Encrypt then decrypt ``{marker, timestamp}`` and compare the result.

    Raises:
        EncryptionCheckError: ``stage`` is one of "encrypt", "decrypt",
            "parse" or "mismatch".
    """
    payload = {"marker": CHECK_MARKER, "timestamp": now_ms()}
    text = orjson.dumps(payload).decode("utf-8")
    try:
        encrypted = await with_timeout(
            "Encryption", lambda: provider.encrypt(text, key), timeout
        )
    except CryptoError as err:
        raise EncryptionCheckError(
            "encrypt",
            f"Failed to encrypt test data during initialization: {err}. "
            "Check your custom encrypt function and ensure it completes."
        ) from err
    try:
        decrypted = await with_timeout(
            "Decryption", lambda: provider.decrypt(encrypted, key), timeout
        )
    except CryptoError as err:
        raise EncryptionCheckError(
            "decrypt",
            f"Failed to decrypt test data during initialization: {err}. "
            "Check your custom decrypt function and ensure it completes."
        ) from err
    try:
        parsed = orjson.loads(decrypted)
    except (orjson.JSONDecodeError, TypeError) as err:
        raise EncryptionCheckError(
            "parse",
            f"Unable to parse decrypted test data: {err}. "
            "Decrypted output might be corrupted; check your decrypt function."
        ) from err
    if not isinstance(parsed, dict) or parsed.get("marker") != payload["marker"] \
            or parsed.get("timestamp") != payload["timestamp"]:
        raise EncryptionCheckError(
            "mismatch",
            "Decrypted data does not match the original test data. Verify "
            "that encrypt and decrypt preserve data integrity."
        )
    logger.debug("Custom crypto provider passed the startup round-trip")

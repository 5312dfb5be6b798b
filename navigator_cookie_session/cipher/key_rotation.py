"""
Key Rotation — open an inbound cookie with an ordered list of signing keys.

Keys are tried newest first, one at a time: key ``i+1`` is attempted only
after key ``i`` has failed (decrypt error, timeout, malformed envelope or
expired envelope). The first well-formed, non-expired envelope wins.
Nothing here raises for bad cookie content; callers get an EXHAUSTED
resolution instead.

Security Note:
    Never log cookie values or keys. Only log key indices and reasons.
"""
import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from ..conf import DEFAULT_TIMEOUT
from ..envelope import Envelope, now_ms, parse_envelope
from ..exceptions import CryptoError, EnvelopeParseError, ExpiredEnvelopeError
from .providers import CryptoProvider
from .timeout import with_timeout

logger = logging.getLogger("navigator.session.cipher")


class ResolutionState(enum.Enum):
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Resolution:
    state: ResolutionState
    envelope: Optional[Envelope] = None
    key_index: Optional[int] = None
    attempts: int = 0

    @property
    def accepted(self) -> bool:
        return self.state is ResolutionState.ACCEPTED


class KeyRotationResolver:
    """Sequential decrypt attempts over a signing key set."""

    def __init__(
        self,
        keys: Sequence[str],
        provider: CryptoProvider,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], int] = now_ms,
    ):
        if not keys:
            raise ValueError("KeyRotationResolver needs at least one key")
        self.keys = tuple(keys)
        self.provider = provider
        self.timeout = timeout
        self._clock = clock

    async def _attempt(self, cookie_value: str, key: str) -> Envelope:
        plaintext = await with_timeout(
            "Decryption",
            lambda: self.provider.decrypt(cookie_value, key),
            self.timeout,
        )
        if not isinstance(plaintext, (str, bytes)):
            raise EnvelopeParseError(
                f"Decryption returned {type(plaintext).__name__}, expected str"
            )
        envelope = parse_envelope(plaintext)
        if envelope.is_expired(self._clock()):
            raise ExpiredEnvelopeError(envelope.expire_at)
        return envelope

    async def resolve(self, cookie_value: Optional[str]) -> Resolution:
        """Try every key in order until one yields a valid envelope.

        Args:
            cookie_value: Raw (already percent-decoded) cookie value.

        Returns:
            ACCEPTED resolution with the envelope and key index, or an
            EXHAUSTED resolution when no key opened the cookie.
        """
        if not cookie_value:
            return Resolution(ResolutionState.EXHAUSTED)
        attempts = 0
        for index, key in enumerate(self.keys):
            attempts += 1
            try:
                envelope = await self._attempt(cookie_value, key)
            except (CryptoError, EnvelopeParseError, ExpiredEnvelopeError) as err:
                logger.debug(
                    "Session cookie rejected by key #%d: %s: %s",
                    index, type(err).__name__, err,
                )
                continue
            if index > 0:
                logger.debug(
                    "Session cookie accepted by rotated key #%d", index
                )
            return Resolution(
                ResolutionState.ACCEPTED,
                envelope=envelope,
                key_index=index,
                attempts=attempts,
            )
        return Resolution(ResolutionState.EXHAUSTED, attempts=attempts)

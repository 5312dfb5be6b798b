"""
EncryptedCookieStorage — stateless sessions carried in one encrypted cookie.

Provides the public API used by the middleware:
- ``load_session(cookie_value)`` — decrypt the inbound cookie (key rotation,
  deadline, expiry) into a loaded :class:`SessionData`; never raises for
  cookie content
- ``save_session(session)`` — encrypt the session (or emit a deletion
  cookie) and record the ``Set-Cookie`` header on it
- ``check_encryption()`` — startup round-trip of custom crypto functions

Security Note:
    Never log plaintext, ciphertext or signing keys. Only log sizes,
    key indices and states.
"""
import logging
from datetime import datetime, timezone
from collections.abc import Callable
from typing import Optional

from .config import SessionConfig
from .cookies import (
    EPOCH,
    check_cookie_size,
    decode_value,
    serialize_cookie,
)
from .data import CookieMetadata, SessionData
from .envelope import now_ms, serialize_envelope
from .exceptions import (
    ConfigurationError,
    CryptoOperationError,
    EncryptionCheckError,
)
from .cipher.key_rotation import KeyRotationResolver
from .cipher.selfcheck import verify_provider
from .cipher.timeout import with_timeout

logger = logging.getLogger("navigator.session")


class EncryptedCookieStorage:
    """Encrypted cookie session storage.

    Inbound cookies are opened with every configured key, newest first.
    Outbound cookies are always encrypted with the first key. The absolute
    expiry is fixed by a session's first save and reused afterwards.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], int] = now_ms,
        **options,
    ):
        if config is None:
            config = SessionConfig.create(**options)
        elif options:
            raise ConfigurationError(
                "Pass either a SessionConfig or keyword options, not both"
            )
        self.config = config
        self.provider = config.build_provider()
        self._clock = clock
        self._resolver = KeyRotationResolver(
            config.keys, self.provider, config.timeout, clock=clock
        )
        logger.debug(
            "Cookie session storage %r ready: %d key(s), provider=%r",
            config.name, len(config.keys), self.provider,
        )

    @property
    def cookie_name(self) -> str:
        return self.config.name

    def _cookie_metadata(self) -> CookieMetadata:
        opts = self.config.cookie
        return CookieMetadata(
            path=opts.path,
            http_only=opts.http_only,
            secure=opts.secure,
            same_site=opts.same_site,
            domain=opts.domain,
            original_max_age=opts.max_age_ms,
        )

    def new_session(self) -> SessionData:
        """An unloaded session bound to this storage."""
        return SessionData(storage=self, cookie=self._cookie_metadata())

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def load_session(self, cookie_value: Optional[str]) -> SessionData:
        """Build the request session from the session cookie value.

        ``cookie_value`` is the value as sent by the client (still
        percent-encoded), or None when the cookie is absent.

        Missing, undecryptable, malformed or expired cookies all produce an
        empty loaded session.
        """
        session = self.new_session()
        value = decode_value(cookie_value) if cookie_value else None
        resolution = await self._resolver.resolve(value)
        if resolution.accepted:
            envelope = resolution.envelope
            session.restore(envelope.data, envelope.expire_at)
        else:
            if value:
                logger.debug(
                    "Session cookie %r discarded after %d attempt(s)",
                    self.cookie_name, resolution.attempts,
                )
            session.mark_empty()
        return session

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _deletion_header(self) -> str:
        opts = self.config.cookie
        return serialize_cookie(
            self.cookie_name,
            "",
            expires=EPOCH,
            max_age=0,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            http_only=opts.http_only,
            same_site=opts.same_site,
        )

    async def encrypt(self, data: str) -> str:
        """Encrypt ``data`` with the newest signing key under the deadline."""
        encrypted = await with_timeout(
            "Encryption",
            lambda: self.provider.encrypt(data, self.config.signing_key),
            self.config.timeout,
        )
        if not isinstance(encrypted, str) or not encrypted:
            raise CryptoOperationError(
                "Encryption", "Encryption function must produce a non-empty string"
            )
        return encrypted

    async def save_session(self, session: SessionData) -> str:
        """Encrypt ``session`` and record its ``Set-Cookie`` header.

        Returns:
            The emitted header value.

        Raises:
            EnvelopeEncodeError: session data is not serializable.
            CryptoError: encryption failed or timed out.
            SizeLimitExceeded: the encoded cookie is over ``max_cookie_size``;
                no header is recorded.
        """
        data = session.session_data()
        if not data:
            header = self._deletion_header()
            session.emitted(header, deleted=True)
            logger.debug("Session %r is empty, deleting cookie", self.cookie_name)
            return header

        now = self._clock()
        expire_at = session.ensure_expire_at(now)
        encrypted = await self.encrypt(serialize_envelope(data, expire_at))
        size = check_cookie_size(encrypted, self.config.max_cookie_size)

        opts = self.config.cookie
        remaining = max(0, -(-(expire_at - now) // 1000))  # ceil to seconds
        header = serialize_cookie(
            self.cookie_name,
            encrypted,
            expires=datetime.fromtimestamp(expire_at / 1000, tz=timezone.utc),
            max_age=remaining,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            http_only=opts.http_only,
            same_site=opts.same_site,
        )
        session.emitted(header)
        logger.debug(
            "Session %r saved: %d bytes, expires at %d",
            self.cookie_name, size, expire_at,
        )
        return header

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def check_encryption(self, strict: Optional[bool] = None) -> bool:
        """Round-trip test data through custom encrypt/decrypt functions.

        Failures are logged; with ``strict`` (default: ``strict_check``
        option) they are raised as :class:`EncryptionCheckError`.

        Returns:
            True if the check passed or no custom functions are configured.
        """
        if not self.provider.custom:
            return True
        if strict is None:
            strict = self.config.strict_check
        try:
            await verify_provider(
                self.provider, self.config.signing_key, self.config.timeout
            )
        except EncryptionCheckError as err:
            logger.error(
                "Custom session crypto failed the startup check (%s): %s",
                err.stage, err,
            )
            if strict:
                raise
            return False
        return True

"""
aiohttp integration.

``setup(app, storage)`` installs :func:`session_middleware`, which loads the
session from the ``Cookie`` header before the handler runs and copies the
last ``Set-Cookie`` header produced by ``session.save()`` onto the response.
"""
import logging
from aiohttp import web, hdrs
from aiohttp.typedefs import Handler
from .conf import SESSION_KEY, SESSION_STORAGE
from .data import SessionData
from .storage import EncryptedCookieStorage

logger = logging.getLogger("navigator.session")

STORAGE_APP_KEY = web.AppKey(SESSION_STORAGE, EncryptedCookieStorage)


def session_middleware(storage: EncryptedCookieStorage):
    """Session middleware factory bound to ``storage``."""

    @web.middleware
    async def middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
        request[SESSION_STORAGE] = storage
        session = await storage.load_session(
            request.cookies.get(storage.cookie_name)
        )
        request[SESSION_KEY] = session
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            if session.set_cookie_header is not None:
                exc.headers.add(hdrs.SET_COOKIE, session.set_cookie_header)
            raise
        if session.set_cookie_header is not None:
            if response.prepared:
                logger.warning(
                    "Response already prepared, session cookie %r not sent",
                    storage.cookie_name,
                )
            else:
                response.headers.add(hdrs.SET_COOKIE, session.set_cookie_header)
        return response

    return middleware


def get_session(request: web.Request) -> SessionData:
    """Return the current request session.

    Raises:
        RuntimeError: If the session middleware is not installed.
    """
    try:
        return request[SESSION_KEY]
    except KeyError:
        raise RuntimeError(
            "Session not found, install the session middleware with setup()"
        ) from None


def setup(app: web.Application, storage: EncryptedCookieStorage) -> None:
    """Install the session middleware and the startup crypto check."""
    app[STORAGE_APP_KEY] = storage
    app.middlewares.append(session_middleware(storage))

    if storage.config.check_encryption and storage.provider.custom:
        async def _check_encryption(app: web.Application) -> None:
            await storage.check_encryption()

        app.on_startup.append(_check_encryption)

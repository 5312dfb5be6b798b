"""
Crypto Providers — the {encrypt, decrypt} capability used by the storage.

Internally every provider exposes the same coroutine signatures::

    await provider.encrypt(data, key) -> str
    await provider.decrypt(data, key) -> str

User-supplied functions come in one of two calling conventions and are
adapted here, once, at configuration time:

- callback style: ``encrypt(data, key, callback)`` where ``callback`` is
  invoked as ``callback(error, result)`` (possibly from another thread).
- awaitable style: ``encrypt(data, key)`` returns an awaitable, such as
  an ``async def`` function or one returning a future.
"""
import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from ..exceptions import ConfigurationError, CryptoOperationError

logger = logging.getLogger("navigator.session.cipher")

CallbackFunc = Callable[[str, str, Callable[..., None]], Any]
CoroutineFunc = Callable[[str, str], Awaitable[str]]


class CryptoProvider(ABC):
    """Interchangeable encrypt/decrypt capability."""

    custom: bool = True

    @abstractmethod
    async def encrypt(self, data: str, key: str) -> str:
        """Encrypt ``data`` with the signing key ``key``."""

    @abstractmethod
    async def decrypt(self, data: str, key: str) -> str:
        """Decrypt ``data`` with the signing key ``key``."""


class CallbackCryptoProvider(CryptoProvider):
    """Adapts callback-style ``(data, key, callback)`` functions."""

    def __init__(self, encrypt: CallbackFunc, decrypt: CallbackFunc):
        self._encrypt = encrypt
        self._decrypt = decrypt

    async def _call(self, label: str, func: CallbackFunc, data: str, key: str) -> str:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def resolve(error: Any, result: Any) -> None:
            # single-shot: later invocations are ignored
            if future.done():
                return
            if error is not None:
                if not isinstance(error, BaseException):
                    error = CryptoOperationError(label, str(error))
                future.set_exception(error)
            else:
                future.set_result(result)

        def callback(error: Any = None, result: Any = None) -> None:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(resolve, error, result)

        func(data, key, callback)
        return await future

    async def encrypt(self, data: str, key: str) -> str:
        return await self._call("Encryption", self._encrypt, data, key)

    async def decrypt(self, data: str, key: str) -> str:
        return await self._call("Decryption", self._decrypt, data, key)


class AsyncCryptoProvider(CryptoProvider):
    """Adapts awaitable-returning functions ``(data, key) -> awaitable``.

    Covers ``async def`` functions as well as plain callables returning a
    future, a task or a coroutine (e.g. ``loop.run_in_executor(...)``).
    """

    def __init__(self, encrypt: CoroutineFunc, decrypt: CoroutineFunc):
        self._encrypt = encrypt
        self._decrypt = decrypt

    async def _call(self, label: str, func: CoroutineFunc, data: str, key: str) -> str:
        result = func(data, key)
        if not inspect.isawaitable(result):
            raise CryptoOperationError(
                label,
                f"{label} function must return an awaitable, "
                f"got {type(result).__name__}"
            )
        return await result

    async def encrypt(self, data: str, key: str) -> str:
        return await self._call("Encryption", self._encrypt, data, key)

    async def decrypt(self, data: str, key: str) -> str:
        return await self._call("Decryption", self._decrypt, data, key)


CALLBACK = "callback"
AWAITABLE = "awaitable"


def _calling_convention(func: Callable) -> Optional[str]:
    """Guess how ``func`` delivers its result.

    ``async def`` functions (or instances with an ``async def __call__``)
    and plain callables taking exactly ``(data, key)`` are awaitable style;
    callables taking ``(data, key, callback)`` or ``*args`` are callback
    style. Returns None when the signature fits neither.
    """
    if inspect.iscoroutinefunction(func) or \
            inspect.iscoroutinefunction(getattr(func, "__call__", None)):
        return AWAITABLE
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    positional = 0
    for param in sig.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return CALLBACK
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional += 1
    if positional >= 3:
        return CALLBACK
    if positional == 2:
        return AWAITABLE
    return None


def provider_from_functions(
    encrypt: Optional[Callable],
    decrypt: Optional[Callable],
) -> Optional[CryptoProvider]:
    """Build a provider from user-supplied encrypt/decrypt functions.

    Returns:
        An adapted provider, or None if neither function was supplied.

    Raises:
        ConfigurationError: If only one function is given, a value is not
            callable, a signature fits no convention, or the two functions
            use different calling conventions.
    """
    if encrypt is None and decrypt is None:
        return None
    if encrypt is None or decrypt is None:
        raise ConfigurationError(
            "Both `encrypt` and `decrypt` functions must be provided together."
        )
    conventions = []
    for name, func in (("encrypt", encrypt), ("decrypt", decrypt)):
        if not callable(func):
            raise ConfigurationError(f"`{name}` must be a function.")
        convention = _calling_convention(func)
        if convention is None:
            raise ConfigurationError(
                f"`{name}` must accept (data, signing_key, callback) or "
                "accept (data, signing_key) and return an awaitable."
            )
        conventions.append(convention)
    if conventions[0] != conventions[1]:
        raise ConfigurationError(
            "`encrypt` and `decrypt` must use the same calling convention: "
            "both awaitable-returning or both callback-style functions."
        )
    logger.debug("Using %s-style custom crypto provider", conventions[0])
    if conventions[0] == AWAITABLE:
        return AsyncCryptoProvider(encrypt, decrypt)
    return CallbackCryptoProvider(encrypt, decrypt)

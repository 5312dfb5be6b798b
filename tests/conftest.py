"""Pytest configuration and fixtures for navigator-cookie-session tests."""
import asyncio
import pytest

from navigator_cookie_session.storage import EncryptedCookieStorage


def cookie_from_set_cookie(header: str) -> str:
    """Turn a Set-Cookie header into the Cookie header a browser would send."""
    return header.split(";", 1)[0]


def cookie_value(header: str) -> str:
    """The raw (still percent-encoded) value of a Set-Cookie header."""
    return cookie_from_set_cookie(header).split("=", 1)[1]


# --- custom crypto functions ---

def reverse_encrypt(data, key, callback):
    """Callback-style toy cipher: prefix with the key and reverse."""
    callback(None, (key + ":" + data)[::-1])


def reverse_decrypt(data, key, callback):
    plain = data[::-1]
    prefix = key + ":"
    if not plain.startswith(prefix):
        callback(ValueError("wrong key"))
        return
    callback(None, plain[len(prefix):])


async def async_reverse_encrypt(data, key):
    return (key + ":" + data)[::-1]


async def async_reverse_decrypt(data, key):
    plain = data[::-1]
    prefix = key + ":"
    if not plain.startswith(prefix):
        raise ValueError("wrong key")
    return plain[len(prefix):]


def future_encrypt(data, key):
    """Plain function returning an asyncio future instead of a coroutine."""
    return asyncio.ensure_future(async_reverse_encrypt(data, key))


def future_decrypt(data, key):
    return asyncio.ensure_future(async_reverse_decrypt(data, key))


def hanging_encrypt(data, key, callback):
    """Never calls back."""


def hanging_decrypt(data, key, callback):
    """Never calls back."""


async def async_hanging(data, key):
    await asyncio.sleep(3600)


@pytest.fixture
def keys():
    return ["k1"]


@pytest.fixture
def storage(keys):
    """Default AES-GCM storage with a one hour max age."""
    return EncryptedCookieStorage(keys=keys, cookie={"maxAge": 3600})


@pytest.fixture
def make_storage():
    """Factory for storages with custom options."""
    def _make(**options):
        options.setdefault("keys", ["k1"])
        return EncryptedCookieStorage(**options)
    return _make

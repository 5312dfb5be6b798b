"""
Tests for the default AEAD crypto provider and the provider adapters.
"""
import base64
import pytest

from navigator_cookie_session.cipher.crypto import (
    AEADCryptoProvider,
    decrypt_cookie,
    derive_key,
    encrypt_cookie,
    get_cipher_cls,
)
from navigator_cookie_session.cipher.providers import (
    AsyncCryptoProvider,
    CallbackCryptoProvider,
    provider_from_functions,
)
from navigator_cookie_session.conf import IV_LENGTH, TAG_LENGTH
from navigator_cookie_session.exceptions import (
    ConfigurationError,
    CryptoOperationError,
    DecryptionError,
)

from conftest import (
    async_reverse_decrypt,
    async_reverse_encrypt,
    future_decrypt,
    future_encrypt,
    reverse_decrypt,
    reverse_encrypt,
)


class TestKeyDerivation:

    def test_derived_key_is_sha256(self):
        import hashlib
        assert derive_key("secret") == hashlib.sha256(b"secret").digest()

    def test_derived_key_length(self):
        assert len(derive_key("k")) == 32


class TestDefaultCipher:
    """AES-256-GCM cookie format: base64(iv || tag || ciphertext)."""

    def test_round_trip(self):
        text = '{"data":{"role":"admin"},"expireAt":1}'
        assert decrypt_cookie(encrypt_cookie(text, "k1"), "k1") == text

    def test_layout(self):
        text = "hello"
        raw = base64.b64decode(encrypt_cookie(text, "k1"))
        assert len(raw) == IV_LENGTH + TAG_LENGTH + len(text.encode())

    def test_random_iv(self):
        assert encrypt_cookie("same", "k1") != encrypt_cookie("same", "k1")

    def test_unicode_round_trip(self):
        text = '{"name":"José ñandú ✓"}'
        assert decrypt_cookie(encrypt_cookie(text, "k1"), "k1") == text

    def test_wrong_key(self):
        with pytest.raises(DecryptionError):
            decrypt_cookie(encrypt_cookie("hello", "k1"), "k2")

    def test_tampered_tag(self):
        raw = bytearray(base64.b64decode(encrypt_cookie("hello", "k1")))
        raw[IV_LENGTH] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt_cookie(base64.b64encode(bytes(raw)).decode(), "k1")

    def test_tampered_ciphertext(self):
        raw = bytearray(base64.b64decode(encrypt_cookie("hello", "k1")))
        raw[-1] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt_cookie(base64.b64encode(bytes(raw)).decode(), "k1")

    @pytest.mark.parametrize("value", ["not base64!!", "", "YWJj"])
    def test_garbage(self, value):
        with pytest.raises(DecryptionError):
            decrypt_cookie(value, "k1")

    def test_chacha20_backend(self):
        cls = get_cipher_cls("chacha20")
        encrypted = encrypt_cookie("hello", "k1", cls)
        assert decrypt_cookie(encrypted, "k1", cls) == "hello"
        with pytest.raises(DecryptionError):
            decrypt_cookie(encrypted, "k1")

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            get_cipher_cls("rot13")


class TestProviders:

    @pytest.mark.asyncio
    async def test_aead_provider(self):
        provider = AEADCryptoProvider()
        assert provider.custom is False
        encrypted = await provider.encrypt("payload", "k1")
        assert await provider.decrypt(encrypted, "k1") == "payload"

    @pytest.mark.asyncio
    async def test_callback_provider(self):
        provider = CallbackCryptoProvider(reverse_encrypt, reverse_decrypt)
        assert provider.custom is True
        encrypted = await provider.encrypt("payload", "k1")
        assert await provider.decrypt(encrypted, "k1") == "payload"

    @pytest.mark.asyncio
    async def test_callback_provider_error(self):
        provider = CallbackCryptoProvider(reverse_encrypt, reverse_decrypt)
        encrypted = await provider.encrypt("payload", "k1")
        with pytest.raises(ValueError):
            await provider.decrypt(encrypted, "k2")

    @pytest.mark.asyncio
    async def test_callback_called_twice_settles_once(self):
        def twice(data, key, callback):
            callback(None, "first")
            callback(None, "second")
            callback(ValueError("late"))

        provider = CallbackCryptoProvider(twice, twice)
        assert await provider.encrypt("x", "k") == "first"

    @pytest.mark.asyncio
    async def test_callback_from_thread(self):
        import threading

        def threaded(data, key, callback):
            threading.Thread(target=callback, args=(None, data.upper())).start()

        provider = CallbackCryptoProvider(threaded, threaded)
        assert await provider.encrypt("abc", "k") == "ABC"

    @pytest.mark.asyncio
    async def test_async_provider(self):
        provider = AsyncCryptoProvider(async_reverse_encrypt, async_reverse_decrypt)
        encrypted = await provider.encrypt("payload", "k1")
        assert await provider.decrypt(encrypted, "k1") == "payload"

    @pytest.mark.asyncio
    async def test_future_returning_provider(self):
        provider = provider_from_functions(future_encrypt, future_decrypt)
        encrypted = await provider.encrypt("payload", "k1")
        assert encrypted != "payload"
        assert await provider.decrypt(encrypted, "k1") == "payload"

    @pytest.mark.asyncio
    async def test_executor_provider(self):
        import asyncio

        def in_executor(data, key):
            loop = asyncio.get_running_loop()
            return loop.run_in_executor(None, str.upper, data)

        provider = provider_from_functions(in_executor, in_executor)
        assert await provider.encrypt("abc", "k") == "ABC"

    @pytest.mark.asyncio
    async def test_non_awaitable_result(self):
        def plain(data, key):
            return data

        provider = provider_from_functions(plain, plain)
        with pytest.raises(CryptoOperationError):
            await provider.encrypt("abc", "k")


class TestProviderFromFunctions:

    def test_none(self):
        assert provider_from_functions(None, None) is None

    def test_callback_style(self):
        provider = provider_from_functions(reverse_encrypt, reverse_decrypt)
        assert isinstance(provider, CallbackCryptoProvider)

    def test_coroutine_style(self):
        provider = provider_from_functions(async_reverse_encrypt, async_reverse_decrypt)
        assert isinstance(provider, AsyncCryptoProvider)

    def test_only_one(self):
        with pytest.raises(ConfigurationError):
            provider_from_functions(reverse_encrypt, None)

    def test_mixed_conventions(self):
        with pytest.raises(ConfigurationError):
            provider_from_functions(reverse_encrypt, async_reverse_decrypt)

    def test_unusable_arity(self):
        def one_arg(data):
            return data

        with pytest.raises(ConfigurationError):
            provider_from_functions(one_arg, one_arg)

    def test_future_returning_style(self):
        provider = provider_from_functions(future_encrypt, future_decrypt)
        assert isinstance(provider, AsyncCryptoProvider)

    def test_async_callable_instance(self):
        class Reverser:
            async def __call__(self, data, key):
                return data[::-1]

        provider = provider_from_functions(Reverser(), Reverser())
        assert isinstance(provider, AsyncCryptoProvider)

    def test_future_and_callback_mixed(self):
        with pytest.raises(ConfigurationError):
            provider_from_functions(future_encrypt, reverse_decrypt)

    def test_not_callable(self):
        with pytest.raises(ConfigurationError):
            provider_from_functions("encrypt", "decrypt")

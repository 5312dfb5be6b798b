"""
Tests for the startup self-check of custom crypto functions.
"""
import pytest

from navigator_cookie_session.cipher.crypto import AEADCryptoProvider
from navigator_cookie_session.cipher.providers import (
    AsyncCryptoProvider,
    CallbackCryptoProvider,
)
from navigator_cookie_session.cipher.selfcheck import verify_provider
from navigator_cookie_session.exceptions import EncryptionCheckError

from conftest import (
    async_reverse_decrypt,
    async_reverse_encrypt,
    hanging_decrypt,
    hanging_encrypt,
    reverse_decrypt,
    reverse_encrypt,
)


def identity(data, key, callback):
    callback(None, data)


class TestVerifyProvider:

    @pytest.mark.asyncio
    async def test_default_provider_passes(self):
        await verify_provider(AEADCryptoProvider(), "k1")

    @pytest.mark.asyncio
    async def test_callback_provider_passes(self):
        await verify_provider(
            CallbackCryptoProvider(reverse_encrypt, reverse_decrypt), "k1"
        )

    @pytest.mark.asyncio
    async def test_async_provider_passes(self):
        await verify_provider(
            AsyncCryptoProvider(async_reverse_encrypt, async_reverse_decrypt), "k1"
        )

    @pytest.mark.asyncio
    async def test_encrypt_timeout(self):
        provider = CallbackCryptoProvider(hanging_encrypt, identity)
        with pytest.raises(EncryptionCheckError) as exc_info:
            await verify_provider(provider, "k1", timeout=50)
        assert exc_info.value.stage == "encrypt"

    @pytest.mark.asyncio
    async def test_decrypt_timeout(self):
        provider = CallbackCryptoProvider(identity, hanging_decrypt)
        with pytest.raises(EncryptionCheckError) as exc_info:
            await verify_provider(provider, "k1", timeout=50)
        assert exc_info.value.stage == "decrypt"

    @pytest.mark.asyncio
    async def test_decrypt_error(self):
        def failing(data, key, callback):
            callback(RuntimeError("no"))

        provider = CallbackCryptoProvider(identity, failing)
        with pytest.raises(EncryptionCheckError) as exc_info:
            await verify_provider(provider, "k1")
        assert exc_info.value.stage == "decrypt"

    @pytest.mark.asyncio
    async def test_unparsable(self):
        def garbage(data, key, callback):
            callback(None, "<<not json>>")

        provider = CallbackCryptoProvider(identity, garbage)
        with pytest.raises(EncryptionCheckError) as exc_info:
            await verify_provider(provider, "k1")
        assert exc_info.value.stage == "parse"

    @pytest.mark.asyncio
    async def test_mismatch(self):
        def other(data, key, callback):
            callback(None, '{"marker": "other", "timestamp": 1}')

        provider = CallbackCryptoProvider(identity, other)
        with pytest.raises(EncryptionCheckError) as exc_info:
            await verify_provider(provider, "k1")
        assert exc_info.value.stage == "mismatch"

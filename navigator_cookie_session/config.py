"""
Session Configuration — signing keys, cookie options and validated settings.

Options may be given in camelCase (``maxAge``, ``sameSite``) or snake_case.
Signing keys can be read from environment variables in the format:
    SESSION_SIGNING_KEY_v{N} = <secret string>
and are ordered newest version first (the newest key encrypts).

Security Note:
    Never log key material. Only log key counts and versions.
"""
import os
import re
import secrets
import logging
from collections.abc import Callable
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from .conf import (
    CIPHER_BACKEND,
    COOKIE_OPTION_NAMES,
    DEFAULT_COOKIE_NAME,
    DEFAULT_COOKIE_OPTIONS,
    DEFAULT_MAX_COOKIE_SIZE,
    DEFAULT_TIMEOUT,
    RESERVED_COOKIE_NAMES,
    SAME_SITE_VALUES,
)
from .exceptions import ConfigurationError
from .cipher.crypto import CIPHERS, AEADCryptoProvider
from .cipher.providers import CryptoProvider, provider_from_functions

logger = logging.getLogger("navigator.session")

_KEY_ENV_PATTERN = re.compile(r"^SESSION_SIGNING_KEY_v(\d+)$")
# RFC 6265 cookie-name token characters
_COOKIE_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


def load_signing_keys() -> list[str]:
    """Load signing keys from SESSION_SIGNING_KEY_v{N} environment variables.

    Returns:
        Key strings ordered by version, highest (newest) first.

    Raises:
        RuntimeError: If no signing keys are found in the environment.
    """
    keys: dict[int, str] = {}
    for name, value in os.environ.items():
        match = _KEY_ENV_PATTERN.match(name)
        if match and value:
            keys[int(match.group(1))] = value
    if not keys:
        raise RuntimeError(
            "No session signing keys found in environment. "
            "Set SESSION_SIGNING_KEY_v1=<secret>"
        )
    versions = sorted(keys, reverse=True)
    logger.debug("Loaded %d signing key version(s): %s", len(keys), versions)
    return [keys[v] for v in versions]


def generate_signing_key() -> str:
    """Generate a random URL-safe signing key (32 bytes of entropy).

    This is a utility for operators to generate new keys.
    """
    return secrets.token_urlsafe(32)


class CookieOptions(BaseModel):
    """Transport attributes of the session cookie."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    path: StrictStr = DEFAULT_COOKIE_OPTIONS["path"]
    http_only: StrictBool = Field(
        default=DEFAULT_COOKIE_OPTIONS["http_only"], alias="httpOnly"
    )
    secure: StrictBool = DEFAULT_COOKIE_OPTIONS["secure"]
    same_site: StrictStr = Field(
        default=DEFAULT_COOKIE_OPTIONS["same_site"], alias="sameSite"
    )
    domain: Optional[StrictStr] = DEFAULT_COOKIE_OPTIONS["domain"]
    max_age: float = Field(
        default=DEFAULT_COOKIE_OPTIONS["max_age"],
        alias="maxAge",
        ge=0,
        strict=True,
        allow_inf_nan=False,
    )

    @model_validator(mode="before")
    @classmethod
    def warn_unknown_options(cls, data: Any) -> Any:
        """Unknown cookie options are reported, not rejected."""
        if isinstance(data, dict):
            for key in data:
                if key not in COOKIE_OPTION_NAMES:
                    logger.warning('Unknown cookie option "%s" detected.', key)
        return data

    @field_validator("same_site")
    @classmethod
    def validate_same_site(cls, v: str) -> str:
        v = v.lower()
        if v not in SAME_SITE_VALUES:
            raise ValueError(
                '`cookie.sameSite` must be one of: "lax", "strict", or "none".'
            )
        return v

    @property
    def max_age_ms(self) -> int:
        return int(self.max_age * 1000)


class SessionConfig(BaseModel):
    """Validated cookie session configuration."""

    model_config = ConfigDict(
        populate_by_name=True, arbitrary_types_allowed=True, frozen=True
    )

    name: StrictStr = DEFAULT_COOKIE_NAME
    keys: tuple[StrictStr, ...] = Field(min_length=1)
    cookie: CookieOptions = Field(default_factory=CookieOptions)
    max_cookie_size: float = Field(
        default=DEFAULT_MAX_COOKIE_SIZE,
        alias="maxCookieSize",
        gt=0,
        strict=True,
        allow_inf_nan=False,
    )
    encrypt: Optional[Callable] = None
    decrypt: Optional[Callable] = None
    timeout: float = Field(
        default=DEFAULT_TIMEOUT, gt=0, strict=True, allow_inf_nan=False
    )
    check_encryption: StrictBool = Field(default=False, alias="checkEncryption")
    strict_check: StrictBool = Field(default=False, alias="strictCheck")
    cipher_backend: StrictStr = Field(default=CIPHER_BACKEND, alias="cipherBackend")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("`name` must be a non-empty string.")
        if not _COOKIE_NAME_PATTERN.match(v):
            raise ValueError(f"`name` is not a valid cookie name: {v!r}")
        if v.lower() in RESERVED_COOKIE_NAMES:
            raise ValueError(f"`name` is a reserved cookie attribute: {v!r}")
        return v

    @field_validator("keys")
    @classmethod
    def validate_keys(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not all(v):
            raise ValueError("`keys` must be a non-empty list of non-empty strings.")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_provider_pair(self) -> "SessionConfig":
        if (self.encrypt is None) != (self.decrypt is None):
            raise ValueError(
                "Both `encrypt` and `decrypt` functions must be provided together."
            )
        return self

    @property
    def signing_key(self) -> str:
        """The key used to encrypt new cookies."""
        return self.keys[0]

    @property
    def custom_crypto(self) -> bool:
        return self.encrypt is not None

    def build_provider(self) -> CryptoProvider:
        """Adapt custom functions, or fall back to the AEAD provider."""
        provider = provider_from_functions(self.encrypt, self.decrypt)
        if provider is None:
            provider = AEADCryptoProvider(self.cipher_backend)
        return provider

    @classmethod
    def create(cls, **options) -> "SessionConfig":
        """Validate options, raising ConfigurationError on any problem."""
        try:
            return cls.model_validate(options)
        except ValidationError as err:
            raise ConfigurationError(str(err)) from err

    @classmethod
    def from_env(cls, **overrides) -> "SessionConfig":
        """Create SessionConfig by loading values from environment.

        Returns:
            Populated SessionConfig instance.
        """
        options: dict[str, Any] = {
            "keys": load_signing_keys(),
            "name": os.environ.get("SESSION_COOKIE_NAME", DEFAULT_COOKIE_NAME),
            "cipher_backend": os.environ.get("SESSION_CIPHER_BACKEND", CIPHER_BACKEND),
        }
        if "SESSION_MAX_AGE" in os.environ:
            options["cookie"] = {"max_age": float(os.environ["SESSION_MAX_AGE"])}
        if "SESSION_TIMEOUT" in os.environ:
            options["timeout"] = float(os.environ["SESSION_TIMEOUT"])
        options.update(overrides)
        return cls.create(**options)

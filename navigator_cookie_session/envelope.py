"""
Envelope Codec — the plaintext structure encrypted into the cookie.

    {"data": {...session fields...}, "expireAt": <unix milliseconds>}

Cookie metadata (path, flags, max age) is transport-only and never part of
the envelope.
"""
import time
from typing import Any
from collections.abc import Mapping

import orjson
from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from .exceptions import EnvelopeEncodeError, EnvelopeParseError


def now_ms() -> int:
    """Current server time as unix milliseconds."""
    return int(time.time() * 1000)


class Envelope(BaseModel):
    """Decrypted session payload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    data: dict[str, Any]
    expire_at: StrictInt = Field(alias="expireAt")

    def is_expired(self, now: int | None = None) -> bool:
        """True once ``now`` (ms) is strictly past ``expire_at``."""
        if now is None:
            now = now_ms()
        return now > self.expire_at


def serialize_envelope(data: Mapping[str, Any], expire_at: int) -> str:
    """Serialize session data and an absolute expiry into envelope text.

    Raises:
        EnvelopeEncodeError: If the data is not JSON serializable.
    """
    try:
        return orjson.dumps(
            {"data": dict(data), "expireAt": int(expire_at)}
        ).decode("utf-8")
    except (orjson.JSONEncodeError, TypeError) as err:
        raise EnvelopeEncodeError(
            f"Session data is not serializable: {err}"
        ) from err


def parse_envelope(text: str | bytes) -> Envelope:
    """Parse decrypted text back into an :class:`Envelope`.

    Raises:
        EnvelopeParseError: If the text is not JSON or not envelope-shaped.
    """
    try:
        raw = orjson.loads(text)
    except orjson.JSONDecodeError as err:
        raise EnvelopeParseError("Envelope is not valid JSON") from err
    if not isinstance(raw, dict):
        raise EnvelopeParseError("Envelope must be a JSON object")
    try:
        return Envelope.model_validate(raw)
    except ValidationError as err:
        raise EnvelopeParseError(
            f"Malformed envelope: {err.error_count()} error(s)"
        ) from err

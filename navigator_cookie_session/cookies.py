"""
Cookie header helpers.

Values are percent-encoded the way browsers' ``encodeURIComponent`` does,
and the encoded form is what the size budget is measured against.
"""
from datetime import datetime, timezone
from email.utils import format_datetime
from http.cookies import Morsel
from urllib.parse import quote, unquote
from typing import Optional

from .exceptions import SizeLimitExceeded

# characters encodeURIComponent leaves alone besides alphanumerics and -_.~
_URI_COMPONENT_SAFE = "!*'()"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def encode_value(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def decode_value(value: str) -> str:
    return unquote(value)


def cookie_size(value: str) -> int:
    """Bytes taken by ``value`` once percent-encoded into a header."""
    return len(encode_value(value).encode("utf-8"))


def check_cookie_size(value: str, max_size: int) -> int:
    """Size Guard for outbound cookie values.

    Returns:
        The encoded size in bytes.

    Raises:
        SizeLimitExceeded: If the encoded size is larger than ``max_size``.
    """
    size = cookie_size(value)
    if size > max_size:
        raise SizeLimitExceeded(size, int(max_size))
    return size


def serialize_cookie(
    name: str,
    value: str,
    *,
    expires: datetime,
    max_age: int,
    path: str = "/",
    domain: Optional[str] = None,
    secure: bool = False,
    http_only: bool = True,
    same_site: Optional[str] = "lax",
) -> str:
    """Build a ``Set-Cookie`` header value."""
    morsel: Morsel = Morsel()
    morsel.set(name, value, encode_value(value))
    if path:
        morsel["path"] = path
    if domain:
        morsel["domain"] = domain
    morsel["expires"] = format_datetime(expires.astimezone(timezone.utc), usegmt=True)
    morsel["max-age"] = max(int(max_age), 0)
    if secure:
        morsel["secure"] = True
    if http_only:
        morsel["httponly"] = True
    if same_site:
        morsel["samesite"] = same_site.capitalize()
    return morsel.OutputString()

"""
Session constants and defaults.

Process-wide, read-only values: cipher layout, default cookie options and
the keys under which the middleware stores objects on the request.
"""
from http.cookies import Morsel
from types import MappingProxyType

# request keys
SESSION_KEY = 'session'
SESSION_STORAGE = 'session_storage'

# cipher layout
CIPHER_BACKEND = 'aesgcm'
IV_LENGTH = 12  # 96-bit nonce
TAG_LENGTH = 16  # 128-bit authentication tag
KEY_LENGTH = 32  # AES-256

DEFAULT_COOKIE_NAME = 'session'
DEFAULT_MAX_COOKIE_SIZE = 4096
DEFAULT_TIMEOUT = 3000  # milliseconds
DEFAULT_MAX_AGE = 24 * 60 * 60  # 1 day, in seconds

DEFAULT_COOKIE_OPTIONS = MappingProxyType({
    'path': '/',
    'http_only': True,
    'secure': False,
    'same_site': 'lax',
    'domain': None,
    'max_age': DEFAULT_MAX_AGE,
})

SAME_SITE_VALUES = ('lax', 'strict', 'none')
# cookie attribute names, not usable as the session cookie name
RESERVED_COOKIE_NAMES = frozenset(Morsel._reserved)
COOKIE_OPTION_NAMES = frozenset({
    'path', 'httpOnly', 'http_only', 'secure', 'sameSite', 'same_site',
    'domain', 'maxAge', 'max_age',
})

# payload used by the startup self-check
CHECK_MARKER = 'navigator-cookie-session'

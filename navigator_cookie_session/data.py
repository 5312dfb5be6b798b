import enum
from typing import Optional, Any, TYPE_CHECKING
from datetime import datetime, timezone
from dataclasses import dataclass, replace
from collections.abc import Callable, Iterator, Mapping, MutableMapping
import jsonpickle
from jsonpickle.unpickler import loadclass
from datamodel import BaseModel
from pydantic import BaseModel as PydanticBaseModel
from .exceptions import SessionStateError

if TYPE_CHECKING:
    from .storage import EncryptedCookieStorage


class ModelHandler(jsonpickle.handlers.BaseHandler):
    """ModelHandler.
    This class can handle with serializable Data Models.
    """
    def flatten(self, obj, data):
        data['__dict__'] = self.context.flatten(obj.__dict__, reset=False)
        return data

    def restore(self, obj):
        module_and_type = obj['py/object']
        mdl = loadclass(module_and_type)
        cls = mdl.__new__(mdl) if hasattr(mdl, '__new__') else object.__new__(mdl)
        cls.__dict__ = self.context.restore(obj['__dict__'], reset=False)
        return cls

jsonpickle.handlers.registry.register(BaseModel, ModelHandler, base=True)


class PydanticHandler(jsonpickle.handlers.BaseHandler):
    """PydanticHandler.
    This class can handle with serializable Pydantic Models.
    """
    def flatten(self, obj, data):
        data['__dict__'] = self.context.flatten(obj.__dict__, reset=False)
        return data

    def restore(self, obj):
        module_and_type = obj['py/object']
        mdl = loadclass(module_and_type)
        values = self.context.restore(obj['__dict__'], reset=False)
        return mdl.model_construct(**values)

jsonpickle.handlers.registry.register(PydanticBaseModel, PydanticHandler, base=True)


class SessionState(enum.Enum):
    UNLOADED = 'unloaded'
    LOADED_EMPTY = 'loaded-empty'
    LOADED_RESTORED = 'loaded-restored'
    SAVED = 'saved'
    DELETED = 'deleted'


LOADED_STATES = frozenset({
    SessionState.LOADED_EMPTY,
    SessionState.LOADED_RESTORED,
    SessionState.SAVED,
    SessionState.DELETED,
})


@dataclass(frozen=True)
class CookieMetadata:
    """Transport metadata of the session cookie (never encrypted)."""
    path: str
    http_only: bool
    secure: bool
    same_site: str
    domain: Optional[str]
    original_max_age: int  # milliseconds
    expires: Optional[datetime] = None

    def with_expiry(self, expire_at: Optional[int]) -> 'CookieMetadata':
        if expire_at is None:
            return replace(self, expires=None)
        return replace(
            self,
            expires=datetime.fromtimestamp(expire_at / 1000, tz=timezone.utc)
        )


class SessionData(MutableMapping[str, Any]):
    """Session dict-like object bound to a single request.

    Supports both serializable data (stored in _data and written into the
    encrypted cookie) and in-memory objects (stored in _objects, alive only
    for the current request).

    Non-serializable objects (class instances, etc.) are automatically
    stored in _objects when assigned via session.key = value or session['key'] = value.
    """

    # Internal attributes that should not be stored in _data or _objects
    _internal_attrs = frozenset({
        '_data', '_objects', '_changed', '_new', '_state', '_storage',
        '_cookie', '_expire_at', '_set_cookie', '__created__', 'args'
    })

    def __init__(
        self,
        *args,
        storage: Optional['EncryptedCookieStorage'] = None,
        cookie: Optional[CookieMetadata] = None,
    ) -> None:
        # Initialize internal storage first (before any attribute access)
        object.__setattr__(self, '_data', {})
        object.__setattr__(self, '_objects', {})
        object.__setattr__(self, '_changed', False)
        self._new = True
        self._state = SessionState.UNLOADED
        self._storage = storage
        self._cookie = cookie
        # absolute expiry (unix ms), computed once per session lifetime
        self._expire_at: Optional[int] = None
        # last Set-Cookie header emitted by save()
        self._set_cookie: Optional[str] = None
        self.__created__ = datetime.now(timezone.utc)
        self.args = args

    def __repr__(self) -> str:
        return (
            f'<NAV-CookieSession [state:{self._state.value}, new:{self.new}] '
            f'data={self._data!r}, objects={list(self._objects.keys())}>'
        )

    # --- Loading ---

    def mark_empty(self) -> None:
        """Loaded without a usable cookie."""
        self._new = True
        self._state = SessionState.LOADED_EMPTY

    def restore(self, data: Mapping[str, Any], expire_at: int) -> None:
        """Loaded from a decrypted, non-expired envelope."""
        self._data.update(data)
        self._expire_at = expire_at
        if self._cookie is not None:
            self._cookie = self._cookie.with_expiry(expire_at)
        self._new = False
        self._changed = False
        self._state = SessionState.LOADED_RESTORED

    # --- Serialization helpers ---

    def _is_serializable(self, value: Any) -> bool:
        """Check if a value can be written into the JSON envelope.

        Returns True for JSON primitives, datetimes, and dicts/lists made of them.
        Returns False for class instances, bytes and anything else that would
        not survive a JSON round-trip; those live in memory only.
        """
        if value is None or isinstance(value, (bool, int, float, str)):
            return True

        if isinstance(value, dict):
            return all(
                isinstance(k, str) and self._is_serializable(v)
                for k, v in value.items()
            )
        if isinstance(value, (list, tuple)):
            return all(self._is_serializable(v) for v in value)

        # datetimes are written as ISO-8601 strings
        if isinstance(value, datetime):
            return True

        return False

    def _get_value(self, key: str) -> Any:
        """Unified getter that checks both _objects and _data."""
        if key in self._objects:
            return self._objects[key]
        if key in self._data:
            return self._data[key]
        raise KeyError(key)

    def _set_value(self, key: str, value: Any) -> None:
        """Unified setter that routes to _objects or _data based on serializability."""
        if self._is_serializable(value):
            self._objects.pop(key, None)
            self._data[key] = value
            self._changed = True
        else:
            # in-memory only, changes here don't mark the session as changed
            self._data.pop(key, None)
            self._objects[key] = value

    def _del_value(self, key: str) -> None:
        """Unified delete that removes from both _objects and _data."""
        deleted = False
        if key in self._objects:
            del self._objects[key]
            deleted = True
        if key in self._data:
            del self._data[key]
            self._changed = True
            deleted = True
        if not deleted:
            raise KeyError(key)

    def _has_value(self, key: str) -> bool:
        """Check if key exists in either _objects or _data."""
        return key in self._objects or key in self._data

    # --- Properties ---

    @property
    def new(self) -> bool:
        return self._new

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def loaded(self) -> bool:
        return self._state in LOADED_STATES

    @property
    def logon_time(self) -> datetime:
        return self.__created__

    @property
    def cookie(self) -> Optional[CookieMetadata]:
        return self._cookie

    @property
    def expire_at(self) -> Optional[int]:
        return self._expire_at

    @property
    def set_cookie_header(self) -> Optional[str]:
        return self._set_cookie

    @property
    def empty(self) -> bool:
        return not bool(self._data) and not bool(self._objects)

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def changed(self) -> None:
        self._changed = True

    def session_data(self) -> dict:
        """Return only serializable data (for persistence)."""
        return self._data

    def session_objects(self) -> dict:
        """Return in-memory objects (not persisted)."""
        return self._objects

    def invalidate(self) -> None:
        """Clear all session data and in-memory objects."""
        self._changed = True
        self._data = {}
        self._objects = {}

    # --- Lifecycle ---

    def _require_loaded(self, operation: str) -> None:
        if not self.loaded:
            raise SessionStateError(
                f"Cannot {operation} a session in state {self._state.value}"
            )

    def _require_storage(self, operation: str) -> 'EncryptedCookieStorage':
        self._require_loaded(operation)
        if self._storage is None:
            raise SessionStateError(
                f"Cannot {operation} a session without a storage"
            )
        return self._storage

    def ensure_expire_at(self, now: int) -> int:
        """Expiry for this session, fixed by the first save."""
        if self._expire_at is None:
            self._expire_at = now + self._storage.config.cookie.max_age_ms
            if self._cookie is not None:
                self._cookie = self._cookie.with_expiry(self._expire_at)
        return self._expire_at

    def emitted(self, header: str, deleted: bool = False) -> None:
        """Record the Set-Cookie header produced by the storage."""
        self._set_cookie = header
        self._changed = False
        self._state = SessionState.DELETED if deleted else SessionState.SAVED

    async def save(self, callback: Optional[Callable[[Optional[Exception]], Any]] = None) -> None:
        """Encrypt the current data into a Set-Cookie header.

        An empty session emits a deletion cookie instead. Each call
        re-encrypts and replaces the previously emitted header.

        Args:
            callback: optional ``callback(error)``; when given, errors are
                passed to it instead of being raised.

        Raises:
            SessionStateError: session is not loaded.
            SizeLimitExceeded: encrypted cookie exceeds the size budget.
            CryptoError: encryption failed or timed out.
        """
        try:
            storage = self._require_storage('save')
            await storage.save_session(self)
        except Exception as err:
            if callback is None:
                raise
            callback(err)
            return
        if callback is not None:
            callback(None)

    async def regenerate(self, callback: Optional[Callable[[Optional[Exception]], Any]] = None) -> None:
        """Drop all data, keeping cookie metadata and the session expiry."""
        try:
            self._require_loaded('regenerate')
        except SessionStateError as err:
            if callback is None:
                raise
            callback(err)
            return
        self.invalidate()
        self._new = True
        self._state = SessionState.LOADED_EMPTY
        if callback is not None:
            callback(None)

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._data) + len(self._objects)

    def __iter__(self) -> Iterator[str]:
        # Iterate over both _data and _objects keys
        seen = set()
        for key in self._data:
            seen.add(key)
            yield key
        for key in self._objects:
            if key not in seen:
                yield key

    def __contains__(self, key: object) -> bool:
        return self._has_value(str(key))

    def __getitem__(self, key: str) -> Any:
        return self._get_value(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._set_value(key, value)

    def __delitem__(self, key: str) -> None:
        self._del_value(key)

    def __getattr__(self, key: str) -> Any:
        # Avoid infinite recursion for internal attributes
        if key.startswith('_'):
            raise AttributeError(key)
        try:
            return self._get_value(key)
        except KeyError:
            raise AttributeError(key) from None

    def __setattr__(self, key: str, value: Any) -> None:
        # internal attributes and properties are not session data
        if key in self._internal_attrs or key.startswith('_') or \
                isinstance(getattr(type(self), key, None), property):
            object.__setattr__(self, key, value)
        else:
            self._set_value(key, value)

    def encode(self, obj: Any) -> str:
        """encode

            Encode an object using jsonpickle.
        Args:
            obj (Any): Object to be encoded using jsonpickle

        Raises:
            RuntimeError: Error converting data to json.

        Returns:
            str: json version of the data
        """
        try:
            return jsonpickle.encode(obj)
        except Exception as err:
            raise RuntimeError(err) from err

    def decode(self, key: str) -> Any:
        """decode.

            Decoding a Session Key using jsonpickle.

            The value comes from the client-held cookie, so it is only as
            trustworthy as the crypto provider's authentication. Decoding
            runs in jsonpickle safe mode (no ``eval`` of ``py/repr``), but
            ``py/object`` payloads still instantiate importable classes.
        Args:
            key (str): key name.

        Raises:
            RuntimeError: Error converting data from json.

        Returns:
            Any: object converted.
        """
        try:
            value = self._data[key]
            return jsonpickle.decode(value, safe=True)
        except KeyError:
            # key is missing
            return None
        except Exception as err:
            raise RuntimeError(err) from err

    async def save_encoded_data(self, key: str, obj: Any) -> None:
        """Store ``obj`` jsonpickle-encoded under ``key`` and save the session."""
        self._data[key] = self.encode(obj)
        self._changed = True
        await self.save()

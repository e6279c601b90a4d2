"""Defines the core data structures of the session store."""

from typing import Any, Dict, NamedTuple, Optional, TYPE_CHECKING

if TYPE_CHECKING:   # pragma: no cover
    from werkzeug.wrappers import Request, Response
    from .store import SessionStore


class Options(NamedTuple):
    """
    Cookie attributes and expiry policy for a session.

    These are applied to the outbound cookie and persisted alongside the
    session values, so that expiry can be inspected without decoding the
    payload.
    """

    path: str = '/'
    domain: Optional[str] = None
    max_age: Optional[int] = None
    """
    Lifetime in seconds.

    ``None`` or ``0`` yields a browser-session cookie. A negative value
    requests deletion of the session on the next save.
    """

    secure: bool = False
    http_only: bool = True
    same_site: Optional[str] = None
    """One of ``'Lax'``, ``'Strict'``, ``'None'``, or ``None``."""

    @property
    def deleted(self) -> bool:
        """Indicate whether these options request deletion."""
        return self.max_age is not None and self.max_age < 0


class StoredRecord(NamedTuple):
    """The durable representation of a session in the backing store."""

    id: str
    values: str
    """Base64 text of the encoded session values."""

    options: Dict[str, Any]


class Session(object):
    """
    A single visitor's session.

    ``values`` may be mutated freely between loading and saving. The
    session ID is fixed once assigned; a different ID is a different
    session.
    """

    def __init__(self, store: Optional['SessionStore'], name: str,
                 session_id: str = '',
                 values: Optional[Dict[Any, Any]] = None,
                 options: Optional[Options] = None,
                 is_new: bool = True) -> None:
        self.store = store
        self.name = name
        self._id = session_id
        self.values: Dict[Any, Any] = values if values is not None else {}
        self.options = options if options is not None else Options()
        self.is_new = is_new

    @property
    def id(self) -> str:
        """Get the session ID."""
        return self._id

    def save(self, request: 'Request', response: 'Response') -> None:
        """Save this session using the store that produced it."""
        if self.store is None:
            raise RuntimeError('Session is not attached to a store')
        self.store.save(request, response, self)

    def expire(self) -> None:
        """Mark this session for deletion on the next save."""
        self.options = self.options._replace(max_age=-1)

    def __repr__(self) -> str:
        return (f'Session(name={self.name!r}, id={self._id!r},'
                f' is_new={self.is_new!r})')

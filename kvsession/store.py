"""
Session store service API.

The :class:`SessionStore` reconciles the session cookie on a request with
the record held in the backing store. Only the session ID travels in the
cookie; values and options live in the backing store.

Anything that prevents a session from being *read* yields a fresh session
instead of an error. Anything that prevents a session from being *written*
is raised, and no cookie is set.
"""

from typing import Any, Dict, Mapping, Optional

from flask import Flask, current_app
from werkzeug.wrappers import Request, Response

from .backends import DynamoDBBackend, InMemoryBackend, RedisBackend, \
    SessionBackend
from .cookies import CookieCodec
from .domain import Options, Session, StoredRecord
from .exceptions import ConfigurationError, DecodingError, \
    DeserializationError, IllegalSessionError, RecordNotFound, StoreReadError
from .identifiers import generate_session_id
from .serializer import TypeRegistry, ValueSerializer

import logging

logger = logging.getLogger(__name__)

REGISTRY_KEY = 'kvsession.registry'
"""Key in the WSGI environ under which loaded sessions are cached."""

EXTENSION_KEY = 'kvsession'
REGISTRY_EXTENSION_KEY = 'kvsession.types'


class SessionStore(object):
    """
    Loads and saves sessions for requests.

    Holds no per-request state. The backend client and key configuration
    are shared by all requests.
    """

    def __init__(self, backend: SessionBackend, codec: CookieCodec,
                 serializer: Optional[ValueSerializer] = None,
                 options: Optional[Options] = None,
                 strict_reads: bool = False) -> None:
        """
        Configure the store.

        Parameters
        ----------
        backend : :class:`.SessionBackend`
        codec : :class:`.CookieCodec`
        serializer : :class:`.ValueSerializer`
            Custom value types must be registered with its registry before
            the first request.
        options : :class:`.Options`
            Defaults for new sessions.
        strict_reads : bool
            If True, a failure to reach the backing store while loading a
            session is raised as :class:`.StoreReadError`, rather than
            silently issuing a fresh session.

        """
        self.backend = backend
        self.codec = codec
        self.serializer = serializer if serializer is not None \
            else ValueSerializer()
        self.options = options if options is not None else Options()
        self.strict_reads = strict_reads

    def get(self, request: Request, name: str) -> Session:
        """
        Get the session named ``name`` for this request.

        The session is loaded (or created) once per request; subsequent
        calls return the same :class:`.Session` instance.
        """
        registry: Dict[str, Session] = \
            request.environ.setdefault(REGISTRY_KEY, {})
        session = registry.get(name)
        if session is None:
            session = self.new(request, name)
            registry[name] = session
        return session

    def new(self, request: Request, name: str) -> Session:
        """
        Load the session named ``name``, or create a new one.

        A fresh session is returned if there is no cookie, if the cookie
        cannot be verified, or if no usable record is found.
        """
        cookie = request.cookies.get(name)
        if cookie is None:
            return self._new_session(name)
        try:
            session_id = self.codec.decode(name, cookie)
        except DecodingError as e:
            logger.debug('Invalid session cookie %s: %s', name, e)
            return self._new_session(name)

        try:
            return self._load(name, session_id)
        except RecordNotFound as e:
            logger.debug('No session available: %s', e)
        except DeserializationError as e:
            logger.error('Discarding unreadable session %s: %s',
                         session_id, e)
        except StoreReadError as e:
            if self.strict_reads:
                raise
            logger.error('Could not load session %s: %s', session_id, e)
        return self._new_session(name)

    def save(self, request: Request, response: Response,
             session: Session) -> None:
        """
        Save ``session`` and set its cookie on ``response``.

        If the session options have a negative ``max_age``, the record is
        deleted and the cookie cleared instead.

        Raises
        ------
        :class:`.IllegalSessionError`
            Raised if the session has no ID.
        :class:`.SerializationError`
        :class:`.StoreWriteError`
        :class:`.StoreDeleteError`
        :class:`.EncodingError`

        """
        options = session.options
        if options.deleted:
            if session.id:
                self.backend.delete(session.id)
            response.delete_cookie(session.name, path=options.path,
                                   domain=options.domain,
                                   secure=options.secure,
                                   httponly=options.http_only,
                                   samesite=options.same_site)
            logger.debug('Deleted session %s', session.id)
            return

        if not session.id:
            raise IllegalSessionError('Session has no ID')
        record = StoredRecord(
            id=session.id,
            values=self.serializer.dumps_values(session.values),
            options=self.serializer.encode_options(options)
        )
        self.backend.put(record)
        token = self.codec.encode(session.name, session.id)
        response.set_cookie(session.name, token,
                            max_age=options.max_age or None,
                            path=options.path,
                            domain=options.domain,
                            secure=options.secure,
                            httponly=options.http_only,
                            samesite=options.same_site)
        session.is_new = False

    def set_max_age(self, max_age: int) -> None:
        """
        Set the default session lifetime, in seconds.

        Applies to new sessions and to the cookie token expiry.
        """
        self.options = self.options._replace(max_age=max_age)
        self.codec.set_max_age(max(max_age, 0))

    def _new_session(self, name: str) -> Session:
        return Session(self, name, generate_session_id(),
                       options=self.options, is_new=True)

    def _load(self, name: str, session_id: str) -> Session:
        record = self.backend.get(session_id)
        if record.id != session_id:
            raise DeserializationError('Record does not match session ID')
        return Session(self, name, record.id,
                       values=self.serializer.loads_values(record.values),
                       options=self.serializer.decode_options(record.options),
                       is_new=False)


def save_all(request: Request, response: Response) -> None:
    """Save every session loaded during ``request``."""
    registry: Dict[str, Session] = request.environ.get(REGISTRY_KEY, {})
    for session in registry.values():
        session.save(request, response)


def as_bool(value: Any) -> bool:
    """Interpret a configuration value such as ``'1'`` or ``'false'``."""
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _key_list(value: Any) -> list:
    if isinstance(value, str):
        return [key.strip() or None for key in value.split(',')]
    return list(value or [])


def init_app(app: Flask, registry: Optional[TypeRegistry] = None) -> None:
    """
    Set default configuration parameters for an application instance.

    Custom value types stored in sessions must be registered on
    ``registry`` before the first request is handled.
    """
    config = app.config
    config.setdefault('SESSION_BACKEND', 'dynamodb')
    config.setdefault('SESSION_TABLE_NAME', 'sessions')
    config.setdefault('AWS_REGION', 'us-east-1')
    config.setdefault('DYNAMODB_ENDPOINT', None)
    config.setdefault('SESSION_STORE_TIMEOUT', '5')
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '6379')
    config.setdefault('REDIS_DATABASE', '0')
    config.setdefault('REDIS_CLUSTER', '0')
    config.setdefault('REDIS_PREFIX', 'session:')
    config.setdefault('SESSION_KEY_PAIRS', '')
    config.setdefault('SESSION_TOKEN_MAX_AGE', str(86400 * 30))
    config.setdefault('SESSION_MAX_AGE', str(86400 * 30))
    config.setdefault('KVSESSION_COOKIE_PATH', '/')
    config.setdefault('KVSESSION_COOKIE_DOMAIN', None)
    config.setdefault('KVSESSION_COOKIE_SECURE', '1')
    config.setdefault('KVSESSION_COOKIE_HTTPONLY', '1')
    config.setdefault('KVSESSION_COOKIE_SAMESITE', 'Lax')
    config.setdefault('SESSION_STRICT_READS', '0')
    app.extensions.pop(EXTENSION_KEY, None)
    app.extensions[REGISTRY_EXTENSION_KEY] = \
        registry if registry is not None else TypeRegistry()


def get_backend(config: Mapping[str, Any]) -> SessionBackend:
    """Create the backend named by ``SESSION_BACKEND``."""
    kind = config.get('SESSION_BACKEND', 'dynamodb')
    timeout = config.get('SESSION_STORE_TIMEOUT')
    timeout = float(timeout) if timeout else None
    if kind == 'dynamodb':
        return DynamoDBBackend(config.get('SESSION_TABLE_NAME', 'sessions'),
                               region_name=config.get('AWS_REGION'),
                               endpoint_url=config.get('DYNAMODB_ENDPOINT'),
                               timeout=timeout)
    if kind == 'redis':
        return RedisBackend(host=config.get('REDIS_HOST', 'localhost'),
                            port=int(config.get('REDIS_PORT', '6379')),
                            db=int(config.get('REDIS_DATABASE', '0')),
                            cluster=as_bool(config.get('REDIS_CLUSTER', '0')),
                            prefix=config.get('REDIS_PREFIX', 'session:'),
                            timeout=timeout)
    if kind == 'memory':
        return InMemoryBackend()
    raise ConfigurationError(f'Unknown session backend: {kind}')


def get_session_store(config: Mapping[str, Any],
                      serializer: Optional[ValueSerializer] = None) \
        -> SessionStore:
    """Create a new :class:`.SessionStore` from configuration."""
    keys = _key_list(config.get('SESSION_KEY_PAIRS'))
    if not keys or not keys[0]:
        raise ConfigurationError('SESSION_KEY_PAIRS is not set')
    codec = CookieCodec.from_pairs(
        *keys,
        max_age=int(config.get('SESSION_TOKEN_MAX_AGE', 86400 * 30))
    )
    max_age = config.get('SESSION_MAX_AGE')
    options = Options(
        path=config.get('KVSESSION_COOKIE_PATH', '/'),
        domain=config.get('KVSESSION_COOKIE_DOMAIN'),
        max_age=int(max_age) if max_age not in (None, '') else None,
        secure=as_bool(config.get('KVSESSION_COOKIE_SECURE', '1')),
        http_only=as_bool(config.get('KVSESSION_COOKIE_HTTPONLY', '1')),
        same_site=config.get('KVSESSION_COOKIE_SAMESITE') or None
    )
    return SessionStore(get_backend(config), codec, serializer=serializer,
                        options=options,
                        strict_reads=as_bool(config.get('SESSION_STRICT_READS',
                                                       '0')))


def current_store() -> SessionStore:
    """Get/create the :class:`.SessionStore` for the current application."""
    store: Optional[SessionStore] = \
        current_app.extensions.get(EXTENSION_KEY)
    if store is None:
        registry = current_app.extensions.get(REGISTRY_EXTENSION_KEY)
        store = get_session_store(current_app.config,
                                  serializer=ValueSerializer(registry))
        current_app.extensions[EXTENSION_KEY] = store
    return store

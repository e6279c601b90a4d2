"""Session backend for Redis."""

import json
from typing import Optional, Union

import redis
from redis.cluster import RedisCluster

from ..domain import StoredRecord
from ..exceptions import DeserializationError, RecordNotFound, \
    SerializationError, StoreDeleteError, StoreReadError, StoreWriteError
from .base import SessionBackend

import logging

logger = logging.getLogger(__name__)


class RedisBackend(SessionBackend):
    """
    Stores each session record as a JSON document under its own key.

    Keys are the configured prefix followed by the session ID. One instance,
    and its client, is shared by every request handled by the store.

    When the record's ``max_age`` is positive the key is given a matching
    TTL, so that Redis discards abandoned sessions on its own.
    """

    def __init__(self, host: str = 'localhost', port: int = 6379,
                 db: int = 0, cluster: bool = False,
                 prefix: str = 'session:',
                 timeout: Optional[float] = None,
                 client: Optional[Union[redis.Redis, RedisCluster]] = None) \
            -> None:
        """Open the connection to Redis."""
        if client is None:
            logger.debug('New Redis connection at %s, port %s', host, port)
            if cluster:
                client = RedisCluster(host=host, port=port,
                                      socket_timeout=timeout,
                                      socket_connect_timeout=timeout)
            else:
                client = redis.StrictRedis(host=host, port=port, db=db,
                                           socket_timeout=timeout,
                                           socket_connect_timeout=timeout)
        self.r = client
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        return f'{self.prefix}{session_id}'

    def get(self, session_id: str) -> StoredRecord:
        """Get the record for ``session_id``."""
        try:
            raw = self.r.get(self._key(session_id))
        except redis.exceptions.ConnectionError as e:
            raise StoreReadError(f'Connection failed: {e}') from e
        except redis.exceptions.RedisError as e:
            raise StoreReadError(f'Failed to get: {e}') from e
        if not raw:
            raise RecordNotFound(f'Failed to find session {session_id}')
        try:
            data = json.loads(raw)
            return StoredRecord(id=data['id'], values=data['values'],
                                options=data.get('options') or {})
        except (ValueError, KeyError, TypeError) as e:
            raise DeserializationError(f'Malformed record: {e}') from e

    def put(self, record: StoredRecord) -> None:
        """Write ``record``, replacing any existing value."""
        max_age = record.options.get('max_age')
        ttl = max_age if max_age and max_age > 0 else None
        try:
            data = json.dumps({'id': record.id, 'values': record.values,
                               'options': record.options})
        except (TypeError, ValueError) as e:
            raise SerializationError(f'Could not encode record: {e}') from e
        try:
            self.r.set(self._key(record.id), data, ex=ttl)
        except redis.exceptions.ConnectionError as e:
            raise StoreWriteError(f'Connection failed: {e}') from e
        except redis.exceptions.RedisError as e:
            raise StoreWriteError(f'Failed to create: {e}') from e

    def delete(self, session_id: str) -> None:
        """Delete the record for ``session_id``; missing keys are ignored."""
        try:
            self.r.delete(self._key(session_id))
        except redis.exceptions.ConnectionError as e:
            raise StoreDeleteError(f'Connection failed: {e}') from e
        except redis.exceptions.RedisError as e:
            raise StoreDeleteError(f'Failed to delete: {e}') from e

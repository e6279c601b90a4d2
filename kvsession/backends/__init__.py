"""
Backing stores for session records.

Each backend holds one :class:`.StoredRecord` per session ID and exposes
``get``, ``put``, and ``delete``. Backends never retry; retry and timeout
behavior belongs to the underlying client.
"""

from .base import SessionBackend
from .dynamodb import DynamoDBBackend
from .memory import InMemoryBackend
from .redis_store import RedisBackend

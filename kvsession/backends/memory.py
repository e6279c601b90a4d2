"""In-process session backend, for development and testing."""

import threading
from typing import Dict

from ..domain import StoredRecord
from ..exceptions import RecordNotFound
from .base import SessionBackend


class InMemoryBackend(SessionBackend):
    """Keeps session records in a dict. Not shared between processes."""

    def __init__(self) -> None:
        self._records: Dict[str, StoredRecord] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> StoredRecord:
        """Get the record for ``session_id``."""
        with self._lock:
            record = self._records.get(session_id)
        if record is None:
            raise RecordNotFound(f'Failed to find session {session_id}')
        return record._replace(options=dict(record.options))

    def put(self, record: StoredRecord) -> None:
        """Write ``record``."""
        with self._lock:
            self._records[record.id] = \
                record._replace(options=dict(record.options))

    def delete(self, session_id: str) -> None:
        """Delete the record for ``session_id``."""
        with self._lock:
            self._records.pop(session_id, None)

    def count(self) -> int:
        """Get the number of stored records."""
        with self._lock:
            return len(self._records)

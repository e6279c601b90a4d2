"""
Server-side sessions backed by a remote key-value store.

Session values are kept in the backing store (DynamoDB or Redis); the client
only ever receives a signed, optionally encrypted, session ID in a cookie.

.. code-block:: python

   from kvsession import CookieCodec, SessionStore
   from kvsession.backends import DynamoDBBackend

   sessions = SessionStore(DynamoDBBackend('sessions'),
                           CookieCodec.from_pairs(SIGNING_KEY, ENCRYPTION_KEY))

   session = sessions.get(request, 'session')
   session.values['user_id'] = 1234
   sessions.save(request, response, session)

See :mod:`.store`.
"""

from .cookies import CookieCodec, KeyPair
from .domain import Options, Session, StoredRecord
from .serializer import TypeRegistry, ValueSerializer
from .store import SessionStore, current_store, init_app, save_all

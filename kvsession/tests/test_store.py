"""Tests for :mod:`kvsession.store`."""

from typing import NamedTuple, Optional
from unittest import TestCase, mock

from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request, Response

from .. import store
from ..backends import InMemoryBackend
from ..cookies import CookieCodec, KeyPair
from ..domain import Options, StoredRecord
from ..exceptions import ConfigurationError, IllegalSessionError, \
    SerializationError, StoreDeleteError, StoreReadError, StoreWriteError
from ..serializer import TypeRegistry, ValueSerializer

SECRET = 'a-signing-secret-that-is-long-enough-for-hs256'


class FlashMessage(NamedTuple):
    type: int
    message: str


def _request(**cookies: str) -> Request:
    headers = {}
    if cookies:
        headers['Cookie'] = '; '.join(f'{k}={v}' for k, v in cookies.items())
    return EnvironBuilder(headers=headers).get_request()


def _cookie(response: Response, name: str) -> Optional[str]:
    """Get the raw ``Set-Cookie`` header for ``name``."""
    for header in response.headers.getlist('Set-Cookie'):
        if header.partition('=')[0] == name:
            return header
    return None


def _cookie_value(response: Response, name: str) -> Optional[str]:
    header = _cookie(response, name)
    if header is None:
        return None
    return header.partition('=')[2].split(';')[0]


class StoreTestCase(TestCase):
    def setUp(self):
        self.backend = InMemoryBackend()
        self.codec = CookieCodec([KeyPair(SECRET)])
        self.registry = TypeRegistry()
        self.registry.register(FlashMessage)
        self.store = store.SessionStore(self.backend, self.codec,
                                        ValueSerializer(self.registry))


class TestNewSession(StoreTestCase):
    """A fresh session is issued whenever none can be loaded."""

    def test_no_cookie(self):
        """No cookie on the request."""
        session = self.store.new(_request(), 's')
        self.assertTrue(session.is_new)
        self.assertEqual(session.values, {})
        self.assertEqual(session.name, 's')
        self.assertTrue(bool(session.id))

    def test_fresh_ids(self):
        """Each fresh session gets an ID not seen before."""
        ids = {self.store.new(_request(), 's').id for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_invalid_cookie(self):
        """A cookie that fails verification is ignored."""
        session = self.store.new(_request(s='notatoken'), 's')
        self.assertTrue(session.is_new)
        self.assertNotEqual(session.id, 'notatoken')

    def test_unknown_session(self):
        """A valid cookie with no matching record."""
        token = self.codec.encode('s', 'NOSUCHSESSION')
        session = self.store.new(_request(s=token), 's')
        self.assertTrue(session.is_new)
        self.assertNotEqual(session.id, 'NOSUCHSESSION')

    def test_corrupt_record(self):
        """A record that cannot be decoded is treated as absent."""
        self.backend.put(StoredRecord('BROKEN', 'bm90IGpzb24=', {}))
        token = self.codec.encode('s', 'BROKEN')
        session = self.store.new(_request(s=token), 's')
        self.assertTrue(session.is_new)
        self.assertEqual(session.values, {})

    def test_corrupt_options(self):
        """A record whose options cannot be rebuilt is treated as absent."""
        values = ValueSerializer().dumps_values({})
        self.backend.put(StoredRecord('BROKEN', values,
                                      {'max_age': float('inf')}))
        token = self.codec.encode('s', 'BROKEN')
        session = self.store.new(_request(s=token), 's')
        self.assertTrue(session.is_new)
        self.assertNotEqual(session.id, 'BROKEN')

    def test_custom_type_rejected(self):
        """A record that a registered decoder rejects is treated as absent."""
        session = self.store.new(_request(), 's')
        session.values['flash'] = FlashMessage(1, 'saved')
        response = Response()
        self.store.save(_request(), response, session)
        token = _cookie_value(response, 's')

        def _reject(data):
            raise AssertionError('unexpected message type')

        registry = TypeRegistry()
        registry.register(FlashMessage, decode=_reject)
        sessions = store.SessionStore(self.backend, self.codec,
                                      ValueSerializer(registry))
        loaded = sessions.new(_request(s=token), 's')
        self.assertTrue(loaded.is_new)
        self.assertEqual(loaded.values, {})

    def test_store_unavailable(self):
        """A read failure is treated as absent by default."""
        backend = mock.MagicMock()
        backend.get.side_effect = StoreReadError('Connection failed')
        sessions = store.SessionStore(backend, self.codec)
        token = self.codec.encode('s', 'SOMESESSION')
        session = sessions.new(_request(s=token), 's')
        self.assertTrue(session.is_new)

    def test_store_unavailable_strict(self):
        """With ``strict_reads``, a read failure is raised."""
        backend = mock.MagicMock()
        backend.get.side_effect = StoreReadError('Connection failed')
        sessions = store.SessionStore(backend, self.codec, strict_reads=True)
        token = self.codec.encode('s', 'SOMESESSION')
        with self.assertRaises(StoreReadError):
            sessions.new(_request(s=token), 's')
        # Without a cookie there is nothing to read.
        self.assertTrue(sessions.new(_request(), 's').is_new)

    def test_default_options(self):
        """New sessions get the store's default options."""
        options = Options(path='/app', max_age=600, same_site='Lax')
        sessions = store.SessionStore(self.backend, self.codec,
                                      options=options)
        self.assertEqual(sessions.new(_request(), 's').options, options)


class TestSaveAndLoad(StoreTestCase):
    """Saved sessions can be loaded with the cookie that was issued."""

    def test_round_trip(self):
        """Save a session, and load it again from the cookie."""
        session = self.store.new(_request(), 's')
        session.values['a'] = 'foo'
        session.values['b'] = 'bar'
        session.values[42] = [FlashMessage(1, 'saved')]
        response = Response()
        self.store.save(_request(), response, session)
        self.assertFalse(session.is_new)

        token = _cookie_value(response, 's')
        self.assertIsNotNone(token)
        self.assertNotIn(session.id, token)

        loaded = self.store.new(_request(s=token), 's')
        self.assertFalse(loaded.is_new)
        self.assertEqual(loaded.id, session.id)
        self.assertEqual(loaded.values['a'], 'foo')
        self.assertEqual(loaded.values, session.values)
        self.assertIsInstance(loaded.values[42][0], FlashMessage)

    def test_overwrite(self):
        """Saving again replaces the record."""
        session = self.store.new(_request(), 's')
        session.values['a'] = 'foo'
        response = Response()
        self.store.save(_request(), response, session)
        token = _cookie_value(response, 's')

        loaded = self.store.new(_request(s=token), 's')
        del loaded.values['a']
        loaded.values['b'] = 'bar'
        self.store.save(_request(s=token), Response(), loaded)

        self.assertEqual(self.backend.count(), 1)
        self.assertEqual(self.store.new(_request(s=token), 's').values,
                         {'b': 'bar'})

    def test_options_persisted(self):
        """Options are stored, and applied to the cookie."""
        session = self.store.new(_request(), 's')
        session.options = Options(path='/app', domain='example.com',
                                  max_age=3600, secure=True, http_only=True,
                                  same_site='Strict')
        response = Response()
        self.store.save(_request(), response, session)

        record = self.backend.get(session.id)
        self.assertEqual(record.options['max_age'], 3600)
        self.assertEqual(record.options['path'], '/app')

        header = _cookie(response, 's')
        self.assertIn('Path=/app', header)
        self.assertIn('example.com', header)
        self.assertIn('Max-Age=3600', header)
        self.assertIn('Secure', header)
        self.assertIn('HttpOnly', header)
        self.assertIn('SameSite=Strict', header)

        token = _cookie_value(response, 's')
        loaded = self.store.new(_request(s=token), 's')
        self.assertEqual(loaded.options, session.options)

    def test_browser_session_cookie(self):
        """Without a max age the cookie has no expiry."""
        session = self.store.new(_request(), 's')
        response = Response()
        self.store.save(_request(), response, session)
        header = _cookie(response, 's')
        self.assertNotIn('Max-Age', header)
        self.assertNotIn('Expires', header)

    def test_cookie_name_bound(self):
        """A cookie issued for one name does not load under another."""
        session = self.store.new(_request(), 's')
        session.values['a'] = 'foo'
        response = Response()
        self.store.save(_request(), response, session)
        token = _cookie_value(response, 's')
        self.assertTrue(self.store.new(_request(t=token), 't').is_new)


class TestDelete(StoreTestCase):
    """Saving with a negative max age deletes the session."""

    def test_delete(self):
        """Save, reload, delete, and reload with the stale cookie."""
        session = self.store.new(_request(), 's')
        session.values.update({'a': 'foo', 'b': 'bar'})
        response = Response()
        self.store.save(_request(), response, session)
        token = _cookie_value(response, 's')

        loaded = self.store.new(_request(s=token), 's')
        self.assertEqual(loaded.values['a'], 'foo')

        loaded.options = loaded.options._replace(max_age=-1)
        response = Response()
        self.store.save(_request(s=token), response, loaded)
        header = _cookie(response, 's')
        self.assertIsNotNone(header)
        self.assertEqual(_cookie_value(response, 's'), '')
        self.assertIn('Max-Age=0', header)

        stale = self.store.new(_request(s=token), 's')
        self.assertTrue(stale.is_new)
        self.assertEqual(stale.values, {})
        self.assertNotEqual(stale.id, session.id)
        self.assertEqual(self.backend.count(), 0)

    def test_delete_twice(self):
        """Deleting an already deleted session is not an error."""
        session = self.store.new(_request(), 's')
        self.store.save(_request(), Response(), session)
        session.expire()
        self.store.save(_request(), Response(), session)
        self.store.save(_request(), Response(), session)
        self.assertEqual(self.backend.count(), 0)

    def test_delete_never_writes(self):
        """A deletion request never writes the payload."""
        backend = mock.MagicMock()
        sessions = store.SessionStore(backend, self.codec)
        session = sessions.new(_request(), 's')
        session.values['a'] = object()
        session.expire()
        sessions.save(_request(), Response(), session)
        self.assertEqual(backend.put.call_count, 0)
        backend.delete.assert_called_once_with(session.id)

    def test_delete_failed(self):
        """A failure to delete is raised, and the cookie is kept."""
        backend = mock.MagicMock()
        backend.delete.side_effect = StoreDeleteError('Connection failed')
        sessions = store.SessionStore(backend, self.codec)
        session = sessions.new(_request(), 's')
        session.expire()
        response = Response()
        with self.assertRaises(StoreDeleteError):
            sessions.save(_request(), response, session)
        self.assertIsNone(_cookie(response, 's'))


class TestSaveFailures(StoreTestCase):
    """When a session cannot be written, no cookie is issued."""

    def test_empty_id(self):
        """A session without an ID cannot be saved."""
        session = store.Session(self.store, 's', '')
        response = Response()
        with self.assertRaises(IllegalSessionError):
            self.store.save(_request(), response, session)
        self.assertIsNone(_cookie(response, 's'))

    def test_unserializable(self):
        """Values that cannot be encoded are not written."""
        session = self.store.new(_request(), 's')
        session.values['a'] = object()
        response = Response()
        with self.assertRaises(SerializationError):
            self.store.save(_request(), response, session)
        self.assertIsNone(_cookie(response, 's'))
        self.assertEqual(self.backend.count(), 0)
        self.assertTrue(session.is_new)

    def test_write_failed(self):
        """A failure to write is raised."""
        backend = mock.MagicMock()
        backend.put.side_effect = StoreWriteError('Connection failed')
        sessions = store.SessionStore(backend, self.codec)
        session = sessions.new(_request(), 's')
        response = Response()
        with self.assertRaises(StoreWriteError):
            sessions.save(_request(), response, session)
        self.assertIsNone(_cookie(response, 's'))


class TestRegistry(StoreTestCase):
    """Sessions are loaded once per request."""

    def test_same_instance(self):
        """Repeated calls return the same session."""
        request = _request()
        session = self.store.get(request, 's')
        session.values['a'] = 'foo'
        self.assertIs(self.store.get(request, 's'), session)
        self.assertIsNot(self.store.get(request, 't'), session)
        self.assertIsNot(self.store.get(_request(), 's'), session)

    def test_save_all(self):
        """All sessions loaded on a request are saved."""
        request = _request()
        self.store.get(request, 's').values['a'] = 'foo'
        self.store.get(request, 't').values['b'] = 'bar'
        response = Response()
        store.save_all(request, response)
        self.assertIsNotNone(_cookie(response, 's'))
        self.assertIsNotNone(_cookie(response, 't'))
        self.assertEqual(self.backend.count(), 2)

    def test_session_save(self):
        """A session can be saved through the store that produced it."""
        request = _request()
        session = self.store.get(request, 's')
        response = Response()
        session.save(request, response)
        self.assertIsNotNone(_cookie(response, 's'))


class TestMaxAge(StoreTestCase):
    """The default lifetime applies to new sessions and tokens."""

    def test_set_max_age(self):
        """New sessions and the codec pick up the new max age."""
        self.store.set_max_age(120)
        self.assertEqual(self.store.new(_request(), 's').options.max_age, 120)
        self.assertEqual(self.codec.max_age, 120)

        self.store.set_max_age(-1)
        self.assertEqual(self.codec.max_age, 0)
        self.assertTrue(self.store.new(_request(), 's').options.deleted)


class TestConfiguration(TestCase):
    """Stores can be built from application configuration."""

    def test_memory(self):
        """Build a store with an in-memory backend."""
        sessions = store.get_session_store({
            'SESSION_BACKEND': 'memory',
            'SESSION_KEY_PAIRS': f'{SECRET},,other-{SECRET}',
            'SESSION_MAX_AGE': '600',
            'KVSESSION_COOKIE_SECURE': '0',
            'KVSESSION_COOKIE_SAMESITE': 'Strict',
            'SESSION_STRICT_READS': 'true',
        })
        self.assertIsInstance(sessions.backend, InMemoryBackend)
        self.assertEqual(sessions.options.max_age, 600)
        self.assertFalse(sessions.options.secure)
        self.assertEqual(sessions.options.same_site, 'Strict')
        self.assertTrue(sessions.strict_reads)

        token = CookieCodec([KeyPair(f'other-{SECRET}')]).encode('s', 'X')
        self.assertEqual(sessions.codec.decode('s', token), 'X')

    @mock.patch(f'{store.__name__}.DynamoDBBackend')
    def test_dynamodb(self, mock_backend):
        """DynamoDB is the default backend."""
        store.get_session_store({'SESSION_KEY_PAIRS': SECRET,
                                 'SESSION_TABLE_NAME': 'foo_sessions',
                                 'AWS_REGION': 'eu-west-1',
                                 'SESSION_STORE_TIMEOUT': '2'})
        mock_backend.assert_called_once_with('foo_sessions',
                                             region_name='eu-west-1',
                                             endpoint_url=None,
                                             timeout=2.0)

    @mock.patch(f'{store.__name__}.RedisBackend')
    def test_redis(self, mock_backend):
        """Build a store with a Redis backend."""
        store.get_session_store({'SESSION_KEY_PAIRS': SECRET,
                                 'SESSION_BACKEND': 'redis',
                                 'REDIS_HOST': 'redis',
                                 'REDIS_PORT': '7000',
                                 'REDIS_CLUSTER': '1'})
        _, kwargs = mock_backend.call_args
        self.assertEqual(kwargs['host'], 'redis')
        self.assertEqual(kwargs['port'], 7000)
        self.assertTrue(kwargs['cluster'])

    def test_as_bool(self):
        """Flags may be given as strings or as plain values."""
        for value in ('1', 'true', ' Yes ', 'on', True, 1):
            self.assertTrue(store.as_bool(value), msg=value)
        for value in ('0', 'false', 'no', '', None, False, 0):
            self.assertFalse(store.as_bool(value), msg=value)

    def test_missing_keys(self):
        """Key pairs are required."""
        with self.assertRaises(ConfigurationError):
            store.get_session_store({'SESSION_BACKEND': 'memory'})

    def test_unknown_backend(self):
        """The backend must be one that we know about."""
        with self.assertRaises(ConfigurationError):
            store.get_session_store({'SESSION_BACKEND': 'floppy',
                                     'SESSION_KEY_PAIRS': SECRET})

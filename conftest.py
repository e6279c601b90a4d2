import pytest

from kvsession import factory

SIGNING_KEY = 'conftest-signing-key-that-is-long-enough-for-hs256'


@pytest.fixture()
def app():
    return factory.create_web_app(
        SESSION_BACKEND='memory',
        SESSION_KEY_PAIRS=f'{SIGNING_KEY},',
        KVSESSION_COOKIE_SECURE='0',
        SESSION_MAX_AGE='3600'
    )


@pytest.fixture()
def client(app):
    return app.test_client()

"""Application factory for a small app that uses the session store."""

from typing import Optional

from flask import Flask, Response, jsonify, request

from . import store
from .app_logging import session_debug, setup_logger
from .serializer import TypeRegistry

SESSION_NAME = 'session'


def create_web_app(registry: Optional[TypeRegistry] = None,
                   **config: object) -> Flask:
    """
    Initialize and configure an app that counts visits in a session.

    Keyword arguments override values from :mod:`kvsession.config`.
    """
    app = Flask('kvsession')
    app.config.from_object('kvsession.config')
    app.config.update(config)
    store.init_app(app, registry=registry)

    setup_logger()
    if store.as_bool(app.config.get('KVSESSION_DEBUG')):
        session_debug()

    @app.route('/')
    def visit() -> Response:
        session = store.current_store().get(request, SESSION_NAME)
        session.values['visits'] = session.values.get('visits', 0) + 1
        response = jsonify(visits=session.values['visits'],
                           new=session.is_new)
        store.save_all(request, response)
        return response

    @app.route('/logout', methods=['POST'])
    def logout() -> Response:
        session = store.current_store().get(request, SESSION_NAME)
        session.expire()
        response = jsonify(deleted=True)
        store.save_all(request, response)
        return response

    return app

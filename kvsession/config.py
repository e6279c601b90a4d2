"""Flask configuration for the session store."""

import os

SESSION_BACKEND = os.environ.get('SESSION_BACKEND', 'dynamodb')
"""One of ``dynamodb``, ``redis``, or ``memory``."""

SESSION_TABLE_NAME = os.environ.get('SESSION_TABLE_NAME', 'sessions')
AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
DYNAMODB_ENDPOINT = os.environ.get('DYNAMODB_ENDPOINT')
"""Override the DynamoDB endpoint, e.g. for DynamoDB Local."""

SESSION_STORE_TIMEOUT = os.environ.get('SESSION_STORE_TIMEOUT', '5')
"""Connect/read timeout for backing store calls, in seconds."""

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
REDIS_PREFIX = os.environ.get('REDIS_PREFIX', 'session:')

SESSION_KEY_PAIRS = os.environ.get('SESSION_KEY_PAIRS', '')
"""
Comma-separated signing and encryption keys, newest pair first.

For example ``sign2,enc2,sign1,`` configures two pairs, the older one
without encryption.
"""

SESSION_TOKEN_MAX_AGE = os.environ.get('SESSION_TOKEN_MAX_AGE',
                                       str(86400 * 30))
SESSION_MAX_AGE = os.environ.get('SESSION_MAX_AGE', str(86400 * 30))
KVSESSION_COOKIE_PATH = os.environ.get('KVSESSION_COOKIE_PATH', '/')
KVSESSION_COOKIE_DOMAIN = os.environ.get('KVSESSION_COOKIE_DOMAIN')
KVSESSION_COOKIE_SECURE = os.environ.get('KVSESSION_COOKIE_SECURE', '1')
KVSESSION_COOKIE_HTTPONLY = os.environ.get('KVSESSION_COOKIE_HTTPONLY', '1')
KVSESSION_COOKIE_SAMESITE = os.environ.get('KVSESSION_COOKIE_SAMESITE', 'Lax')

SESSION_STRICT_READS = os.environ.get('SESSION_STRICT_READS', '0')
"""If ``1``, backing store read failures are raised instead of issuing a
fresh session."""

KVSESSION_DEBUG = os.environ.get('KVSESSION_DEBUG', '0')

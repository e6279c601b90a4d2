"""
Signs, and optionally encrypts, session IDs for use as cookie values.

Only the session ID ever leaves the process. It is carried as the ``sid``
claim of an HS256 JSON web token whose audience is the cookie name, so that
a token issued for one cookie cannot be replayed under another. If the key
pair has an encryption key, the signed token is additionally wrapped with
:class:`cryptography.fernet.Fernet`.

Several key pairs may be configured to support key rotation: new tokens are
always produced with the first pair, and decoding tries each pair in turn.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, NamedTuple, Optional, Union

import jwt
from cryptography.fernet import Fernet, InvalidToken
from pytz import UTC

from .exceptions import ConfigurationError, DecodingError, EncodingError

import logging

logger = logging.getLogger(__name__)

Key = Union[str, bytes]

DEFAULT_MAX_AGE = 86400 * 30
"""Tokens older than this (in seconds) are rejected."""

ALGORITHM = 'HS256'

CLOCK_SKEW = 60
"""Seconds of clock difference tolerated between servers sharing keys."""


class KeyPair(NamedTuple):
    """A signing key and an optional encryption key."""

    signing_key: Key
    encryption_key: Optional[Key] = None


class _Codec(object):
    """Encodes and decodes tokens with a single key pair."""

    def __init__(self, pair: KeyPair) -> None:
        if not pair.signing_key:
            raise ConfigurationError('Signing key may not be empty')
        self._signing_key = pair.signing_key
        self._fernet: Optional[Fernet] = None
        if pair.encryption_key:
            try:
                self._fernet = Fernet(pair.encryption_key)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(
                    'Encryption key must be 32 url-safe base64-encoded bytes'
                ) from e

    def encode(self, claims: dict) -> str:
        token: str = jwt.encode(claims, self._signing_key,
                                algorithm=ALGORITHM)
        if self._fernet is not None:
            token = self._fernet.encrypt(token.encode('ascii')).decode('ascii')
        return token

    def decode(self, name: str, token: str) -> dict:
        if self._fernet is not None:
            token = self._fernet.decrypt(token.encode('ascii')).decode('ascii')
        return dict(jwt.decode(token, self._signing_key,
                               algorithms=[ALGORITHM], audience=name,
                               leeway=CLOCK_SKEW))


class CookieCodec(object):
    """Encodes session IDs into cookie values, and back again."""

    def __init__(self, key_pairs: Iterable[KeyPair],
                 max_age: int = DEFAULT_MAX_AGE) -> None:
        """
        Configure the codec.

        Parameters
        ----------
        key_pairs : iterable of :class:`KeyPair`
            Newest first. The first pair is used for encoding.
        max_age : int
            Maximum token age in seconds. ``0`` disables expiry.

        """
        self._codecs: List[_Codec] = [_Codec(pair) for pair in key_pairs]
        if not self._codecs:
            raise ConfigurationError('At least one key pair is required')
        self.max_age = max_age

    @classmethod
    def from_pairs(cls, *keys: Optional[Key],
                   max_age: int = DEFAULT_MAX_AGE) -> 'CookieCodec':
        """
        Build a codec from a flat sequence of keys.

        Keys are taken two at a time as (signing key, encryption key). The
        encryption key of a pair may be ``None``, and a trailing signing key
        with no partner is used for signing only.
        """
        pairs = []
        for i in range(0, len(keys), 2):
            signing_key = keys[i]
            encryption_key = keys[i + 1] if i + 1 < len(keys) else None
            if signing_key is None:
                raise ConfigurationError(f'Missing signing key at {i}')
            pairs.append(KeyPair(signing_key, encryption_key))
        return cls(pairs, max_age=max_age)

    def set_max_age(self, max_age: int) -> None:
        """Set the maximum token age, in seconds."""
        self.max_age = max_age

    def encode(self, name: str, session_id: str) -> str:
        """
        Produce a cookie value carrying ``session_id``.

        Tokens carry their issue time, and encrypted tokens a random IV, so
        two calls for the same ID give different values. Compare decoded IDs,
        never tokens.

        Parameters
        ----------
        name : str
            Name of the cookie; bound into the token.
        session_id : str

        Returns
        -------
        str

        Raises
        ------
        :class:`EncodingError`

        """
        now = datetime.now(tz=UTC)
        claims = {'sid': session_id, 'aud': name, 'iat': now}
        if self.max_age > 0:
            claims['exp'] = now + timedelta(seconds=self.max_age)
        try:
            return self._codecs[0].encode(claims)
        except (TypeError, ValueError, jwt.exceptions.PyJWTError) as e:
            raise EncodingError(f'Could not encode cookie value: {e}') from e

    def decode(self, name: str, token: str) -> str:
        """
        Recover the session ID from a cookie value.

        Each configured key pair is tried in order.

        Raises
        ------
        :class:`DecodingError`
            Raised for any invalid, tampered, expired, or foreign token. The
            cause is deliberately not distinguished.

        """
        if not token:
            raise DecodingError('Invalid session cookie')
        for codec in self._codecs:
            try:
                claims = codec.decode(name, token)
            except (InvalidToken, jwt.exceptions.InvalidTokenError,
                    UnicodeError, ValueError):
                continue
            session_id = claims.get('sid')
            if isinstance(session_id, str) and session_id:
                return session_id
        logger.debug('No key pair could verify cookie %s', name)
        raise DecodingError('Invalid session cookie')

"""Generates unguessable session identifiers."""

import secrets
from base64 import b32encode

from .exceptions import IdentifierGenerationError

ID_LENGTH = 32
"""Number of random bytes in a session ID (256 bits)."""


def generate_session_id(length: int = ID_LENGTH) -> str:
    """
    Generate a new random session ID.

    Parameters
    ----------
    length : int
        Number of random bytes to draw from the OS source.

    Returns
    -------
    str
        Base32 text with padding removed; safe for cookies and store keys.

    Raises
    ------
    :class:`IdentifierGenerationError`
        Raised if the OS randomness source is unavailable.

    """
    try:
        raw = secrets.token_bytes(length)
    except (NotImplementedError, OSError) as e:
        raise IdentifierGenerationError(
            f'Secure random source unavailable: {e}'
        ) from e
    return b32encode(raw).decode('ascii').rstrip('=')

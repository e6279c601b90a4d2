"""
Serialization of session values and options for durable storage.

Session values are an arbitrary mapping, and callers expect to get back
exactly the types that they stored. Values are therefore written as a
self-describing, type-tagged document: JSON scalars and lists are written
as-is, and every other supported type (including all dicts, since their
keys need not be strings) is written as a node ``{"t": <tag>, "v": ...}``.

Types beyond the built-in set must be registered with a
:class:`TypeRegistry` before they are stored. The registry is an explicit
object owned by the :class:`ValueSerializer`; there is no process-wide
registry.
"""

import binascii
import dataclasses
import json
from base64 import b64decode, b64encode
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, NamedTuple, Optional
from uuid import UUID

import dateutil.parser

from .domain import Options
from .exceptions import ConfigurationError, DeserializationError, \
    SerializationError

Encoder = Callable[[Any], Any]
Decoder = Callable[[Any], Any]


class _Entry(NamedTuple):
    cls: type
    name: str
    encode: Encoder
    decode: Decoder


def _default_encoder(obj: Any) -> Dict[str, Any]:
    if hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return dict(obj._asdict())
    if dataclasses.is_dataclass(obj):
        return {f.name: getattr(obj, f.name)
                for f in dataclasses.fields(obj)}
    return dict(vars(obj))


def _default_decoder(cls: type) -> Decoder:
    def _decode(data: Dict[str, Any]) -> Any:
        return cls(**data)
    return _decode


class TypeRegistry(object):
    """Maps custom value types to the tags under which they are stored."""

    def __init__(self) -> None:
        self._by_type: Dict[type, _Entry] = {}
        self._by_name: Dict[str, _Entry] = {}

    def register(self, cls: type, name: Optional[str] = None,
                 encode: Optional[Encoder] = None,
                 decode: Optional[Decoder] = None) -> type:
        """
        Register a custom type so that its instances can be stored.

        Parameters
        ----------
        cls : type
        name : str
            Tag under which instances are stored. Defaults to the qualified
            class name. Changing it orphans data already stored.
        encode : callable
            Converts an instance into a storable value (usually a dict).
            The default handles NamedTuples, dataclasses, and plain objects.
        decode : callable
            Inverse of ``encode``. Defaults to ``cls(**data)``.

        Returns
        -------
        type
            ``cls``, so that this can be used as a class decorator.

        """
        if name is None:
            name = f'{cls.__module__}.{cls.__qualname__}'
        existing = self._by_name.get(name)
        if existing is not None and existing.cls is not cls:
            raise ConfigurationError(
                f'{name} is already registered for {existing.cls!r}'
            )
        entry = _Entry(cls, name, encode or _default_encoder,
                       decode or _default_decoder(cls))
        self._by_type[cls] = entry
        self._by_name[name] = entry
        return cls

    def for_type(self, cls: type) -> Optional[_Entry]:
        """Get the registration for ``cls``, if any."""
        return self._by_type.get(cls)

    def for_name(self, name: str) -> Optional[_Entry]:
        """Get the registration for the tag ``name``, if any."""
        return self._by_name.get(name)

    def __contains__(self, cls: type) -> bool:
        return cls in self._by_type


class ValueSerializer(object):
    """Encodes session values and options for the backing store."""

    def __init__(self, registry: Optional[TypeRegistry] = None) -> None:
        self.registry = registry if registry is not None else TypeRegistry()

    def encode(self, values: Dict[Any, Any]) -> bytes:
        """
        Encode session values.

        Raises
        ------
        :class:`SerializationError`
            Raised if any contained value cannot be represented.

        """
        if not isinstance(values, dict):
            raise SerializationError('Session values must be a dict')
        try:
            tree = self._encode(values)
            return json.dumps(tree, separators=(',', ':')).encode('utf-8')
        except RecursionError as e:
            raise SerializationError('Session values are cyclic') from e
        except (TypeError, ValueError) as e:
            raise SerializationError(f'Could not encode values: {e}') from e

    def decode(self, data: bytes) -> Dict[Any, Any]:
        """
        Decode session values produced by :meth:`encode`.

        Raises
        ------
        :class:`DeserializationError`
            Raised if the data is corrupt or refers to an unknown type.

        """
        try:
            tree = json.loads(data.decode('utf-8'))
            values = self._decode(tree)
        except DeserializationError:
            raise
        except (UnicodeError, ValueError, TypeError, KeyError,
                AttributeError, InvalidOperation) as e:
            raise DeserializationError(f'Corrupt session values: {e}') from e
        if not isinstance(values, dict):
            raise DeserializationError('Session values must be a dict')
        return values

    def dumps_values(self, values: Dict[Any, Any]) -> str:
        """Encode session values as base64 text."""
        return b64encode(self.encode(values)).decode('ascii')

    def loads_values(self, text: str) -> Dict[Any, Any]:
        """Decode session values from base64 text."""
        try:
            raw = b64decode(text.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeError, AttributeError) as e:
            raise DeserializationError('Session values are not base64') from e
        return self.decode(raw)

    def encode_options(self, options: Options) -> Dict[str, Any]:
        """Get a structured representation of session options."""
        return dict(options._asdict())

    def decode_options(self, data: Optional[Dict[str, Any]]) -> Options:
        """Rebuild session options; unknown keys are ignored."""
        if not data:
            return Options()
        try:
            fields = {k: data[k] for k in Options._fields if k in data}
            if fields.get('max_age') is not None:
                # DynamoDB hands numbers back as Decimal.
                fields['max_age'] = int(fields['max_age'])
        except (TypeError, ValueError, OverflowError, InvalidOperation) as e:
            raise DeserializationError(f'Corrupt session options: {e}') from e
        for flag in ('secure', 'http_only'):
            if flag in fields:
                fields[flag] = bool(fields[flag])
        return Options(**fields)

    def _encode(self, obj: Any) -> Any:
        cls = type(obj)
        entry = self.registry.for_type(cls)
        if entry is not None:
            return {'t': 'obj', 'n': entry.name,
                    'v': self._encode(entry.encode(obj))}
        if obj is None or cls in (bool, int, float, str):
            return obj
        if cls is list:
            return [self._encode(o) for o in obj]
        if cls is dict:
            return {'t': 'dict', 'v': [[self._encode(k), self._encode(v)]
                                       for k, v in obj.items()]}
        if cls is tuple:
            return {'t': 'tuple', 'v': [self._encode(o) for o in obj]}
        if cls is set:
            return {'t': 'set', 'v': [self._encode(o) for o in obj]}
        if cls is frozenset:
            return {'t': 'frozenset', 'v': [self._encode(o) for o in obj]}
        if cls is bytes:
            return {'t': 'bytes', 'v': b64encode(obj).decode('ascii')}
        if cls is datetime:
            return {'t': 'datetime', 'v': obj.isoformat()}
        if cls is date:
            return {'t': 'date', 'v': obj.isoformat()}
        if cls is Decimal:
            return {'t': 'decimal', 'v': str(obj)}
        if cls is UUID:
            return {'t': 'uuid', 'v': str(obj)}
        raise SerializationError(f'Unsupported value type: {cls.__name__}')

    def _decode(self, node: Any) -> Any:
        if isinstance(node, list):
            return [self._decode(o) for o in node]
        if not isinstance(node, dict):
            return node
        tag, value = node['t'], node['v']
        if tag == 'dict':
            return {self._decode(k): self._decode(v) for k, v in value}
        if tag == 'tuple':
            return tuple(self._decode(o) for o in value)
        if tag == 'set':
            return {self._decode(o) for o in value}
        if tag == 'frozenset':
            return frozenset(self._decode(o) for o in value)
        if tag == 'bytes':
            return b64decode(value.encode('ascii'), validate=True)
        if tag == 'datetime':
            return dateutil.parser.isoparse(value)
        if tag == 'date':
            return dateutil.parser.isoparse(value).date()
        if tag == 'decimal':
            return Decimal(value)
        if tag == 'uuid':
            return UUID(value)
        if tag == 'obj':
            entry = self.registry.for_name(node['n'])
            if entry is None:
                raise DeserializationError(f'Unknown type: {node["n"]}')
            data = self._decode(value)
            try:
                return entry.decode(data)
            except Exception as e:
                raise DeserializationError(
                    f'Could not rebuild {entry.name}: {e}'
                ) from e
        raise DeserializationError(f'Unknown type tag: {tag}')

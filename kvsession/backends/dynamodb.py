"""Session backend for Amazon DynamoDB."""

from typing import Any, Optional

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..domain import StoredRecord
from ..exceptions import DeserializationError, RecordNotFound, \
    SerializationError, StoreDeleteError, StoreReadError, StoreWriteError
from .base import SessionBackend

import logging

logger = logging.getLogger(__name__)


class DynamoDBBackend(SessionBackend):
    """
    Stores one item per session in a DynamoDB table.

    The table must have a string hash key named ``id``. Items have exactly
    three attributes: ``id`` (S), ``values`` (S), and ``options`` (M).

    The boto3 client is thread safe and may be shared by all requests.
    """

    def __init__(self, table_name: str, client: Any = None,
                 region_name: Optional[str] = None,
                 endpoint_url: Optional[str] = None,
                 timeout: Optional[float] = None) -> None:
        """
        Configure the backend.

        Parameters
        ----------
        table_name : str
        client : botocore client
            An existing DynamoDB client. If not provided, one is created with
            the remaining parameters and the default credential chain.
        region_name : str
        endpoint_url : str
            For DynamoDB Local, or other compatible services.
        timeout : float
            Connect and read timeout, in seconds, for each call.

        """
        self.table_name = table_name
        if client is None:
            config = Config(connect_timeout=timeout, read_timeout=timeout) \
                if timeout is not None else None
            client = boto3.client('dynamodb', region_name=region_name,
                                  endpoint_url=endpoint_url, config=config)
        self.client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def get(self, session_id: str) -> StoredRecord:
        """Get the record for ``session_id``."""
        try:
            response = self.client.get_item(
                TableName=self.table_name,
                Key={'id': {'S': session_id}},
                ConsistentRead=True
            )
        except (BotoCoreError, ClientError) as e:
            logger.error('Failed to get item from %s: %s', self.table_name, e)
            raise StoreReadError(f'Failed to get item: {e}') from e

        item = response.get('Item')
        if not item:
            raise RecordNotFound(f'Failed to find session {session_id}')
        try:
            return StoredRecord(
                id=self._deserializer.deserialize(item['id']),
                values=self._deserializer.deserialize(item['values']),
                options=self._deserializer.deserialize(
                    item.get('options', {'M': {}})
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DeserializationError(f'Malformed item: {e}') from e

    def put(self, record: StoredRecord) -> None:
        """Write ``record``, replacing the whole item."""
        try:
            options = self._serializer.serialize(dict(record.options))
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f'Could not marshal options: {e}'
            ) from e
        try:
            self.client.put_item(
                TableName=self.table_name,
                Item={
                    'id': {'S': record.id},
                    'values': {'S': record.values},
                    'options': options
                }
            )
        except (BotoCoreError, ClientError) as e:
            logger.error('Failed to put item to %s: %s', self.table_name, e)
            raise StoreWriteError(f'Failed to put item: {e}') from e

    def delete(self, session_id: str) -> None:
        """Delete the item for ``session_id``; missing items are ignored."""
        try:
            self.client.delete_item(
                TableName=self.table_name,
                Key={'id': {'S': session_id}}
            )
        except (BotoCoreError, ClientError) as e:
            logger.error('Failed to delete item from %s: %s',
                         self.table_name, e)
            raise StoreDeleteError(f'Failed to delete item: {e}') from e

"""
Snowflake repository for message records.

The store is used as a keyed document store: one row per message, the
whole record in a VARIANT column, filed under a top-level collection name.
The repository:
1. Mints identifiers (push IDs) before anything is written
2. Encapsulates all SQL queries
3. Translates between MessageRecord and the stored camelCase document

The workflows never write SQL; they ask the repository in domain terms.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from saywith.core.messages.errors import RecordNotFoundError, StoreError
from saywith.core.messages.models import STORE_KEYS, MessageRecord

from ..push_ids import generate_push_id

logger = logging.getLogger(__name__)

TABLE_NAME = "message_records"

CREATE_TABLE_SQL = f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        collection VARCHAR NOT NULL,
        message_id VARCHAR NOT NULL,
        payload VARIANT,
        created_at TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP(),
        updated_at TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP(),
        PRIMARY KEY (collection, message_id)
    )
"""


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "SAYWITH"
    schema: str = "CONTENT"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class MessageRepository:
    """
    Repository for message persistence.

    Each method corresponds to an operation the workflows need:
    - create_record: Reserve a fresh id
    - write_record: Persist a full record
    - fetch_record: Load a record by id
    - update_record: Merge a partial document into a stored record
    """

    def __init__(
        self,
        connection: SnowflakeConnection,
        collection: str = "Saywith",
        id_factory: Callable[[], str] = generate_push_id,
    ) -> None:
        self._conn = connection
        self._collection = collection
        self._id_factory = id_factory

    def ensure_table(self) -> None:
        """Create the backing table if it does not exist yet."""
        self._execute(CREATE_TABLE_SQL, None, "create table")

    def create_record(self) -> str:
        """
        Reserve a new identifier.

        Nothing is written: the record value arrives with write_record at
        the end of the create workflow. Push IDs are unique without a
        round trip to the database.
        """
        record_id = self._id_factory()
        logger.debug("Reserved message id", extra={"record_id": record_id})
        return record_id

    def write_record(self, record_id: str, record: MessageRecord) -> None:
        """Write all fields for record_id, replacing any prior value."""
        self._execute(
            f"""
            MERGE INTO {TABLE_NAME} AS target
            USING (
                SELECT %s AS collection, %s AS message_id, PARSE_JSON(%s) AS payload
            ) AS source
            ON target.collection = source.collection
                AND target.message_id = source.message_id
            WHEN MATCHED THEN UPDATE SET
                payload = source.payload,
                updated_at = CURRENT_TIMESTAMP()
            WHEN NOT MATCHED THEN INSERT (
                collection, message_id, payload, created_at, updated_at
            ) VALUES (
                source.collection, source.message_id, source.payload,
                CURRENT_TIMESTAMP(), CURRENT_TIMESTAMP()
            )
            """,
            (self._collection, record_id, json.dumps(record.to_store())),
            "write",
            record_id,
        )

        logger.info("Wrote message record", extra={"record_id": record_id})

    def fetch_record(self, record_id: str) -> MessageRecord:
        """
        Load the full record for record_id.

        Raises RecordNotFoundError if no record exists.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"""
                SELECT payload
                FROM {TABLE_NAME}
                WHERE collection = %s AND message_id = %s
                """,
                (self._collection, record_id),
            )
            row = cursor.fetchone()
        except Exception as e:
            logger.error(
                "Failed to fetch message record",
                extra={"record_id": record_id, "error": str(e)},
            )
            raise StoreError(f"Fetch failed: {e}") from e
        finally:
            cursor.close()

        if not row or row[0] is None:
            raise RecordNotFoundError(record_id)

        return MessageRecord.from_store(self._parse_payload(row[0]))

    def update_record(self, record_id: str, partial: dict[str, Any]) -> None:
        """
        Merge the given store keys into the stored record.

        Each key is applied with OBJECT_INSERT(..., TRUE) so keys that are
        not in `partial` keep their stored values.
        """
        if not partial:
            return

        unknown = set(partial) - set(STORE_KEYS.values())
        if unknown:
            raise ValueError(f"Unknown record fields: {sorted(unknown)}")

        expression = "payload"
        params: list[Any] = []
        for key, value in partial.items():
            expression = f"OBJECT_INSERT({expression}, %s, PARSE_JSON(%s), TRUE)"
            params.extend([key, json.dumps(value)])
        params.extend([self._collection, record_id])

        rowcount = self._execute(
            f"""
            UPDATE {TABLE_NAME}
            SET payload = {expression},
                updated_at = CURRENT_TIMESTAMP()
            WHERE collection = %s AND message_id = %s
            """,
            tuple(params),
            "update",
            record_id,
        )

        if rowcount == 0:
            raise RecordNotFoundError(record_id)

        logger.info(
            "Updated message record",
            extra={"record_id": record_id, "keys": sorted(partial)},
        )

    def ping(self) -> None:
        """Round trip to the database. Raises StoreError if it is unreachable."""
        self._execute("SELECT 1", None, "ping")

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _execute(
        self,
        query: str,
        params: Optional[tuple],
        operation: str,
        record_id: Optional[str] = None,
    ) -> int:
        """Run one statement and commit. Returns the affected row count."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(query, params)
            self._conn.commit()
            return cursor.rowcount
        except Exception as e:
            logger.error(
                "Message store operation failed",
                extra={"operation": operation, "record_id": record_id, "error": str(e)},
            )
            raise StoreError(f"Store {operation} failed: {e}") from e
        finally:
            cursor.close()

    @staticmethod
    def _parse_payload(payload: Any) -> dict[str, Any]:
        """VARIANT columns come back from the connector as JSON text."""
        if isinstance(payload, str):
            return json.loads(payload)
        return dict(payload)

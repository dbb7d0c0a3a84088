"""
Snowflake connections for the message store.

Real connections authenticate with a key pair when a private key is
configured and fall back to password auth otherwise. Mock mode swaps in
an in-memory connection that understands the handful of statements
MessageRepository issues, which is enough for local development and tests.
"""

import json
import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.messages import TABLE_NAME, SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when a Snowflake connection cannot be opened."""


def snowflake_config_from_settings(settings) -> SnowflakeConfig:
    """SnowflakeConfig from application Settings."""
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def _read_private_key_der(key_path: str) -> bytes:
    """PEM key file to the PKCS8 DER bytes the connector expects."""
    from cryptography.hazmat.primitives import serialization

    with open(key_path, "rb") as key_file:
        key = serialization.load_pem_private_key(key_file.read(), password=None)

    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def connect_params(config: SnowflakeConfig) -> dict[str, Any]:
    """Keyword arguments for snowflake.connector.connect."""
    params: dict[str, Any] = {
        "account": config.account,
        "user": config.user,
        "database": config.database,
        "schema": config.schema,
        "warehouse": config.warehouse,
        "role": config.role,
    }

    if config.private_key_path:
        params["private_key"] = _read_private_key_der(config.private_key_path)
    elif config.password:
        params["password"] = config.password
    else:
        raise SnowflakeConnectionError("Snowflake needs a password or a private key path")

    return params


@contextmanager
def open_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """Open a real connection for the duration of the block."""
    import snowflake.connector

    params = connect_params(config)
    auth = "key-pair" if "private_key" in params else "password"

    try:
        conn = snowflake.connector.connect(**params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"account": config.account, "auth": auth, "error": str(e)},
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}") from e

    logger.debug(
        "Opened Snowflake connection",
        extra={"account": config.account, "database": config.database, "auth": auth},
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception as e:
            logger.warning("Error closing Snowflake connection", extra={"error": str(e)})


# ---------------------------------------------------------------------------
# In-memory connection
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Cursor over an in-memory record table.

    Statements are recognised by their leading keywords. Payloads are held
    as dicts keyed by (collection, message_id) and handed back as JSON
    text, the way the connector returns VARIANT values.
    """

    def __init__(self, records: dict[tuple[str, str], dict]) -> None:
        self._records = records
        self._rows: list[tuple] = []
        self.rowcount = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> "MockSnowflakeCursor":
        statement = " ".join(query.split()).upper()
        self._rows = []
        self.rowcount = 0

        if statement.startswith(f"MERGE INTO {TABLE_NAME.upper()}"):
            collection, message_id, payload_json = params
            self._records[(collection, message_id)] = json.loads(payload_json)
            self.rowcount = 1
        elif statement.startswith(f"UPDATE {TABLE_NAME.upper()}"):
            self._apply_update(params)
        elif statement.startswith("SELECT PAYLOAD"):
            payload = self._records.get(tuple(params))
            if payload is not None:
                self._rows = [(json.dumps(payload),)]
        elif statement == "SELECT 1":
            self._rows = [(1,)]
        elif not statement.startswith("CREATE TABLE"):
            raise ValueError(f"Mock cursor does not understand: {statement[:60]}")

        return self

    def _apply_update(self, params: tuple) -> None:
        # (key1, value1_json, key2, value2_json, ..., collection, message_id)
        *pairs, collection, message_id = params
        payload = self._records.get((collection, message_id))
        if payload is None:
            return
        for key, value_json in zip(pairs[::2], pairs[1::2]):
            payload[key] = json.loads(value_json)
        self.rowcount = 1

    def fetchone(self) -> Optional[tuple]:
        return self._rows[0] if self._rows else None

    def close(self) -> None:
        pass


class MockSnowflakeConnection:
    """In-memory stand-in for a Snowflake connection. Commits are no-ops."""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], dict] = {}
        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self.records)

    def commit(self) -> None:
        pass

    def close(self) -> None:
        pass

    def payload(self, collection: str, message_id: str) -> Optional[dict]:
        """Stored document for a message, as written."""
        return self.records.get((collection, message_id))


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Connection for the configured mode.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: Yield a fresh in-memory connection instead
    """
    if mock_mode:
        yield MockSnowflakeConnection()
        return

    if config is None:
        raise ValueError("config is required when not in mock mode")

    with open_snowflake_connection(config) as conn:
        yield conn

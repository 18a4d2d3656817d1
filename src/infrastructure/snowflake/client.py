"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Using the repository pattern means most code never touches this module
directly - it goes through VideoDocumentRepository which handles the
translation between documents and database rows.
"""

import json
import logging
import re
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.videos import SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: str) -> bytes:
    """
    Load private key from file for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,
            backend=default_backend()
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    The connection is opened without a default database because the
    repository may have to create it; all queries use qualified names.

    Usage:
        with get_snowflake_connection(config) as conn:
            repo = VideoDocumentRepository(conn, ...)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'client_session_keep_alive': True,
    }
    if config.warehouse:
        connect_params['warehouse'] = config.warehouse
    if config.role:
        connect_params['role'] = config.role

    if config.private_key_path:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.info(
        "Established Snowflake connection",
        extra={"account": config.account, "database": config.database}
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

_TABLE_AFTER = {
    'INSERT': re.compile(r'INSERT\s+INTO\s+([\w.$]+)', re.IGNORECASE),
    'UPDATE': re.compile(r'UPDATE\s+([\w.$]+)', re.IGNORECASE),
    'SELECT': re.compile(r'FROM\s+([\w.$]+)', re.IGNORECASE),
}
_ORDER_BY = re.compile(r'ORDER\s+BY\s+(\w+)\s+(ASC|DESC)', re.IGNORECASE)
_OBJECT_PICK = re.compile(r'OBJECT_PICK\(\s*doc\s*,(.*?)\)', re.IGNORECASE | re.DOTALL)


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    VideoDocumentRepository without a real database. Queries are
    recognised by pattern matching; VARIANT values are returned as JSON
    text, like the real connector does.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query.strip()[:100], "params": params}
        )

        statement = query.strip().upper()
        self._results = []
        self._rowcount = 0

        if statement.startswith('CREATE'):
            pass
        elif statement.startswith('INSERT'):
            self._handle_insert(query, params)
        elif statement.startswith('UPDATE'):
            self._handle_update(query, params)
        elif statement.startswith('SELECT'):
            self._handle_select(query, params)
        else:
            raise NotImplementedError(f"Mock cursor can't run: {query.strip()[:60]}")

        return self

    def _table(self, kind: str, query: str) -> dict:
        name = _TABLE_AFTER[kind].search(query).group(1).lower()
        return self._storage.setdefault(name, {})

    def _handle_insert(self, query: str, params: tuple) -> None:
        """INSERT ... SELECT id, PARSE_JSON(doc), created_at, 1"""
        table = self._table('INSERT', query)
        video_id, doc_json, created_at = params
        table[video_id] = {
            'doc': doc_json,
            'created_at': created_at,
            'version': 1,
        }
        self._rowcount = 1

    def _handle_update(self, query: str, params: tuple) -> None:
        """Conditional replace: only when the stored version matches."""
        table = self._table('UPDATE', query)
        doc_json, video_id, if_version = params
        row = table.get(video_id)
        if row is None or row['version'] != if_version:
            return
        row['doc'] = doc_json
        row['version'] += 1
        self._rowcount = 1

    def _handle_select(self, query: str, params: Optional[tuple]) -> None:
        table = self._table('SELECT', query)

        pick = _OBJECT_PICK.search(query)
        if pick:
            fields = re.findall(r"'([^']+)'", pick.group(1))
            rows = list(table.items())

            order = _ORDER_BY.search(query)
            if order:
                column = order.group(1).lower()
                rows.sort(
                    key=lambda item: item[1][column],
                    reverse=order.group(2).upper() == 'DESC',
                )

            self._results = []
            for _, row in rows:
                doc = json.loads(row['doc'])
                picked = {name: doc[name] for name in fields if name in doc}
                self._results.append((json.dumps(picked),))
            return

        # Point read by id
        row = table.get(params[0]) if params else None
        self._results = [(row['doc'], row['version'])] if row else []

    def fetchone(self):
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return self._results

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory: {table_name: {id: row_dict}}.
    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._storage: dict[str, dict[str, dict]] = {}
        self.closed = False

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def close(self) -> None:
        self.closed = True
        logger.debug("Mock connection close")


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    """
    Provide mock Snowflake connection for local development.

    Returns a connection that stores data in memory.
    """
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn

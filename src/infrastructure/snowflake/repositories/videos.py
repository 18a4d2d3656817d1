"""
Snowflake repository for video documents.

Each video is one row: the id, the whole document as a VARIANT, the
creation timestamp (for ordering) and a version number. The table is
clustered by id, so every read and replace touches a single key, the
same way a document database partitioned on /id would.

The version column is the optimistic concurrency token. `replace` only
succeeds when the caller passes the version it read; otherwise it
reports a conflict and leaves the row alone.

The service never writes SQL; it asks the repository
for what it needs in domain terms.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from src.core.videos.models import SUMMARY_FIELDS
from src.core.videos.service import StoredDocument


logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

# Document field -> column that can be sorted on
ORDERABLE_FIELDS = {
    "createdAt": "created_at",
}
ORDER_DIRECTIONS = ("ASC", "DESC")


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
    database: str = "videoapp"
    schema: str = "PUBLIC"
    container: str = "videos"
    warehouse: Optional[str] = None
    role: Optional[str] = None


class DocumentStoreError(Exception):
    """Raised when a document store operation fails."""
    pass


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid Snowflake identifier: {name!r}")
    return name


def _load_variant(value: Any) -> dict[str, Any]:
    """The connector returns VARIANT columns as JSON text."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class VideoDocumentRepository:
    """
    Repository for video document persistence.

    Each method corresponds to a point operation of the document store:
    - create_if_absent: provision database, schema and table (startup only)
    - create: insert a new document
    - read: load a document and its version, or None
    - replace: conditional whole-document update
    - query_all: list projection across all documents
    """

    def __init__(
        self,
        connection: SnowflakeConnection,
        database: str = "videoapp",
        schema: str = "PUBLIC",
        container: str = "videos",
    ) -> None:
        self._conn = connection
        self._database = _check_identifier(database)
        self._schema = _check_identifier(schema)
        self._container = _check_identifier(container)
        self._table = f"{self._database}.{self._schema}.{self._container}"

    @property
    def table(self) -> str:
        return self._table

    def create_if_absent(self) -> None:
        """
        Create the database, schema and table if they don't exist.

        Idempotent. Called once before the app accepts traffic.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"CREATE DATABASE IF NOT EXISTS {self._database}")
            cursor.execute(
                f"CREATE SCHEMA IF NOT EXISTS {self._database}.{self._schema}"
            )
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id STRING NOT NULL PRIMARY KEY,
                    doc VARIANT NOT NULL,
                    created_at STRING NOT NULL,
                    version NUMBER NOT NULL DEFAULT 1
                )
                CLUSTER BY (id)
            """)
            self._conn.commit()

            logger.info("Video table ready", extra={"table": self._table})

        except Exception as e:
            logger.error(
                "Failed to provision video table",
                extra={"table": self._table, "error": str(e)}
            )
            raise DocumentStoreError(f"Provisioning failed: {e}") from e
        finally:
            cursor.close()

    def create(self, document: dict[str, Any]) -> None:
        """Insert a new video document at version 1."""
        cursor = self._conn.cursor()

        try:
            # PARSE_JSON isn't allowed in a VALUES clause
            cursor.execute(f"""
                INSERT INTO {self._table} (id, doc, created_at, version)
                SELECT %s, PARSE_JSON(%s), %s, 1
            """, (
                document["id"],
                json.dumps(document),
                document["createdAt"],
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to create video document",
                extra={"video_id": document.get("id"), "error": str(e)}
            )
            raise DocumentStoreError(f"Create failed: {e}") from e
        finally:
            cursor.close()

    def read(self, video_id: str) -> Optional[StoredDocument]:
        """Point read. Returns None if the id doesn't exist."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT doc, version
                FROM {self._table}
                WHERE id = %s
            """, (video_id,))

            row = cursor.fetchone()
            if not row:
                return None

            return StoredDocument(document=_load_variant(row[0]), version=int(row[1]))

        except Exception as e:
            logger.error(
                "Failed to read video document",
                extra={"video_id": video_id, "error": str(e)}
            )
            raise DocumentStoreError(f"Read failed: {e}") from e
        finally:
            cursor.close()

    def replace(
        self,
        video_id: str,
        document: dict[str, Any],
        if_version: int,
    ) -> bool:
        """
        Replace the whole document if it is still at `if_version`.

        Returns False (and writes nothing) when another writer got there
        first or the row no longer exists.
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                UPDATE {self._table}
                SET doc = PARSE_JSON(%s), version = version + 1
                WHERE id = %s AND version = %s
            """, (
                json.dumps(document),
                video_id,
                if_version,
            ))
            replaced = cursor.rowcount == 1
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to replace video document",
                extra={"video_id": video_id, "error": str(e)}
            )
            raise DocumentStoreError(f"Replace failed: {e}") from e
        finally:
            cursor.close()

        if not replaced:
            logger.debug(
                "Replace skipped, version changed",
                extra={"video_id": video_id, "if_version": if_version}
            )
        return replaced

    def query_all(
        self,
        order_field: str = "createdAt",
        direction: str = "DESC",
    ) -> list[dict[str, Any]]:
        """
        All documents projected to the list fields (no comments).

        Only fields in ORDERABLE_FIELDS can be sorted on.
        """
        column = ORDERABLE_FIELDS.get(order_field)
        if column is None:
            raise ValueError(f"Cannot order by {order_field!r}")
        direction = direction.upper()
        if direction not in ORDER_DIRECTIONS:
            raise ValueError(f"Invalid sort direction {direction!r}")

        picked = ", ".join(f"'{name}'" for name in SUMMARY_FIELDS)

        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT OBJECT_PICK(doc, {picked})
                FROM {self._table}
                ORDER BY {column} {direction}
            """)

            return [_load_variant(row[0]) for row in cursor.fetchall()]

        except Exception as e:
            logger.error(
                "Failed to query video documents",
                extra={"table": self._table, "error": str(e)}
            )
            raise DocumentStoreError(f"Query failed: {e}") from e
        finally:
            cursor.close()

"""Regex/field adapter over a SQLite message store (aiosqlite).

The query is treated as a case-insensitive regular expression and matched
against the ``body``, ``sender`` and ``recipient`` columns.  Matches carry
a uniform base score so ranking among them is left to freshness.

Expected table layout (the table name is configurable)::

    CREATE TABLE messages (
        id         INTEGER PRIMARY KEY,
        message_id TEXT,
        body       TEXT,
        sender     TEXT,
        recipient  TEXT,
        timestamp  TEXT
    )

Classes
-------
- MessageStoreBackend — ``tag = "messages"``
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from agent_context_bridge.errors import BackendError
from agent_context_bridge.search.base import SearchBackend, observed_at_from
from agent_context_bridge.search.models import SearchResult

if TYPE_CHECKING:
    from agent_context_bridge.config import MessageStoreConfig

UNIFORM_SCORE = 1.0

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_SELECT_SQL = """
SELECT id, message_id, body, sender, recipient, timestamp
FROM {table}
WHERE body REGEXP ? OR sender REGEXP ? OR recipient REGEXP ?
ORDER BY id
LIMIT ?
"""


class MessageStoreBackend(SearchBackend):
    """Regex search over message bodies and sender/recipient fields.

    Parameters
    ----------
    db_path:
        SQLite database file.  It must already exist.
    table:
        Table holding the messages.  Must be a plain identifier.
    timeout:
        Per-call timeout in seconds.
    """

    tag = "messages"

    def __init__(self, db_path: str | Path, table: str = "messages", timeout: float = 5.0) -> None:
        super().__init__(timeout=timeout)
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.db_path = Path(db_path)
        self.table = table

    @classmethod
    def from_config(cls, config: MessageStoreConfig) -> MessageStoreBackend:
        return cls(config.db_path, table=config.table, timeout=config.timeout_seconds)

    async def _query(self, query: str, limit: int) -> list[SearchResult]:
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error as exc:
            raise BackendError(f"Invalid regular expression {query!r}: {exc}", source=self.tag) from exc

        if not self.db_path.is_file():
            raise BackendError(f"Message store not found: {self.db_path}", source=self.tag)

        def _regexp(_pattern: str, value: Any) -> bool:
            # SQLite evaluates ``X REGEXP Y`` as regexp(Y, X); NULL columns never match.
            return value is not None and pattern.search(str(value)) is not None

        async with aiosqlite.connect(str(self.db_path)) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.create_function("REGEXP", 2, _regexp, deterministic=True)
            sql = _SELECT_SQL.format(table=self.table)
            async with conn.execute(sql, (query, query, query, limit)) as cursor:
                rows = await cursor.fetchall()

        return [self._to_result(row) for row in rows]

    def _to_result(self, row: aiosqlite.Row) -> SearchResult:
        payload = {
            "content": row["body"],
            "from": row["sender"],
            "to": row["recipient"],
            "timestamp": row["timestamp"],
            "messageId": row["message_id"],
        }
        return SearchResult(
            id=row["id"],
            source=self.tag,
            payload=payload,
            base_score=UNIFORM_SCORE,
            observed_at=observed_at_from(payload),
        )

    def __repr__(self) -> str:
        return f"MessageStoreBackend(db_path={str(self.db_path)!r}, table={self.table!r})"

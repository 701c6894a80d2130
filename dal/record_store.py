"""Async document store over the DOCUMENT table.

Documents are JSON objects addressed by `(collection, doc_key)`. Writes merge
the given fields into the stored document inside a single SQLite
transaction, so a write either lands completely or not at all. Documents
carrying an `owner_id` field can be listed per owner with keyset pagination.
"""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Tuple

import aiosqlite

from utils.database_init import AsyncDatabaseInitializer

OWNER_FIELD = "owner_id"
DEFAULT_PAGE_SIZE = 200


class _ServerTimestamp:
    """Placeholder replaced by the store's clock when a write is applied."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class StoreError(RuntimeError):
    """Raised when the store rejects or cannot complete an operation."""


class RecordStore:
    """Key-addressed JSON document store.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def write_fields(
        self,
        collection: str,
        doc_key: str,
        fields: Mapping[str, Any],
        must_exist: bool = False,
    ) -> None:
        """Merge `fields` into the document, creating it if missing unless `must_exist`.

        Args:
            collection: Collection name (e.g. `users`, `posts`).
            doc_key: Document key within the collection.
            fields: Field values to set. `SERVER_TIMESTAMP` values are
                replaced with the current unix time.
            must_exist: Fail instead of creating the document when it is missing.

        Raises:
            StoreError: If the write could not be applied. Nothing is written
                in that case.
        """
        now = time.time()
        resolved = {key: (now if value is SERVER_TIMESTAMP else value) for key, value in fields.items()}

        try:
            async with self._db.connection() as conn:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    cur = await conn.execute(
                        "SELECT fields FROM DOCUMENT WHERE collection = ? AND doc_key = ?",
                        (collection, doc_key),
                    )
                    row = await cur.fetchone()
                    if row is None and must_exist:
                        raise StoreError(f"Document {collection}/{doc_key} does not exist")
                    merged = self._decode(row[0]) if row else {}
                    merged.update(resolved)
                    body = json.dumps(merged)
                    owner_key = merged.get(OWNER_FIELD)
                    if row:
                        await conn.execute(
                            "UPDATE DOCUMENT SET fields = ?, owner_key = ?, updated_at = ? "
                            "WHERE collection = ? AND doc_key = ?",
                            (body, owner_key, now, collection, doc_key),
                        )
                    else:
                        await conn.execute(
                            "INSERT INTO DOCUMENT (collection, doc_key, owner_key, fields, updated_at) "
                            "VALUES (?, ?, ?, ?, ?)",
                            (collection, doc_key, owner_key, body, now),
                        )
                    await conn.commit()
                except BaseException:
                    await conn.rollback()
                    raise
        except StoreError:
            raise
        except (aiosqlite.Error, sqlite3.Error, TypeError, ValueError) as exc:
            raise StoreError(f"Failed to write {collection}/{doc_key}: {exc}") from exc

    async def create_document(self, collection: str, fields: Mapping[str, Any]) -> str:
        """Insert a new document under a generated key and return the key."""
        doc_key = uuid.uuid4().hex
        await self.write_fields(collection, doc_key, fields)
        return doc_key

    async def get_document(self, collection: str, doc_key: str) -> Optional[Dict[str, Any]]:
        """Return the stored fields for a document, or None if not found."""
        try:
            async with self._db.connection() as conn:
                cur = await conn.execute(
                    "SELECT fields FROM DOCUMENT WHERE collection = ? AND doc_key = ?",
                    (collection, doc_key),
                )
                row = await cur.fetchone()
        except (aiosqlite.Error, sqlite3.Error) as exc:
            raise StoreError(f"Failed to read {collection}/{doc_key}: {exc}") from exc
        return self._decode(row[0]) if row else None

    def query_by_owner(
        self,
        collection: str,
        owner_key: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        """Yield `(doc_key, fields)` for every document owned by `owner_key`.

        Pages are fetched by ascending `doc_key` so documents rewritten while
        iterating are neither skipped nor repeated. Each call starts over from
        the first page.
        """
        return self._paginate(
            "WHERE collection = ? AND owner_key = ? AND doc_key > ?",
            (collection, owner_key),
            page_size,
            f"{collection} for owner {owner_key}",
        )

    def query_collection(
        self,
        collection: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        """Yield `(doc_key, fields)` for every document in `collection`, paged like `query_by_owner`."""
        return self._paginate("WHERE collection = ? AND doc_key > ?", (collection,), page_size, collection)

    async def _paginate(
        self,
        where: str,
        params: Tuple[Any, ...],
        page_size: int,
        label: str,
    ) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        if page_size < 1:
            raise ValueError("page_size must be positive")

        last_key = ""
        while True:
            try:
                async with self._db.connection() as conn:
                    cur = await conn.execute(
                        f"SELECT doc_key, fields FROM DOCUMENT {where} ORDER BY doc_key LIMIT ?",
                        (*params, last_key, page_size),
                    )
                    rows = await cur.fetchall()
            except (aiosqlite.Error, sqlite3.Error) as exc:
                raise StoreError(f"Failed to query {label}: {exc}") from exc

            for doc_key, body in rows:
                yield doc_key, self._decode(body)

            if len(rows) < page_size:
                return
            last_key = rows[-1][0]

    @staticmethod
    def _decode(body: str) -> Dict[str, Any]:
        """Parse a stored JSON body."""
        try:
            value = json.loads(body)
        except ValueError as exc:
            raise StoreError("Stored document is not valid JSON") from exc
        if not isinstance(value, dict):
            raise StoreError("Stored document is not a JSON object")
        return value

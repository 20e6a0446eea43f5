"""
Database connection management and the Postgres document store backend.
Uses asyncpg for async Postgres access with connection pooling.

Documents live in a single JSONB table keyed by (collection, doc_key).
Range predicates compare with COLLATE "C" so string order is byte order,
which is what geohash prefix ranges rely on.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import asyncpg

from placemap_geo.config import get_settings
from placemap_geo.errors import StoreUnavailable
from placemap_geo.store import Document, DocumentStore

logger = logging.getLogger(__name__)

# ── Connection Pool ────────────────────────────────────────────────────

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = await asyncpg.create_pool(
            dsn=settings.db.dsn,
            min_size=settings.db.min_pool_size,
            max_size=settings.db.max_pool_size,
            command_timeout=settings.db.command_timeout,
        )
        logger.info("Database connection pool created (min=%d, max=%d)",
                    settings.db.min_pool_size, settings.db.max_pool_size)
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Database connection pool closed")


@asynccontextmanager
async def get_connection() -> AsyncIterator[asyncpg.Connection]:
    """Pooled connection; driver, network and timeout failures become StoreUnavailable."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            yield conn
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
        logger.error("Document store call failed: %s", e)
        raise StoreUnavailable(str(e)) from e


# ── Schema Initialization ─────────────────────────────────────────────

async def run_migrations() -> None:
    """Execute SQL migrations in order (idempotent)."""
    migrations_dir = Path(__file__).parent / "migrations"
    migration_paths = sorted(migrations_dir.glob("*.sql"))

    async with get_connection() as conn:
        for path in migration_paths:
            sql = path.read_text()
            await conn.execute(sql)
            logger.info("Applied migration: %s", path.name)
    logger.info("Migrations applied successfully (%d files)", len(migration_paths))


# ── Document Store ────────────────────────────────────────────────────

def _row_to_document(row: asyncpg.Record) -> Document:
    body = row["body"]
    if isinstance(body, str):
        body = json.loads(body)
    return Document(key=row["doc_key"], data=body)


class PostgresDocumentStore(DocumentStore):
    """DocumentStore over the shared asyncpg pool."""

    async def open(self) -> None:
        async with get_connection():
            pass

    async def close(self) -> None:
        await close_pool()

    async def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        async with get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT doc_key, body FROM documents WHERE collection = $1 AND doc_key = $2",
                collection, key,
            )
        return _row_to_document(row) if row is not None else None

    async def range_query(
        self,
        collection: str,
        field: str,
        lower: str,
        upper: Optional[str],
        equals: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        """
        Example: geohash prefix "wydm9qz" becomes
            body->>'geohash' >= 'wydm9qz' AND body->>'geohash' < 'wydm9r'
        Documents without the field compare as NULL and drop out.
        """
        async with get_connection() as conn:
            rows = await conn.fetch(
                """
                SELECT doc_key, body
                FROM documents
                WHERE collection = $1
                  AND (body->>($2::text)) COLLATE "C" >= $3
                  AND ($4::text IS NULL OR (body->>($2::text)) COLLATE "C" < $4)
                  AND body @> $5::jsonb
                ORDER BY (body->>($2::text)) COLLATE "C"
                """,
                collection, field, lower, upper, json.dumps(equals or {}),
            )
        return [_row_to_document(r) for r in rows]

    async def in_query(
        self,
        collection: str,
        field: str,
        values: list[str],
        equals: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        self.check_in_values(values)
        if not values:
            return []
        async with get_connection() as conn:
            rows = await conn.fetch(
                """
                SELECT doc_key, body
                FROM documents
                WHERE collection = $1
                  AND body->>($2::text) = ANY($3::text[])
                  AND body @> $4::jsonb
                """,
                collection, field, values, json.dumps(equals or {}),
            )
        return [_row_to_document(r) for r in rows]

    async def put(self, collection: str, key: str, data: dict[str, Any]) -> None:
        async with get_connection() as conn:
            await conn.execute(
                """
                INSERT INTO documents (collection, doc_key, body)
                VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (collection, doc_key) DO UPDATE SET
                    body = EXCLUDED.body,
                    updated_at = NOW()
                """,
                collection, key, json.dumps(data),
            )

    async def update(self, collection: str, key: str, fields: dict[str, Any]) -> None:
        async with get_connection() as conn:
            status = await conn.execute(
                """
                UPDATE documents
                SET body = body || $3::jsonb,
                    updated_at = NOW()
                WHERE collection = $1 AND doc_key = $2
                """,
                collection, key, json.dumps(fields),
            )
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        if status.endswith(" 0"):
            raise KeyError(f"{collection}/{key}")

    async def scan(self, collection: str) -> list[Document]:
        async with get_connection() as conn:
            rows = await conn.fetch(
                "SELECT doc_key, body FROM documents WHERE collection = $1 ORDER BY doc_key",
                collection,
            )
        return [_row_to_document(r) for r in rows]

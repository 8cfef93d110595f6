"""Document store on top of the asyncpg pool.

Documents are addressed with slash-separated paths that alternate collection and
document segments, e.g. ``listings/abc`` or ``users/u1/cart/abc``. A document's
data is a JSON object stored in the ``documents`` table.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .exceptions import DatabaseError, DocumentNotFoundError, InvalidPathError

logger = logging.getLogger(__name__)


class Document(NamedTuple):
    """A document id with its data."""
    id: str
    data: Dict[str, Any]


def now_iso() -> str:
    """UTC timestamp used in place of a server-side timestamp."""
    return datetime.now(timezone.utc).isoformat()


def split_path(path: str) -> Tuple[str, str]:
    """Split a document path into (collection path, document id).

    Raises:
        InvalidPathError: If the path does not name a document
    """
    segments = [s for s in str(path).split('/') if s]
    if len(segments) < 2 or len(segments) % 2 != 0:
        raise InvalidPathError(f"Not a document path: {path!r}")
    return '/'.join(segments[:-1]), segments[-1]


def check_collection(collection: str) -> str:
    segments = [s for s in str(collection).split('/') if s]
    if not segments or len(segments) % 2 != 1:
        raise InvalidPathError(f"Not a collection path: {collection!r}")
    return '/'.join(segments)


def _decode(value) -> Dict[str, Any]:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return dict(value)


class DocumentStore:
    """Read/write accessors for documents stored in PostgreSQL/CockroachDB."""

    def __init__(self, pool):
        self.pool = pool

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        """Get a document's data, or None if it does not exist."""
        collection, doc_id = split_path(path)
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT data FROM documents WHERE collection = $1 AND doc_id = $2',
                    collection,
                    doc_id
                )
        except Exception as e:
            logger.error(f"Error reading {path}: {e}")
            raise DatabaseError(f"Failed to read {path}: {e}") from e
        return _decode(row['data']) if row else None

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Create or replace a document.

        Args:
            path: Document path
            data: Document fields
            merge: Merge the fields into an existing document instead of replacing it
        """
        collection, doc_id = split_path(path)
        on_conflict = 'documents.data || EXCLUDED.data' if merge else 'EXCLUDED.data'
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    f'''
                    INSERT INTO documents (collection, doc_id, data)
                    VALUES ($1, $2, $3::JSONB)
                    ON CONFLICT (collection, doc_id) DO UPDATE
                    SET data = {on_conflict},
                        updated_at = now()
                    ''',
                    collection,
                    doc_id,
                    json.dumps(data)
                )
        except Exception as e:
            logger.error(f"Error writing {path}: {e}")
            raise DatabaseError(f"Failed to write {path}: {e}") from e

    async def update(self, path: str, data: Dict[str, Any]) -> None:
        """Merge fields into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        collection, doc_id = split_path(path)
        try:
            async with self.pool.acquire() as conn:
                updated = await conn.fetchval(
                    '''
                    UPDATE documents
                    SET data = data || $3::JSONB,
                        updated_at = now()
                    WHERE collection = $1 AND doc_id = $2
                    RETURNING doc_id
                    ''',
                    collection,
                    doc_id,
                    json.dumps(data)
                )
        except Exception as e:
            logger.error(f"Error updating {path}: {e}")
            raise DatabaseError(f"Failed to update {path}: {e}") from e
        if updated is None:
            raise DocumentNotFoundError(path)

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        await self.set(f"{check_collection(collection)}/{doc_id}", data)
        return doc_id

    async def delete(self, path: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""
        collection, doc_id = split_path(path)
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    'DELETE FROM documents WHERE collection = $1 AND doc_id = $2',
                    collection,
                    doc_id
                )
        except Exception as e:
            logger.error(f"Error deleting {path}: {e}")
            raise DatabaseError(f"Failed to delete {path}: {e}") from e

    async def list(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Document]:
        """List the documents of a collection.

        Args:
            collection: Collection path
            where: Optional field equality filters
            order_by: Optional top-level field to sort by
            descending: Sort direction

        Returns:
            List of documents
        """
        collection = check_collection(collection)
        query = 'SELECT doc_id, data FROM documents WHERE collection = $1'
        params: List[Any] = [collection]

        if where:
            params.append(json.dumps(where))
            query += f' AND data @> ${len(params)}::JSONB'

        if order_by:
            params.append(order_by)
            direction = 'DESC' if descending else 'ASC'
            query += f' ORDER BY data->>${len(params)} {direction} NULLS LAST, doc_id'
        else:
            query += ' ORDER BY doc_id'

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except Exception as e:
            logger.error(f"Error listing {collection}: {e}")
            raise DatabaseError(f"Failed to list {collection}: {e}") from e

        return [Document(row['doc_id'], _decode(row['data'])) for row in rows]

    async def ping(self) -> bool:
        """Check the connection."""
        async with self.pool.acquire() as conn:
            return await conn.fetchval('SELECT 1') == 1

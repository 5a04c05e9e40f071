"""SQLite document store for docrag.

Stores:
- Documents with their full extracted text
- Chunks with their JSON-encoded embeddings (NULL when unembedded)

Chunks reference their document with ON DELETE CASCADE, and a document is
always written together with all of its chunks in one transaction.
"""
import sqlite3
import json
from pathlib import Path
from typing import Optional, List, Sequence
from datetime import datetime
import structlog

from docrag import config
from docrag.errors import StorageError
from docrag.models import Chunk, Document, UNEMBEDDED, embedded

logger = structlog.get_logger()


def _encode_embedding(chunk: Chunk) -> Optional[str]:
    if not chunk.embedding.is_embedded:
        return None
    return json.dumps(list(chunk.embedding.vector))


def _decode_embedding(raw: Optional[str]):
    if raw is None:
        return UNEMBEDDED
    return embedded(json.loads(raw))


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        filename=row["filename"],
        filepath=row["filepath"],
        content=row["content"] if "content" in row.keys() else "",
        filetype=row["filetype"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class DocumentStore:
    """Durable CRUD for documents and their chunks."""

    def __init__(self, db_path: Path):
        """Initialize the store.

        Args:
            db_path: Path to the sqlite database file
        """
        self.db_path = Path(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection to the SQLite database.

        Returns:
            sqlite3.Connection with row_factory set to sqlite3.Row and
            foreign keys enforced (needed for cascade deletes)
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def ping(self) -> None:
        """Open a connection and run a trivial query.

        Raises:
            sqlite3.Error: If the database cannot be opened
        """
        conn = self.get_connection()
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()

    def init_database(self) -> None:
        """Create tables if they don't exist.

        Raises:
            StorageError: If schema creation fails
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    filename TEXT NOT NULL,
                    filepath TEXT NOT NULL,
                    content TEXT NOT NULL,
                    filetype TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    document_id INTEGER NOT NULL
                        REFERENCES documents(id) ON DELETE CASCADE,
                    text TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    embedding TEXT,
                    created_at TEXT NOT NULL,
                    UNIQUE(document_id, chunk_index)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_chunks_document_id
                ON chunks(document_id)
            """)

            conn.commit()
            logger.info("database_initialized", db_path=str(self.db_path))

        except sqlite3.Error as e:
            conn.rollback()
            logger.error("database_init_failed", error=str(e))
            raise StorageError(f"Failed to initialize database: {e}") from e
        finally:
            conn.close()

    def create_with_chunks(self, document: Document) -> int:
        """Insert a document and all of its chunks in one transaction.

        Args:
            document: Document with chunks attached

        Returns:
            ID of the inserted document

        Raises:
            StorageError: If any insert fails (nothing is persisted)
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO documents (
                    filename, filepath, content, filetype, created_at
                ) VALUES (?, ?, ?, ?, ?)
            """, (
                document.filename,
                document.filepath,
                document.content,
                document.filetype,
                document.created_at.isoformat(),
            ))
            document_id = cursor.lastrowid

            cursor.executemany("""
                INSERT INTO chunks (
                    document_id, text, chunk_index, embedding, created_at
                ) VALUES (?, ?, ?, ?, ?)
            """, [
                (
                    document_id,
                    chunk.text,
                    chunk.index,
                    _encode_embedding(chunk),
                    chunk.created_at.isoformat(),
                )
                for chunk in document.chunks
            ])

            conn.commit()
            logger.info(
                "document_stored",
                document_id=document_id,
                filename=document.filename,
                chunk_count=len(document.chunks),
            )
            return document_id

        except sqlite3.Error as e:
            conn.rollback()
            logger.error("document_store_failed", error=str(e), filename=document.filename)
            raise StorageError(f"Failed to store document '{document.filename}': {e}") from e
        finally:
            conn.close()

    def list_documents(self) -> List[Document]:
        """List documents, newest first (content not loaded).

        Raises:
            StorageError: If the query fails
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, filename, filepath, filetype, created_at
                FROM documents
                ORDER BY created_at DESC, id DESC
            """)
            return [_row_to_document(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            logger.error("documents_list_failed", error=str(e))
            raise StorageError(f"Failed to list documents: {e}") from e
        finally:
            conn.close()

    def get_document(self, document_id: int) -> Optional[Document]:
        """Load a document with its chunks in index order.

        Returns:
            The Document, or None if it doesn't exist

        Raises:
            StorageError: If the query fails
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT * FROM documents WHERE id = ?", (document_id,))
            row = cursor.fetchone()
            if row is None:
                return None

            document = _row_to_document(row)

            cursor.execute("""
                SELECT id, document_id, text, chunk_index, embedding, created_at
                FROM chunks
                WHERE document_id = ?
                ORDER BY chunk_index
            """, (document_id,))
            document.chunks = [
                Chunk(
                    id=r["id"],
                    document_id=r["document_id"],
                    text=r["text"],
                    index=r["chunk_index"],
                    embedding=_decode_embedding(r["embedding"]),
                    created_at=datetime.fromisoformat(r["created_at"]),
                    source=document.filename,
                )
                for r in cursor.fetchall()
            ]
            return document

        except sqlite3.Error as e:
            logger.error("document_fetch_failed", error=str(e), document_id=document_id)
            raise StorageError(f"Failed to load document {document_id}: {e}") from e
        finally:
            conn.close()

    def delete_document(self, document_id: int) -> bool:
        """Delete a document; its chunks go with it.

        Returns:
            True if a document was deleted, False if it didn't exist

        Raises:
            StorageError: If the delete fails
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            conn.commit()

            deleted = cursor.rowcount > 0
            logger.info("document_deleted", document_id=document_id, deleted=deleted)
            return deleted

        except sqlite3.Error as e:
            conn.rollback()
            logger.error("document_delete_failed", error=str(e), document_id=document_id)
            raise StorageError(f"Failed to delete document {document_id}: {e}") from e
        finally:
            conn.close()

    def fetch_all_embedded_chunks(self) -> List[Chunk]:
        """Load every chunk that has an embedding, for a similarity scan.

        Each chunk's source is set to its document's filename.

        Raises:
            StorageError: If the query fails
        """
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT
                    c.id, c.document_id, c.text, c.chunk_index,
                    c.embedding, c.created_at, d.filename
                FROM chunks c
                INNER JOIN documents d ON c.document_id = d.id
                WHERE c.embedding IS NOT NULL
                ORDER BY c.id
            """)

            chunks = [
                Chunk(
                    id=row["id"],
                    document_id=row["document_id"],
                    text=row["text"],
                    index=row["chunk_index"],
                    embedding=_decode_embedding(row["embedding"]),
                    created_at=datetime.fromisoformat(row["created_at"]),
                    source=row["filename"],
                )
                for row in cursor.fetchall()
            ]

            logger.debug("embedded_chunks_loaded", count=len(chunks))
            return chunks

        except (sqlite3.Error, ValueError) as e:
            logger.error("chunks_retrieval_failed", error=str(e))
            raise StorageError(f"Failed to load chunks: {e}") from e
        finally:
            conn.close()

    def get_chunk_count(self) -> int:
        """Get the total number of chunks in the database."""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT COUNT(*) FROM chunks")
            return cursor.fetchone()[0]

        except sqlite3.Error as e:
            logger.error("chunk_count_failed", error=str(e))
            raise StorageError(f"Failed to count chunks: {e}") from e
        finally:
            conn.close()


def open_store(db_paths: Optional[Sequence[Path]] = None) -> DocumentStore:
    """Open the first working database from an ordered list of targets.

    Each target is tried in order; the first that opens and initializes
    wins. If none does, one StorageError lists every target's failure.

    Args:
        db_paths: Candidate sqlite files (default: config.DB_PATHS)

    Returns:
        A ready DocumentStore

    Raises:
        StorageError: If no target could be opened
    """
    targets = list(config.DB_PATHS if db_paths is None else db_paths)
    if not targets:
        raise StorageError("No database targets configured")

    failures = []
    for path in targets:
        store = DocumentStore(path)
        try:
            store.db_path.parent.mkdir(parents=True, exist_ok=True)
            store.ping()
            store.init_database()
        except (OSError, sqlite3.Error, StorageError) as e:
            logger.warning("database_target_failed", db_path=str(path), error=str(e))
            failures.append(f"{path}: {e}")
            continue

        logger.info("database_connected", db_path=str(path))
        return store

    raise StorageError(
        "Could not open any database target:\n  " + "\n  ".join(failures)
    )

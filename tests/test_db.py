"""Tests for the sqlite document store."""
import pytest

from docrag.db import DocumentStore, open_store
from docrag.errors import StorageError
from docrag.models import UNEMBEDDED, Chunk, Document, embedded


def make_document(filename="notes.txt", embeddings=None):
    embeddings = embeddings if embeddings is not None else [[1.0, 0.0], [0.0, 1.0]]
    document = Document(
        filename=filename,
        filepath=f"/tmp/{filename}",
        content="full text",
        filetype="txt",
    )
    document.attach_chunks([
        Chunk(
            text=f"chunk {i}",
            index=i,
            embedding=embedded(vector) if vector is not None else UNEMBEDDED,
        )
        for i, vector in enumerate(embeddings)
    ])
    return document


class TestDocumentStore:
    def test_create_and_get_round_trip(self, store):
        document_id = store.create_with_chunks(make_document())

        loaded = store.get_document(document_id)

        assert loaded.id == document_id
        assert loaded.filename == "notes.txt"
        assert loaded.content == "full text"
        assert [c.index for c in loaded.chunks] == [0, 1]
        assert [c.text for c in loaded.chunks] == ["chunk 0", "chunk 1"]
        assert loaded.chunks[0].embedding.vector == (1.0, 0.0)
        assert all(c.document_id == document_id for c in loaded.chunks)

    def test_get_missing_document(self, store):
        assert store.get_document(999) is None

    def test_unembedded_chunks_are_stored_but_not_searchable(self, store):
        document_id = store.create_with_chunks(make_document(embeddings=[[1.0, 0.0], None]))

        loaded = store.get_document(document_id)
        searchable = store.fetch_all_embedded_chunks()

        assert loaded.chunks[1].embedding is UNEMBEDDED
        assert store.get_chunk_count() == 2
        assert [c.index for c in searchable] == [0]

    def test_zero_vector_is_searchable(self, store):
        store.create_with_chunks(make_document(embeddings=[[0.0, 0.0]]))

        [chunk] = store.fetch_all_embedded_chunks()

        assert chunk.embedding.vector == (0.0, 0.0)

    def test_embedded_chunks_carry_their_document_filename(self, store):
        store.create_with_chunks(make_document("a.txt"))
        store.create_with_chunks(make_document("b.md"))

        chunks = store.fetch_all_embedded_chunks()

        assert [c.source for c in chunks] == ["a.txt", "a.txt", "b.md", "b.md"]

    def test_list_documents_newest_first(self, store):
        first = store.create_with_chunks(make_document("first.txt"))
        second = store.create_with_chunks(make_document("second.txt"))

        documents = store.list_documents()

        assert [d.id for d in documents] == [second, first]
        assert documents[0].filetype == "txt"

    def test_list_documents_empty(self, store):
        assert store.list_documents() == []

    def test_delete_cascades_to_chunks(self, store):
        keep = store.create_with_chunks(make_document("keep.txt"))
        drop = store.create_with_chunks(make_document("drop.txt"))

        assert store.delete_document(drop) is True

        assert store.get_document(drop) is None
        assert store.get_chunk_count() == 2
        assert {c.document_id for c in store.fetch_all_embedded_chunks()} == {keep}

    def test_delete_missing_document(self, store):
        assert store.delete_document(12345) is False

    def test_failed_write_persists_nothing(self, store):
        document = make_document()
        # Bypass attach_chunks validation to force a UNIQUE violation
        document.chunks = [Chunk(text="a", index=0), Chunk(text="b", index=0)]

        with pytest.raises(StorageError):
            store.create_with_chunks(document)

        assert store.list_documents() == []
        assert store.get_chunk_count() == 0

    def test_init_database_is_idempotent(self, store):
        store.create_with_chunks(make_document())
        store.init_database()
        assert len(store.list_documents()) == 1

    def test_document_without_chunks(self, store):
        document = Document(filename="empty.txt", filepath="/tmp/empty.txt", content="x", filetype="txt")

        document_id = store.create_with_chunks(document)

        assert store.get_document(document_id).chunks == []


class TestOpenStore:
    def test_first_working_target_wins(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        good = tmp_path / "nested" / "docs.sqlite"

        store = open_store([blocker / "docs.sqlite", good])

        assert store.db_path == good
        assert good.exists()
        assert store.list_documents() == []

    def test_all_targets_failing_reports_each(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        targets = [blocker / "one.sqlite", blocker / "two.sqlite"]

        with pytest.raises(StorageError) as exc_info:
            open_store(targets)

        message = str(exc_info.value)
        assert message.startswith("Could not open any database target:")
        assert "one.sqlite" in message
        assert "two.sqlite" in message

    def test_no_targets(self):
        with pytest.raises(StorageError):
            open_store([])

    def test_defaults_to_configured_paths(self, tmp_path, monkeypatch):
        from docrag import config

        target = tmp_path / "configured.sqlite"
        monkeypatch.setattr(config, "DB_PATHS", [target])

        assert open_store().db_path == target

    def test_existing_data_survives_reopen(self, tmp_path):
        path = tmp_path / "docs.sqlite"
        open_store([path]).create_with_chunks(make_document())

        reopened = open_store([path])

        assert len(reopened.list_documents()) == 1
        assert isinstance(reopened, DocumentStore)

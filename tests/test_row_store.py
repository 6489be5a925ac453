"""Tests for the row-store clients.

Both implementations (in-memory and SQLAlchemy over SQLite) must honour the
same document contract, so every test runs against each.
"""

import pytest

from hotspot_sync.row_store import DocumentNotFound, SheetNotFound, build_row_store_client, MemoryRowStoreClient


@pytest.fixture(params=["memory_client", "sql_client"])
def client(request):
    return request.getfixturevalue(request.param)


@pytest.fixture
def document(client):
    doc = client.open_document(client.create_document("Doc"))
    doc.ensure_sheet_exists("Hotspots")
    doc.setup_headers("Hotspots", ["ID", "Slide ID", "Name"])
    return doc


class TestDocuments:
    """Tests for document lifecycle."""

    def test_find_by_title(self, client):
        """Test a created document can be found by its title."""
        doc_id = client.create_document("Registry")
        assert client.find_document_by_title("Registry") == doc_id
        assert client.find_document_by_title("Missing") is None

    def test_trashed_document_is_hidden(self, client):
        """Test trashing removes a document from lookups."""
        doc_id = client.create_document("Old")
        client.trash_document(doc_id)

        assert client.find_document_by_title("Old") is None
        with pytest.raises(DocumentNotFound):
            client.open_document(doc_id)

    def test_trash_unknown_document(self, client):
        """Test trashing an id that never existed."""
        with pytest.raises(LookupError):
            client.trash_document("does-not-exist")


class TestSheets:
    """Tests for sheet bootstrap and row operations."""

    def test_setup_headers_is_idempotent(self, document):
        """Test existing headers are kept and returned."""
        assert document.setup_headers("Hotspots", ["Other"]) == ["ID", "Slide ID", "Name"]

    def test_ensure_sheet_exists_twice(self, document):
        """Test creating an existing sheet is a no-op."""
        document.append_row("Hotspots", ["h1", "s1", "A"])
        document.ensure_sheet_exists("Hotspots")
        assert document.get_all_rows("Hotspots") == [["h1", "s1", "A"]]

    def test_missing_sheet(self, document):
        """Test reading a sheet that was never created."""
        with pytest.raises(SheetNotFound):
            document.get_all_rows("Slides")

    def test_append_keeps_order(self, document):
        """Test rows come back in append order."""
        for i in range(3):
            document.append_row("Hotspots", [f"h{i}", "s1", i])
        assert [r[0] for r in document.get_all_rows("Hotspots")] == ["h0", "h1", "h2"]

    def test_update_row_by_id(self, document):
        """Test updating a row in place."""
        document.append_row("Hotspots", ["h1", "s1", "A"])
        document.append_row("Hotspots", ["h2", "s1", "B"])

        assert document.update_row_by_id("Hotspots", "h1", ["h1", "s1", "A2"]) is True
        assert document.update_row_by_id("Hotspots", "h9", ["h9", "s1", "X"]) is False
        assert document.get_all_rows("Hotspots") == [["h1", "s1", "A2"], ["h2", "s1", "B"]]

    def test_delete_row_by_id(self, document):
        """Test deleting a single row."""
        document.append_row("Hotspots", ["h1", "s1", "A"])
        assert document.delete_row_by_id("Hotspots", "h1") is True
        assert document.delete_row_by_id("Hotspots", "h1") is False
        assert document.get_all_rows("Hotspots") == []

    def test_delete_rows_by_column_value(self, document):
        """Test bulk delete by a column value."""
        document.append_row("Hotspots", ["h1", "s1", "A"])
        document.append_row("Hotspots", ["h2", "s2", "B"])
        document.append_row("Hotspots", ["h3", "s1", "C"])

        assert document.delete_rows_by_column_value("Hotspots", 1, "s1") == 2
        assert document.get_all_rows("Hotspots") == [["h2", "s2", "B"]]

    def test_returned_rows_are_copies(self, document):
        """Test mutating a returned row does not touch the store."""
        document.append_row("Hotspots", ["h1", "s1", "A"])
        rows = document.get_all_rows("Hotspots")
        rows[0][2] = "changed"
        assert document.get_all_rows("Hotspots")[0][2] == "A"


class TestFactory:
    """Tests for backend selection."""

    def test_memory_backend(self):
        """Test ROW_STORE_BACKEND=memory."""
        assert isinstance(build_row_store_client("memory"), MemoryRowStoreClient)

    def test_unknown_backend(self):
        """Test an unsupported backend name."""
        with pytest.raises(ValueError):
            build_row_store_client("sheets")

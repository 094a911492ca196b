"""
Tests for dbrefactor.plan.drafts module.
"""

from dbrefactor.plan.drafts import Draft, DraftBook, DraftKey


class TestDraft:
    def test_is_complete(self):
        assert Draft(name="Phone", type="int").is_complete
        assert not Draft(name="Phone").is_complete
        assert not Draft(type="int").is_complete
        assert not Draft(name=" ", type="int").is_complete


class TestDraftBook:
    """Test DraftBook operations."""

    def test_open_creates_empty_draft(self):
        book, key = DraftBook().open("Customer")

        assert key == DraftKey("Customer", 0)
        assert book.get(key) == Draft()
        assert len(book) == 1

    def test_indexes_are_not_reused(self):
        book, first = DraftBook().open("Customer")
        book = book.discard(first)
        book, second = book.open("Customer")

        assert second.index == first.index + 1

    def test_update_sets_fields_independently(self):
        book, key = DraftBook().open("Customer")

        book = book.update(key, name="Phone")
        book = book.update(key, type="int")

        assert book.get(key) == Draft(name="Phone", type="int")

    def test_update_unknown_key_is_ignored(self):
        book = DraftBook()
        assert book.update(DraftKey("Customer", 3), name="Phone") is book

    def test_book_is_immutable(self):
        empty = DraftBook()
        book, key = empty.open("Customer")
        book.update(key, name="Phone")

        assert len(empty) == 0
        assert book.get(key).name == ""

    def test_discard(self):
        book, key = DraftBook().open("Customer")
        assert key not in book.discard(key)
        assert book.discard(DraftKey("Other", 9)) is book

    def test_for_table_filters_by_owner(self):
        """Test drafts are grouped by table, not by string matching."""
        book, a = DraftBook().open("Customer")
        book, b = book.open("CustomerArchive")
        book, c = book.open("Customer")

        assert [k for k, _ in book.for_table("Customer")] == [a, c]
        assert [k for k, _ in book.for_table("CustomerArchive")] == [b]

    def test_key_str(self):
        assert str(DraftKey("Customer", 2)) == "Customer#2"

"""Unit tests for Document."""

import pytest

from llmgrid.engine.document import Document
from llmgrid.engine.errors import ValidationError
from llmgrid.engine.models import DEFAULT_COLUMN_WIDTH


def assert_rectangular(document: Document) -> None:
    assert document.row_count >= 1
    assert document.column_count >= 1
    for row in document.rows:
        assert len(row) == document.column_count


class TestDocumentCreate:
    """Tests for Document.create."""

    def test_default_grid(self):
        document = Document.create()

        assert document.row_count == 5
        assert document.column_count == 3
        assert [c.name for c in document.columns] == ["列 1", "列 2", "列 3"]
        assert all(c.width == DEFAULT_COLUMN_WIDTH for c in document.columns)
        assert all(not c.is_processing for c in document.columns)
        assert_rectangular(document)

    def test_column_ids_are_unique(self):
        document = Document.create(1, 10)

        assert len({c.id for c in document.columns}) == 10

    def test_rejects_empty_grid(self):
        with pytest.raises(ValidationError):
            Document.create(0, 3)


class TestDocumentFromTable:
    """Tests for Document.from_table."""

    def test_pads_ragged_rows(self):
        document = Document.from_table(["a", "b", "c"], [["1"], ["1", "2", "3"]])

        assert document.values() == [["1", "", ""], ["1", "2", "3"]]
        assert_rectangular(document)

    def test_extra_cells_get_default_columns(self):
        document = Document.from_table(["a"], [["1", "2"]])

        assert [c.name for c in document.columns] == ["a", "列 2"]

    def test_blank_header_gets_default_name(self):
        document = Document.from_table(["a", " "], [["1", "2"]])

        assert document.columns[1].name == "列 2"

    def test_headers_only_creates_one_empty_row(self):
        document = Document.from_table(["a", "b"], [])

        assert document.values() == [["", ""]]

    def test_everything_empty_is_rejected(self):
        with pytest.raises(ValidationError):
            Document.from_table([], [])

    def test_replace_issues_new_column_ids(self):
        document = Document.create(2, 2)

        result = document.replace(["a", "b"], [["1", "2"]])

        assert result.to_table() == (["a", "b"], [["1", "2"]])
        assert not {c.id for c in result.columns} & {c.id for c in document.columns}

    def test_round_trip_through_to_table(self):
        headers = ["name", "qty"]
        rows = [["apple", "10"], ["banana", "3"]]

        assert Document.from_table(headers, rows).to_table() == (headers, rows)


class TestDocumentRows:
    """Tests for row operations."""

    def test_add_row_appends_empty_row(self):
        document = Document.create(1, 2).update_cell(0, 0, "x")

        result = document.add_row()

        assert result.values() == [["x", ""], ["", ""]]
        assert document.row_count == 1

    def test_delete_row(self):
        document = Document.from_table(["a"], [["1"], ["2"], ["3"]])

        assert document.delete_row(1).values() == [["1"], ["3"]]

    def test_delete_last_row_is_noop(self):
        document = Document.create(1, 2)

        assert document.delete_row(0) is document

    def test_delete_row_out_of_range(self):
        with pytest.raises(ValidationError):
            Document.create(2, 2).delete_row(2)


class TestDocumentColumns:
    """Tests for column operations."""

    def test_add_column_extends_every_row(self):
        document = Document.create(3, 2).add_column()

        assert document.column_count == 3
        assert document.columns[2].name == "列 3"
        assert_rectangular(document)

    def test_delete_column_removes_cells(self):
        document = Document.from_table(["a", "b"], [["1", "2"], ["3", "4"]])

        result = document.delete_column(0)

        assert [c.name for c in result.columns] == ["b"]
        assert result.values() == [["2"], ["4"]]

    def test_delete_last_column_is_noop(self):
        document = Document.create(2, 1)

        assert document.delete_column(0) is document

    def test_rename_keeps_id(self):
        document = Document.create(1, 1)

        result = document.rename_column(0, "商品")

        assert result.columns[0].name == "商品"
        assert result.columns[0].id == document.columns[0].id

    @pytest.mark.parametrize("width", [0, -10])
    def test_resize_rejects_non_positive_width(self, width):
        with pytest.raises(ValidationError):
            Document.create(1, 1).resize_column(0, width)

    def test_column_index_by_id(self):
        document = Document.create(1, 3)

        assert document.column_index(document.columns[2].id) == 2
        assert document.column_index("missing") is None


class TestDocumentCells:
    """Tests for update_cell and snapshot sharing."""

    def test_update_cell_leaves_original_untouched(self):
        document = Document.create(2, 2)

        result = document.update_cell(1, 1, "hello")

        assert result.cell(1, 1).value == "hello"
        assert document.cell(1, 1).value == ""

    def test_unchanged_rows_are_shared(self):
        document = Document.create(3, 2)

        result = document.update_cell(1, 0, "x")

        assert result.rows[0] is document.rows[0]
        assert result.rows[2] is document.rows[2]

    @pytest.mark.parametrize("row,col", [(-1, 0), (5, 0), (0, 3)])
    def test_update_cell_out_of_range(self, row, col):
        with pytest.raises(ValidationError):
            Document.create(5, 3).update_cell(row, col, "x")


class TestColumnStateCarryOver:
    """Tests for Document.with_column_state_from."""

    def test_copies_state_by_column_id(self):
        old = Document.create(1, 2)
        current = old.set_processing(1, True).set_prompt(1, "翻译").resize_column(0, 320)

        merged = old.with_column_state_from(current)

        assert merged.columns[1].is_processing is True
        assert merged.columns[1].prompt == "翻译"
        assert merged.columns[0].width == 320

    def test_unchanged_state_returns_same_document(self):
        document = Document.create(1, 2)

        assert document.with_column_state_from(document) is document

    def test_columns_missing_from_other_stop_processing(self):
        document = Document.create(1, 2).set_processing(0, True)
        other = Document.create(1, 2)

        merged = document.with_column_state_from(other)

        assert merged.columns[0].is_processing is False


class TestRowIds:
    """Row ids follow their row through edits."""

    def test_every_row_has_a_unique_id(self):
        document = Document.from_table(["a"], [["1"], ["2"], ["3"]])

        assert len(set(document.row_ids)) == 3

    def test_ids_survive_cell_and_column_edits(self):
        document = Document.create(2, 2)

        result = document.update_cell(1, 0, "x").add_column().delete_column(0)

        assert result.row_ids == document.row_ids

    def test_delete_row_drops_its_id(self):
        document = Document.from_table(["a"], [["1"], ["2"], ["3"]])
        removed = document.row_ids[1]

        result = document.delete_row(1)

        assert result.row_index(removed) is None
        assert result.row_index(document.row_ids[2]) == 1

    def test_add_row_issues_new_id(self):
        document = Document.create(1, 1)

        result = document.add_row()

        assert result.row_ids[0] == document.row_ids[0]
        assert result.row_ids[1] not in document.row_ids

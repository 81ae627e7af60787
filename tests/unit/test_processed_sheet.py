from __future__ import annotations

from sheetsql.models.classification import SheetType
from sheetsql.models.column import ColumnInfo, StorageType
from sheetsql.models.sheet import ProcessedSheet


def _sheet(**kwargs):
    base = dict(
        name="budget",
        original_name="Budget",
        sheet_type=SheetType.MATRIX,
        header_row=0,
        columns=[ColumnInfo("is_aggregate", "is_aggregate", StorageType.BOOLEAN, False)],
        data_rows=[[False]] * 5,
    )
    base.update(kwargs)
    return ProcessedSheet(**base)


def test_previews_are_bounded_slices():
    sheet = _sheet(preview_limit=2, source_rows=[["a"], ["b"], ["c"]])
    assert sheet.row_count == 5
    assert sheet.preview_rows == [[False], [False]]
    assert sheet.original_preview_rows == [["a"], ["b"]]
    assert sheet.has_aggregate_column is True


def test_table_sheet_has_no_original_preview():
    sheet = _sheet(sheet_type=SheetType.TABLE, columns=[], source_rows=None)
    assert sheet.original_preview_rows is None
    assert sheet.has_aggregate_column is False

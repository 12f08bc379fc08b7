"""表格导出 - 把 (表头, 行数据) 写成 Excel / CSV"""

import io
from pathlib import Path
from typing import Sequence, Union

import pandas as pd


DEFAULT_SHEET_NAME = "Sheet1"

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}


class TableExporter:
    """表格导出器"""

    @staticmethod
    def to_dataframe(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> pd.DataFrame:
        return pd.DataFrame([list(row) for row in rows], columns=list(headers))

    @staticmethod
    def to_excel_bytes(
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        sheet_name: str = DEFAULT_SHEET_NAME,
    ) -> bytes:
        """生成 xlsx 文件内容"""
        buffer = io.BytesIO()
        df = TableExporter.to_dataframe(headers, rows)
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)
        return buffer.getvalue()

    @staticmethod
    def to_csv_bytes(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> bytes:
        """生成 csv 文件内容（UTF-8 BOM，便于 Excel 直接打开）"""
        df = TableExporter.to_dataframe(headers, rows)
        return df.to_csv(index=False).encode("utf-8-sig")

    @staticmethod
    def export(fmt: str, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> bytes:
        """
        按格式导出

        Args:
            fmt: xlsx 或 csv

        Raises:
            ValueError: 不支持的格式
        """
        if fmt == "xlsx":
            return TableExporter.to_excel_bytes(headers, rows)
        if fmt == "csv":
            return TableExporter.to_csv_bytes(headers, rows)
        raise ValueError(f"不支持的导出格式: {fmt}")

    @staticmethod
    def save(path: Union[str, Path], headers: Sequence[str], rows: Sequence[Sequence[str]]) -> Path:
        """按文件后缀写入本地文件"""
        path = Path(path)
        fmt = path.suffix.lower().lstrip(".")
        content = TableExporter.export(fmt, headers, rows)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

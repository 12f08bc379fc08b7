"""表格文件解析器 - 读取 Excel / CSV 文件并转换为 (表头, 行数据)"""

import io
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import pandas as pd


SUPPORTED_SUFFIXES = {".xlsx", ".xls", ".xlsm", ".csv"}

ParsedTable = Tuple[List[str], List[List[str]]]


class TableParser:
    """表格文件解析器（只读取第一个 sheet）"""

    # ========= 本地文件解析 =========

    @staticmethod
    def parse_file(file_path: Union[str, Path]) -> ParsedTable:
        """
        解析本地文件

        Args:
            file_path: 文件路径

        Returns:
            (headers, rows)

        Raises:
            FileNotFoundError: 文件不存在
            ValueError: 文件格式不支持或读取失败
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"文件不存在: {file_path}")

        return TableParser.parse_bytes(file_path.read_bytes(), file_path.name)

    # ========= 上传内容解析 =========

    @staticmethod
    def parse_bytes(content: bytes, filename: str) -> ParsedTable:
        """
        解析上传的文件内容

        Args:
            content: 文件内容
            filename: 原始文件名（用于判断格式）

        Returns:
            (headers, rows)
        """
        suffix = Path(filename).suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise ValueError(f"不支持的文件格式: {suffix or filename}")

        try:
            if suffix == ".csv":
                df = pd.read_csv(
                    io.BytesIO(content),
                    dtype=str,
                    keep_default_na=False,
                    encoding="utf-8-sig",
                )
            else:
                df = pd.read_excel(io.BytesIO(content), dtype=object)
        except Exception as e:
            raise ValueError(f"读取文件失败 ({filename}): {e}") from e

        return TableParser._to_table(df)

    @staticmethod
    def get_file_info(file_path: Union[str, Path]) -> Dict[str, Any]:
        """
        获取文件信息

        Args:
            file_path: 文件路径

        Returns:
            文件信息字典
        """
        file_path = Path(file_path)
        headers, rows = TableParser.parse_file(file_path)
        return {
            "file_name": file_path.name,
            "file_size": file_path.stat().st_size,
            "rows": len(rows),
            "columns": len(headers),
            "column_names": headers,
        }

    # ========= 数据清洗 =========

    @staticmethod
    def _to_table(df: pd.DataFrame) -> ParsedTable:
        """
        DataFrame 转为字符串表格

        - 表头去除首尾空格，pandas 自动生成的 "Unnamed: n" 视为空表头
        - 单元格去除首尾空格，空值转为空字符串
        - 删除完全为空的行
        """
        headers = []
        for col in df.columns:
            name = str(col).strip()
            if name.startswith("Unnamed:"):
                name = ""
            headers.append(name)

        rows = []
        for record in df.itertuples(index=False, name=None):
            row = [_to_text(value) for value in record]
            if any(cell != "" for cell in row):
                rows.append(row)

        return headers, rows


def _to_text(value: Any) -> str:
    """单元格值转字符串：整数值的浮点数去掉 .0，零点的时间只保留日期"""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()

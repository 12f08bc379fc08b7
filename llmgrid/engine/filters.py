"""筛选引擎 - 按列类型条件过滤行

evaluate() 是纯函数：不修改输入、不做 I/O、不抛异常。
多个条件之间是 AND 关系，输出保持输入的相对顺序。
"""

import math
import re
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

import pandas as pd

from llmgrid.engine.errors import ValidationError
from llmgrid.engine.models import (
    Cell,
    Column,
    Filter,
    FilterKind,
    FilterOperator,
    OPERATORS_BY_KIND,
)

Predicate = Callable[[str], bool]

# 与 JavaScript parseFloat 一致：取字符串开头的数字部分
_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?Infinity)")


# ==================== 值解析 ====================


def parse_number(text: Optional[str]) -> Optional[float]:
    """
    解析数字，"10 kg" -> 10.0，无法解析返回 None

    Args:
        text: 原始字符串

    Returns:
        浮点数或 None
    """
    if text is None:
        return None
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    token = match.group(1)
    if token.lstrip("+-") == "Infinity":
        return -math.inf if token.startswith("-") else math.inf
    return float(token)


def parse_date(text: Optional[str]) -> Optional[datetime]:
    """
    解析日期，无法解析返回 None

    带时区的时间统一转换为 UTC 后去掉时区信息，避免与无时区时间比较出错。
    """
    if text is None or not str(text).strip():
        return None
    try:
        ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


# ==================== 单条件编译 ====================


def _text_predicate(operator: FilterOperator, value: str) -> Predicate:
    needle = value.lower()
    if operator == FilterOperator.CONTAINS:
        return lambda cell: needle in cell.lower()
    if operator == FilterOperator.EQUALS:
        return lambda cell: cell.lower() == needle
    if operator == FilterOperator.STARTS_WITH:
        return lambda cell: cell.lower().startswith(needle)
    if operator == FilterOperator.ENDS_WITH:
        return lambda cell: cell.lower().endswith(needle)
    if operator == FilterOperator.EMPTY:
        return lambda cell: not cell.strip()
    if operator == FilterOperator.NOT_EMPTY:
        return lambda cell: len(cell.strip()) > 0
    return _pass_through


def _ordered_predicate(
    parse: Callable[[Optional[str]], Optional[object]],
    operator: FilterOperator,
    value: str,
    value2: Optional[str],
    same_day: bool = False,
) -> Predicate:
    """数字和日期共用的比较逻辑；单元格无法解析时一律不通过"""
    bound = parse(value)
    bound2 = parse(value2) if value2 else None

    def check(cell: str) -> bool:
        parsed = parse(cell)
        if parsed is None:
            return False
        if operator == FilterOperator.EQUALS:
            if bound is None:
                return False
            if same_day:
                return parsed.date() == bound.date()
            return parsed == bound
        if operator == FilterOperator.GREATER_THAN:
            return bound is not None and parsed > bound
        if operator == FilterOperator.LESS_THAN:
            return bound is not None and parsed < bound
        if operator == FilterOperator.BETWEEN:
            return bound is not None and bound2 is not None and bound <= parsed <= bound2
        return True

    return check


def _boolean_predicate(operator: FilterOperator, value: str) -> Predicate:
    if operator != FilterOperator.EQUALS:
        return _pass_through
    expected = value.lower() == "true"
    return lambda cell: (cell.lower() == "true") == expected


def _pass_through(cell: str) -> bool:
    # 未知运算符：全部通过
    return True


def compile_filter(flt: Filter) -> Predicate:
    """
    把筛选条件编译为单元格谓词

    Args:
        flt: 筛选条件

    Returns:
        接收单元格字符串、返回是否通过的函数
    """
    if flt.kind == FilterKind.TEXT:
        return _text_predicate(flt.operator, flt.value)
    if flt.kind == FilterKind.NUMBER:
        return _ordered_predicate(parse_number, flt.operator, flt.value, flt.value2)
    if flt.kind == FilterKind.DATE:
        return _ordered_predicate(parse_date, flt.operator, flt.value, flt.value2, same_day=True)
    if flt.kind == FilterKind.BOOLEAN:
        return _boolean_predicate(flt.operator, flt.value)
    return _pass_through


# ==================== 主入口 ====================


def evaluate(
    rows: Sequence[Sequence[Cell]],
    columns: Sequence[Column],
    filters: Iterable[Filter],
) -> List[Sequence[Cell]]:
    """
    按筛选条件过滤行

    Args:
        rows: 行数据
        columns: 列定义
        filters: 筛选条件（AND 组合）

    Returns:
        通过所有条件的行，保持原有顺序

    Example:
        rows = [[Cell("apple"), Cell("10")], [Cell("banana"), Cell("3")]]
        evaluate(rows, columns, [
            Filter(0, "text", "contains", "ap"),
            Filter(1, "number", "greaterThan", "5"),
        ])
        # -> [[Cell("apple"), Cell("10")]]
    """
    compiled = [(flt.column, compile_filter(flt)) for flt in filters]
    return [row for row in rows if _passes(compiled, row)]


def matching_indices(
    rows: Sequence[Sequence[Cell]],
    columns: Sequence[Column],
    filters: Iterable[Filter],
) -> List[int]:
    """与 evaluate 相同，但返回通过的行号（用于界面定位原始行）"""
    compiled = [(flt.column, compile_filter(flt)) for flt in filters]
    return [i for i, row in enumerate(rows) if _passes(compiled, row)]


def _passes(compiled, row: Sequence[Cell]) -> bool:
    for column, predicate in compiled:
        value = row[column].value if 0 <= column < len(row) else ""
        if not predicate(value):
            return False
    return True


# ==================== 校验与类型推断 ====================


def validate_filter(flt: Filter, columns: Sequence[Column]) -> None:
    """
    添加筛选条件前的校验

    Raises:
        ValidationError: 列越界、运算符与类型不匹配、比较值无法解析、between 缺少第二个值
    """
    if not 0 <= flt.column < len(columns):
        raise ValidationError(f"筛选列索引越界: {flt.column}")

    if flt.operator not in OPERATORS_BY_KIND[flt.kind]:
        raise ValidationError(
            f"{flt.kind.value} 类型不支持运算符 {flt.operator.value}"
        )

    if flt.operator == FilterOperator.BETWEEN and not flt.value2:
        raise ValidationError("between 运算符需要两个比较值")

    if flt.kind == FilterKind.TEXT and flt.operator in (
        FilterOperator.EMPTY,
        FilterOperator.NOT_EMPTY,
    ):
        return

    operands = [flt.value]
    if flt.operator == FilterOperator.BETWEEN:
        operands.append(flt.value2)

    if flt.kind == FilterKind.NUMBER:
        for operand in operands:
            if parse_number(operand) is None:
                raise ValidationError(f"无法解析为数字: {operand!r}")
    elif flt.kind == FilterKind.DATE:
        for operand in operands:
            if parse_date(operand) is None:
                raise ValidationError(f"无法解析为日期: {operand!r}")
    elif flt.kind == FilterKind.BOOLEAN:
        if flt.value.lower() not in ("true", "false"):
            raise ValidationError(f"布尔值只能是 true 或 false: {flt.value!r}")


def infer_kind(values: Iterable[str]) -> FilterKind:
    """
    根据列的样本值推断筛选类型

    空值不参与判断；全部为空时返回 text。
    """
    series = pd.Series([v for v in values if v is not None and str(v).strip()], dtype="object")
    if series.empty:
        return FilterKind.TEXT

    lowered = series.str.lower()
    if lowered.isin(["true", "false"]).all():
        return FilterKind.BOOLEAN

    if pd.to_numeric(series, errors="coerce").notna().all():
        return FilterKind.NUMBER

    if all(parse_date(v) is not None for v in series):
        return FilterKind.DATE

    return FilterKind.TEXT

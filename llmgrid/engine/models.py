"""数据模型 - 定义表格中的基础数据类型"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


DEFAULT_COLUMN_WIDTH = 200


def default_column_name(position: int) -> str:
    """
    生成默认列名

    Args:
        position: 列位置（从 1 开始）

    Returns:
        默认列名，如 "列 1"
    """
    return f"列 {position}"


def new_column_id() -> str:
    """生成唯一的列 ID"""
    return str(uuid.uuid4())


def new_row_id() -> str:
    """生成唯一的行 ID"""
    return str(uuid.uuid4())


# ==================== 单元格与列 ====================


@dataclass(frozen=True)
class Cell:
    """
    单元格

    is_editing 属于界面临时状态，不参与相等比较。
    """

    value: str = ""
    is_editing: bool = field(default=False, compare=False)

    def is_blank(self) -> bool:
        """去掉首尾空白后是否为空"""
        return not self.value.strip()


EMPTY_CELL = Cell()


@dataclass(frozen=True)
class Column:
    """
    列定义

    Attributes:
        id: 列唯一标识（创建后不变，批处理任务按 id 追踪列）
        name: 列名
        prompt: 转换提示词，为空表示该列没有任务
        is_processing: 是否正在处理（同时作为取消信号）
        width: 列宽（像素，必须大于 0）
        last_error: 最近一次任务级错误
    """

    id: str = field(default_factory=new_column_id)
    name: str = ""
    prompt: str = ""
    is_processing: bool = False
    width: int = DEFAULT_COLUMN_WIDTH
    last_error: Optional[str] = None

    def has_prompt(self) -> bool:
        return bool(self.prompt and self.prompt.strip())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "prompt": self.prompt,
            "is_processing": self.is_processing,
            "width": self.width,
            "last_error": self.last_error,
        }


# ==================== 筛选条件 ====================


class FilterKind(str, Enum):
    """筛选类型"""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class FilterOperator(str, Enum):
    """筛选运算符"""

    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    EMPTY = "empty"
    NOT_EMPTY = "notEmpty"


# 每种筛选类型支持的运算符
OPERATORS_BY_KIND = {
    FilterKind.TEXT: {
        FilterOperator.CONTAINS,
        FilterOperator.EQUALS,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
        FilterOperator.EMPTY,
        FilterOperator.NOT_EMPTY,
    },
    FilterKind.NUMBER: {
        FilterOperator.EQUALS,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.BETWEEN,
    },
    FilterKind.DATE: {
        FilterOperator.EQUALS,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.BETWEEN,
    },
    FilterKind.BOOLEAN: {
        FilterOperator.EQUALS,
    },
}


@dataclass(frozen=True)
class Filter:
    """
    筛选条件

    Attributes:
        column: 列索引（从 0 开始）
        kind: 筛选类型
        operator: 运算符
        value: 比较值
        value2: 第二个比较值（仅 between 使用）
    """

    column: int
    kind: FilterKind
    operator: FilterOperator
    value: str = ""
    value2: Optional[str] = None

    def __post_init__(self):
        # 允许直接传入字符串
        object.__setattr__(self, "kind", FilterKind(self.kind))
        object.__setattr__(self, "operator", FilterOperator(self.operator))

    def to_dict(self) -> dict:
        result = {
            "column": self.column,
            "kind": self.kind.value,
            "operator": self.operator.value,
            "value": self.value,
        }
        if self.value2 is not None:
            result["value2"] = self.value2
        return result

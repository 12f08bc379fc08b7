"""事件类型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class EventType(str, Enum):
    """
    事件类型枚举

    分为两类：
    1. 任务级事件：JOB_*
    2. 行级事件：ROW_*
    """

    # ===== 任务级事件 =====
    JOB_START = "job.start"
    JOB_END = "job.end"
    JOB_ERROR = "job.error"

    # ===== 行级事件 =====
    ROW_DONE = "row.done"
    ROW_SKIPPED = "row.skipped"


@dataclass
class Event:
    """
    事件数据

    Attributes:
        type: 事件类型
        column_id: 关联的列 ID
        row: 行号（行级事件）
        data: 事件数据
        error_message: 错误消息（错误事件时）
    """

    type: EventType
    column_id: Optional[str] = None
    row: Optional[int] = None
    data: Any = None
    error_message: Optional[str] = None

    @classmethod
    def job_start(cls, column_id: str, total_rows: int) -> "Event":
        """创建任务开始事件"""
        return cls(type=EventType.JOB_START, column_id=column_id, data={"total_rows": total_rows})

    @classmethod
    def job_end(cls, column_id: str, result: dict) -> "Event":
        """创建任务结束事件"""
        return cls(type=EventType.JOB_END, column_id=column_id, data=result)

    @classmethod
    def job_error(cls, column_id: str, message: str) -> "Event":
        """创建任务错误事件"""
        return cls(type=EventType.JOB_ERROR, column_id=column_id, error_message=message)

    @classmethod
    def row_done(cls, column_id: str, row: int, value: str, error: Optional[str] = None) -> "Event":
        """创建行完成事件（error 非空表示 AI 服务返回了错误提示）"""
        return cls(
            type=EventType.ROW_DONE,
            column_id=column_id,
            row=row,
            data={"value": value},
            error_message=error,
        )

    @classmethod
    def row_skipped(cls, column_id: str, row: int) -> "Event":
        """创建行跳过事件（源单元格为空）"""
        return cls(type=EventType.ROW_SKIPPED, column_id=column_id, row=row)

    def to_dict(self) -> dict:
        """转换为字典（用于 SSE 推送）"""
        result = {"type": self.type.value}
        if self.column_id is not None:
            result["column_id"] = self.column_id
        if self.row is not None:
            result["row"] = self.row
        if self.data is not None:
            result["data"] = self.data
        if self.error_message is not None:
            result["error"] = self.error_message
        return result

    def __repr__(self) -> str:
        if self.row is not None:
            return f"Event({self.type.value}, column={self.column_id!r}, row={self.row})"
        return f"Event({self.type.value}, column={self.column_id!r})"

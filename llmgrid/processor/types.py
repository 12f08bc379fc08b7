"""批处理类型定义"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# 固定的用户提示
MISSING_PROMPT_MESSAGE = "请先在列标题中输入提示词。"
JOB_FAILED_MESSAGE = "处理过程中发生错误，请重试。"


class JobState(str, Enum):
    """
    列任务状态

    Idle -> Running -> {Completed, Cancelled, Failed} -> Idle
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.CANCELLED, JobState.FAILED)


@dataclass
class JobResult:
    """
    列任务结果

    Attributes:
        column_id: 列 ID
        state: 结束状态（提示词为空时为 IDLE，表示任务没有开始）
        processed: 调用了 AI 服务并写回的行数
        skipped: 源单元格为空而跳过的行数
        provider_errors: AI 服务返回错误提示的行数
        discarded: 调用期间行被删除、结果被丢弃的行数
        rate_limit_waits: 因限流挂起的次数
        message: 任务级提示（提示词缺失或任务失败时有值）
    """

    column_id: str
    state: JobState = JobState.RUNNING
    processed: int = 0
    skipped: int = 0
    provider_errors: int = 0
    discarded: int = 0
    rate_limit_waits: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict:
        """转换为字典"""
        result = {
            "column_id": self.column_id,
            "state": self.state.value,
            "processed": self.processed,
            "skipped": self.skipped,
            "provider_errors": self.provider_errors,
            "discarded": self.discarded,
            "rate_limit_waits": self.rate_limit_waits,
        }
        if self.message is not None:
            result["message"] = self.message
        return result

    def __repr__(self) -> str:
        return (
            f"JobResult(state={self.state.value}, processed={self.processed}, "
            f"skipped={self.skipped}, errors={self.provider_errors})"
        )

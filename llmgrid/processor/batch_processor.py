"""列批处理器"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TYPE_CHECKING

from llmgrid.engine.errors import ProviderError
from llmgrid.engine.prompt import SYSTEM_ROLE
from llmgrid.engine.rate_limiter import RateLimiter
from llmgrid.events import Event, EventBus

from .types import JobState, JobResult, MISSING_PROMPT_MESSAGE, JOB_FAILED_MESSAGE

if TYPE_CHECKING:
    from llmgrid.services.sheet import SheetSession

logger = logging.getLogger(__name__)


class BatchProcessor:
    """
    列批处理器 - 把一列的每个单元格交给 AI 服务转换

    特点：
    1. 按文档顺序处理全部行（筛选只影响显示，不影响任务）
    2. 每次调用前从共享限流器获取配额，被拒绝时挂起等待
    3. 结果通过会话的 update_cell 写回，每一行都是一条可撤销的历史记录
    4. 协作式取消：每行开始前检查列的 is_processing，进行中的调用不会被中断
    5. AI 服务错误写入单元格后继续；其他异常终止任务

    用法示例：
        processor = BatchProcessor(session, rate_limiter, bus)
        result = await processor.run_column(0)
    """

    def __init__(
        self,
        session: "SheetSession",
        rate_limiter: RateLimiter,
        bus: Optional[EventBus] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_rate_limit_waits: Optional[int] = None,
    ):
        """
        Args:
            session: 表格会话（唯一的修改入口）
            rate_limiter: 进程内共享的限流器
            bus: 事件总线（可选）
            sleep: 挂起函数（测试时可替换）
            max_rate_limit_waits: 单次获取配额的最多等待次数（None 表示不限）
        """
        self.session = session
        self.rate_limiter = rate_limiter
        self.bus = bus
        self._sleep = sleep
        self.max_rate_limit_waits = max_rate_limit_waits

    async def run_column(self, column_index: int) -> JobResult:
        """
        运行一列的转换任务

        Args:
            column_index: 列索引

        Returns:
            JobResult: 任务结果

        Raises:
            ValidationError: 列索引越界
        """
        document = self.session.document
        column = document.column(column_index)

        if not column.has_prompt():
            logger.info(f"列 {column.name!r} 没有提示词，任务未启动")
            self.session.update_cell(0, column_index, MISSING_PROMPT_MESSAGE)
            self.session.set_last_error(column_index, MISSING_PROMPT_MESSAGE)
            return JobResult(column_id=column.id, state=JobState.IDLE, message=MISSING_PROMPT_MESSAGE)

        column_id = column.id
        prompt = column.prompt
        settings = self.session.settings
        config = settings.generation_config()
        provider = self.session.provider()
        delay = settings.processing_delay_ms / 1000

        result = JobResult(column_id=column_id, state=JobState.RUNNING)
        self.session.set_processing(column_index, True)
        self.session.set_last_error(column_index, None)

        logger.info(
            f"列任务开始: {column.name!r} [服务] {provider.name} [模型] {config.model} "
            f"[行数] {document.row_count}"
        )
        await self._emit(Event.job_start(column_id, document.row_count))

        try:
            await self._process_rows(result, column_id, prompt, provider, config, delay)
        except Exception as e:
            logger.exception(f"列任务失败: {column_id}: {e}")
            result.state = JobState.FAILED
            result.message = JOB_FAILED_MESSAGE
            index = self.session.document.column_index(column_id)
            if index is not None:
                self.session.update_cell(0, index, JOB_FAILED_MESSAGE)
                self.session.set_last_error(index, JOB_FAILED_MESSAGE)
            await self._emit(Event.job_error(column_id, JOB_FAILED_MESSAGE))
        finally:
            index = self.session.document.column_index(column_id)
            if index is not None:
                self.session.set_processing(index, False)

        logger.info(f"列任务结束: {column_id} {result!r}")
        await self._emit(Event.job_end(column_id, result.to_dict()))
        return result

    async def _process_rows(self, result, column_id, prompt, provider, config, delay) -> None:
        row = 0
        while True:
            document = self.session.document
            index = document.column_index(column_id)

            # 每行开始前检查取消信号（列被删除也视为取消）
            if index is None or not document.columns[index].is_processing:
                result.state = JobState.CANCELLED
                return

            if row >= document.row_count:
                result.state = JobState.COMPLETED
                return

            value = document.rows[row][index].value
            if not value.strip():
                result.skipped += 1
                await self._emit(Event.row_skipped(column_id, row))
                row += 1
                continue

            # 行按 id 跟踪：调用期间增删行后，结果仍写回发送的那一行
            row_id = document.row_ids[row]
            later_ids = document.row_ids[row + 1:]

            result.rate_limit_waits += await self.rate_limiter.acquire(
                max_waits=self.max_rate_limit_waits, sleep=self._sleep
            )

            error = None
            try:
                text = await provider.generate(SYSTEM_ROLE, prompt, value, config)
            except ProviderError as e:
                logger.warning(f"AI 服务错误 [列] {column_id} [行] {row}: {type(e).__name__}: {e}")
                text = e.user_message
                error = text
                result.provider_errors += 1

            document = self.session.document
            index = document.column_index(column_id)
            if index is None:
                result.state = JobState.CANCELLED
                return

            position = document.row_index(row_id)
            if position is None:
                logger.info(f"行在处理期间被删除，结果丢弃 [列] {column_id} [行] {row}")
                result.discarded += 1
                row = _resume_position(document, later_ids)
                continue

            self.session.update_cell(position, index, text)
            result.processed += 1
            await self._emit(Event.row_done(column_id, position, text, error))
            row = position + 1

            if delay > 0:
                await self._sleep(delay)

    async def _emit(self, event: Event) -> None:
        if self.bus is not None:
            await self.bus.emit(event)


def _resume_position(document, later_ids) -> int:
    """被删除行之后第一个仍然存在的行；都不存在时返回行数（任务结束）"""
    for row_id in later_ids:
        position = document.row_index(row_id)
        if position is not None:
            return position
    return document.row_count

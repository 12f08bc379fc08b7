"""表格会话服务

SheetSession 是文档的唯一修改入口：用户编辑和批处理任务的写回都经过这里，
历史记录因此只有一条线性的提交流。会话在启动时创建一次，
配置、限流器、事件总线都由它显式持有并传给需要的组件。
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pydantic

from llmgrid.core.config import ProcessingSettings, Settings
from llmgrid.engine.api_adapter import ApiSource, ApiTableClient, ApiTarget
from llmgrid.engine.document import Document, Row
from llmgrid.engine.errors import ValidationError
from llmgrid.engine.excel_exporter import TableExporter
from llmgrid.engine.filters import evaluate, infer_kind, matching_indices, validate_filter
from llmgrid.engine.history import HistoryManager
from llmgrid.engine.llm_client import ProviderPort, create_provider
from llmgrid.engine.models import Filter
from llmgrid.engine.rate_limiter import RateLimiter
from llmgrid.events import EventBus
from llmgrid.processor import BatchProcessor, JobResult, JobState

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProcessingSettings], ProviderPort]


class SheetSession:
    """
    表格会话

    持有：
    - history: 文档快照历史（history.current 即当前文档）
    - filters: 当前生效的筛选条件（只影响显示）
    - settings: 处理配置
    - rate_limiter: 所有 AI 服务共用的限流器
    - bus: 任务事件总线
    - processor: 列批处理器
    - api_client: 外部 REST 接口客户端（导入 / 导出）

    所有修改在同一把锁内完成，保证提交相对历史游标是原子的。
    """

    def __init__(
        self,
        document: Optional[Document] = None,
        settings: Optional[ProcessingSettings] = None,
        rate_limiter: Optional[RateLimiter] = None,
        bus: Optional[EventBus] = None,
        provider_factory: Optional[ProviderFactory] = None,
        history_limit: Optional[int] = None,
        autosave_path: Optional[Path] = None,
        api_client: Optional[ApiTableClient] = None,
        sleep: Callable = asyncio.sleep,
    ):
        self._lock = threading.RLock()
        self.settings = settings or ProcessingSettings()
        self.rate_limiter = rate_limiter or RateLimiter(limit=self.settings.rate_limit_per_minute)
        self.bus = bus or EventBus()
        self.history = HistoryManager(document or Document.create(), max_entries=history_limit)
        self.filters: List[Filter] = []
        self.autosave_path = autosave_path
        self.api_client = api_client or ApiTableClient()
        self._provider_factory = provider_factory or _default_provider_factory()
        self.processor = BatchProcessor(self, self.rate_limiter, self.bus, sleep=sleep)
        self._tasks: Dict[str, asyncio.Task] = {}
        self.last_results: Dict[str, JobResult] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SheetSession":
        """按应用配置创建会话"""
        return cls(
            document=Document.create(settings.INITIAL_ROWS, settings.INITIAL_COLS),
            settings=ProcessingSettings.from_settings(settings),
            provider_factory=_default_provider_factory(settings),
            history_limit=settings.HISTORY_LIMIT,
            autosave_path=settings.AUTOSAVE_PATH,
            api_client=ApiTableClient(timeout=settings.EXTERNAL_API_TIMEOUT),
        )

    @property
    def document(self) -> Document:
        return self.history.current

    # ==================== 提交 ====================

    def _commit(self, document: Document) -> Document:
        """提交一个新的历史步骤；文档没有变化（如删除最后一行）时不提交"""
        with self._lock:
            if document is self.history.current:
                return document
            self.history.commit(document)
        self._autosave()
        return document

    def _replace(self, document: Document) -> Document:
        """更新当前快照，不产生历史步骤"""
        with self._lock:
            self.history.replace_current(document)
        return document

    def _mutate(self, operation: Callable[[Document], Document]) -> Document:
        with self._lock:
            return self._commit(operation(self.document))

    # ==================== 单元格与行列 ====================

    def update_cell(self, row: int, col: int, value: str) -> Document:
        return self._mutate(lambda doc: doc.update_cell(row, col, value))

    def add_row(self) -> Document:
        return self._mutate(lambda doc: doc.add_row())

    def delete_row(self, index: int) -> Document:
        return self._mutate(lambda doc: doc.delete_row(index))

    def add_column(self) -> Document:
        return self._mutate(lambda doc: doc.add_column())

    def delete_column(self, index: int) -> Document:
        with self._lock:
            before = self.document
            document = self._commit(before.delete_column(index))
            if document is not before:
                self._shift_filters(index)
            return document

    def rename_column(self, index: int, name: str) -> Document:
        return self._mutate(lambda doc: doc.rename_column(index, name))

    def resize_column(self, index: int, width: int) -> Document:
        with self._lock:
            return self._replace(self.document.resize_column(index, width))

    def set_prompt(self, index: int, prompt: str) -> Document:
        with self._lock:
            return self._replace(self.document.set_prompt(index, prompt))

    def set_processing(self, index: int, processing: bool) -> Document:
        with self._lock:
            return self._replace(self.document.set_processing(index, processing))

    def set_last_error(self, index: int, message: Optional[str]) -> Document:
        with self._lock:
            return self._replace(self.document.set_last_error(index, message))

    # ==================== 撤销 / 重做 ====================

    def undo(self) -> Document:
        return self._travel(self.history.undo)

    def redo(self) -> Document:
        return self._travel(self.history.redo)

    def _travel(self, step: Callable[[], Optional[Document]]) -> Document:
        with self._lock:
            current = self.document
            restored = step()
            if restored is None:
                return current
            # 任务状态不随快照回退
            merged = self.history.replace_current(restored.with_column_state_from(current))
        self._autosave()
        return merged

    # ==================== 导入 / 导出 ====================

    def import_table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> Document:
        """
        整体替换文档并重置历史

        旧文档的列 id 全部失效，正在运行的任务会在下一行开始前停止。
        筛选条件引用的是旧列，一并清空。
        """
        with self._lock:
            document = self.document.replace(headers, rows)
            self.history.reset(document)
            self.filters = []
        logger.info(f"导入数据: {document!r}")
        self._autosave()
        return document

    async def import_from_api(self, source: ApiSource) -> Document:
        """
        从 REST 接口导入，语义与 import_table 相同

        Raises:
            ExternalApiError: 接口请求失败
            ValidationError: 接口数据不是对象数组
        """
        headers, rows = await self.api_client.fetch(source)
        return self.import_table(headers, rows)

    def export_table(self) -> Tuple[List[str], List[List[str]]]:
        return self.document.to_table()

    async def export_to_api(self, target: ApiTarget) -> int:
        """把当前表格推送到 REST 接口，返回接口的 HTTP 状态码"""
        headers, rows = self.export_table()
        return await self.api_client.push(target, headers, rows)

    def _autosave(self) -> None:
        if not (self.settings.auto_save and self.autosave_path):
            return
        headers, rows = self.export_table()
        try:
            TableExporter.save(self.autosave_path, headers, rows)
        except (OSError, ValueError) as e:
            logger.exception(f"自动保存失败: {self.autosave_path}: {e}")

    # ==================== 筛选 ====================

    def add_filter(self, flt: Filter) -> List[Filter]:
        with self._lock:
            validate_filter(flt, self.document.columns)
            self.filters = self.filters + [flt]
            return self.filters

    def remove_filter(self, index: int) -> List[Filter]:
        with self._lock:
            if not 0 <= index < len(self.filters):
                raise ValidationError(f"筛选条件索引越界: {index}")
            self.filters = self.filters[:index] + self.filters[index + 1:]
            return self.filters

    def clear_filters(self) -> None:
        with self._lock:
            self.filters = []

    def filtered_rows(self) -> List[Row]:
        document = self.document
        return evaluate(document.rows, document.columns, self.filters)

    def filtered_row_indices(self) -> List[int]:
        document = self.document
        return matching_indices(document.rows, document.columns, self.filters)

    def column_kinds(self) -> List[str]:
        """每一列推断出的筛选类型"""
        document = self.document
        return [infer_kind(document.column_values(i)).value for i in range(document.column_count)]

    def _shift_filters(self, deleted: int) -> None:
        shifted = []
        for flt in self.filters:
            if flt.column == deleted:
                continue
            if flt.column > deleted:
                flt = Filter(flt.column - 1, flt.kind, flt.operator, flt.value, flt.value2)
            shifted.append(flt)
        self.filters = shifted

    # ==================== 配置 ====================

    def update_settings(self, **changes) -> ProcessingSettings:
        """
        更新处理配置

        切换 AI 服务且未指定模型时，模型回到该服务的默认值。

        Raises:
            ValidationError: 配置值不合法
        """
        data = self.settings.model_dump()
        if "ai_provider" in changes and "ai_model" not in changes:
            data["ai_model"] = None
        data.update(changes)
        try:
            settings = ProcessingSettings.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(f"配置不合法: {e}") from e

        with self._lock:
            self.settings = settings
            self.rate_limiter.limit = settings.rate_limit_per_minute
        return settings

    def provider(self) -> ProviderPort:
        """按当前配置创建 AI 服务客户端"""
        return self._provider_factory(self.settings)

    # ==================== 列任务 ====================

    async def run_column(self, index: int) -> JobResult:
        """
        运行列任务并等待完成

        Raises:
            ValidationError: 列索引越界，或该列已有任务在运行
        """
        column = self.document.column(index)
        if column.is_processing:
            raise ValidationError(f"列 {column.name!r} 正在处理中")
        result = await self.processor.run_column(index)
        self.last_results[column.id] = result
        return result

    def start_column(self, index: int) -> asyncio.Task:
        """
        在后台启动列任务（必须在事件循环中调用）

        Returns:
            asyncio.Task
        """
        column = self.document.column(index)
        if column.is_processing or column.id in self._tasks:
            raise ValidationError(f"列 {column.name!r} 正在处理中")

        task = asyncio.get_running_loop().create_task(self.run_column(index))
        self._tasks[column.id] = task
        task.add_done_callback(lambda t: self._on_task_done(column.id, t))
        return task

    def _on_task_done(self, column_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(column_id) is task:
            del self._tasks[column_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"列任务异常退出: {column_id}: {error!r}", exc_info=error)

    def is_job_active(self, index: int) -> bool:
        """列正在处理，或后台任务已创建但还没开始运行"""
        column = self.document.column(index)
        task = self._tasks.get(column.id)
        return column.is_processing or (task is not None and not task.done())

    def cancel_column(self, index: int) -> Document:
        """请求取消：在下一行开始前生效，进行中的调用会执行完"""
        return self.set_processing(index, False)

    def toggle_column_processing(self, index: int) -> Optional[asyncio.Task]:
        """正在处理则取消，否则启动"""
        if self.document.column(index).is_processing:
            self.cancel_column(index)
            return None
        return self.start_column(index)

    def job_status(self, index: int) -> dict:
        column = self.document.column(index)
        state = JobState.RUNNING if self.is_job_active(index) else JobState.IDLE
        last = self.last_results.get(column.id)
        return {
            "column_id": column.id,
            "state": state.value,
            "last_error": column.last_error,
            "last_result": last.to_dict() if last else None,
        }

    def cancel_all(self) -> None:
        """请求取消所有正在处理的列"""
        with self._lock:
            for index, column in enumerate(self.document.columns):
                if column.is_processing:
                    self.set_processing(index, False)

    async def wait_for_jobs(self) -> None:
        """等待所有后台任务结束"""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def __repr__(self) -> str:
        return f"SheetSession({self.document!r}, {self.history!r}, filters={len(self.filters)})"


def _default_provider_factory(settings: Optional[Settings] = None) -> ProviderFactory:
    """用应用配置中的地址、重试和超时参数创建 AI 服务"""
    base_urls = {}
    max_retries = 2
    timeout = 60.0
    if settings is not None:
        base_urls = {
            "gemini": settings.GEMINI_BASE_URL,
            "chatgpt": settings.OPENAI_BASE_URL,
            "mistral": settings.MISTRAL_BASE_URL,
        }
        max_retries = settings.PROVIDER_MAX_RETRIES
        timeout = settings.PROVIDER_TIMEOUT

    def factory(processing: ProcessingSettings) -> ProviderPort:
        return create_provider(
            processing.ai_provider,
            api_key=processing.api_key,
            base_url=base_urls.get(processing.ai_provider.value),
            max_retries=max_retries,
            timeout=timeout,
        )

    return factory

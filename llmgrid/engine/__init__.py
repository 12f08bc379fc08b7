"""表格引擎 - 核心模块

包含：
- models: 单元格、列、筛选条件
- document: 不可变文档
- history: 撤销/重做
- filters: 筛选引擎
- rate_limiter: 限流器
- llm_client: AI 服务接口与实现
- prompt: 提示词
- excel_parser / excel_exporter: 文件导入导出
"""

from llmgrid.engine.errors import (
    LLMGridError,
    ValidationError,
    RateLimitExhausted,
    ProviderError,
    MissingCredentialError,
    InvalidCredentialError,
    QuotaExceededError,
    ContentBlockedError,
    EmptyResponseError,
    TransportError,
)
from llmgrid.engine.models import (
    Cell,
    Column,
    Filter,
    FilterKind,
    FilterOperator,
)
from llmgrid.engine.document import Document
from llmgrid.engine.history import HistoryManager
from llmgrid.engine.filters import evaluate, validate_filter, infer_kind
from llmgrid.engine.rate_limiter import RateLimiter, RateLimitDecision
from llmgrid.engine.llm_client import (
    AIProvider,
    GenerationConfig,
    ProviderPort,
    OpenAIProvider,
    MistralProvider,
    GeminiProvider,
    create_provider,
)
from llmgrid.engine.excel_parser import TableParser
from llmgrid.engine.excel_exporter import TableExporter

__all__ = [
    # Errors
    "LLMGridError",
    "ValidationError",
    "RateLimitExhausted",
    "ProviderError",
    "MissingCredentialError",
    "InvalidCredentialError",
    "QuotaExceededError",
    "ContentBlockedError",
    "EmptyResponseError",
    "TransportError",
    # Models
    "Cell",
    "Column",
    "Filter",
    "FilterKind",
    "FilterOperator",
    "Document",
    "HistoryManager",
    # Filters
    "evaluate",
    "validate_filter",
    "infer_kind",
    # Rate limiter
    "RateLimiter",
    "RateLimitDecision",
    # LLM Client
    "AIProvider",
    "GenerationConfig",
    "ProviderPort",
    "OpenAIProvider",
    "MistralProvider",
    "GeminiProvider",
    "create_provider",
    # Files
    "TableParser",
    "TableExporter",
]

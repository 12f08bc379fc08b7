"""配置"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llmgrid.engine.llm_client import AIProvider, DEFAULT_MODELS, GenerationConfig
from llmgrid.engine.prompt import ResponseFormat, ResponseStructure


class Settings(BaseSettings):
    """应用配置（环境变量 / .env）"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # 忽略 .env 中未声明的变量，避免 ValidationError
    )

    # 应用配置
    ENV: str = "production"  # development | production
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 初始表格
    INITIAL_ROWS: int = 5
    INITIAL_COLS: int = 3
    HISTORY_LIMIT: Optional[int] = None  # 为空表示不限制

    # AI 服务
    AI_PROVIDER: AIProvider = AIProvider.GEMINI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_MODEL: Optional[str] = None
    MISTRAL_API_KEY: Optional[str] = None
    MISTRAL_BASE_URL: Optional[str] = None
    MISTRAL_MODEL: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: Optional[str] = None
    GEMINI_MODEL: Optional[str] = None
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_TIMEOUT: float = 60.0

    # 外部 REST 接口（导入 / 导出）
    EXTERNAL_API_TIMEOUT: float = 30.0

    # 批处理
    TEMPERATURE: float = 0.7
    MAX_TOKENS: int = 2048
    PROCESSING_DELAY_MS: int = 1000
    RATE_LIMIT_PER_MINUTE: int = 60
    RESPONSE_FORMAT: ResponseFormat = ResponseFormat.TEXT

    # 自动保存（为空时不保存）
    AUTO_SAVE: bool = False
    AUTOSAVE_PATH: Optional[Path] = None


class ProcessingSettings(BaseModel):
    """
    会话级处理配置

    会话启动时从 Settings 生成，运行期间可以通过 API 修改。
    temperature / max_tokens 原样传给 AI 服务，processing_delay_ms 控制行间等待，
    rate_limit_per_minute 决定限流器上限。
    """

    ai_provider: AIProvider = AIProvider.GEMINI
    ai_model: Optional[str] = None
    gemini_api_key: str = ""
    openai_api_key: str = ""
    mistral_api_key: str = ""
    temperature: float = Field(0.7, ge=0, le=2)
    max_tokens: int = Field(2048, ge=1, le=4096)
    processing_delay_ms: int = Field(1000, ge=0)
    rate_limit_per_minute: int = Field(60, ge=1)
    auto_save: bool = False
    response_format: ResponseFormat = ResponseFormat.TEXT
    response_structure: ResponseStructure = Field(default_factory=ResponseStructure)

    @field_validator("gemini_api_key", "openai_api_key", "mistral_api_key", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessingSettings":
        models = {
            AIProvider.GEMINI: settings.GEMINI_MODEL,
            AIProvider.CHATGPT: settings.OPENAI_MODEL,
            AIProvider.MISTRAL: settings.MISTRAL_MODEL,
        }
        return cls(
            ai_provider=settings.AI_PROVIDER,
            ai_model=models.get(settings.AI_PROVIDER),
            gemini_api_key=settings.GEMINI_API_KEY,
            openai_api_key=settings.OPENAI_API_KEY,
            mistral_api_key=settings.MISTRAL_API_KEY,
            temperature=settings.TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
            processing_delay_ms=settings.PROCESSING_DELAY_MS,
            rate_limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auto_save=settings.AUTO_SAVE,
            response_format=settings.RESPONSE_FORMAT,
        )

    @property
    def model(self) -> str:
        return self.ai_model or DEFAULT_MODELS[self.ai_provider]

    @property
    def api_key(self) -> str:
        return {
            AIProvider.GEMINI: self.gemini_api_key,
            AIProvider.CHATGPT: self.openai_api_key,
            AIProvider.MISTRAL: self.mistral_api_key,
        }[self.ai_provider]

    def generation_config(self) -> GenerationConfig:
        return GenerationConfig(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format=self.response_format,
            response_structure=self.response_structure,
        )

    def public_dict(self) -> dict:
        """不含 API Key 明文的配置（返回给前端）"""
        data = self.model_dump(mode="json")
        for key in ("gemini_api_key", "openai_api_key", "mistral_api_key"):
            data[key] = bool(data[key])
        data["model"] = self.model
        return data


def setup_logging(level: str = "INFO") -> None:
    """初始化日志"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = Settings()

"""LLM 客户端模块 - 列转换任务使用的 AI 服务接口

批处理器只依赖 ProviderPort.generate()，每个 AI 服务实现一次：
- OpenAIProvider：OpenAI（ChatGPT）
- MistralProvider：Mistral（使用其 OpenAI 兼容接口）
- GeminiProvider：Google Gemini（generateContent REST 接口）

调用失败统一抛出 ProviderError 的子类，由批处理器转换为单元格中的提示文字。
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx
import openai
from openai import AsyncOpenAI

from llmgrid.engine.errors import (
    ContentBlockedError,
    EmptyResponseError,
    InvalidCredentialError,
    MissingCredentialError,
    QuotaExceededError,
    TransportError,
    ValidationError,
)
from llmgrid.engine.prompt import ResponseFormat, ResponseStructure, format_prompt

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    """可选的 AI 服务"""

    GEMINI = "gemini"
    CHATGPT = "chatgpt"
    MISTRAL = "mistral"


DEFAULT_MODELS = {
    AIProvider.GEMINI: "gemini-1.5-flash",
    AIProvider.CHATGPT: "gpt-4o-mini",
    AIProvider.MISTRAL: "mistral-small-latest",
}

MISTRAL_API_BASE = "https://api.mistral.ai/v1"
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

GEMINI_SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


@dataclass
class GenerationConfig:
    """
    单次生成的参数

    Attributes:
        model: 模型名称
        temperature: 采样温度（0 ~ 2）
        max_tokens: 最大输出 token 数（1 ~ 4096）
        response_format: 期望的回复格式
        response_structure: 期望的回复结构
    """

    model: str
    temperature: float = 0.7
    max_tokens: int = 2048
    response_format: ResponseFormat = ResponseFormat.TEXT
    response_structure: ResponseStructure = field(default_factory=ResponseStructure)

    def __post_init__(self):
        if not 0 <= self.temperature <= 2:
            raise ValidationError(f"temperature 必须在 0 ~ 2 之间，收到: {self.temperature}")
        if not 1 <= self.max_tokens <= 4096:
            raise ValidationError(f"max_tokens 必须在 1 ~ 4096 之间，收到: {self.max_tokens}")


class ProviderPort(ABC):
    """AI 服务接口"""

    name: str

    @abstractmethod
    async def generate(
        self,
        system_role: str,
        prompt: str,
        value: str,
        config: GenerationConfig,
    ) -> str:
        """
        对单个单元格的值执行转换

        Args:
            system_role: 系统角色提示词
            prompt: 列上配置的转换指令
            value: 单元格当前的值
            config: 生成参数

        Returns:
            生成的文本

        Raises:
            ProviderError: 调用失败
        """

    def _log_request(self, config: GenerationConfig, user_message: str) -> None:
        logger.info(
            f"[LLM 调用] {self.name} [模型] {config.model} "
            f"[输入长度] {len(user_message)}"
        )


# ==================== OpenAI 兼容接口 ====================


class OpenAIProvider(ProviderPort):
    """OpenAI（ChatGPT）"""

    name = AIProvider.CHATGPT.value

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = 2,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        初始化客户端

        Args:
            api_key: API Key（为空时在调用时报配置错误，而不是在这里抛异常）
            base_url: API Base URL
            max_retries: 服务端限流（429）/ 5xx 时 SDK 自动重试的次数
            timeout: 单次请求超时（秒）
            client: 预先构建的客户端（测试时注入）
        """
        self.api_key = (api_key or "").strip()
        self.base_url = base_url
        self.max_retries = max_retries
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            client_kwargs: Dict[str, Any] = {
                "api_key": self.api_key,
                "max_retries": self.max_retries,
                "timeout": self.timeout,
            }
            if self.base_url:
                client_kwargs["base_url"] = self.base_url
            self._client = AsyncOpenAI(**client_kwargs)
        return self._client

    async def generate(
        self,
        system_role: str,
        prompt: str,
        value: str,
        config: GenerationConfig,
    ) -> str:
        if not self.api_key and self._client is None:
            raise MissingCredentialError(self.name)

        user_message = format_prompt(
            prompt, value, config.response_format, config.response_structure
        )
        self._log_request(config, user_message)

        try:
            response = await self.client.chat.completions.create(
                model=config.model,
                messages=[
                    {"role": "system", "content": system_role},
                    {"role": "user", "content": user_message},
                ],
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise InvalidCredentialError(self.name, str(e)) from e
        except openai.RateLimitError as e:
            raise QuotaExceededError(self.name, str(e)) from e
        except openai.APIError as e:
            raise self._classify_api_error(e) from e

        choice = response.choices[0] if response.choices else None
        if choice is not None and choice.finish_reason == "content_filter":
            raise ContentBlockedError(self.name, "content_filter")

        content = (choice.message.content or "").strip() if choice is not None else ""
        if not content:
            raise EmptyResponseError(self.name)

        logger.info(f"[LLM 响应] {self.name} [长度] {len(content)}")
        return content

    def _classify_api_error(self, error: openai.APIError):
        """按错误码/错误信息区分 Key 无效、配额和其他传输错误"""
        code = getattr(error, "code", None)
        message = str(error)
        if code == "invalid_api_key" or "invalid api key" in message.lower():
            return InvalidCredentialError(self.name, message)
        if code == "insufficient_quota" or "quota" in message.lower():
            return QuotaExceededError(self.name, message)
        return TransportError(self.name, message)


class MistralProvider(OpenAIProvider):
    """Mistral（OpenAI 兼容接口）"""

    name = AIProvider.MISTRAL.value

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_retries: int = 2,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url or MISTRAL_API_BASE,
            max_retries=max_retries,
            timeout=timeout,
            client=client,
        )


# ==================== Gemini ====================


class GeminiProvider(ProviderPort):
    """Google Gemini（REST 接口）"""

    name = AIProvider.GEMINI.value

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: API Key
            base_url: API Base URL
            timeout: 单次请求超时（秒）
            http_client: 预先构建的 httpx 客户端（测试时注入）
        """
        self.api_key = (api_key or "").strip()
        self.base_url = (base_url or GEMINI_API_BASE).rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    async def generate(
        self,
        system_role: str,
        prompt: str,
        value: str,
        config: GenerationConfig,
    ) -> str:
        if not self.api_key:
            raise MissingCredentialError(self.name)

        user_message = format_prompt(
            prompt, value, config.response_format, config.response_structure
        )
        self._log_request(config, user_message)

        payload = {
            "systemInstruction": {"parts": [{"text": system_role}]},
            "contents": [{"role": "user", "parts": [{"text": user_message}]}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": config.max_tokens,
            },
            "safetySettings": GEMINI_SAFETY_SETTINGS,
        }
        url = f"{self.base_url}/models/{config.model}:generateContent"

        try:
            response = await self._post(url, payload)
        except httpx.HTTPError as e:
            raise TransportError(self.name, f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise self._classify_http_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(self.name, f"响应不是合法 JSON: {e}") from e

        text = self._extract_text(data)
        if text:
            logger.info(f"[LLM 响应] {self.name} [长度] {len(text)}")
            return text

        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentBlockedError(self.name, block_reason)

        raise EmptyResponseError(self.name)

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        params = {"key": self.api_key}
        if self._http_client is not None:
            return await self._http_client.post(url, params=params, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, params=params, json=payload)

    def _classify_http_error(self, response: httpx.Response):
        try:
            message = (response.json().get("error") or {}).get("message", "")
        except ValueError:
            message = response.text

        logger.warning(f"Gemini API 错误 HTTP {response.status_code}: {message}")

        if "API key not valid" in message:
            return InvalidCredentialError(self.name, message)
        if response.status_code == 429 or "quota" in message.lower():
            return QuotaExceededError(self.name, message)
        return TransportError(self.name, f"HTTP {response.status_code}: {message}")

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            return ""
        return (parts[0].get("text") or "").strip()


# ==================== 工厂函数 ====================


def create_provider(
    provider: AIProvider,
    api_key: Optional[str] = None,
    base_url: Optional[str] = None,
    max_retries: int = 2,
    timeout: float = 60.0,
) -> ProviderPort:
    """
    创建 AI 服务客户端的工厂函数

    Args:
        provider: 服务类型
        api_key: API Key
        base_url: API Base URL（为空使用默认地址）
        max_retries: SDK 自动重试次数（仅 OpenAI 兼容接口）
        timeout: 请求超时（秒）

    Returns:
        ProviderPort 实现
    """
    provider = AIProvider(provider)
    if provider == AIProvider.CHATGPT:
        return OpenAIProvider(api_key, base_url, max_retries=max_retries, timeout=timeout)
    if provider == AIProvider.MISTRAL:
        return MistralProvider(api_key, base_url, max_retries=max_retries, timeout=timeout)
    return GeminiProvider(api_key, base_url, timeout=timeout)

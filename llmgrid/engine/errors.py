"""错误类型定义

分为四类：
1. ValidationError：参数校验失败，直接抛给调用方，不会自动重试
2. ProviderError：AI 服务调用失败，由批处理器逐行捕获并写入单元格
3. RateLimitExhausted：限流等待次数超过上限（仅在调用方设置上限时出现）
4. ExternalApiError：导入 / 导出时外部接口请求失败
"""

from typing import Optional


class LLMGridError(Exception):
    """基础错误"""


class ValidationError(LLMGridError, ValueError):
    """参数校验失败（行列越界、宽度非法、筛选条件错误等）"""


class RateLimitExhausted(LLMGridError):
    """限流等待次数超过上限"""

    def __init__(self, waits: int):
        self.waits = waits
        super().__init__(f"限流等待 {waits} 次后仍未获得配额")


class ExternalApiError(LLMGridError):
    """外部接口请求失败"""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"外部接口错误 [{url}]: {detail}")


# ==================== AI 服务错误 ====================


class ProviderError(LLMGridError):
    """
    AI 服务调用错误

    每个子类对应一条固定的用户提示，批处理器会把 user_message 写入单元格，
    然后继续处理下一行。

    Attributes:
        provider: 服务名称（gemini / chatgpt / mistral）
        detail: 原始错误信息（仅用于日志）
    """

    default_message = "与 AI 通信失败，请检查网络连接后重试。"

    def __init__(self, provider: str = "", detail: Optional[str] = None):
        self.provider = provider
        self.detail = detail
        super().__init__(detail or self.default_message)

    @property
    def user_message(self) -> str:
        return self.default_message


class MissingCredentialError(ProviderError):
    """未配置 API Key"""

    @property
    def user_message(self) -> str:
        name = _PROVIDER_LABELS.get(self.provider, self.provider)
        return f"请先在设置中配置 {name} API Key 后再开始处理。"


class InvalidCredentialError(ProviderError):
    """API Key 无效"""

    @property
    def user_message(self) -> str:
        name = _PROVIDER_LABELS.get(self.provider, self.provider)
        return f"{name} API Key 无效，请在设置中检查 Key 是否完整、正确。"


class QuotaExceededError(ProviderError):
    """服务端配额或频率超限（与本地限流器无关）"""

    default_message = "API 配额已用尽，请稍后重试或检查账户额度。"


class ContentBlockedError(ProviderError):
    """内容被服务端安全策略拦截"""

    def __init__(self, provider: str = "", reason: str = ""):
        self.reason = reason
        super().__init__(provider, f"blocked: {reason}")

    @property
    def user_message(self) -> str:
        return f"内容被 AI 安全规则拦截：{self.reason}"


class EmptyResponseError(ProviderError):
    """服务端没有返回内容"""

    default_message = "AI 没有返回结果，请调整提示词后重试。"


class TransportError(ProviderError):
    """网络或其他传输层错误"""


_PROVIDER_LABELS = {
    "gemini": "Gemini",
    "chatgpt": "OpenAI",
    "mistral": "Mistral",
}

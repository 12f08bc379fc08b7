"""限流器 - 固定时间窗口的请求计数

进程内只创建一个实例，所有 AI 服务共用，切换服务不会绕过上限。
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from llmgrid.engine.errors import RateLimitExhausted

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimitDecision:
    """
    一次获取配额的结果

    Attributes:
        allowed: 是否允许发出请求
        wait: 被拒绝时需要等待的秒数（允许时为 0）
    """

    allowed: bool
    wait: float = 0.0


class RateLimiter:
    """
    固定窗口限流器

    - 距窗口开始已超过 window_length：重置窗口，本次允许（计数为 1）
    - 窗口内计数未达上限：允许，计数加 1
    - 否则拒绝，返回到窗口结束还需等待的时间

    用法示例：
        limiter = RateLimiter(limit=60)
        waits = await limiter.acquire()   # 必要时挂起直到获得配额
    """

    def __init__(
        self,
        limit: int = 60,
        window_length: float = 60.0,
        clock: Clock = time.monotonic,
    ):
        """
        Args:
            limit: 每个窗口允许的请求数
            window_length: 窗口长度（秒）
            clock: 时间来源（测试时可替换）
        """
        if window_length <= 0:
            raise ValueError("window_length 必须大于 0")
        self._lock = threading.Lock()
        self._clock = clock
        self._limit = 0
        self.limit = limit
        self.window_length = float(window_length)
        self.window_start = clock()
        self.request_count = 0

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        if value < 1:
            raise ValueError(f"限流上限必须大于 0，收到: {value}")
        with self._lock:
            self._limit = int(value)

    def try_acquire(self) -> RateLimitDecision:
        """尝试获取一次请求配额，不会阻塞"""
        with self._lock:
            now = self._clock()
            elapsed = now - self.window_start

            if elapsed >= self.window_length:
                self.window_start = now
                self.request_count = 1
                return RateLimitDecision(allowed=True)

            if self.request_count < self._limit:
                self.request_count += 1
                return RateLimitDecision(allowed=True)

            return RateLimitDecision(allowed=False, wait=self.window_length - elapsed)

    async def acquire(
        self,
        max_waits: Optional[int] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> int:
        """
        获取配额，被拒绝时挂起等待后重试

        Args:
            max_waits: 最多等待次数（None 表示一直等到获得配额）
            sleep: 挂起函数（测试时可替换）

        Returns:
            本次获取过程中等待的次数

        Raises:
            RateLimitExhausted: 等待次数超过 max_waits
        """
        waits = 0
        while True:
            decision = self.try_acquire()
            if decision.allowed:
                return waits
            if max_waits is not None and waits >= max_waits:
                raise RateLimitExhausted(waits)
            waits += 1
            logger.info(
                f"达到限流上限 {self._limit}/{self.window_length:.0f}s，等待 {decision.wait:.2f}s"
            )
            await sleep(decision.wait)

    def reset(self) -> None:
        """立即开始新窗口"""
        with self._lock:
            self.window_start = self._clock()
            self.request_count = 0

    def __repr__(self) -> str:
        return (
            f"RateLimiter(limit={self._limit}, window={self.window_length}s, "
            f"count={self.request_count})"
        )

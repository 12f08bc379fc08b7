"""Unit test fixtures.

These fixtures provide:
- FakeClock / RecordingSleep (deterministic time for the rate limiter and batch delays)
- StubProvider (scripted AI provider, no network)
- session_factory (SheetSession wired to the stubs)
"""

from typing import Callable, List, Optional, Sequence

import pytest

from llmgrid.core.config import ProcessingSettings
from llmgrid.engine.document import Document
from llmgrid.engine.llm_client import GenerationConfig, ProviderPort
from llmgrid.engine.rate_limiter import RateLimiter
from llmgrid.events import EventBus
from llmgrid.services.sheet import SheetSession

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records durations and advances a clock."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.calls: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(fake_clock)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class StubProvider(ProviderPort):
    """Provider whose replies come from a callable; records every call."""

    name = "stub"

    def __init__(self, reply: Optional[Callable[[str], str]] = None):
        self.reply = reply or (lambda value: value.upper())
        self.calls: List[dict] = []

    async def generate(
        self,
        system_role: str,
        prompt: str,
        value: str,
        config: GenerationConfig,
    ) -> str:
        self.calls.append({"prompt": prompt, "value": value, "model": config.model})
        return self.reply(value)

    @property
    def values(self) -> List[str]:
        return [call["value"] for call in self.calls]


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def make_provider():
    """Factory for extra StubProvider instances with a custom reply."""
    return StubProvider


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@pytest.fixture
def session_factory(stub_provider: StubProvider, recording_sleep: RecordingSleep, fake_clock: FakeClock):
    """Factory for SheetSession instances backed by the stub provider.

    Returns:
        Function that builds a session from (headers, rows) with optional settings overrides.
    """

    def _create_session(
        headers: Sequence[str] = ("source", "result"),
        rows: Sequence[Sequence[str]] = (),
        provider: Optional[ProviderPort] = None,
        **settings_overrides,
    ) -> SheetSession:
        overrides = {"processing_delay_ms": 0, "gemini_api_key": "test-key"}
        overrides.update(settings_overrides)
        settings = ProcessingSettings(**overrides)
        document = Document.from_table(list(headers), [list(r) for r in rows]) if rows or headers else None
        chosen = provider or stub_provider
        return SheetSession(
            document=document,
            settings=settings,
            rate_limiter=RateLimiter(limit=settings.rate_limit_per_minute, clock=fake_clock),
            bus=EventBus(),
            provider_factory=lambda _settings: chosen,
            sleep=recording_sleep,
        )

    return _create_session

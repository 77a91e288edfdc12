"""
AI collaborators: the general extraction model and the remote-fetch service.

Both are Anthropic Messages API calls. The extraction model takes cleaned
HTML plus hints and returns text containing a JSON object; the remote-fetch
call hands the URL to the server-side web_fetch tool so the page is
retrieved on Anthropic's side.

Every call goes through an UpstreamGate shared by all imports in the
process: it caps concurrent calls per collaborator and, once the provider
answers 429, fails further calls fast until the retry-after window passes
instead of bursting through the limit.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import anthropic

from errors import RateLimited, StrategyError
from settings import AIConfig, settings

logger = logging.getLogger(__name__)

# (prompt) -> response text
TextModel = Callable[[str], Awaitable[str]]
# (url, instruction) -> response text
RemoteFetcher = Callable[[str, str], Awaitable[str]]

WEB_FETCH_BETA = "web-fetch-2025-09-10"


class UpstreamGate:
    """Process-wide limiter for one upstream collaborator."""

    def __init__(self, name: str, max_concurrent: int = 4, default_retry_after: int = 120):
        self.name = name
        self.default_retry_after = default_retry_after
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._blocked_until = 0.0
        self.calls = 0
        self.rate_limited = 0

    def retry_after(self) -> int:
        """Seconds left in the current cooldown (0 when open)."""
        return max(0, int(self._blocked_until - time.monotonic() + 0.999))

    def check(self) -> None:
        remaining = self.retry_after()
        if remaining > 0:
            raise RateLimited(self.name, remaining)

    def trip(self, retry_after: int | None = None) -> RateLimited:
        """Record a 429 and start the shared cooldown."""
        seconds = retry_after or self.default_retry_after
        self._blocked_until = max(self._blocked_until, time.monotonic() + seconds)
        self.rate_limited += 1
        logger.warning(f"{self.name} rate limited, cooling down for {seconds}s")
        return RateLimited(self.name, seconds)

    @asynccontextmanager
    async def slot(self):
        self.check()
        async with self._semaphore:
            # Another import may have tripped the gate while we waited
            self.check()
            self.calls += 1
            yield


extraction_gate = UpstreamGate(
    "extraction model", settings.ai.max_concurrent, settings.imports.default_retry_after
)
fetch_gate = UpstreamGate("remote fetch", settings.ai.max_concurrent, settings.imports.default_retry_after)


def find_json_object(text: str) -> dict | None:
    """Return the first JSON object embedded in free-form text, or None."""
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None


def _retry_after_header(err: anthropic.APIStatusError) -> int | None:
    raw = err.response.headers.get("retry-after") if err.response is not None else None
    if not raw:
        return None
    try:
        return max(1, int(float(raw)))
    except ValueError:
        return None


def _text_blocks(message: Any) -> str:
    return "\n".join(block.text for block in message.content if getattr(block, "type", None) == "text")


class AIClient:
    """Async wrapper exposing the two collaborator functions."""

    def __init__(
        self,
        config: AIConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
        completion_gate: UpstreamGate | None = None,
        remote_fetch_gate: UpstreamGate | None = None,
    ):
        self.config = config or settings.ai
        self._client = client
        self.completion_gate = completion_gate or extraction_gate
        self.remote_fetch_gate = remote_fetch_gate or fetch_gate

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self.config.api_key:
                raise StrategyError("ANTHROPIC_API_KEY not configured")
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,  # fallback chain is the only retry
            )
        return self._client

    async def _create(self, gate: UpstreamGate, **kwargs: Any) -> Any:
        async with gate.slot():
            try:
                return await self.client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    temperature=0,
                    **kwargs,
                )
            except anthropic.RateLimitError as e:
                raise gate.trip(_retry_after_header(e)) from e
            except anthropic.APITimeoutError as e:
                raise StrategyError(f"{gate.name} timed out") from e
            except anthropic.APIConnectionError as e:
                raise StrategyError(f"{gate.name} unreachable: {e}") from e
            except anthropic.APIStatusError as e:
                raise StrategyError(f"{gate.name} returned {e.status_code}") from e

    async def complete(self, prompt: str) -> str:
        """General extraction model: prompt in, response text out."""
        message = await self._create(
            self.completion_gate,
            messages=[{"role": "user", "content": prompt}],
        )
        logger.info(f"  Extraction model stop_reason={message.stop_reason}")
        return _text_blocks(message)

    async def web_fetch(self, url: str, instruction: str) -> str:
        """Remote fetch: the provider retrieves ``url`` itself and answers ``instruction``."""
        message = await self._create(
            self.remote_fetch_gate,
            tools=[
                {
                    "type": "web_fetch_20250910",
                    "name": "web_fetch",
                    "max_uses": 1,
                    "max_content_tokens": self.config.fetch_max_content_tokens,
                }
            ],
            messages=[{"role": "user", "content": instruction}],
            extra_headers={"anthropic-beta": WEB_FETCH_BETA},
        )
        logger.info(f"  Remote fetch returned {len(message.content)} content blocks for {url}")
        return _text_blocks(message)

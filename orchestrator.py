"""
Strategy orchestrator: classify the URL, then run the strategy chain.

Strategies run sequentially in priority order against one accumulated
record. Soft failures (StrategyError, budget timeouts, unexpected faults)
move on to the next strategy; RateLimited ends the import immediately.
"""

import asyncio
import logging
import time
from typing import Protocol

from ai import AIClient
from errors import RateLimited, StrategyError, ValidationFailure
from extractor import MarkupExtractionStrategy
from models import ExtractionAttempt, ImportResult, ImportStrategy, Outcome, ProductRecord, StrategyResult
from official_api import OfficialApiAdapter
from remote_fetch import RemoteFetchStrategy
from settings import settings
from suppliers import ImportContext, SupplierClassifier, SupplierProfile
from validator import finalize, missing_fields

logger = logging.getLogger(__name__)


class Strategy(Protocol):
    name: str

    async def run(self, ctx: ImportContext, record: ProductRecord) -> StrategyResult: ...


class ImportOrchestrator:
    def __init__(
        self,
        classifier: SupplierClassifier,
        api_adapter: Strategy | None,
        remote_fetch: Strategy | None,
        markup: Strategy | None,
        budget: float | None = None,
    ):
        self.classifier = classifier
        self.api_adapter = api_adapter
        self.remote_fetch = remote_fetch
        self.markup = markup
        self.budget = budget if budget is not None else settings.imports.budget_seconds

    def strategies_for(self, profile: SupplierProfile, mode: ImportStrategy = ImportStrategy.AUTO) -> list[Strategy]:
        """Priority order for a profile: official API, remote fetch, markup."""
        chain: list[Strategy | None] = []
        if mode in (ImportStrategy.AUTO, ImportStrategy.STANDARD) and profile.api_configured:
            chain.append(self.api_adapter)
        if mode in (ImportStrategy.AUTO, ImportStrategy.BROWSER):
            chain.append(self.remote_fetch)
        chain.append(self.markup)
        return [s for s in chain if s is not None]

    async def import_url(self, url: str, strategy: ImportStrategy | str = ImportStrategy.AUTO) -> ImportResult:
        """Import one product URL.

        Raises UnsupportedSupplier before any network call, RateLimited as
        soon as any strategy is throttled, and ValidationFailure when the
        chain is exhausted without name and brand.
        """
        profile = self.classifier.classify(url)
        ctx = ImportContext(url=url.strip(), profile=profile)
        mode = ImportStrategy(strategy)
        chain = self.strategies_for(profile, mode)
        logger.info(f"Importing {ctx.url} [{profile.key}] via {' -> '.join(s.name for s in chain)}")

        record = ProductRecord()
        attempts: list[ExtractionAttempt] = []
        deadline = time.monotonic() + self.budget

        for strat in chain:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                attempts.append(ExtractionAttempt(strat.name, Outcome.SOFT_FAILURE, error="Import budget exhausted"))
                logger.warning(f"  {strat.name}: skipped, import budget exhausted")
                continue

            t0 = time.monotonic()
            try:
                result = await asyncio.wait_for(strat.run(ctx, record), timeout=remaining)
            except RateLimited as e:
                attempts.append(
                    ExtractionAttempt(strat.name, Outcome.RATE_LIMITED, error=e.message, elapsed=time.monotonic() - t0)
                )
                logger.warning(f"  {strat.name}: rate limited, retry after {e.retry_after}s")
                raise
            except asyncio.TimeoutError:
                result = StrategyResult(record, Outcome.SOFT_FAILURE, error=f"Timed out after {remaining:.0f}s")
            except StrategyError as e:
                result = StrategyResult(record, Outcome.SOFT_FAILURE, error=str(e))
            except Exception as e:
                logger.exception(f"  {strat.name}: unexpected error")
                result = StrategyResult(record, Outcome.SOFT_FAILURE, error=f"{type(e).__name__}: {e}")

            attempt = ExtractionAttempt(
                strategy=strat.name,
                outcome=result.outcome,
                record=result.record,
                colors_found=len(result.record.colors),
                unique_images_found=result.record.unique_image_count(),
                error=result.error,
                elapsed=time.monotonic() - t0,
                notes=list(result.notes),
            )
            attempts.append(attempt)

            if result.outcome is Outcome.RATE_LIMITED:
                raise RateLimited(strat.name, result.retry_after or settings.imports.default_retry_after)

            record = result.record
            if result.outcome is Outcome.SUCCESS and not missing_fields(record) and record.colors:
                logger.info(
                    f"  {strat.name}: success, {attempt.colors_found} colors, "
                    f"{attempt.unique_images_found} unique images ({attempt.elapsed:.1f}s)"
                )
                break
            logger.warning(f"  {strat.name}: soft failure: {result.error or 'result did not validate'}")

        try:
            final, warnings = finalize(record, profile.expected_min_colors)
        except ValidationFailure as e:
            logger.warning(f"Import failed for {ctx.url}: {e.message}")
            raise
        return ImportResult(record=final, warnings=warnings, attempts=attempts)


def build_orchestrator() -> ImportOrchestrator:
    """Orchestrator wired to the configured collaborators."""
    ai_client = AIClient()
    return ImportOrchestrator(
        classifier=SupplierClassifier(),
        api_adapter=OfficialApiAdapter(),
        remote_fetch=RemoteFetchStrategy(ai_client.web_fetch),
        markup=MarkupExtractionStrategy(ai_client.complete),
    )

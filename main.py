"""
Batch importer.

Imports every supplier URL given on the command line (or listed in a file,
one per line) concurrently with asyncio.gather, writes the successful
records to imports.json and prints a per-strategy report.
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

import orjson

from errors import ImportFailure
from models import ImportResult, ImportStrategy, Outcome
from orchestrator import ImportOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

OUTPUT_FILE = Path(__file__).parent / "imports.json"


def read_urls(args: list[str], url_file: Path | None) -> list[str]:
    urls = list(args)
    if url_file is not None:
        for line in url_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    return list(dict.fromkeys(urls))


async def import_all(
    orchestrator: ImportOrchestrator, urls: list[str], strategy: ImportStrategy
) -> list[ImportResult | ImportFailure]:
    """Import all URLs concurrently; failures become failed rows, never abort the batch."""
    results = await asyncio.gather(
        *[orchestrator.import_url(url, strategy) for url in urls],
        return_exceptions=True,
    )
    out: list[ImportResult | ImportFailure] = []
    for url, result in zip(urls, results):
        if isinstance(result, ImportFailure):
            logger.error(f"Import failed for {url}: {result.message}")
        elif isinstance(result, Exception):
            logger.error(f"Import failed for {url}", exc_info=result)
            result = ImportFailure(f"Unexpected error: {type(result).__name__}: {result}")
        elif isinstance(result, BaseException):
            raise result
        out.append(result)
    return out


def print_report(urls: list[str], results: list[ImportResult | ImportFailure], wall_clock: float) -> None:
    """Print a per-import and per-strategy report."""
    succeeded = [r for r in results if isinstance(r, ImportResult)]
    n = len(results)

    # ── Reliability ──────────────────────────────────────────────────
    print(f"\n{'='*70}")
    print("IMPORT REPORT")
    print(f"{'='*70}")

    print(f"\n── Reliability ──")
    print(f"  URLs attempted:   {n}")
    print(f"  Succeeded:        {len(succeeded)}")
    print(f"  Failed:           {n - len(succeeded)}")
    print(f"  Success rate:     {len(succeeded)/n*100:.0f}%" if n else "  N/A")

    # ── Per import ──────────────────────────────────────────────────
    print(f"\n── Imports ──")
    print(f"  {'Product':<40} {'Colors':>7} {'Images':>7} {'Sizes':>6} {'Via':>14}")
    print(f"  {'-'*78}")
    for url, r in zip(urls, results):
        if isinstance(r, ImportResult):
            winner = next((a.strategy for a in r.attempts if a.success), "-")
            print(f"  {r.record.name[:40]:<40} {len(r.record.colors):>7} "
                  f"{r.record.unique_image_count():>7} {len(r.record.sizes):>6} {winner:>14}")
            for w in r.warnings:
                print(f"    ! {w.code}: {w.message}")
        else:
            print(f"  {url[:40]:<40} FAILED ({r.status_code}): {r.message}")

    # ── Strategies ──────────────────────────────────────────────────
    print(f"\n── Strategies ──")
    stats: dict[str, dict[str, int]] = {}
    elapsed: dict[str, float] = {}
    for r in succeeded:
        for a in r.attempts:
            counts = stats.setdefault(a.strategy, {o.value: 0 for o in Outcome})
            counts[a.outcome.value] += 1
            elapsed[a.strategy] = elapsed.get(a.strategy, 0.0) + a.elapsed
    print(f"  {'Strategy':<16} {'Success':>8} {'Soft fail':>10} {'Limited':>8} {'Time':>9}")
    print(f"  {'-'*55}")
    for name, counts in stats.items():
        print(f"  {name:<16} {counts['success']:>8} {counts['soft_failure']:>10} "
              f"{counts['rate_limited']:>8} {elapsed[name]:>8.1f}s")

    # ── Timing ──────────────────────────────────────────────────────
    print(f"\n── Timing ──")
    print(f"  Wall clock (total):  {wall_clock:.2f}s")
    if n:
        print(f"  Avg per URL (wall):  {wall_clock / n:.2f}s")

    print(f"\n{'='*70}")


async def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(description="Import supplier product URLs into catalog records")
    ap.add_argument("urls", nargs="*", help="Supplier product URLs")
    ap.add_argument("-f", "--file", type=Path, help="File with one URL per line")
    ap.add_argument(
        "-s", "--strategy", choices=[s.value for s in ImportStrategy], default=ImportStrategy.AUTO.value
    )
    ap.add_argument("-o", "--output", type=Path, default=OUTPUT_FILE)
    args = ap.parse_args(argv)

    urls = read_urls(args.urls, args.file)
    if not urls:
        ap.error("no URLs given")
    logger.info(f"Importing {len(urls)} URLs")

    orchestrator = build_orchestrator()
    t_wall_start = time.monotonic()
    try:
        results = await import_all(orchestrator, urls, ImportStrategy(args.strategy))
    finally:
        await orchestrator.api_adapter.aclose()
    wall_clock = time.monotonic() - t_wall_start

    records = [r.to_response() for r in results if isinstance(r, ImportResult)]
    args.output.write_bytes(orjson.dumps(records, option=orjson.OPT_INDENT_2))
    logger.info(f"Wrote {len(records)} records to {args.output}")

    print_report(urls, results, wall_clock)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())

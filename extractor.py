"""
Markup-extraction strategy: fetch the page ourselves and read it.

Three stages:
  A) Fetch raw HTML, parse structured data and page metadata (free)
  B) Mine CDN asset filenames for color -> front/back images (free)
  C) Call the extraction model with cleaned HTML plus A/B as hints,
     unless B alone already covers the supplier's catalog (fast path)
"""

import json
import logging
import time
from dataclasses import dataclass, field

import httpx

import taxonomy
from ai import TextModel, find_json_object
from errors import RateLimited, StrategyError
from models import GARMENT_CATEGORIES, ExtractedProduct, Outcome, ProductRecord, StrategyResult
from parser import ParsedPage, clean_html, parse_html, structured_hints
from patterns import ColorImageMapping, mine_color_images
from settings import ImportConfig, settings
from suppliers import ImportContext
from validator import merge_records

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


# ===== Metrics =====


@dataclass
class ExtractionMetrics:
    """Per-page metrics collected during markup extraction."""

    url: str = ""
    # Stage timing (seconds)
    fetch_time: float = 0.0
    mine_time: float = 0.0
    model_time: float = 0.0
    html_chars: int = 0
    cleaned_chars: int = 0
    structured_blocks: int = 0
    # Pattern mining
    mined_colors: int = 0
    mined_both_sides: int = 0
    fast_path: bool = False
    # Model usage
    model_calls: int = 0
    model_colors: int = 0
    missing_fields: list[str] = field(default_factory=list)

    def notes(self) -> list[str]:
        notes = [f"mined {self.mined_colors} colors ({self.mined_both_sides} with front and back)"]
        if self.fast_path:
            notes.append("fast path: extraction model skipped")
        elif self.model_calls:
            notes.append(f"extraction model returned {self.model_colors} colors")
        return notes


# ===== Fetch =====


async def fetch_html(url: str, client: httpx.AsyncClient | None = None, config: ImportConfig | None = None) -> str:
    """GET the page with browser-like headers. 429 is terminal, any other failure soft."""
    config = config or settings.imports
    headers = {**BROWSER_HEADERS, "User-Agent": config.user_agent}
    try:
        if client is not None:
            resp = await client.get(url, headers=headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as own:
                resp = await own.get(url, headers=headers, follow_redirects=True)
    except httpx.HTTPError as e:
        raise StrategyError(f"Fetching {url} failed: {e}") from e

    if resp.status_code == 429:
        raw = resp.headers.get("retry-after", "")
        retry_after = int(raw) if raw.isdigit() else config.default_retry_after
        raise RateLimited("supplier site", retry_after)
    if resp.status_code >= 400:
        raise StrategyError(f"Fetching {url} returned {resp.status_code}")
    return resp.text


# ===== Fast path =====


def assemble_from_mined(ctx: ImportContext, parsed: ParsedPage, mapping: ColorImageMapping) -> ProductRecord:
    """Build the record from mined images and page metadata alone."""
    name = parsed.product_title
    description = parsed.og_tags.get("description") or parsed.meta_tags.get("description", "")
    return ProductRecord(
        name=name,
        brand=ctx.profile.brand or "",
        description=description,
        category=taxonomy.classify([name, description]) or "Other",
        colors=mapping.colors,
        sizes=list(parsed.size_options),
        base_cost=parsed.price,
        color_images=dict(mapping.front),
        color_back_images=dict(mapping.back),
        supplier_source=ctx.profile.key,
        style_id=ctx.style.style_id if ctx.style else None,
    )


# ===== Model prompt =====

_CONTRACT = """You are extracting a garment product from a supplier's product page.
Return ONE JSON object with these fields:

- name (required): product name including the style number
- brand (required): manufacturer brand
- description: plain-text description
- category: one of {categories}
- available_colors: EVERY color option on the page
- size_range: every size, smallest to largest
- base_cost: lowest single-piece price as a number
- thumbnail_url: main product image URL
- color_images: {{"Color Name": "front image URL"}}
- color_back_images: {{"Color Name": "back image URL"}}

Enumerate ALL colors exhaustively; these products commonly carry 50-80+.
Never truncate or sample the list. Every color needs its own image URL:
do not map several colors to one shared product image.
Respond with the JSON object only."""


def build_prompt(ctx: ImportContext, parsed: ParsedPage, cleaned: str, mapping: ColorImageMapping) -> str:
    parts = [_CONTRACT.format(categories=", ".join(GARMENT_CATEGORIES)), f"Page URL: {ctx.url}"]
    if ctx.profile.brand:
        parts.append(f"Brand: {ctx.profile.brand}")

    hints = structured_hints(parsed)
    if hints:
        parts.append("Structured data found on the page:\n" + hints)

    if len(mapping):
        mined = {"color_images": mapping.front, "color_back_images": mapping.back}
        parts.append(
            f"Color images already identified from asset filenames ({len(mapping)} colors, "
            "authoritative; include all of them):\n" + json.dumps(mined, ensure_ascii=False)
        )

    parts.append("=== Page HTML ===\n" + cleaned)
    return "\n\n".join(parts)


# ===== Strategy =====


class MarkupExtractionStrategy:
    name = "markup"

    def __init__(
        self,
        text_model: TextModel,
        client: httpx.AsyncClient | None = None,
        config: ImportConfig | None = None,
    ):
        self.text_model = text_model
        self.client = client
        self.config = config or settings.imports
        self.last_metrics: ExtractionMetrics | None = None

    async def run(self, ctx: ImportContext, record: ProductRecord) -> StrategyResult:
        metrics = ExtractionMetrics(url=ctx.url)
        self.last_metrics = metrics

        # Stage A: fetch + parse
        t0 = time.monotonic()
        html = await fetch_html(ctx.url, self.client, self.config)
        parsed = parse_html(html)
        metrics.fetch_time = time.monotonic() - t0
        metrics.html_chars = len(html)
        metrics.structured_blocks = parsed.structured_block_count

        # Stage B: pattern mining
        t0 = time.monotonic()
        mapping = ColorImageMapping()
        if ctx.profile.pattern_mining:
            mapping = mine_color_images(
                html,
                ctx.profile.asset_convention,
                parsed.product_title,
                style_code=ctx.style.style_id if ctx.style else None,
            )
        metrics.mine_time = time.monotonic() - t0
        metrics.mined_colors = len(mapping)
        metrics.mined_both_sides = len(mapping.both_sides())

        if ctx.profile.pattern_mining and metrics.mined_both_sides >= ctx.profile.fast_path_min_colors:
            found = assemble_from_mined(ctx, parsed, mapping)
            if found.name and found.brand:
                metrics.fast_path = True
                logger.info(f"  Fast path: {metrics.mined_both_sides} colors mined with front and back")
                return StrategyResult(merge_records(record, found), Outcome.SUCCESS, notes=metrics.notes())

        # Stage C: extraction model
        cleaned = clean_html(html, self.config.html_char_budget)
        metrics.cleaned_chars = len(cleaned)
        logger.info(
            f"  Extraction model: {metrics.cleaned_chars:,} chars, {metrics.structured_blocks} structured blocks, "
            f"{metrics.mined_colors} mined colors"
        )
        t0 = time.monotonic()
        text = await self.text_model(build_prompt(ctx, parsed, cleaned, mapping))
        metrics.model_time = time.monotonic() - t0
        metrics.model_calls += 1

        data = find_json_object(text or "")
        if data is None:
            return StrategyResult(
                record, Outcome.SOFT_FAILURE, error="No JSON object in extraction model response", notes=metrics.notes()
            )
        extracted = ExtractedProduct.model_validate(data)
        metrics.model_colors = len(extracted.available_colors)
        metrics.missing_fields = extracted.missing_required()

        found = self._combine(ctx, parsed, extracted, mapping)
        merged = merge_records(record, found)
        if metrics.missing_fields:
            # Partial fields still carry forward to later strategies and validation
            return StrategyResult(
                merged,
                Outcome.SOFT_FAILURE,
                error=f"Extraction model response missing {', '.join(metrics.missing_fields)}",
                notes=metrics.notes(),
            )
        logger.info(f"  Markup extraction: {len(found.colors)} colors, {found.unique_image_count()} unique images")
        if not merged.colors:
            return StrategyResult(merged, Outcome.SOFT_FAILURE, error="No colors extracted", notes=metrics.notes())
        return StrategyResult(merged, Outcome.SUCCESS, notes=metrics.notes())

    def _combine(
        self, ctx: ImportContext, parsed: ParsedPage, extracted: ExtractedProduct, mapping: ColorImageMapping
    ) -> ProductRecord:
        """Model output with mined images layered on top; mined entries win."""
        found = extracted.to_record()
        for color in mapping.colors:
            found.add_color(color)
        found.color_images = {**found.color_images, **mapping.front}
        found.color_back_images = {**found.color_back_images, **mapping.back}

        if not found.sizes:
            found.sizes = list(parsed.size_options)
        if found.base_cost is None:
            found.base_cost = parsed.price
        found.category = taxonomy.categorize(found.category, [found.name, found.description])
        found.supplier_source = ctx.profile.key
        if ctx.style:
            found.style_id = ctx.style.style_id
        return found

"""
Official supplier API adapter (S&S Activewear v2 catalog API).

Resolves a product URL to a style via GET /styles, then folds the
product-variant list from GET /products/?style=<styleID> into the record.
Every failure here is soft: the API being unreachable says nothing about
whether the supplier's page can still be read.
"""

import html as html_lib
import logging
import re
import time
from typing import Any

import httpx

import taxonomy
from ai import UpstreamGate
from errors import RateLimited, StrategyError
from models import Outcome, ProductRecord, StrategyResult, coerce_decimal
from settings import SupplierAPIConfig, settings
from suppliers import ImportContext, StyleRef
from validator import merge_records

logger = logging.getLogger(__name__)

api_gate = UpstreamGate(
    "supplier api", settings.supplier_api.max_concurrent, settings.imports.default_retry_after
)


def _clean_html(text: str) -> str:
    """Strip HTML tags and entities, normalize whitespace."""
    text = re.sub(r"<[^>]+>", " ", text)
    text = html_lib.unescape(text).replace("\xa0", " ")
    return re.sub(r"\s+", " ", text).strip()


def _brand_matches(brand_name: str, brand_hint: str | None) -> bool:
    """Loose brand match: "COMFORT COLORS" vs URL slug "comfort-colors"."""
    if not brand_hint:
        return True
    brand_name = brand_name.upper().strip()
    if not brand_name:
        return False
    return brand_hint in brand_name or brand_name.split(" ")[0] in brand_hint


def find_style(styles: list[dict], ref: StyleRef) -> dict | None:
    """Exact style-name match first, then unique-name or partial match; brand must match either way."""
    candidates = [
        s for s in styles if isinstance(s, dict) and _brand_matches(str(s.get("brandName") or ""), ref.brand_hint)
    ]

    for s in candidates:
        if str(s.get("styleName") or s.get("StyleName") or "").upper() == ref.style_id:
            return s

    for s in candidates:
        style_name = str(s.get("styleName") or s.get("StyleName") or "").upper()
        unique_name = str(s.get("uniqueStyleName") or "").upper()
        if ref.style_id in (style_name, unique_name) or (style_name and ref.style_id in style_name):
            return s
    return None


class OfficialApiAdapter:
    """Strategy backed by the supplier's own catalog API."""

    name = "official_api"

    def __init__(
        self,
        config: SupplierAPIConfig | None = None,
        client: httpx.AsyncClient | None = None,
        gate: UpstreamGate | None = None,
    ):
        self.config = config or settings.supplier_api
        self._client = client
        self.gate = gate or api_gate
        self._inventory_cache: dict[str, tuple[float, dict[str, dict[str, int]]]] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                auth=httpx.BasicAuth(*self.config.basic_auth),
                headers={"Accept": "application/json"},
                timeout=settings.imports.http_timeout_seconds,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def _get_json(self, path: str, params: dict | None = None) -> Any:
        try:
            async with self.gate.slot():
                resp = await self.client.get(path, params=params)
        except RateLimited as e:
            # A throttled catalog API only skips this strategy
            raise StrategyError(f"Supplier API cooling down, retry after {e.retry_after}s") from e
        except httpx.HTTPError as e:
            raise StrategyError(f"Supplier API request failed: {e}") from e
        if resp.status_code == 429:
            raw = resp.headers.get("retry-after", "")
            self.gate.trip(int(raw) if raw.isdigit() else None)
            raise StrategyError(f"Supplier API {path} returned 429")
        if resp.status_code != 200:
            raise StrategyError(f"Supplier API {path} returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise StrategyError(f"Supplier API {path} returned malformed JSON") from e

    def _absolute(self, path: str | None) -> str | None:
        if not path:
            return None
        if path.startswith("http"):
            return path
        return f"{self.config.cdn_base}/{path.lstrip('/')}"

    def fold_variants(self, variants: list[dict], record: ProductRecord) -> ProductRecord:
        """Fold variant rows into colors/sizes/images/base_cost. First value per color wins."""
        for v in variants:
            if not isinstance(v, dict):
                continue
            color = str(v.get("colorName") or v.get("color") or "").strip()
            front = self._absolute(v.get("colorFrontImage") or v.get("frontImage") or v.get("image"))
            back = self._absolute(v.get("colorBackImage") or v.get("backImage"))
            size = str(v.get("sizeName") or v.get("size") or "").strip()

            if color:
                record.add_color(color)
                if front:
                    record.color_images.setdefault(color, front)
                if back:
                    record.color_back_images.setdefault(color, back)
            if size:
                record.add_size(size)
            if record.base_cost is None and v.get("piecePrice") not in (None, "", 0):
                record.base_cost = coerce_decimal(v.get("piecePrice"))
        return record

    def style_record(self, style: dict, ref: StyleRef) -> ProductRecord:
        style_name = style.get("styleName") or style.get("title") or ref.style_id
        brand = style.get("brandName") or (ref.brand_hint or "").title()
        description = _clean_html(str(style.get("description") or ""))
        return ProductRecord(
            name=f"{style_name} - {ref.style_id}",
            brand=brand,
            description=description or f"{style.get('title') or style_name} by {brand}",
            category=taxonomy.categorize(style.get("baseCategory"), [style.get("title") or "", style_name]),
            style_id=str(style.get("styleID")) if style.get("styleID") is not None else None,
        )

    async def run(self, ctx: ImportContext, record: ProductRecord) -> StrategyResult:
        if not self.config.configured:
            return StrategyResult(record, Outcome.SOFT_FAILURE, error="Supplier API credentials not configured")

        ref = ctx.style
        if ref is None:
            return StrategyResult(record, Outcome.SOFT_FAILURE, error=f"Could not extract style ID from {ctx.url}")

        logger.info(f"  Supplier API lookup: brand={ref.brand_slug} style={ref.style_id}")
        styles = await self._get_json("/styles")
        if not isinstance(styles, list):
            raise StrategyError("Supplier API /styles did not return a list")

        style = find_style(styles, ref)
        if style is None:
            return StrategyResult(
                record, Outcome.SOFT_FAILURE, error=f"Style {ref.style_id} not found for brand {ref.brand_slug}"
            )

        found = self.style_record(style, ref)
        found.supplier_source = ctx.profile.key
        try:
            variants = await self._get_json("/products/", params={"style": style.get("styleID")})
        except StrategyError as e:
            # Style metadata is still worth carrying forward
            return StrategyResult(merge_records(record, found), Outcome.SOFT_FAILURE, error=str(e))

        if not isinstance(variants, list) or not variants:
            return StrategyResult(
                merge_records(record, found), Outcome.SOFT_FAILURE, error="Supplier API returned no variants"
            )

        self.fold_variants(variants, found)
        if not found.thumbnail_url:
            first = found.colors[0] if found.colors else None
            found.thumbnail_url = found.color_images.get(first) if first else None
            found.thumbnail_url = found.thumbnail_url or self._absolute(style.get("styleImage"))

        merged = merge_records(record, found)
        logger.info(
            f"  Supplier API: {len(found.colors)} colors, {len(found.sizes)} sizes, "
            f"{len(found.color_images)} front / {len(found.color_back_images)} back images"
        )
        outcome = Outcome.SUCCESS if merged.name and merged.brand and merged.colors else Outcome.SOFT_FAILURE
        return StrategyResult(merged, outcome, error=None if outcome is Outcome.SUCCESS else "No colors in variants")

    async def fetch_inventory(self, style_id: str) -> dict[str, dict[str, int]]:
        """Live stock levels as {color: {size: qty}}, cached per style."""
        cached = self._inventory_cache.get(style_id)
        if cached and time.monotonic() - cached[0] < self.config.inventory_cache_ttl:
            return cached[1]

        variants = await self._get_json("/products/", params={"style": style_id})
        if not isinstance(variants, list):
            raise StrategyError("Supplier API /products/ did not return a list")

        inventory: dict[str, dict[str, int]] = {}
        for v in variants:
            if not isinstance(v, dict):
                continue
            color = v.get("colorName") or v.get("color")
            size = v.get("sizeName") or v.get("size")
            if not color or not size:
                continue
            qty = v.get("qty", v.get("quantity", v.get("available", 0)))
            try:
                inventory.setdefault(color, {})[size] = int(qty or 0)
            except (TypeError, ValueError):
                inventory.setdefault(color, {})[size] = 0

        self._inventory_cache[style_id] = (time.monotonic(), inventory)
        logger.info(f"Inventory for style {style_id}: {len(inventory)} colors")
        return inventory

"""
HTML parser for supplier product pages.

Extracts the structured data a page ships alongside its markup: JSON-LD
blocks, inline JS objects assigning product/variant data, window globals,
plus lightweight metadata (title, size options, price) used when the
extraction model is skipped. Also produces the cleaned, budgeted HTML the
model sees.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Canonical size vocabulary, in display order
SIZE_VOCABULARY = [
    "XXS", "XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "5XL", "6XL", "OS",
]
_SIZE_ALIASES = {
    "XXL": "2XL",
    "XXXL": "3XL",
    "XXXXL": "4XL",
    "SMALL": "S",
    "MEDIUM": "M",
    "LARGE": "L",
    "X-LARGE": "XL",
    "ONE SIZE": "OS",
    "O/S": "OS",
    "OSFA": "OS",
}

_PRODUCT_VAR_NAMES = ("product", "productData", "variants", "colors", "colorData")


@dataclass
class ParsedPage:
    """All structured data extracted from a supplier page."""

    json_ld: list[dict] = field(default_factory=list)
    product_scripts: list[str] = field(default_factory=list)  # raw `var product = {...}` payloads
    embedded_json: dict[str, Any] = field(default_factory=dict)
    og_tags: dict[str, str] = field(default_factory=dict)
    meta_tags: dict[str, str] = field(default_factory=dict)
    title: str = ""
    size_options: list[str] = field(default_factory=list)
    price: Decimal | None = None

    @property
    def product_title(self) -> str:
        """Page title without the " | Store Name" suffix."""
        title = self.og_tags.get("title") or self.title
        return re.split(r"\s+[|–—]\s+", title, maxsplit=1)[0].strip()

    @property
    def structured_block_count(self) -> int:
        return len(self.json_ld) + len(self.product_scripts) + len(self.embedded_json)


def parse_html(html: str) -> ParsedPage:
    """Parse a supplier page and extract all structured data sources."""
    soup = BeautifulSoup(html, "lxml")

    title_tag = soup.find("title")
    return ParsedPage(
        json_ld=_extract_json_ld(soup),
        product_scripts=_extract_product_scripts(html),
        embedded_json=_extract_embedded_json(soup),
        og_tags=_extract_og_tags(soup),
        meta_tags=_extract_meta_tags(soup),
        title=title_tag.get_text(strip=True) if title_tag else "",
        size_options=_extract_size_options(soup),
        price=_extract_price(soup),
    )


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _extract_json_ld(soup: BeautifulSoup) -> list[dict]:
    """Extract all JSON-LD blocks from <script type="application/ld+json"> tags."""
    results: list[dict] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string
        if not text:
            continue
        try:
            data = json.loads(text)
            # Flatten arrays: some sites wrap JSON-LD in [...]
            if isinstance(data, list):
                results.extend(d for d in data if isinstance(d, dict))
            elif isinstance(data, dict):
                results.append(data)
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping malformed JSON-LD block")
    return results


# ---------------------------------------------------------------------------
# Inline JS product assignments
# ---------------------------------------------------------------------------


def _extract_product_scripts(html: str, limit: int = 5) -> list[str]:
    """Extract `var product = {...}` style assignments as raw text.

    Kept as text rather than parsed: these are often JS object literals
    (unquoted keys, trailing commas) that json.loads rejects but the
    extraction model reads fine.
    """
    names = "|".join(_PRODUCT_VAR_NAMES)
    pattern = re.compile(rf"(?:var|const|let)\s+(?:{names})\s*=\s*")
    blocks: list[str] = []
    for match in pattern.finditer(html):
        body = _brace_match(html, match.end())
        if body:
            blocks.append(html[match.start() : match.end()] + body)
        if len(blocks) >= limit:
            break
    return blocks


# ---------------------------------------------------------------------------
# Embedded JSON state objects
# ---------------------------------------------------------------------------


def _extract_embedded_json(soup: BeautifulSoup) -> dict[str, Any]:
    """Extract embedded JSON from script tags and window global assignments."""
    results: dict[str, Any] = {}

    # Pattern 1: <script type="application/json"|"text/json" id="...">
    for tag in soup.find_all("script"):
        tag_type = (tag.get("type") or "").lower()
        tag_id = tag.get("id")
        if tag_type in ("application/json", "text/json") and tag_id:
            text = tag.string
            if not text:
                continue
            try:
                results[tag_id] = json.loads(text)
            except (json.JSONDecodeError, TypeError):
                logger.debug(f"Skipping malformed JSON in script#{tag_id}")

    # Pattern 2: window.__VARIABLE__ = {...} assignments
    _extract_window_globals(soup, results)
    return results


def _extract_window_globals(soup: BeautifulSoup, results: dict[str, Any]) -> None:
    """Extract window.__X__ = {...} assignments from inline script tags."""
    pattern = re.compile(r"window\.(__[A-Z][A-Z0-9_]*__)\s*=\s*")

    for tag in soup.find_all("script"):
        if tag.get("src") or tag.get("type") in ("application/json", "text/json", "application/ld+json"):
            continue
        text = tag.string
        if not text:
            continue

        for match in pattern.finditer(text):
            var_name = match.group(1)
            json_str = _brace_match(text, match.end())
            if not json_str:
                continue
            try:
                results[var_name] = json.loads(json_str)
            except (json.JSONDecodeError, TypeError):
                logger.debug(f"Skipping malformed JSON for {var_name}")


def _brace_match(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array from text starting at position start.

    Leading whitespace is skipped. Handles nested braces/brackets and string
    literals with escaped quotes.
    """
    while start < len(text) and text[start] in " \t\n\r":
        start += 1
    if start >= len(text) or text[start] not in ("{", "["):
        return None

    depth = 0
    in_string = False
    escape_next = False
    i = start

    while i < len(text):
        c = text[i]

        if escape_next:
            escape_next = False
            i += 1
            continue

        if c == "\\" and in_string:
            escape_next = True
            i += 1
            continue

        if c == '"':
            in_string = not in_string
            i += 1
            continue

        if in_string:
            i += 1
            continue

        if c in ("{", "["):
            depth += 1
        elif c in ("}", "]"):
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

        i += 1

    return None


# ---------------------------------------------------------------------------
# Meta tags
# ---------------------------------------------------------------------------


def _extract_og_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract Open Graph and product meta tags. Handles both property= and name= attributes."""
    tags: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        prop = meta.get("property", "") or meta.get("name", "")
        if not isinstance(prop, str):
            continue
        content = meta.get("content", "")
        if not content:
            continue
        if prop.startswith("og:"):
            tags[prop[3:]] = content
        elif prop.startswith("product:"):
            key = prop[8:]
            if key not in tags:
                tags[key] = content
    return tags


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    tags: dict[str, str] = {}
    for name in ("description", "keywords", "title"):
        meta = soup.find("meta", attrs={"name": name})
        if meta and meta.get("content"):
            tags[name] = meta["content"]
    return tags


# ---------------------------------------------------------------------------
# Size options and price
# ---------------------------------------------------------------------------


def canonical_size(label: str) -> str | None:
    """Map a size label onto the canonical vocabulary, or None."""
    key = re.sub(r"\s+", " ", label).strip().upper()
    key = _SIZE_ALIASES.get(key, key)
    return key if key in SIZE_VOCABULARY else None


def _extract_size_options(soup: BeautifulSoup) -> list[str]:
    """Collect size labels from <option>s and BigCommerce option labels."""
    found: set[str] = set()
    candidates = soup.find_all("option")
    candidates += soup.select("[data-product-attribute-value]")
    candidates += soup.select("label.form-option span.form-option-variant")
    for el in candidates:
        size = canonical_size(el.get_text(" ", strip=True))
        if size:
            found.add(size)
    return [s for s in SIZE_VOCABULARY if s in found]


_PRICE_PATTERN = re.compile(r"\$\s?(\d{1,4}(?:\.\d{2})?)")


def _extract_price(soup: BeautifulSoup) -> Decimal | None:
    """First price: product meta tag, then a [data-product-price] element, then any $N.NN."""
    meta = soup.find("meta", attrs={"property": "product:price:amount"})
    if meta and meta.get("content"):
        try:
            return Decimal(meta["content"])
        except InvalidOperation:
            pass

    for el in soup.select("[data-product-price-without-tax], [data-product-price], .price--withoutTax, .price"):
        match = _PRICE_PATTERN.search(el.get_text(" ", strip=True))
        if match:
            return Decimal(match.group(1))

    body = soup.find("body")
    if body:
        match = _PRICE_PATTERN.search(body.get_text(" ", strip=True))
        if match:
            return Decimal(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Model input
# ---------------------------------------------------------------------------

_STYLE_BLOCK = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_WHITESPACE = re.compile(r"\s+")


def clean_html(html: str, char_budget: int) -> str:
    """Strip style/script blocks, collapse whitespace, truncate to the budget."""
    html = _STYLE_BLOCK.sub("", html)
    html = _SCRIPT_BLOCK.sub("", html)
    return _WHITESPACE.sub(" ", html).strip()[:char_budget]


def structured_hints(parsed: ParsedPage) -> str:
    """Render structured data blocks as labelled text sections for the model."""
    parts: list[str] = []
    for block in parsed.json_ld:
        parts.append("=== JSON-LD Data ===\n" + json.dumps(block, ensure_ascii=False))
    for script in parsed.product_scripts:
        parts.append("=== Product JavaScript ===\n" + script)
    for name, data in parsed.embedded_json.items():
        parts.append(f"=== Embedded JSON ({name}) ===\n" + json.dumps(data, ensure_ascii=False)[:20_000])
    return "\n\n".join(parts)

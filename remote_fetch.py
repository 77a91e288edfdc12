"""
Remote-fetch strategy: the AI provider retrieves the page on its side.

Useful when the supplier serves JS-rendered pages or blocks direct
requests. The provider gets the URL plus a strict extraction contract and
answers with text containing one JSON object.
"""

import logging

import taxonomy
from ai import RemoteFetcher, find_json_object
from models import GARMENT_CATEGORIES, ExtractedProduct, Outcome, ProductRecord, StrategyResult
from suppliers import ImportContext
from validator import merge_records

logger = logging.getLogger(__name__)

_CONTRACT = """Extract this garment product as a single JSON object with these fields:

- name (required): product name including the style number
- brand (required): manufacturer brand
- description: plain-text product description
- category: one of {categories}
- available_colors: EVERY color the product is offered in
- size_range: every size offered, smallest to largest
- base_cost: lowest single-piece price as a number
- thumbnail_url: main product image URL
- color_images: {{"Color Name": "front image URL"}} for each color
- color_back_images: {{"Color Name": "back image URL"}} for each color that has one

Garment blanks usually come in many colors: expect 50-80 or more.
List ALL of them. Do NOT truncate, summarize or sample the color list,
and do not stop after the first few swatches.
Each color should map to its own image; never reuse one URL for every color.
Respond with the JSON object only."""

_PATTERN_HINT = """
Image filenames on this site follow the pattern
STYLE_PRODUCT_NAME_COLOR_NAME_VIEW__ID.jpg (for example
5001_STAPLE_TEE_FOG_BLUE_BACK__124.jpg): read the color from the filename,
and treat *_BACK files as back images. Skip SIDE, TURN, DETAIL and MODEL shots."""


def build_instruction(ctx: ImportContext) -> str:
    instruction = f"Fetch {ctx.url}\n\n" + _CONTRACT.format(categories=", ".join(GARMENT_CATEGORIES))
    if ctx.profile.pattern_mining:
        instruction += "\n" + _PATTERN_HINT
    return instruction


def parse_response(text: str) -> ExtractedProduct | None:
    """First JSON object in the response as an ExtractedProduct, or None."""
    data = find_json_object(text or "")
    if data is None:
        return None
    return ExtractedProduct.model_validate(data)


class RemoteFetchStrategy:
    name = "remote_fetch"

    def __init__(self, fetcher: RemoteFetcher):
        self.fetcher = fetcher

    async def run(self, ctx: ImportContext, record: ProductRecord) -> StrategyResult:
        logger.info(f"  Remote fetch: {ctx.url}")
        text = await self.fetcher(ctx.url, build_instruction(ctx))

        extracted = parse_response(text)
        if extracted is None:
            return StrategyResult(record, Outcome.SOFT_FAILURE, error="No JSON object in remote fetch response")

        found = extracted.to_record()
        found.category = taxonomy.categorize(found.category, [found.name, found.description])
        found.supplier_source = ctx.profile.key
        merged = merge_records(record, found)

        missing = extracted.missing_required()
        if missing:
            return StrategyResult(
                merged, Outcome.SOFT_FAILURE, error=f"Remote fetch response missing {', '.join(missing)}"
            )

        logger.info(f"  Remote fetch: {len(found.colors)} colors, {found.unique_image_count()} unique images")

        if not merged.colors:
            return StrategyResult(merged, Outcome.SOFT_FAILURE, error="Remote fetch returned no colors")
        return StrategyResult(merged, Outcome.SUCCESS)

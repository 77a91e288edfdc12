"""
Result validation and merging.

merge_records() folds a later stage's findings into the accumulated record
without overwriting what an earlier (higher-priority) stage confirmed.
finalize() turns the accumulated record into the canonical one: it dedupes
colors, enforces that every image key is a listed color, fills the
thumbnail, raises ValidationFailure for missing required fields and
returns data-quality warnings for the caller to review.
"""

import logging
import re

from errors import ValidationFailure
from models import DataWarning, ProductRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "brand")


def _color_key(color: str) -> str:
    return re.sub(r"\s+", " ", color).strip().lower()


def merge_records(base: ProductRecord, update: ProductRecord) -> ProductRecord:
    """Return a copy of ``base`` augmented with ``update``.

    Scalars are filled only where ``base`` is empty; colors and sizes are
    unioned in discovery order; image mappings are first-writer-wins.
    """
    merged = base.model_copy(deep=True)
    for name in ("name", "brand", "description", "category", "thumbnail_url", "supplier_source", "style_id"):
        if not getattr(merged, name) and getattr(update, name):
            setattr(merged, name, getattr(update, name))
    if merged.base_cost is None and update.base_cost is not None:
        merged.base_cost = update.base_cost

    for color in update.colors:
        merged.add_color(color)
    for size in update.sizes:
        merged.add_size(size)
    for color, url in update.color_images.items():
        merged.color_images.setdefault(color, url)
    for color, url in update.color_back_images.items():
        merged.color_back_images.setdefault(color, url)
    return merged


def missing_fields(record: ProductRecord) -> list[str]:
    return [f for f in REQUIRED_FIELDS if not getattr(record, f).strip()]


def dedupe_colors(record: ProductRecord) -> ProductRecord:
    """Collapse colors equal up to case/whitespace; keep the first spelling.

    Image keys are re-keyed onto the kept spelling and image keys missing
    from the color list are appended to it.
    """
    canonical: dict[str, str] = {}
    colors: list[str] = []

    def keep(color: str) -> str | None:
        key = _color_key(color)
        if not key:
            return None
        if key not in canonical:
            canonical[key] = re.sub(r"\s+", " ", color).strip()
            colors.append(canonical[key])
        return canonical[key]

    for color in record.colors:
        keep(color)

    front: dict[str, str] = {}
    back: dict[str, str] = {}
    for source, target in ((record.color_images, front), (record.color_back_images, back)):
        for color, url in source.items():
            name = keep(color)
            if name:
                target.setdefault(name, url)

    return record.model_copy(update={"colors": colors, "color_images": front, "color_back_images": back})


def detect_duplicate_images(record: ProductRecord) -> DataWarning | None:
    """Warn when several colors all point at one image URL."""
    urls = list(record.color_images.values())
    if len(urls) > 1 and len(set(urls)) == 1:
        logger.warning(f"All {len(urls)} colors are mapped to the same image URL: {urls[0]}")
        return DataWarning(
            code="duplicate-image",
            message=f"All {len(urls)} colors share one image ({urls[0]}); unique color images were not found",
        )
    return None


def detect_low_color_count(record: ProductRecord, expected_min_colors: int | None) -> DataWarning | None:
    if expected_min_colors and len(record.colors) < expected_min_colors:
        logger.warning(f"Only {len(record.colors)} colors found, expected at least {expected_min_colors}")
        return DataWarning(
            code="low-color-count",
            message=(
                f"Only {len(record.colors)} colors found; this supplier usually carries "
                f"{expected_min_colors}+. The page structure may have changed."
            ),
        )
    return None


def finalize(record: ProductRecord, expected_min_colors: int | None = None) -> tuple[ProductRecord, list[DataWarning]]:
    """Validate and canonicalize the accumulated record.

    Raises ValidationFailure naming the missing fields.
    """
    missing = missing_fields(record)
    record = dedupe_colors(record)
    if not record.colors:
        missing.append("colors")
    if missing:
        raise ValidationFailure(missing)

    if not record.thumbnail_url:
        first = next((record.color_images[c] for c in record.colors if c in record.color_images), None)
        if first is None:
            first = next((record.color_back_images[c] for c in record.colors if c in record.color_back_images), None)
        record.thumbnail_url = first

    warnings = [
        w
        for w in (detect_duplicate_images(record), detect_low_color_count(record, expected_min_colors))
        if w is not None
    ]
    return record, warnings

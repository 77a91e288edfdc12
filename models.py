import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Garment categories understood by the downstream catalog
GARMENT_CATEGORIES = [
    "T-Shirt",
    "Long Sleeve",
    "Tank Top",
    "Hoodie",
    "Sweatshirt",
    "Polo",
    "Shirt",
    "Outerwear",
    "Bottoms",
    "Headwear",
    "Bags",
    "Other",
]
VALID_CATEGORIES = set(GARMENT_CATEGORIES)

_PRICE_RE = re.compile(r"\d+(?:[.,]\d+)?")


def coerce_decimal(v: Any) -> Decimal | None:
    """Accept 5.2, "5.20", "$5.20" or "5,20"; anything else becomes None."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, Decimal):
        return v
    if isinstance(v, (int, float)):
        return Decimal(str(v))
    if isinstance(v, str):
        match = _PRICE_RE.search(v)
        if not match:
            return None
        try:
            return Decimal(match.group(0).replace(",", "."))
        except InvalidOperation:
            return None
    return None


def _string_map(v: Any) -> dict[str, str]:
    """Keep only non-empty string->string pairs from an untrusted mapping."""
    if not isinstance(v, dict):
        return {}
    out: dict[str, str] = {}
    for key, val in v.items():
        if isinstance(key, str) and isinstance(val, str) and key.strip() and val.strip():
            out[key.strip()] = val.strip()
    return out


def _string_list(v: Any) -> list[str]:
    if not isinstance(v, list):
        return []
    return [s.strip() for s in v if isinstance(s, str) and s.strip()]


class Outcome(str, Enum):
    SUCCESS = "success"
    SOFT_FAILURE = "soft_failure"
    RATE_LIMITED = "rate_limited"


class ImportStrategy(str, Enum):
    AUTO = "auto"
    BROWSER = "browser"
    STANDARD = "standard"


class ProductRecord(BaseModel):
    """Catalog record assembled progressively by the strategy chain.

    ``colors`` and ``sizes`` behave as ordered sets: insertion order is
    discovery order. Image mappings are keyed by color name.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=False)

    name: str = ""
    brand: str = ""
    description: str = ""
    category: str = ""
    colors: list[str] = Field(default_factory=list, alias="available_colors")
    sizes: list[str] = Field(default_factory=list, alias="size_range")
    base_cost: Decimal | None = None
    thumbnail_url: str | None = None
    color_images: dict[str, str] = Field(default_factory=dict)
    color_back_images: dict[str, str] = Field(default_factory=dict)
    supplier_source: str | None = None
    style_id: str | None = None

    @field_validator("base_cost", mode="before")
    @classmethod
    def coerce_base_cost(cls, v: Any) -> Decimal | None:
        return coerce_decimal(v)

    @field_serializer("base_cost")
    def serialize_base_cost(self, v: Decimal | None) -> float | None:
        return float(v) if v is not None else None

    def add_color(self, color: str) -> None:
        if color and color not in self.colors:
            self.colors.append(color)

    def add_size(self, size: str) -> None:
        if size and size not in self.sizes:
            self.sizes.append(size)

    def unique_image_count(self) -> int:
        return len(set(self.color_images.values()))

    def to_catalog(self) -> dict:
        """JSON shape handed to the catalog store."""
        return self.model_dump(mode="json", by_alias=True)


class ExtractedProduct(BaseModel):
    """Tagged parse of a JSON object returned by an AI collaborator.

    Every field is optional and coerced defensively; presence of name and
    brand is checked by the caller, never assumed.
    """

    name: str | None = None
    brand: str | None = None
    description: str | None = None
    category: str | None = None
    available_colors: list[str] = []
    size_range: list[str] = []
    thumbnail_url: str | None = None
    base_cost: Decimal | None = None
    color_images: dict[str, str] = {}
    color_back_images: dict[str, str] = {}

    @field_validator("name", "brand", "description", "category", "thumbnail_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()

    @field_validator("available_colors", "size_range", mode="before")
    @classmethod
    def clean_lists(cls, v: Any) -> list[str]:
        return _string_list(v)

    @field_validator("color_images", "color_back_images", mode="before")
    @classmethod
    def clean_maps(cls, v: Any) -> dict[str, str]:
        return _string_map(v)

    @field_validator("base_cost", mode="before")
    @classmethod
    def coerce_base_cost(cls, v: Any) -> Decimal | None:
        return coerce_decimal(v)

    def missing_required(self) -> list[str]:
        return [f for f in ("name", "brand") if not getattr(self, f)]

    def to_record(self) -> ProductRecord:
        return ProductRecord(
            name=self.name or "",
            brand=self.brand or "",
            description=self.description or "",
            category=self.category or "",
            colors=list(dict.fromkeys(self.available_colors)),
            sizes=list(dict.fromkeys(self.size_range)),
            base_cost=self.base_cost,
            thumbnail_url=self.thumbnail_url,
            color_images=dict(self.color_images),
            color_back_images=dict(self.color_back_images),
        )


class DataWarning(BaseModel):
    """Data-quality signal attached to a successful import."""

    code: str  # "duplicate-image" | "low-color-count"
    message: str


class ImportRequest(BaseModel):
    url: str
    strategy: ImportStrategy = ImportStrategy.AUTO


class ImportErrorBody(BaseModel):
    error: str
    retry_after: int | None = None
    missing: list[str] | None = None


@dataclass
class StrategyResult:
    """What a strategy hands back to the orchestrator."""

    record: ProductRecord
    outcome: Outcome
    error: str | None = None
    retry_after: int | None = None
    notes: list[str] = field(default_factory=list)


@dataclass
class ExtractionAttempt:
    """Typed diagnostics for one strategy run."""

    strategy: str
    outcome: Outcome
    record: ProductRecord | None = None
    colors_found: int = 0
    unique_images_found: int = 0
    error: str | None = None
    elapsed: float = 0.0
    notes: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def summary(self) -> dict:
        return {
            "strategy": self.strategy,
            "outcome": self.outcome.value,
            "colors_found": self.colors_found,
            "unique_images_found": self.unique_images_found,
            "error": self.error,
            "elapsed": round(self.elapsed, 3),
            "notes": list(self.notes),
        }


@dataclass
class ImportResult:
    record: ProductRecord
    warnings: list[DataWarning] = field(default_factory=list)
    attempts: list[ExtractionAttempt] = field(default_factory=list)

    def to_response(self) -> dict:
        body = self.record.to_catalog()
        body["warnings"] = [w.model_dump() for w in self.warnings]
        body["attempts"] = [a.summary() for a in self.attempts]
        return body

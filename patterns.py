"""
Deterministic color-image miner for supplier CDN asset URLs.

Suppliers on CDN naming conventions embed the style code, product name,
color and camera view in every asset filename, e.g.

    .../5001_STAPLE_TEE_FOG_BLUE_THUMB__123.jpg   -> "Fog Blue", front
    .../5001_STAPLE_TEE_FOG_BLUE_BACK__124.jpg    -> "Fog Blue", back

Mining is pure string/regex work over the raw markup: no network, no LLM.
Conventions are pluggable (one AssetConvention per CDN scheme) so adding a
supplier never touches the mining loop.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class DescriptorKind(str, Enum):
    COLOR = "color"
    FRONT = "front"
    BACK = "back"
    EXCLUDED = "excluded"
    SIZE_MARKER = "size_marker"


@dataclass
class ColorImageMapping:
    """Front/back image URL per normalized color. First writer wins."""

    front: dict[str, str] = field(default_factory=dict)
    back: dict[str, str] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)

    def add(self, color: str, url: str, back: bool = False) -> bool:
        target = self.back if back else self.front
        if color in target:
            return False
        target[color] = url
        if color not in self.order:
            self.order.append(color)
        return True

    @property
    def colors(self) -> list[str]:
        return list(self.order)

    def both_sides(self) -> list[str]:
        return [c for c in self.order if c in self.front and c in self.back]

    def unique_front_images(self) -> int:
        return len(set(self.front.values()))

    def __len__(self) -> int:
        return len(self.order)


@dataclass
class AssetName:
    """A CDN asset filename split into its parts."""

    url: str
    code: str
    body: list[str]  # tokens between the style code and the view descriptor
    view: DescriptorKind


class AssetConvention:
    """Per-supplier rules for locating and reading CDN asset filenames.

    Subclasses provide the URL pattern (with a ``stem`` group for the
    filename tokens) and the resolution upgrade; keyword vocabularies are
    plain attributes so a SupplierProfile can override them.
    """

    name = "generic"
    asset_pattern: re.Pattern = re.compile(r"(?!)")

    size_markers: frozenset[str] = frozenset({"THUMB", "THUMBNAIL"})
    front_keywords: frozenset[str] = frozenset({"FRONT", "MAIN"})
    back_keywords: frozenset[str] = frozenset({"BACK", "REAR"})
    excluded_keywords: frozenset[str] = frozenset(
        {"SIDE", "TURN", "DETAIL", "LOOSE", "MODEL", "LIFESTYLE", "FLAT", "SWATCH", "CLOSEUP", "GROUP"}
    )
    # Product-name words that end the style prefix ("5001_STAPLE_TEE_...")
    garment_tokens: frozenset[str] = frozenset(
        {
            "TEE", "TSHIRT", "SHIRT", "TANK", "SINGLET", "HOOD", "HOODIE", "CREW", "POLO",
            "SWEATER", "SWEATSHIRT", "JACKET", "PANT", "PANTS", "SHORT", "SHORTS", "TRACK",
            "CAP", "BEANIE", "BAG", "TOTE", "DRESS", "SKIRT", "LONGSLEEVE", "VEST", "ZIP",
        }
    )

    def __init__(
        self,
        excluded_keywords: frozenset[str] | None = None,
        garment_tokens: frozenset[str] | None = None,
    ):
        if excluded_keywords is not None:
            self.excluded_keywords = frozenset(k.upper() for k in excluded_keywords)
        if garment_tokens is not None:
            self.garment_tokens = frozenset(t.upper() for t in garment_tokens)

    def find_assets(self, html: str) -> list[tuple[str, str]]:
        """Return (upgraded_url, filename_stem) pairs in document order, deduplicated."""
        # JSON blobs in the page escape forward slashes
        text = html.replace("\\/", "/")
        seen: set[str] = set()
        assets: list[tuple[str, str]] = []
        for match in self.asset_pattern.finditer(text):
            url = self.upgrade_resolution(match.group(0))
            if url in seen:
                continue
            seen.add(url)
            assets.append((url, match.group("stem")))
        return assets

    def upgrade_resolution(self, url: str) -> str:
        return url

    def classify(self, token: str) -> DescriptorKind:
        token = token.upper()
        if token in self.back_keywords:
            return DescriptorKind.BACK
        if token in self.front_keywords:
            return DescriptorKind.FRONT
        if token in self.excluded_keywords:
            return DescriptorKind.EXCLUDED
        if token in self.size_markers:
            return DescriptorKind.SIZE_MARKER
        return DescriptorKind.COLOR

    def describe(self, url: str, stem: str) -> AssetName | None:
        """Split a filename stem into style code, body tokens and view."""
        tokens = [t for t in stem.upper().split("_") if t]
        if len(tokens) < 2 or not tokens[0][0].isdigit():
            return None
        code, rest = tokens[0], tokens[1:]

        # Trailing sequence numbers ("..._BACK_2") carry no meaning
        while len(rest) > 1 and rest[-1].isdigit():
            rest.pop()
        while rest and self.classify(rest[-1]) is DescriptorKind.SIZE_MARKER:
            rest.pop()
        if not rest:
            return None

        view = DescriptorKind.FRONT
        kind = self.classify(rest[-1])
        if kind is DescriptorKind.EXCLUDED:
            return None
        if kind in (DescriptorKind.FRONT, DescriptorKind.BACK):
            view = kind
            rest.pop()
            if rest and self.classify(rest[-1]) is DescriptorKind.EXCLUDED:
                return None
        return AssetName(url=url, code=code, body=rest, view=view)


class BigCommerceConvention(AssetConvention):
    """BigCommerce stencil CDN (cdn11.bigcommerce.com/.../images/stencil/WxH/...).

    Filenames look like ``5001_STAPLE_TEE_SAND_THUMB__12345.1700000000.jpg``.
    """

    name = "bigcommerce"
    asset_pattern = re.compile(
        r"https?://cdn\d*\.bigcommerce\.com/[^\s\"'<>()]*?/"
        r"(?P<stem>\d[0-9A-Za-z]*_[0-9A-Za-z_]+?)__\d+(?:\.\d+)*\.(?:jpe?g|png|webp)"
        r"(?:\?[^\s\"'<>()]*)?",
        re.IGNORECASE,
    )
    max_size = "1280x1280"

    _STENCIL_SIZE = re.compile(r"/images/stencil/(?:\d+x\d+|original|\{:size\}|%7B:size%7D)/", re.IGNORECASE)
    _DIMENSION_SUFFIX = re.compile(r"\.\d{2,4}\.\d{2,4}\.(jpe?g|png|webp)", re.IGNORECASE)

    def upgrade_resolution(self, url: str) -> str:
        w, h = self.max_size.split("x")
        url = self._STENCIL_SIZE.sub(f"/images/stencil/{self.max_size}/", url)
        return self._DIMENSION_SUFFIX.sub(rf".{w}.{h}.\g<1>", url)


# =====================================================================
# Mining
# =====================================================================


def normalize_color(token: str) -> str:
    """FOG_BLUE -> Fog Blue."""
    words = re.split(r"[_\s]+", token.strip())
    return " ".join(w[:1].upper() + w[1:].lower() for w in words if w)


def classify_descriptor(descriptor: str, convention: AssetConvention | None = None) -> DescriptorKind:
    """Classify a filename descriptor: a single view/size keyword, or a color name."""
    convention = convention or AssetConvention()
    tokens = [t for t in descriptor.upper().split("_") if t]
    if len(tokens) == 1:
        return convention.classify(tokens[0])
    return DescriptorKind.COLOR


def _common_prefix(bodies: list[list[str]]) -> int:
    if not bodies:
        return 0
    n = min(len(b) for b in bodies)
    for i in range(n):
        if any(b[i] != bodies[0][i] for b in bodies[1:]):
            return i
    return n


def _hint_tokens(product_name: str | None) -> set[str]:
    if not product_name:
        return set()
    return {t for t in re.findall(r"[A-Z0-9]+", product_name.upper()) if not t.isdigit()}


def _color_tokens(
    asset: AssetName,
    convention: AssetConvention,
    hint: set[str],
    group_prefix: int | None,
) -> list[str]:
    """Recover the color tokens by stripping the product-name prefix from the body."""
    body = asset.body
    # Name-only assets ("5001_STAPLE_TEE_BACK") carry no color
    if body[-1] in convention.garment_tokens:
        return []

    if hint:
        i = 0
        while i < len(body) and body[i] in hint:
            i += 1
        if i == len(body):
            return []
        if i:
            return body[i:]

    last_garment = max((i for i, t in enumerate(body[:-1]) if t in convention.garment_tokens), default=-1)
    if last_garment >= 0:
        return body[last_garment + 1 :]

    if group_prefix is not None and group_prefix < len(body):
        return body[group_prefix:]
    return []


def mine_color_images(
    html: str,
    convention: AssetConvention,
    product_name: str | None = None,
    style_code: str | None = None,
) -> ColorImageMapping:
    """Mine color -> front/back image URLs from raw markup.

    ``product_name`` (e.g. the page title) helps separate name tokens from
    color tokens; without it the convention's garment vocabulary and the
    common prefix shared by a style's assets are used.

    When ``style_code`` is known, assets of other styles on the page
    (related-product carousels and the like) are ignored.
    """
    mapping = ColorImageMapping()
    assets = [a for a in (convention.describe(url, stem) for url, stem in convention.find_assets(html)) if a]
    if style_code:
        assets = [a for a in assets if a.code == style_code.upper()]
    if not assets:
        return mapping

    bodies_by_code: dict[str, list[list[str]]] = {}
    for a in assets:
        group = bodies_by_code.setdefault(a.code, [])
        if a.body not in group:
            group.append(a.body)
    # A shared prefix is only meaningful when it differs across assets
    group_prefix = {code: _common_prefix(bodies) if len(bodies) > 1 else None for code, bodies in bodies_by_code.items()}

    hint = _hint_tokens(product_name)
    for a in assets:
        tokens = _color_tokens(a, convention, hint, group_prefix[a.code])
        if not tokens:
            continue
        descriptor = "_".join(tokens)
        if classify_descriptor(descriptor, convention) is not DescriptorKind.COLOR:
            continue
        mapping.add(normalize_color(descriptor), a.url, back=a.view is DescriptorKind.BACK)

    logger.debug(
        f"Mined {len(mapping)} colors ({len(mapping.front)} front, {len(mapping.back)} back) "
        f"from {len(assets)} {convention.name} assets"
    )
    return mapping

"""
Supplier classification: which supplier owns a URL and which strategies apply.

Classification is pure: it looks only at the URL and the static profile
table, so unsupported URLs fail before any network call.
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from errors import UnsupportedSupplier
from patterns import AssetConvention, BigCommerceConvention
from settings import SupplierAPIConfig, settings


@dataclass(frozen=True)
class StyleRef:
    """Supplier-internal style reference parsed from a product URL."""

    style_id: str
    brand_slug: str | None = None

    @property
    def brand_hint(self) -> str | None:
        """URL brand slug as words: "comfort-colors" -> "COMFORT COLORS"."""
        if not self.brand_slug:
            return None
        return re.sub(r"[-_]+", " ", self.brand_slug).upper().strip()


@dataclass(frozen=True)
class StyleRule:
    """URL path pattern with ``style`` and optional ``brand`` groups."""

    pattern: re.Pattern

    def parse(self, url: str) -> StyleRef | None:
        match = self.pattern.search(urlsplit(url).path)
        if not match:
            return None
        groups = match.groupdict()
        return StyleRef(style_id=groups["style"].upper(), brand_slug=groups.get("brand"))


# /p/<brand>/<style>, e.g. /p/bella/3001cvc
CATALOG_PATH_RULE = StyleRule(re.compile(r"/p/(?P<brand>[^/]+)/(?P<style>[^/?#]+)"))
# /staple-tee-5001 or /products/5001-staple-tee
STYLE_NUMBER_RULE = StyleRule(re.compile(r"(?:^|[/-])(?P<style>\d{4,5}[a-z]?)(?=[/-]|$)", re.IGNORECASE))


@dataclass(frozen=True)
class SupplierProfile:
    key: str
    name: str
    domains: tuple[str, ...]
    api_configured: bool = False
    style_rule: StyleRule | None = None
    asset_convention: AssetConvention | None = field(default=None, compare=False)
    brand: str | None = None
    # Catalog size of a typical style; below this a low-color warning is raised
    expected_min_colors: int | None = None
    # Mined colors on both sides needed to skip the extraction model
    fast_path_min_colors: int = 60

    @property
    def pattern_mining(self) -> bool:
        return self.asset_convention is not None

    def matches(self, host: str) -> bool:
        host = host.lower()
        return any(host == d or host.endswith("." + d) for d in self.domains)

    def parse_style(self, url: str) -> StyleRef | None:
        return self.style_rule.parse(url) if self.style_rule else None


def default_profiles(api_config: SupplierAPIConfig | None = None) -> list[SupplierProfile]:
    api_config = api_config or settings.supplier_api
    return [
        SupplierProfile(
            key="ssactivewear",
            name="S&S Activewear",
            domains=("ssactivewear.com",),
            api_configured=api_config.configured,
            style_rule=CATALOG_PATH_RULE,
        ),
        SupplierProfile(
            key="ascolour",
            name="AS Colour",
            domains=("ascolour.com", "ascolour.com.au", "ascolour.co.nz"),
            style_rule=STYLE_NUMBER_RULE,
            asset_convention=BigCommerceConvention(),
            brand="AS Colour",
            expected_min_colors=40,
            fast_path_min_colors=60,
        ),
    ]


class SupplierClassifier:
    def __init__(self, profiles: list[SupplierProfile] | None = None):
        self.profiles = profiles if profiles is not None else default_profiles()

    @property
    def supported_domains(self) -> list[str]:
        return [p.domains[0] for p in self.profiles]

    def get(self, key: str) -> SupplierProfile | None:
        return next((p for p in self.profiles if p.key == key), None)

    def classify(self, url: str) -> SupplierProfile:
        """Return the profile owning ``url`` or raise UnsupportedSupplier."""
        if not isinstance(url, str) or not url.strip():
            raise UnsupportedSupplier(str(url), reason="URL is required")
        parts = urlsplit(url.strip())
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise UnsupportedSupplier(url, reason="Invalid URL format")
        for profile in self.profiles:
            if profile.matches(parts.hostname):
                return profile
        raise UnsupportedSupplier(url, supported=self.supported_domains)


@dataclass(frozen=True)
class ImportContext:
    """A classified import request handed to every strategy."""

    url: str
    profile: SupplierProfile

    @property
    def style(self) -> StyleRef | None:
        return self.profile.parse_style(self.url)

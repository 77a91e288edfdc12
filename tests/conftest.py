import httpx
import pytest

from models import Outcome, ProductRecord, StrategyResult
from patterns import BigCommerceConvention
from settings import SupplierAPIConfig
from suppliers import CATALOG_PATH_RULE, STYLE_NUMBER_RULE, SupplierClassifier, SupplierProfile

CDN = "https://cdn11.bigcommerce.com/s-abc123/images/stencil/500x659/products/101/202"


def asset(stem: str, n: int) -> str:
    return f"{CDN}/{stem}__{n}.1700000000.jpg"


def product_page(assets: list[str], title: str = "Staple Tee | AS Colour", extra: str = "") -> str:
    imgs = "\n".join(f'<img src="{u}">' for u in assets)
    return f"""<html><head>
<title>{title}</title>
<meta property="product:price:amount" content="5.20">
<style>.x {{ color: red }}</style>
</head><body>
<h1>Staple Tee</h1>
<select name="size"><option>Choose</option><option>S</option><option>M</option><option>XXL</option></select>
{imgs}
{extra}
</body></html>"""


@pytest.fixture
def ascolour_profile() -> SupplierProfile:
    return SupplierProfile(
        key="ascolour",
        name="AS Colour",
        domains=("ascolour.com",),
        style_rule=STYLE_NUMBER_RULE,
        asset_convention=BigCommerceConvention(),
        brand="AS Colour",
        expected_min_colors=None,
        fast_path_min_colors=2,
    )


@pytest.fixture
def api_profile() -> SupplierProfile:
    return SupplierProfile(
        key="supplierx",
        name="Supplier X",
        domains=("supplier-x.example",),
        api_configured=True,
        style_rule=CATALOG_PATH_RULE,
    )


@pytest.fixture
def classifier(api_profile, ascolour_profile) -> SupplierClassifier:
    return SupplierClassifier([api_profile, ascolour_profile])


@pytest.fixture
def api_config() -> SupplierAPIConfig:
    return SupplierAPIConfig(
        api_key="secret",
        account_number="12345",
        base_url="https://api.supplier-x.example/v2",
        cdn_base="https://cdn.supplier-x.example",
        inventory_cache_ttl=300.0,
    )


def mock_client(handler, base_url: str = "") -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


class FakeStrategy:
    """Strategy double returning a canned result (or raising) and counting calls."""

    def __init__(self, name: str, outcome: Outcome = Outcome.SOFT_FAILURE, record: ProductRecord | None = None,
                 raises: Exception | None = None, error: str | None = None):
        self.name = name
        self.outcome = outcome
        self.record = record
        self.raises = raises
        self.error = error
        self.calls = 0
        self.seen: list[ProductRecord] = []

    async def run(self, ctx, record):
        self.calls += 1
        self.seen.append(record)
        if self.raises is not None:
            raise self.raises
        return StrategyResult(self.record if self.record is not None else record, self.outcome, error=self.error)


def full_record(**overrides) -> ProductRecord:
    data = dict(
        name="Staple Tee - 5001",
        brand="AS Colour",
        colors=["White", "Black"],
        sizes=["S", "M"],
        base_cost="5.20",
        color_images={"White": "https://img/white.jpg", "Black": "https://img/black.jpg"},
    )
    data.update(overrides)
    return ProductRecord(**data)

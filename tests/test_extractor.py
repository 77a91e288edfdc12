import asyncio
import json
from decimal import Decimal

import httpx
import pytest
from conftest import asset, mock_client, product_page

from errors import RateLimited, StrategyError
from extractor import MarkupExtractionStrategy, fetch_html
from models import Outcome, ProductRecord
from suppliers import ImportContext

URL = "https://www.ascolour.com/staple-tee-5001"

TWO_COLORS = [
    asset("5001_STAPLE_TEE_FOG_BLUE_THUMB", 123),
    asset("5001_STAPLE_TEE_FOG_BLUE_BACK", 124),
    asset("5001_STAPLE_TEE_BLACK_THUMB", 125),
    asset("5001_STAPLE_TEE_BLACK_BACK", 126),
    asset("5001_STAPLE_TEE_BLACK_SIDE", 127),
]


class FakeModel:
    def __init__(self, text: str = ""):
        self.text = text
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.text


def page_client(html: str, status: int = 200, headers: dict | None = None) -> httpx.AsyncClient:
    return mock_client(lambda request: httpx.Response(status, text=html, headers=headers or {}))


def run(strategy: MarkupExtractionStrategy, ctx: ImportContext, record: ProductRecord | None = None):
    return asyncio.run(strategy.run(ctx, record or ProductRecord()))


class TestFastPath:
    def test_mined_coverage_skips_the_model(self, ascolour_profile):
        """Front+back coverage at the threshold builds the record without a model call."""
        model = FakeModel()
        strategy = MarkupExtractionStrategy(model, client=page_client(product_page(TWO_COLORS)))
        result = run(strategy, ImportContext(URL, ascolour_profile))

        record = result.record
        assert result.outcome is Outcome.SUCCESS
        assert model.prompts == []
        assert strategy.last_metrics.fast_path
        assert record.colors == ["Fog Blue", "Black"]
        assert set(record.colors) == set(record.color_images) | set(record.color_back_images)
        assert record.name == "Staple Tee"
        assert record.brand == "AS Colour"
        assert record.sizes == ["S", "M", "2XL"]
        assert record.base_cost == Decimal("5.20")
        assert record.category == "T-Shirt"
        assert record.style_id == "5001"

    def test_below_threshold_calls_the_model(self, ascolour_profile):
        model = FakeModel(json.dumps({"name": "Staple Tee", "brand": "AS Colour", "available_colors": ["White"]}))
        html = product_page(TWO_COLORS[:3])
        strategy = MarkupExtractionStrategy(model, client=page_client(html))
        result = run(strategy, ImportContext(URL, ascolour_profile))
        assert result.outcome is Outcome.SUCCESS
        assert len(model.prompts) == 1
        assert not strategy.last_metrics.fast_path


class TestModelPath:
    def test_prompt_carries_hints_and_cleaned_html(self, ascolour_profile):
        model = FakeModel("{}")
        extra = '<script type="application/ld+json">{"@type": "Product", "name": "Staple Tee"}</script>'
        strategy = MarkupExtractionStrategy(model, client=page_client(product_page(TWO_COLORS[:1], extra=extra)))
        run(strategy, ImportContext(URL, ascolour_profile))

        prompt = model.prompts[0]
        assert "=== JSON-LD Data ===" in prompt
        assert '"Fog Blue"' in prompt
        assert "Never truncate" in prompt
        assert "<style>" not in prompt

    def test_mined_images_win_over_model_images(self, ascolour_profile):
        model = FakeModel(
            "```json\n"
            + json.dumps(
                {
                    "name": "Staple Tee",
                    "brand": "AS Colour",
                    "category": "Tees",
                    "available_colors": ["Fog Blue", "White"],
                    "color_images": {"Fog Blue": "https://model/fog.jpg", "White": "https://model/white.jpg"},
                }
            )
            + "\n```"
        )
        strategy = MarkupExtractionStrategy(model, client=page_client(product_page(TWO_COLORS[:1])))
        result = run(strategy, ImportContext(URL, ascolour_profile))

        record = result.record
        assert result.outcome is Outcome.SUCCESS
        assert "FOG_BLUE_THUMB" in record.color_images["Fog Blue"]
        assert record.color_images["White"] == "https://model/white.jpg"
        assert record.colors == ["Fog Blue", "White"]
        assert record.sizes == ["S", "M", "2XL"]
        assert record.category == "T-Shirt"

    def test_missing_brand_keeps_partial_fields(self, ascolour_profile):
        """A model answer without brand is soft but its name, colors and mined images carry forward."""
        model = FakeModel(json.dumps({"name": "Staple Tee", "available_colors": ["White"]}))
        strategy = MarkupExtractionStrategy(model, client=page_client(product_page(TWO_COLORS[:1])))
        result = run(strategy, ImportContext(URL, ascolour_profile))
        assert result.outcome is Outcome.SOFT_FAILURE
        assert "brand" in result.error
        assert result.record.name == "Staple Tee"
        assert result.record.brand == ""
        assert result.record.colors == ["White", "Fog Blue"]
        assert "FOG_BLUE_THUMB" in result.record.color_images["Fog Blue"]

    def test_other_styles_on_the_page_are_not_mined(self, ascolour_profile):
        """Related-product thumbnails of another style never become colors of this one."""
        related = [asset("5050_HEAVY_TEE_ORANGE_THUMB", 3), asset("5050_HEAVY_TEE_ORANGE_BACK", 4)]
        strategy = MarkupExtractionStrategy(FakeModel(), client=page_client(product_page(TWO_COLORS + related)))
        result = run(strategy, ImportContext(URL, ascolour_profile))
        assert result.outcome is Outcome.SUCCESS
        assert result.record.colors == ["Fog Blue", "Black"]
        assert "Orange" not in result.record.color_images

    def test_no_json_is_soft_failure(self, ascolour_profile):
        strategy = MarkupExtractionStrategy(FakeModel("I cannot help"), client=page_client(product_page([])))
        assert run(strategy, ImportContext(URL, ascolour_profile)).outcome is Outcome.SOFT_FAILURE

    def test_non_mined_supplier_skips_mining(self, api_profile):
        model = FakeModel(json.dumps({"name": "Tee", "brand": "Brandy", "available_colors": ["Red"]}))
        strategy = MarkupExtractionStrategy(model, client=page_client(product_page(TWO_COLORS)))
        result = run(strategy, ImportContext("https://supplier-x.example/p/brandy/5001", api_profile))
        assert result.record.colors == ["Red"]
        assert strategy.last_metrics.mined_colors == 0


class TestFetch:
    def test_non_2xx_is_soft(self):
        with pytest.raises(StrategyError):
            asyncio.run(fetch_html(URL, page_client("", status=403)))

    def test_429_is_terminal(self):
        with pytest.raises(RateLimited) as exc:
            asyncio.run(fetch_html(URL, page_client("", status=429, headers={"retry-after": "30"})))
        assert exc.value.retry_after == 30

    def test_sends_browser_headers(self):
        seen: dict[str, str] = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, text="<html></html>")

        asyncio.run(fetch_html(URL, mock_client(handler)))
        assert "Mozilla" in seen["user-agent"]
        assert "text/html" in seen["accept"]

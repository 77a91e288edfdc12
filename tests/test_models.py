from decimal import Decimal

from conftest import full_record

from errors import RateLimited, UnsupportedSupplier, ValidationFailure
from models import DataWarning, ExtractedProduct, ExtractionAttempt, ImportResult, Outcome, ProductRecord


class TestProductRecord:
    def test_base_cost_is_decimal(self):
        assert ProductRecord(base_cost="$5.20").base_cost == Decimal("5.20")
        assert ProductRecord(base_cost=5.2).base_cost == Decimal("5.2")
        assert ProductRecord(base_cost="call us").base_cost is None

    def test_catalog_shape_uses_aliases(self):
        body = full_record(supplier_source="ascolour", style_id="5001").to_catalog()
        assert body["available_colors"] == ["White", "Black"]
        assert body["size_range"] == ["S", "M"]
        assert body["base_cost"] == 5.2
        assert body["supplier_source"] == "ascolour"
        assert "colors" not in body

    def test_accepts_aliases_on_input(self):
        record = ProductRecord(available_colors=["Sand"], size_range=["L"])
        assert record.colors == ["Sand"]
        assert record.sizes == ["L"]

    def test_ordered_set_helpers(self):
        record = ProductRecord()
        for c in ["White", "Black", "White"]:
            record.add_color(c)
        assert record.colors == ["White", "Black"]


class TestExtractedProduct:
    def test_untrusted_payload_is_coerced(self):
        extracted = ExtractedProduct.model_validate(
            {
                "name": "  Staple Tee ",
                "brand": "",
                "available_colors": ["White", 3, "", None, "Black"],
                "size_range": "S-XL",
                "color_images": {"White": "u1", "Black": None, "": "u3"},
                "base_cost": "$5.20",
            }
        )
        assert extracted.name == "Staple Tee"
        assert extracted.brand is None
        assert extracted.available_colors == ["White", "Black"]
        assert extracted.size_range == []
        assert extracted.color_images == {"White": "u1"}
        assert extracted.missing_required() == ["brand"]

    def test_to_record_dedupes_lists(self):
        record = ExtractedProduct(name="A", brand="B", available_colors=["Red", "Red"]).to_record()
        assert record.colors == ["Red"]
        assert record.base_cost is None


class TestImportResult:
    def test_response_carries_warnings_and_attempts(self):
        result = ImportResult(
            record=full_record(),
            warnings=[DataWarning(code="low-color-count", message="Only 2 colors")],
            attempts=[ExtractionAttempt("official_api", Outcome.SUCCESS, colors_found=2, unique_images_found=2)],
        )
        body = result.to_response()
        assert body["warnings"] == [{"code": "low-color-count", "message": "Only 2 colors"}]
        assert body["attempts"][0]["strategy"] == "official_api"
        assert body["attempts"][0]["outcome"] == "success"


class TestErrors:
    def test_validation_failure_message(self):
        err = ValidationFailure(["name", "brand"])
        assert err.message == "Failed to extract required product information: name and brand missing"
        assert err.status_code == 422
        assert err.to_body()["missing"] == ["name", "brand"]

    def test_rate_limited_body(self):
        err = RateLimited("remote fetch", 90)
        assert err.status_code == 429
        assert err.to_body()["retry_after"] == 90

    def test_unsupported_lists_domains(self):
        err = UnsupportedSupplier("https://x.example", supported=["a.com", "b.com"])
        assert err.to_body() == {"error": "Unsupported supplier. Currently supporting: a.com, b.com"}

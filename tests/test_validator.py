import pytest
from conftest import full_record

from errors import ValidationFailure
from models import ProductRecord
from validator import dedupe_colors, finalize, merge_records


class TestFinalize:
    def test_shared_image_is_a_warning_not_a_failure(self):
        """Three colors on one URL still validate, with a duplicate-image warning."""
        record = full_record(
            colors=["White", "Black", "Navy"],
            color_images={"White": "u1", "Black": "u1", "Navy": "u1"},
        )
        final, warnings = finalize(record)
        assert final.colors == ["White", "Black", "Navy"]
        assert [w.code for w in warnings] == ["duplicate-image"]

    def test_missing_name_and_brand(self):
        with pytest.raises(ValidationFailure) as exc:
            finalize(ProductRecord(colors=["White"]))
        assert exc.value.missing == ["name", "brand"]
        assert "name and brand missing" in exc.value.message

    def test_missing_colors(self):
        with pytest.raises(ValidationFailure) as exc:
            finalize(full_record(colors=[], color_images={}))
        assert exc.value.missing == ["colors"]

    def test_image_keys_become_colors(self):
        record = full_record(colors=["White"], color_images={"White": "u1", "Sand": "u2"})
        final, _ = finalize(record)
        assert final.colors == ["White", "Sand"]
        assert set(final.color_images) <= set(final.colors)

    def test_thumbnail_falls_back_to_first_color_image(self):
        final, _ = finalize(full_record(thumbnail_url=None))
        assert final.thumbnail_url == "https://img/white.jpg"

    def test_thumbnail_from_back_images(self):
        record = full_record(color_images={}, color_back_images={"Black": "b1"})
        final, _ = finalize(record)
        assert final.thumbnail_url == "b1"

    def test_low_color_count(self):
        _, warnings = finalize(full_record(), expected_min_colors=40)
        assert [w.code for w in warnings] == ["low-color-count"]

    def test_clean_record_has_no_warnings(self):
        _, warnings = finalize(full_record(), expected_min_colors=2)
        assert warnings == []


class TestDedupe:
    def test_case_and_whitespace_insensitive(self):
        record = ProductRecord(
            colors=["Fog Blue", "fog  blue", "Black", " BLACK "],
            color_images={"fog blue": "u1", "Black": "u2"},
        )
        deduped = dedupe_colors(record)
        assert deduped.colors == ["Fog Blue", "Black"]
        assert deduped.color_images == {"Fog Blue": "u1", "Black": "u2"}


class TestMerge:
    def test_earlier_stage_wins_for_scalars_and_images(self):
        base = ProductRecord(name="Staple Tee", color_images={"White": "api"})
        update = full_record(name="Other", color_images={"White": "page", "Black": "page-black"})
        merged = merge_records(base, update)
        assert merged.name == "Staple Tee"
        assert merged.brand == "AS Colour"
        assert merged.color_images == {"White": "api", "Black": "page-black"}
        assert merged.colors == ["White", "Black"]

    def test_base_is_not_mutated(self):
        base = ProductRecord(colors=["White"])
        merge_records(base, ProductRecord(colors=["Black"]))
        assert base.colors == ["White"]

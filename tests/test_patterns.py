from conftest import CDN, asset

from patterns import (
    AssetConvention,
    BigCommerceConvention,
    DescriptorKind,
    classify_descriptor,
    mine_color_images,
    normalize_color,
)

FOG_FRONT = asset("5001_STAPLE_TEE_FOG_BLUE_THUMB", 123)
FOG_BACK = asset("5001_STAPLE_TEE_FOG_BLUE_BACK", 124)


class TestDescriptors:
    def test_color_name_is_not_a_view_keyword(self):
        """A multi-word color is a color, never a view."""
        assert classify_descriptor("FOG_BLUE") is DescriptorKind.COLOR

    def test_view_keywords(self):
        assert classify_descriptor("BACK") is DescriptorKind.BACK
        assert classify_descriptor("FRONT") is DescriptorKind.FRONT
        assert classify_descriptor("THUMB") is DescriptorKind.SIZE_MARKER
        assert classify_descriptor("side") is DescriptorKind.EXCLUDED

    def test_single_word_color(self):
        assert classify_descriptor("WHITE") is DescriptorKind.COLOR

    def test_normalize_color(self):
        assert normalize_color("FOG_BLUE") == "Fog Blue"
        assert normalize_color("white") == "White"

    def test_custom_exclusions(self):
        convention = AssetConvention(excluded_keywords=frozenset({"hero"}))
        assert convention.classify("HERO") is DescriptorKind.EXCLUDED
        assert convention.classify("SIDE") is DescriptorKind.COLOR


class TestResolutionUpgrade:
    def test_stencil_size_is_upgraded(self):
        url = BigCommerceConvention().upgrade_resolution(FOG_FRONT)
        assert "/images/stencil/1280x1280/" in url
        assert "500x659" not in url

    def test_dimension_suffix_is_upgraded(self):
        url = "https://cdn11.bigcommerce.com/s-1/products/1/5001_STAPLE_TEE_SAND__9.500.659.jpg"
        assert BigCommerceConvention().upgrade_resolution(url).endswith("__9.1280.1280.jpg")

    def test_mined_urls_are_upgraded(self):
        mapping = mine_color_images(f'<img src="{FOG_FRONT}">', BigCommerceConvention())
        assert mapping.front["Fog Blue"].startswith(CDN.replace("500x659", "1280x1280"))


class TestMining:
    def test_front_and_back_for_one_color(self):
        """THUMB and BACK assets of one color land on both sides of the mapping."""
        html = f'<img src="{FOG_FRONT}"><img src="{FOG_BACK}">'
        mapping = mine_color_images(html, BigCommerceConvention())
        assert mapping.colors == ["Fog Blue"]
        assert "FOG_BLUE_THUMB" in mapping.front["Fog Blue"]
        assert "FOG_BLUE_BACK" in mapping.back["Fog Blue"]
        assert mapping.both_sides() == ["Fog Blue"]

    def test_excluded_views_are_skipped(self):
        html = " ".join(
            [
                asset("5001_STAPLE_TEE_WHITE_SIDE", 1),
                asset("5001_STAPLE_TEE_WHITE_TURN_BACK", 2),
                asset("5001_STAPLE_TEE_WHITE_DETAIL", 3),
                asset("5001_STAPLE_TEE_BLACK_THUMB", 4),
            ]
        )
        mapping = mine_color_images(html, BigCommerceConvention())
        assert mapping.colors == ["Black"]
        assert mapping.back == {}

    def test_name_only_assets_carry_no_color(self):
        html = asset("5001_STAPLE_TEE_BACK", 1) + " " + asset("5001_STAPLE_TEE_NATURAL_THUMB", 2)
        mapping = mine_color_images(html, BigCommerceConvention())
        assert mapping.colors == ["Natural"]

    def test_product_name_hint_strips_prefix(self):
        html = asset("5050_BOX_SAND_THUMB", 1) + " " + asset("5050_BOX_SAND_BACK", 2)
        mapping = mine_color_images(html, BigCommerceConvention(), product_name="Box Crew")
        assert mapping.both_sides() == ["Sand"]

    def test_escaped_json_urls(self):
        escaped = FOG_FRONT.replace("/", "\\/")
        mapping = mine_color_images(f'{{"img": "{escaped}"}}', BigCommerceConvention())
        assert "Fog Blue" in mapping.front

    def test_first_url_per_color_wins(self):
        html = asset("5001_STAPLE_TEE_WHITE_THUMB", 1) + " " + asset("5001_STAPLE_TEE_WHITE_MAIN", 2)
        mapping = mine_color_images(html, BigCommerceConvention())
        assert "__1." in mapping.front["White"]

    def test_mining_is_deterministic(self):
        html = " ".join(
            asset(f"5001_STAPLE_TEE_{c}_{v}", i)
            for i, (c, v) in enumerate([("WHITE", "THUMB"), ("WHITE", "BACK"), ("DARK_GREEN", "THUMB")])
        )
        first = mine_color_images(html, BigCommerceConvention())
        second = mine_color_images(html, BigCommerceConvention())
        assert first == second
        assert first.colors == ["White", "Dark Green"]

    def test_style_code_filters_other_products(self):
        """Assets of a second style on the same page are skipped when the style code is known."""
        html = " ".join(
            [
                FOG_FRONT,
                FOG_BACK,
                asset("5050_HEAVY_TEE_ORANGE_THUMB", 3),
                asset("5050_HEAVY_TEE_ORANGE_BACK", 4),
            ]
        )
        unfiltered = mine_color_images(html, BigCommerceConvention(), product_name="Staple Tee")
        assert "Orange" in unfiltered.colors

        mapping = mine_color_images(html, BigCommerceConvention(), product_name="Staple Tee", style_code="5001")
        assert mapping.colors == ["Fog Blue"]
        assert mapping.both_sides() == ["Fog Blue"]

    def test_no_assets(self):
        mapping = mine_color_images("<html><img src='/logo.png'></html>", BigCommerceConvention())
        assert len(mapping) == 0


"""
Diagnostic: run parser + pattern mining only (no network, no model).
Reports structured data, mined colors and fast-path eligibility for each
saved supplier page.
"""

import sys
from pathlib import Path

from parser import parse_html
from patterns import mine_color_images
from suppliers import SupplierClassifier, SupplierProfile

DATA_DIR = Path(__file__).parent / "data"


def diagnose_html(html: str, profile: SupplierProfile, name: str = "") -> dict:
    parsed = parse_html(html)
    report = {
        "file": name,
        "supplier": profile.key,
        "title": parsed.product_title,
        "json_ld_blocks": len(parsed.json_ld),
        "product_scripts": len(parsed.product_scripts),
        "embedded_json_sources": list(parsed.embedded_json.keys()),
        "sizes": parsed.size_options,
        "price": str(parsed.price) if parsed.price is not None else None,
        "mined_colors": 0,
        "both_sides": 0,
        "unique_front_images": 0,
        "sample_colors": [],
        "fast_path": False,
    }
    if not profile.pattern_mining:
        return report

    mapping = mine_color_images(html, profile.asset_convention, parsed.product_title)
    both = mapping.both_sides()
    report.update(
        mined_colors=len(mapping),
        both_sides=len(both),
        unique_front_images=mapping.unique_front_images(),
        sample_colors=mapping.colors[:5],
        fast_path=len(both) >= profile.fast_path_min_colors,
    )
    return report


def main(supplier: str = "ascolour"):
    profile = SupplierClassifier().get(supplier)
    if profile is None:
        print(f"Unknown supplier: {supplier}")
        return
    html_files = sorted(DATA_DIR.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files as {profile.name} (parser + pattern mining only, NO network)\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_html(filepath.read_text(encoding="utf-8"), profile, filepath.name)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}: {report['title'] or '(no title)'}")
        print(f"{'=' * 70}")
        print(
            f"  Parser: {report['json_ld_blocks']} JSON-LD | {report['product_scripts']} product scripts | "
            f"{len(report['embedded_json_sources'])} embedded JSON"
        )
        print(f"  Sizes: {report['sizes'] or '-'}   Price: {report['price'] or '-'}")
        print(
            f"  Mined: {report['mined_colors']} colors, {report['both_sides']} front+back, "
            f"{report['unique_front_images']} unique front images"
        )
        if report["sample_colors"]:
            print(f"  Sample: {report['sample_colors']}")
        print(f"  Fast path: {'YES' if report['fast_path'] else 'no'} (threshold {profile.fast_path_min_colors})")
        print()

    # Summary table
    print(f"\n{'=' * 70}")
    print("SUMMARY")
    print(f"{'=' * 70}")
    print(f"{'File':<30} {'Colors':>7} {'Both':>6} {'Fast':>6}")
    print("-" * 52)
    for r in all_reports:
        print(f"{r['file'][:30]:<30} {r['mined_colors']:>7} {r['both_sides']:>6} {'yes' if r['fast_path'] else '-':>6}")


if __name__ == "__main__":
    main(*sys.argv[1:2])

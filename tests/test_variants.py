import pytest

from conftest import make_variant
from variants import (
    DuplicateVariantError,
    available_colors,
    available_sizes,
    ensure_unique_pairs,
    generate_variants,
    resolve,
    stock_for_selection,
)

GRID = [
    make_variant("v1", color="Red", size="M", stock=3),
    make_variant("v2", color="Red", size="L", stock=0),
    make_variant("v3", color="Blue", size="M", stock=0),
    make_variant("v4", color="Blue", size="L", stock=0),
]


def test_selecting_a_color_limits_sizes():
    assert available_sizes(GRID, "Red") == ["M"]
    assert available_sizes(GRID, "Blue") == []


def test_selecting_a_size_limits_colors():
    assert available_colors(GRID, "M") == ["Red"]
    assert available_colors(GRID, "L") == []


def test_without_selection_only_stocked_options_show():
    assert available_colors(GRID) == ["Red"]
    assert available_sizes(GRID) == ["M"]


def test_stock_lookup():
    assert stock_for_selection(GRID, "Red", "M") == 3
    assert stock_for_selection(GRID, "Red", "L") == 0
    assert stock_for_selection(GRID, None, None) is None
    # Incomplete pair on a two-axis product has no exact match
    assert stock_for_selection(GRID, "Red", None) == 0


def test_changing_color_keeps_incompatible_size():
    result = resolve(GRID, color="Blue", size="M")
    assert result.stock == 0
    assert result.variant.id == "v3"
    assert result.available_sizes == []


def test_single_axis_products():
    colors_only = [make_variant("c1", color="Preto", stock=2), make_variant("c2", color="Branco", stock=0)]
    assert available_colors(colors_only) == ["Preto"]
    assert stock_for_selection(colors_only, "Preto", None) == 2

    sizes_only = [make_variant("s1", size="38", stock=0), make_variant("s2", size="40", stock=5)]
    assert available_sizes(sizes_only) == ["40"]
    assert resolve(sizes_only, size="40").variant.id == "s2"


def test_resolve_lists_every_option():
    result = resolve(GRID, color="Red")
    assert result.colors == ["Red", "Blue"]
    assert result.sizes == ["M", "L"]
    assert result.available_sizes == ["M"]
    assert result.stock == 0


def test_generate_grid():
    grid = generate_variants(["Branco", "Preto"], ["P", "M"])
    assert [(v.color, v.size, v.sku) for v in grid] == [
        ("Branco", "P", "BRANCO-P"),
        ("Branco", "M", "BRANCO-M"),
        ("Preto", "P", "PRETO-P"),
        ("Preto", "M", "PRETO-M"),
    ]
    assert all(v.stock == 0 for v in grid)
    assert [v.sku for v in generate_variants(["Rosa"], [])] == ["ROSA"]
    assert [v.size for v in generate_variants([], ["38", "40"])] == ["38", "40"]
    assert generate_variants([], []) == []


def test_duplicate_pairs_rejected():
    ensure_unique_pairs(GRID)
    with pytest.raises(DuplicateVariantError):
        ensure_unique_pairs(GRID + [make_variant("v9", color="Red", size="M", stock=1)])

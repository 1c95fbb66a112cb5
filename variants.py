"""
Variant resolution for the shopper's color/size picker, plus the helpers the
admin side uses to build a product's variant grid.
"""
from typing import Iterable, List, Optional

from schemas import ProductVariant, VariantAvailability


class DuplicateVariantError(ValueError):
    pass


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def all_colors(variants: List[ProductVariant]) -> List[str]:
    return _unique(v.color for v in variants)


def all_sizes(variants: List[ProductVariant]) -> List[str]:
    return _unique(v.size for v in variants)


def available_colors(variants: List[ProductVariant], selected_size: Optional[str] = None) -> List[str]:
    """Colors with stock left, restricted to the selected size when there is one."""
    return [
        color for color in all_colors(variants)
        if any(
            v.color == color and v.stock > 0 and (selected_size is None or v.size == selected_size)
            for v in variants
        )
    ]


def available_sizes(variants: List[ProductVariant], selected_color: Optional[str] = None) -> List[str]:
    """Sizes with stock left, restricted to the selected color when there is one."""
    return [
        size for size in all_sizes(variants)
        if any(
            v.size == size and v.stock > 0 and (selected_color is None or v.color == selected_color)
            for v in variants
        )
    ]


def find_variant(variants: List[ProductVariant], color: Optional[str], size: Optional[str]) -> Optional[ProductVariant]:
    # None only matches None
    return next((v for v in variants if v.color == color and v.size == size), None)


def stock_for_selection(variants: List[ProductVariant], color: Optional[str], size: Optional[str]) -> Optional[int]:
    """Stock of the exact (color, size) pair.

    Returns None while nothing is selected, and 0 when the pair does not exist.
    A previously chosen size is never cleared when the color changes, so an
    incompatible pair simply resolves to 0.
    """
    if color is None and size is None:
        return None
    variant = find_variant(variants, color, size)
    return variant.stock if variant else 0


def resolve(variants: List[ProductVariant], color: Optional[str] = None,
            size: Optional[str] = None) -> VariantAvailability:
    return VariantAvailability(
        colors=all_colors(variants),
        sizes=all_sizes(variants),
        available_colors=available_colors(variants, size),
        available_sizes=available_sizes(variants, color),
        stock=stock_for_selection(variants, color, size),
        variant=find_variant(variants, color, size),
    )


# ---------- Admin ----------

def generate_variants(colors: List[str], sizes: List[str]) -> List[ProductVariant]:
    """Empty-stock grid of every color x size combination."""
    if colors and sizes:
        return [
            ProductVariant(color=color, size=size, stock=0, sku=f"{color.upper()}-{size}")
            for color in colors
            for size in sizes
        ]
    if colors:
        return [ProductVariant(color=color, stock=0, sku=color.upper()) for color in colors]
    if sizes:
        return [ProductVariant(size=size, stock=0, sku=size) for size in sizes]
    return []


def ensure_unique_pairs(variants: List[ProductVariant]) -> None:
    seen = set()
    for v in variants:
        pair = (v.size, v.color)
        if pair in seen:
            raise DuplicateVariantError(
                f"Duplicate variant for size={v.size or '-'} color={v.color or '-'}"
            )
        seen.add(pair)

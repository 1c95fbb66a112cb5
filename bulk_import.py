"""
Bulk product import from a CSV table.

Columns are read by position, in this order:
name, price, description, category, stock, size_type, sizes, colors

`sizes` and `colors` are comma-separated lists and must be quoted when they
hold more than one value. Rows with fewer fields than the header are skipped.
"""
import csv
import logging
from typing import List

from pydantic import ValidationError

from schemas import Product

logger = logging.getLogger(__name__)

COLUMNS = ["name", "price", "description", "category", "stock", "size_type", "sizes", "colors"]
SIZE_TYPES = {"letter", "number", "none"}
DEFAULT_CATEGORY = "Outros"

TEMPLATE = """name,price,description,category,stock,size_type,sizes,colors
Camiseta Básica,39.90,Camiseta 100% algodão,Roupas Masculinas,50,letter,"P,M,G,GG","Branco,Preto,Azul"
Vestido Floral,89.90,Vestido estampado,Roupas Femininas,30,letter,"P,M,G",Rosa
Tênis Esportivo,199.90,Tênis para corrida,Calçados,20,number,"38,39,40,41,42","Preto,Branco"
Perfume Importado,150.00,Fragrância suave,Cosméticos,100,none,,
"""


class ImportFormatError(ValueError):
    pass


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.strip().strip('"').split(",") if part.strip()]


def _to_float(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        return 0.0


def _to_int(value: str) -> int:
    try:
        return int(float(value))
    except ValueError:
        return 0


def parse_product_table(text: str, store_id: str) -> List[Product]:
    """Parse the CSV body into products attributed to `store_id`."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ImportFormatError("The file must contain a header row and at least one data row")

    reader = csv.reader(lines, skipinitialspace=True)
    header = [h.strip() for h in next(reader)]
    if len(header) < len(COLUMNS):
        raise ImportFormatError(f"Expected columns: {', '.join(COLUMNS)}")

    products = []
    for row_number, values in enumerate(reader, start=2):
        if len(values) < len(header):
            logger.info("Skipping incomplete row %d", row_number)
            continue

        name, price, description, category, stock, size_type, sizes, colors = [
            v.strip() for v in values[:len(COLUMNS)]
        ]
        size_type = size_type or "none"
        if size_type not in SIZE_TYPES:
            raise ImportFormatError(f"Row {row_number}: size_type must be one of letter, number, none")

        try:
            product = Product(
                store_id=store_id,
                name=name,
                price=_to_float(price),
                description=description or None,
                category=category or DEFAULT_CATEGORY,
                stock=_to_int(stock),
                size_type=size_type,
                sizes=_split_list(sizes),
                colors=_split_list(colors),
            )
        except ValidationError as e:
            raise ImportFormatError(f"Row {row_number}: {e.errors()[0]['msg']}")
        products.append(product)

    logger.info("Parsed %d product(s) for store %s", len(products), store_id)
    return products

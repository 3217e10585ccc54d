from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

# module storefront.inventory.models
def to_minor_units(amount: Any) -> int:
    """
    Convertit un montant « majeur » (ex: 12.5 KES, str|float|int|None) en unités mineures.
    Retourne 0 si parsing impossible.
    """
    try:
        value = Decimal(str(amount if amount is not None else 0))
    except (InvalidOperation, ValueError):
        return 0
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class VariantSnapshot:
    variant_id: str
    product_id: str
    unit_price: int
    stock: int
    is_active: bool = True
    name: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> Optional["VariantSnapshot"]:
        """
        Ligne product_variants (+ jointure products) → snapshot.
        Prix unitaire = prix produit + ajustement variante, en unités mineures.
        """
        if not row or not row.get("id"):
            return None
        product = row.get("products") or {}
        unit_price = to_minor_units(product.get("price")) + to_minor_units(row.get("price_adjustment"))
        return cls(
            variant_id=str(row["id"]),
            product_id=str(row.get("product_id") or product.get("id") or ""),
            unit_price=unit_price,
            stock=max(int(row.get("stock") or 0), 0),
            is_active=bool(row.get("is_active", True)) and bool(product.get("is_active", True)),
            name=str(product.get("name") or ""),
        )

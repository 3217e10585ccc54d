"""
Modèle panier pur (pas de DB, pas de session).

- Une ligne par variante (fusion à l'ajout), quantité toujours >= 1.
- La quantité est plafonnée au stock connu au moment de la fusion; le plafonnement
  n'est pas une erreur mais un résultat « stock-limited » que la vue relaie.
- Prix en unités mineures (centimes), entiers.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from storefront.errors import InvalidQuantity, NotFound


@dataclass
class CartLineItem:
    variant_id: str
    product_id: str
    unit_price: int
    quantity: int
    available_stock: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLineItem":
        return cls(
            variant_id=str(data.get("variant_id") or ""),
            product_id=str(data.get("product_id") or ""),
            unit_price=int(data.get("unit_price") or 0),
            quantity=int(data.get("quantity") or 0),
            available_stock=int(data.get("available_stock") or 0),
        )


@dataclass
class CartChange:
    """Résultat d'une mutation: la ligne finale (None si retirée) et le plafonnement éventuel."""
    variant_id: str
    requested: int
    item: Optional[CartLineItem]
    stock_limited: bool = False

    @property
    def quantity(self) -> int:
        return self.item.quantity if self.item else 0

    @property
    def notice(self) -> Optional[str]:
        if not self.stock_limited:
            return None
        if self.quantity <= 0:
            return "Article en rupture de stock"
        return f"Seulement {self.quantity} disponible(s)"


@dataclass
class CartTotals:
    subtotal: int
    item_count: int


@dataclass
class Cart:
    items: List[CartLineItem] = field(default_factory=list)

    def _find(self, variant_id: str) -> Optional[CartLineItem]:
        for item in self.items:
            if item.variant_id == variant_id:
                return item
        return None

    def _drop(self, variant_id: str) -> None:
        self.items = [i for i in self.items if i.variant_id != variant_id]

    def is_empty(self) -> bool:
        return not self.items

    def get(self, variant_id: str) -> Optional[CartLineItem]:
        return self._find(variant_id)

    def add_item(
        self,
        variant_id: str,
        quantity: int,
        unit_price: int,
        available_stock: int,
        product_id: str = "",
    ) -> CartChange:
        """
        Ajoute (ou fusionne) une variante.
        - Présente: quantité existante + quantity, plafonnée à available_stock.
        - Absente: nouvelle ligne avec min(quantity, available_stock).
        - Le prix et le stock de la ligne sont rafraîchis à chaque ajout.
        - Si le plafond retombe à 0 la ligne est retirée (jamais stockée à 0).
        """
        if quantity <= 0:
            raise InvalidQuantity("La quantité doit être positive")
        stock = max(int(available_stock), 0)
        existing = self._find(variant_id)
        wanted = (existing.quantity if existing else 0) + quantity
        final = min(wanted, stock)
        limited = final < wanted

        if final <= 0:
            self._drop(variant_id)
            return CartChange(variant_id, quantity, None, stock_limited=True)

        if existing:
            existing.quantity = final
            existing.unit_price = int(unit_price)
            existing.available_stock = stock
            if product_id:
                existing.product_id = product_id
            item = existing
        else:
            item = CartLineItem(
                variant_id=variant_id,
                product_id=product_id,
                unit_price=int(unit_price),
                quantity=final,
                available_stock=stock,
            )
            self.items.append(item)
        return CartChange(variant_id, quantity, item, stock_limited=limited)

    def update_quantity(self, variant_id: str, quantity: int, available_stock: Optional[int] = None) -> CartChange:
        """
        Fixe la quantité d'une ligne existante.
        - NotFound si la variante n'est pas dans le panier.
        - quantity <= 0: retire la ligne.
        - Sinon plafonne au stock de la ligne (rafraîchi si available_stock est fourni).
        """
        item = self._find(variant_id)
        if item is None:
            raise NotFound(f"Variante {variant_id} absente du panier", variant_id=variant_id)
        if quantity <= 0:
            self._drop(variant_id)
            return CartChange(variant_id, quantity, None)
        if available_stock is not None:
            item.available_stock = max(int(available_stock), 0)
        final = min(quantity, item.available_stock)
        if final <= 0:
            self._drop(variant_id)
            return CartChange(variant_id, quantity, None, stock_limited=True)
        item.quantity = final
        return CartChange(variant_id, quantity, item, stock_limited=final < quantity)

    def remove_item(self, variant_id: str) -> None:
        # Idempotent: retirer une ligne absente ne fait rien
        self._drop(variant_id)

    def clear(self) -> None:
        self.items = []

    def totals(self) -> CartTotals:
        return CartTotals(
            subtotal=sum(i.unit_price * i.quantity for i in self.items),
            item_count=sum(i.quantity for i in self.items),
        )

    def to_list(self) -> List[Dict[str, Any]]:
        return [i.to_dict() for i in self.items]

    @classmethod
    def from_list(cls, rows: Optional[List[Dict[str, Any]]]) -> "Cart":
        """
        Reconstruit un panier depuis la session.
        - Ignore les lignes invalides (variant_id vide, quantity <= 0).
        - Fusionne les doublons éventuels (une ligne par variante), plafonnés au stock connu.
        """
        cart = cls()
        for row in rows or []:
            if not isinstance(row, dict):
                continue
            item = CartLineItem.from_dict(row)
            if not item.variant_id or item.quantity <= 0:
                continue
            existing = cart._find(item.variant_id)
            if existing:
                existing.quantity = min(existing.quantity + item.quantity, existing.available_stock)
            else:
                cart.items.append(item)
        cart.items = [i for i in cart.items if i.quantity > 0]
        return cart

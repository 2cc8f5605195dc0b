"""
Miroir client du panier (invités, UI optimiste), sans aller-retour serveur.

- reduce(state, action): réducteur pur, l'état n'est jamais muté en place
- CartStore: conteneur d'état + persistance du sous-ensemble {items, discount}
- Les valeurs calculées (nombre d'articles, sous-total, remise, total) ne sont jamais stockées
- merge_lines: union des lignes locales et serveur (fusion à la connexion)
"""
import copy
import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from huntkitchen.errors import ValidationError
from huntkitchen.pricing.engine import compute_discount_amount, round2
from huntkitchen.pricing.models import DiscountCode, to_decimal

STORAGE_KEY = "hunt-kitchen-cart"

ADD_ITEM = "ADD_ITEM"
UPDATE_QUANTITY = "UPDATE_QUANTITY"
REMOVE_ITEM = "REMOVE_ITEM"
CLEAR_CART = "CLEAR_CART"
MERGE_CART = "MERGE_CART"
APPLY_DISCOUNT = "APPLY_DISCOUNT"
REMOVE_DISCOUNT = "REMOVE_DISCOUNT"

# Réponse de POST /api/v1/cart/discount (camelCase) -> colonnes discount_codes
DISCOUNT_FIELDS = {
    "discountType": "discount_type",
    "discountValue": "discount_value",
    "minimumOrderAmount": "minimum_order_amount",
    "maximumDiscountAmount": "maximum_discount_amount",
}


def _str_id(value: Any) -> Optional[str]:
    return None if value is None or value == "" else str(value)


def line_key(line: Dict[str, Any]) -> Tuple[str, Optional[str]]:
    return (str(line.get("product_id") or ""), _str_id(line.get("variant_id")))


def merge_lines(primary: List[Dict[str, Any]], secondary: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Union de deux listes de lignes:
    - présentes des deux côtés: quantités additionnées (ordre de `primary` conservé)
    - présentes d'un seul côté: recopiées telles quelles
    """
    merged: List[Dict[str, Any]] = [dict(line) for line in primary]
    index = {line_key(line): i for i, line in enumerate(merged)}
    for line in secondary:
        key = line_key(line)
        if key in index:
            target = merged[index[key]]
            target["quantity"] = int(target.get("quantity") or 0) + int(line.get("quantity") or 0)
        else:
            index[key] = len(merged)
            merged.append(dict(line))
    return merged


def normalize_discount(discount: Dict[str, Any]) -> Dict[str, Any]:
    """Accepte une ligne discount_codes ou le code renvoyé par l'API panier."""
    return {DISCOUNT_FIELDS.get(key, key): value for key, value in discount.items()}


def initial_state() -> Dict[str, Any]:
    return {"items": [], "discount": None}


def _normalize_line(line: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(line)
    out["product_id"] = str(out.get("product_id") or "")
    out["variant_id"] = _str_id(out.get("variant_id"))
    out["quantity"] = int(out.get("quantity") or 0)
    return out


def _subtotal(items: List[Dict[str, Any]]) -> Decimal:
    total = Decimal("0")
    for item in items:
        total += to_decimal(item.get("price")) * int(item.get("quantity") or 0)
    return round2(total)


def reduce(state: Dict[str, Any], action: Dict[str, Any]) -> Dict[str, Any]:
    """Réducteur pur: (état, action) -> nouvel état."""
    kind = action.get("type")
    items = [dict(i) for i in state.get("items") or []]
    discount = copy.deepcopy(state.get("discount"))

    if kind == ADD_ITEM:
        line = _normalize_line(action["item"])
        if line["quantity"] <= 0:
            raise ValidationError("Quantity must be a positive integer")
        key = line_key(line)
        for item in items:
            if line_key(item) == key:
                item["quantity"] = int(item["quantity"]) + line["quantity"]
                break
        else:
            line.setdefault("added_at", action.get("at") or datetime.now(timezone.utc).isoformat())
            items.append(line)
        return {"items": items, "discount": discount}

    if kind == UPDATE_QUANTITY:
        key = (str(action["product_id"]), _str_id(action.get("variant_id")))
        quantity = int(action["quantity"])
        if quantity <= 0:
            items = [i for i in items if line_key(i) != key]
        else:
            for item in items:
                if line_key(item) == key:
                    item["quantity"] = quantity
        return {"items": items, "discount": discount}

    if kind == REMOVE_ITEM:
        key = (str(action["product_id"]), _str_id(action.get("variant_id")))
        return {"items": [i for i in items if line_key(i) != key], "discount": discount}

    if kind == CLEAR_CART:
        return initial_state()

    if kind == MERGE_CART:
        server_lines = [_normalize_line(l) for l in action.get("lines") or []]
        return {"items": merge_lines(server_lines, items), "discount": discount}

    if kind == APPLY_DISCOUNT:
        applied = normalize_discount(action["discount"])
        minimum = to_decimal(applied.get("minimum_order_amount"), None)
        if minimum is not None and _subtotal(items) < minimum:
            raise ValidationError(
                f"Minimum order amount of ${round2(minimum)} required", details={"minimumOrderAmount": float(minimum)}
            )
        applied["applied_at"] = action.get("at") or datetime.now(timezone.utc).isoformat()
        # Un seul code à la fois: le nouveau remplace l'ancien
        return {"items": items, "discount": applied}

    if kind == REMOVE_DISCOUNT:
        return {"items": items, "discount": None}

    raise ValueError(f"Unknown cart action: {kind!r}")


class MemoryStorage:
    """Stockage clé/valeur en mémoire (équivalent localStorage)."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JSONFileStorage:
    """Stockage clé/valeur dans un fichier JSON unique."""

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            return json.load(fh) or {}

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class CartStore:
    """
    Conteneur d'état du panier client.
    Chaque action passe par reduce() puis le sous-ensemble {items, discount} est persisté.
    """

    def __init__(self, storage=None, key: str = STORAGE_KEY, clock: Optional[Callable[[], str]] = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.key = key
        self._clock = clock or (lambda: datetime.now(timezone.utc).isoformat())
        self.state = self._rehydrate()

    def _rehydrate(self) -> Dict[str, Any]:
        raw = self.storage.get_item(self.key)
        if not raw:
            return initial_state()
        try:
            data = json.loads(raw)
        except ValueError:
            return initial_state()
        items = [_normalize_line(i) for i in data.get("items") or [] if isinstance(i, dict)]
        discount = data.get("discount")
        return {"items": items, "discount": normalize_discount(discount) if isinstance(discount, dict) else None}

    def _persist(self) -> None:
        payload = {"items": self.state["items"], "discount": self.state["discount"]}
        self.storage.set_item(self.key, json.dumps(payload, default=str))

    def dispatch(self, action: Dict[str, Any]) -> Dict[str, Any]:
        action = {"at": self._clock(), **action}
        self.state = reduce(self.state, action)
        self._persist()
        return self.state

    # --- actions ---
    def add_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        return self.dispatch({"type": ADD_ITEM, "item": item})

    def update_quantity(self, product_id, quantity: int, variant_id=None) -> Dict[str, Any]:
        return self.dispatch({"type": UPDATE_QUANTITY, "product_id": product_id, "variant_id": variant_id, "quantity": quantity})

    def remove_item(self, product_id, variant_id=None) -> Dict[str, Any]:
        return self.dispatch({"type": REMOVE_ITEM, "product_id": product_id, "variant_id": variant_id})

    def clear_cart(self) -> Dict[str, Any]:
        return self.dispatch({"type": CLEAR_CART})

    def merge_cart(self, server_lines: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self.dispatch({"type": MERGE_CART, "lines": server_lines})

    def apply_discount(self, discount: Dict[str, Any]) -> Dict[str, Any]:
        return self.dispatch({"type": APPLY_DISCOUNT, "discount": discount})

    def remove_discount(self) -> Dict[str, Any]:
        return self.dispatch({"type": REMOVE_DISCOUNT})

    # --- valeurs calculées ---
    @property
    def items(self) -> List[Dict[str, Any]]:
        return self.state["items"]

    @property
    def discount(self) -> Optional[Dict[str, Any]]:
        return self.state["discount"]

    def item_count(self) -> int:
        return sum(int(i.get("quantity") or 0) for i in self.items)

    def subtotal(self) -> Decimal:
        return _subtotal(self.items)

    def discount_amount(self) -> Decimal:
        if not self.discount or not self.items:
            return Decimal("0.00")
        return compute_discount_amount(DiscountCode.from_row(self.discount), self.subtotal())

    def total(self) -> Decimal:
        total = self.subtotal() - self.discount_amount()
        return total if total > 0 else Decimal("0.00")

    def get_item(self, product_id, variant_id=None) -> Optional[Dict[str, Any]]:
        key = (str(product_id), _str_id(variant_id))
        return next((i for i in self.items if line_key(i) == key), None)

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .items import ItemKey, format_item_key


class ViolationCodes:
    NO_ITEMS = "NO_ITEMS"
    ITEM_WITHOUT_COLORS = "ITEM_WITHOUT_COLORS"
    SIZE_NOT_IN_CURVE = "SIZE_NOT_IN_CURVE"
    NO_POSITIVE_QUANTITY = "NO_POSITIVE_QUANTITY"


@dataclass(frozen=True)
class Violation:
    code: str
    message: str
    item_key: Optional[ItemKey] = None
    size: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "item": format_item_key(self.item_key) if self.item_key else None,
            "size": self.size,
        }


def _key_of(item) -> ItemKey:
    return (item.marca, item.tipo_prenda, item.codigo_articulo)


def check_integrity(invoice) -> Optional[Violation]:
    """
    Reglas previas a finalizar, en orden; devuelve la primera que falla:
    1. al menos un ítem
    2. cada ítem con al menos un color
    3. cada talle usado debe estar en la curva del ítem
    4. al menos una cantidad > 0 en toda la factura
    """
    items = list(invoice.items or [])
    if not items:
        return Violation(ViolationCodes.NO_ITEMS, "La factura debe tener al menos un ítem")

    # orden global: todos los ítems sin colores se informan antes que cualquier
    # problema de talles, aunque el ítem con el talle inválido aparezca primero
    for item in items:
        if not item.colores:
            key = _key_of(item)
            return Violation(
                ViolationCodes.ITEM_WITHOUT_COLORS,
                f"El ítem {item.codigo_articulo} debe tener al menos un color",
                item_key=key,
            )

    has_positive = False
    for item in items:
        curva = set(item.curva_talles or [])
        for color in item.colores:
            for talle, cantidad in (color.cantidades_por_talle or {}).items():
                if talle not in curva:
                    return Violation(
                        ViolationCodes.SIZE_NOT_IN_CURVE,
                        f"El talle {talle} no está en la curva del ítem {item.codigo_articulo}",
                        item_key=_key_of(item),
                        size=talle,
                    )
                if cantidad > 0:
                    has_positive = True

    if not has_positive:
        return Violation(
            ViolationCodes.NO_POSITIVE_QUANTITY,
            "La factura debe tener al menos una cantidad > 0",
        )
    return None

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

ItemKey = Tuple[str, str, str]


class DuplicatePolicy(str, enum.Enum):
    """Qué hacer cuando el payload repite un par (ítem, color)."""
    ERROR = "ERROR"
    REPLACE = "REPLACE"
    SUM = "SUM"

    @classmethod
    def parse(cls, value) -> "DuplicatePolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Política de duplicados desconocida: {value!r}") from None


@dataclass
class ColorVariant:
    """Variante de color de un ítem: cantidades por talle."""
    codigo_color: str
    nombre_color: str = ""
    cantidades_por_talle: Dict[str, int] = field(default_factory=dict)

    def copy(self) -> "ColorVariant":
        return ColorVariant(
            codigo_color=self.codigo_color,
            nombre_color=self.nombre_color,
            cantidades_por_talle=dict(self.cantidades_por_talle),
        )


@dataclass
class InvoiceItemData:
    """
    Ítem de factura tal como llega en el payload.
    La identidad de negocio es (marca, tipo_prenda, codigo_articulo).
    """
    marca: str
    tipo_prenda: str
    codigo_articulo: str
    curva_talles: List[str] = field(default_factory=list)
    colores: List[ColorVariant] = field(default_factory=list)
    size_curve_id: Optional[str] = None
    size_curve_snapshot: Optional[Dict[str, Any]] = None

    @property
    def key(self) -> ItemKey:
        return (self.marca, self.tipo_prenda, self.codigo_articulo)

    def copy(self) -> "InvoiceItemData":
        """Copia profunda: cada color con su propio mapa de cantidades."""
        return InvoiceItemData(
            marca=self.marca,
            tipo_prenda=self.tipo_prenda,
            codigo_articulo=self.codigo_articulo,
            curva_talles=list(self.curva_talles),
            colores=[c.copy() for c in self.colores],
            size_curve_id=self.size_curve_id,
            size_curve_snapshot=dict(self.size_curve_snapshot) if self.size_curve_snapshot else None,
        )


def format_item_key(key: ItemKey) -> str:
    return "|".join(key)

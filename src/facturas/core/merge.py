"""
Canonicalización del payload de ítems.

merge_items() agrupa los ítems por identidad de negocio y resuelve los colores
repetidos según la política elegida. Es una función pura: nunca toca la BD ni
modifica los objetos recibidos. Un duplicado con política ERROR no se lanza
como excepción; se devuelve en MergeResult.duplicate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .items import (
    ColorVariant,
    DuplicatePolicy,
    InvoiceItemData,
    ItemKey,
    format_item_key,
)


@dataclass(frozen=True)
class DuplicateItemColor:
    item_key: ItemKey
    codigo_color: str

    @property
    def message(self) -> str:
        return (
            f"Color {self.codigo_color} repetido para el ítem "
            f"{format_item_key(self.item_key)}"
        )


@dataclass(frozen=True)
class MergeResult:
    items: List[InvoiceItemData] = field(default_factory=list)
    duplicate: Optional[DuplicateItemColor] = None

    @property
    def ok(self) -> bool:
        return self.duplicate is None


def _sum_into(target: Dict[str, int], extra: Dict[str, int]) -> None:
    for talle, cantidad in extra.items():
        target[talle] = target.get(talle, 0) + cantidad


def merge_items(
    items: Iterable[InvoiceItemData],
    policy=DuplicatePolicy.ERROR,
) -> MergeResult:
    """
    Devuelve los ítems sin pares (ítem, color) repetidos.

    Orden de salida: ítems en orden de primera aparición; colores de cada ítem
    en orden de primera aparición, seguidos de los agregados por repeticiones.
    """
    policy = DuplicatePolicy.parse(policy)
    merged: Dict[ItemKey, InvoiceItemData] = {}
    # colores vistos por ítem: codigo_color -> variante (la misma instancia que está en merged)
    seen_colors: Dict[ItemKey, Dict[str, ColorVariant]] = {}

    for item in items:
        key = item.key
        if key not in merged:
            clone = item.copy()
            colores, clone.colores = clone.colores, []
            merged[key] = clone
            seen_colors[key] = {}
        else:
            colores = item.colores

        existing = merged[key]
        by_code = seen_colors[key]
        # un color repetido dentro del mismo ítem también pasa por la política
        for color in colores:
            current = by_code.get(color.codigo_color)
            if current is None:
                clone = color.copy()
                by_code[clone.codigo_color] = clone
                existing.colores.append(clone)
                continue

            if policy is DuplicatePolicy.ERROR:
                return MergeResult(duplicate=DuplicateItemColor(key, color.codigo_color))
            if policy is DuplicatePolicy.REPLACE:
                current.cantidades_por_talle = dict(color.cantidades_por_talle)
            else:
                _sum_into(current.cantidades_por_talle, color.cantidades_por_talle)

    return MergeResult(items=list(merged.values()))

"""
Reconciliación de ítems de un borrador contra lo persistido.

plan_reconciliation() es puro: compara por identidad de negocio y decide qué
crear, actualizar y borrar. apply_plan() lo ejecuta con los repositorios dentro
de la transacción del llamador (no hace commit). Las filas emparejadas conservan
su id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from facturas.data.models import InvoiceItem, InvoiceItemColor
from facturas.data.repository import InvoiceItemColorRepository, InvoiceItemRepository

from .items import ColorVariant, InvoiceItemData, ItemKey


@dataclass
class ColorUpdate:
    color_id: int
    target: ColorVariant


@dataclass
class ItemUpdate:
    item_id: int
    target: InvoiceItemData
    color_creates: List[ColorVariant] = field(default_factory=list)
    color_updates: List[ColorUpdate] = field(default_factory=list)
    color_deletes: List[int] = field(default_factory=list)

    @property
    def kept_color_ids(self) -> List[int]:
        return [u.color_id for u in self.color_updates]


@dataclass
class ReconciliationPlan:
    item_creates: List[InvoiceItemData] = field(default_factory=list)
    item_updates: List[ItemUpdate] = field(default_factory=list)
    item_deletes: List[int] = field(default_factory=list)

    @property
    def kept_item_ids(self) -> List[int]:
        return [u.item_id for u in self.item_updates]


def plan_reconciliation(
    target: Iterable[InvoiceItemData],
    persisted: Iterable[InvoiceItem],
) -> ReconciliationPlan:
    """Diff entre los ítems objetivo (ya canonicalizados) y las filas persistidas."""
    persisted = list(persisted)
    by_key: Dict[ItemKey, InvoiceItem] = {p.key: p for p in persisted}
    plan = ReconciliationPlan()
    kept = set()

    for item in target:
        current = by_key.get(item.key)
        if current is None:
            plan.item_creates.append(item)
            continue

        kept.add(current.id)
        # la cabecera se actualiza siempre (idempotente)
        upd = ItemUpdate(item_id=current.id, target=item)
        colors_by_code = {c.codigo_color: c for c in current.colores}
        matched = set()
        for color in item.colores:
            row = colors_by_code.get(color.codigo_color)
            if row is None:
                upd.color_creates.append(color)
            else:
                matched.add(row.id)
                upd.color_updates.append(ColorUpdate(color_id=row.id, target=color))
        upd.color_deletes = [c.id for c in current.colores if c.id not in matched]
        plan.item_updates.append(upd)

    plan.item_deletes = [p.id for p in persisted if p.id not in kept]
    return plan


def _new_color(color: ColorVariant) -> InvoiceItemColor:
    return InvoiceItemColor(
        codigo_color=color.codigo_color,
        nombre_color=color.nombre_color,
        cantidades_por_talle=dict(color.cantidades_por_talle),
    )


def build_item(item: InvoiceItemData, invoice_id: Optional[int] = None) -> InvoiceItem:
    """Fila InvoiceItem nueva (con sus colores) para el registro dado."""
    return InvoiceItem(
        id_factura=invoice_id,
        marca=item.marca,
        tipo_prenda=item.tipo_prenda,
        codigo_articulo=item.codigo_articulo,
        curva_talles=list(item.curva_talles),
        size_curve_id=item.size_curve_id,
        size_curve_snapshot=item.size_curve_snapshot,
        colores=[_new_color(c) for c in item.colores],
    )


def apply_plan(session: Session, invoice_id: int, plan: ReconciliationPlan) -> None:
    items = InvoiceItemRepository(session)
    colors = InvoiceItemColorRepository(session)

    # Borrados primero, para no chocar con las restricciones únicas
    items.delete_not_in(invoice_id, plan.kept_item_ids)
    for upd in plan.item_updates:
        colors.delete_not_in(upd.item_id, upd.kept_color_ids)
    session.flush()

    for upd in plan.item_updates:
        row = items.get(upd.item_id)
        row.curva_talles = list(upd.target.curva_talles)
        row.size_curve_id = upd.target.size_curve_id
        row.size_curve_snapshot = upd.target.size_curve_snapshot

        for cu in upd.color_updates:
            color_row = colors.get(cu.color_id)
            color_row.nombre_color = cu.target.nombre_color
            color_row.cantidades_por_talle = dict(cu.target.cantidades_por_talle)

        for color in upd.color_creates:
            new_color = _new_color(color)
            new_color.id_item = upd.item_id
            colors.add(new_color)

    for item in plan.item_creates:
        items.add(build_item(item, invoice_id))

    session.flush()


def reconcile(session: Session, invoice_id: int, target: Iterable[InvoiceItemData]) -> ReconciliationPlan:
    """Carga lo persistido, calcula el plan y lo aplica (sin commit)."""
    persisted = InvoiceItemRepository(session).for_invoice(invoice_id)
    plan = plan_reconciliation(target, persisted)
    apply_plan(session, invoice_id, plan)
    return plan

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from .models import (
    Base,
    Invoice,
    InvoiceItem,
    InvoiceItemColor,
)

T = TypeVar("T", bound=Base)

SORTABLE_COLUMNS = {
    "fecha": Invoice.fecha,
    "nro_factura": Invoice.nro_factura,
    "proveedor": Invoice.proveedor,
    "created_at": Invoice.created_at,
    "updated_at": Invoice.updated_at,
}


class BaseRepository(Generic[T]):
    """Repositorio base con CRUD simple y helpers comunes."""
    def __init__(self, session: Session, model: Type[T]) -> None:
        self.session = session
        self.model = model

    def add(self, obj: T) -> T:
        """Agrega el objeto al Session (no hace commit)."""
        self.session.add(obj)
        return obj

    def get(self, id_: int) -> Optional[T]:
        """Obtiene por PK (o None si no existe)."""
        return self.session.get(self.model, id_)


@dataclass(frozen=True)
class InvoiceFilters:
    """Filtros y paginación del listado de facturas."""
    nro_factura: Optional[str] = None
    proveedor: Optional[str] = None
    estado: Optional[str] = None
    created_by: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: str = "fecha"
    sort_dir: str = "desc"
    page: int = 1
    page_size: int = 50


# ---------------------------
# Facturas
# ---------------------------
class InvoiceRepository(BaseRepository[Invoice]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Invoice)

    def find_by_id(self, invoice_id: int, *, populate_existing: bool = False) -> Optional[Invoice]:
        """
        Factura con ítems y colores cargados.
        populate_existing=True fuerza la relectura aunque esté en el identity map.
        """
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.items).selectinload(InvoiceItem.colores))
        )
        if populate_existing:
            stmt = stmt.execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def list_filtered(self, filters: InvoiceFilters) -> Tuple[int, List[Invoice]]:
        """Devuelve (total, página) según filtros; búsquedas de texto case-insensitive."""
        conditions = []
        if filters.nro_factura:
            conditions.append(
                func.lower(Invoice.nro_factura).contains(filters.nro_factura.strip().lower())
            )
        if filters.proveedor:
            conditions.append(
                func.lower(Invoice.proveedor).contains(filters.proveedor.strip().lower())
            )
        if filters.estado:
            conditions.append(Invoice.estado == filters.estado)
        if filters.created_by:
            conditions.append(Invoice.created_by == filters.created_by.strip())
        if filters.date_from:
            conditions.append(Invoice.fecha >= filters.date_from)
        if filters.date_to:
            conditions.append(Invoice.fecha <= filters.date_to)

        total = self.session.execute(
            select(func.count(Invoice.id)).where(*conditions)
        ).scalar_one()

        column = SORTABLE_COLUMNS.get(filters.sort_by, Invoice.fecha)
        order = column.asc() if filters.sort_dir == "asc" else column.desc()
        rows = (
            self.session.execute(
                select(Invoice)
                .where(*conditions)
                .options(selectinload(Invoice.items).selectinload(InvoiceItem.colores))
                .order_by(order, Invoice.id.asc())
                .offset((filters.page - 1) * filters.page_size)
                .limit(filters.page_size)
            )
            .scalars()
            .all()
        )
        return total, list(rows)

    def list_creators(self) -> List[str]:
        """Usuarios distintos que registraron facturas, ordenados."""
        stmt = (
            select(Invoice.created_by)
            .where(Invoice.created_by.is_not(None))
            .distinct()
            .order_by(Invoice.created_by.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def conditional_update(
        self,
        invoice_id: int,
        *,
        estado: str,
        expected_version: Optional[datetime],
        values: Dict[str, Any],
    ) -> int:
        """
        UPDATE facturas SET ... WHERE id = ? AND estado = ? [AND updated_at = ?].
        Devuelve la cantidad de filas afectadas (0 o 1). No hace commit.
        """
        stmt = update(Invoice).where(Invoice.id == invoice_id, Invoice.estado == estado)
        if expected_version is not None:
            stmt = stmt.where(Invoice.updated_at == expected_version)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)


# ---------------------------
# Ítems y colores
# ---------------------------
class InvoiceItemRepository(BaseRepository[InvoiceItem]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, InvoiceItem)

    def for_invoice(self, invoice_id: int) -> List[InvoiceItem]:
        """Ítems persistidos de la factura, con sus colores."""
        stmt = (
            select(InvoiceItem)
            .where(InvoiceItem.id_factura == invoice_id)
            .options(selectinload(InvoiceItem.colores))
            .order_by(InvoiceItem.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars().all())

    def delete_not_in(self, invoice_id: int, keep_ids: Iterable[int]) -> int:
        """Elimina (con sus colores) los ítems de la factura cuyo id no esté en keep_ids."""
        keep = set(keep_ids)
        stmt = select(InvoiceItem).where(InvoiceItem.id_factura == invoice_id)
        if keep:
            stmt = stmt.where(InvoiceItem.id.not_in(keep))
        doomed = list(self.session.execute(stmt).scalars().all())
        for item in doomed:
            self.session.delete(item)
        return len(doomed)


class InvoiceItemColorRepository(BaseRepository[InvoiceItemColor]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, InvoiceItemColor)

    def delete_not_in(self, item_id: int, keep_ids: Iterable[int]) -> int:
        """Elimina los colores del ítem cuyo id no esté en keep_ids."""
        keep = set(keep_ids)
        stmt = select(InvoiceItemColor).where(InvoiceItemColor.id_item == item_id)
        if keep:
            stmt = stmt.where(InvoiceItemColor.id.not_in(keep))
        doomed = list(self.session.execute(stmt).scalars().all())
        for color in doomed:
            self.session.delete(color)
        return len(doomed)

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from facturas.data.database import get_session
from facturas.data.models import Invoice, InvoiceStatus, as_utc_naive, next_version
from facturas.data.repository import SORTABLE_COLUMNS, InvoiceFilters, InvoiceRepository
from facturas.utils.validators import clean_text, is_non_empty, is_non_negative_int

from .concurrency import Token, check_version, claim_draft, transition_to_final
from .errors import ErrorCodes, IntegrityError, NotFoundError, ReadOnlyError, ValidationError
from .integrity import check_integrity
from .items import DuplicatePolicy, InvoiceItemData
from .merge import merge_items
from .reconcile import build_item, reconcile

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class InvoicePage:
    items: List[Invoice]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class InvoiceManager:
    """
    Orquesta el ciclo de vida de las facturas de proveedor:
    alta de borrador, guardado de borrador (merge + reconciliación) y
    finalización DRAFT -> FINAL con bloqueo optimista.
    """
    def __init__(self, session: Optional[Session] = None) -> None:
        self.session: Session = session or get_session()
        self.invoices = InvoiceRepository(self.session)

    # -----------------------------
    # Validaciones internas
    # -----------------------------
    def _canonical_items(self, items: Iterable[InvoiceItemData], policy) -> List[InvoiceItemData]:
        """Valida cantidades y aplica el merge; un duplicado se informa antes de escribir."""
        items = list(items)
        for it in items:
            for color in it.colores:
                for talle, cantidad in color.cantidades_por_talle.items():
                    if not is_non_negative_int(cantidad):
                        raise ValidationError(
                            f"Cantidad inválida para {it.codigo_articulo}/{color.codigo_color} talle {talle}",
                            details={"codigo_articulo": it.codigo_articulo, "talle": talle},
                        )

        try:
            policy = DuplicatePolicy.parse(policy)
        except ValueError as exc:
            raise ValidationError(str(exc)) from None

        result = merge_items(items, policy)
        if not result.ok:
            dup = result.duplicate
            raise ValidationError(
                dup.message,
                code=ErrorCodes.DUPLICATE_ITEM_COLOR_IN_PAYLOAD,
                details={"item": "|".join(dup.item_key), "codigo_color": dup.codigo_color},
            )
        return result.items

    def _get_or_404(self, invoice_id: int) -> Invoice:
        inv = self.invoices.find_by_id(invoice_id, populate_existing=True)
        if inv is None:
            raise NotFoundError("Factura no encontrada", details={"invoice_id": invoice_id})
        return inv

    # -----------------------------
    # API pública
    # -----------------------------
    def get_invoice(self, invoice_id: int) -> Invoice:
        return self._get_or_404(invoice_id)

    def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> InvoicePage:
        """Listado paginado con filtros de texto, estado y rango de fechas."""
        filters = filters or InvoiceFilters()
        if filters.page < 1:
            raise ValidationError("page debe ser >= 1")
        if not 1 <= filters.page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page_size debe estar entre 1 y {MAX_PAGE_SIZE}")
        if filters.sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(f"sort_by inválido: {filters.sort_by}")
        if filters.sort_dir not in ("asc", "desc"):
            raise ValidationError(f"sort_dir inválido: {filters.sort_dir}")
        if filters.estado and filters.estado not in {s.value for s in InvoiceStatus}:
            raise ValidationError(f"estado inválido: {filters.estado}")

        filters = replace(
            filters,
            date_from=as_utc_naive(filters.date_from) if filters.date_from else None,
            date_to=as_utc_naive(filters.date_to) if filters.date_to else None,
        )
        total, rows = self.invoices.list_filtered(filters)
        return InvoicePage(items=rows, page=filters.page, page_size=filters.page_size, total=total)

    def list_creators(self) -> List[str]:
        return self.invoices.list_creators()

    def create_draft(
        self,
        *,
        nro_factura: str,
        proveedor: Optional[str] = None,
        supplier_snapshot: Optional[Dict[str, Any]] = None,
        fecha: Optional[datetime] = None,
        items: Iterable[InvoiceItemData] = (),
        created_by: Optional[str] = None,
    ) -> Invoice:
        """
        Crea una factura DRAFT. Los duplicados (ítem, color) del payload
        siempre son error en el alta.
        """
        if not is_non_empty(nro_factura):
            raise ValidationError("El número de factura es obligatorio")
        canonical = self._canonical_items(items, DuplicatePolicy.ERROR)

        try:
            version = next_version()
            inv = Invoice(
                nro_factura=nro_factura.strip(),
                proveedor=clean_text(proveedor),
                supplier_snapshot=supplier_snapshot,
                created_by=clean_text(created_by),
                estado=InvoiceStatus.DRAFT.value,
                fecha=as_utc_naive(fecha) if fecha else version,
                created_at=version,
                updated_at=version,
                items=[build_item(it) for it in canonical],
            )
            self.invoices.add(inv)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Factura %s creada en borrador con %d ítems", inv.id, len(canonical))
        return self._get_or_404(inv.id)

    def update_draft(
        self,
        invoice_id: int,
        *,
        items: Optional[Iterable[InvoiceItemData]] = None,
        proveedor: Optional[str] = None,
        supplier_snapshot: Optional[Dict[str, Any]] = None,
        expected_updated_at: Optional[Token] = None,
        policy=DuplicatePolicy.ERROR,
    ) -> Invoice:
        """
        Guarda un borrador: reemplaza el conjunto de ítems (si se envía)
        reconciliando contra lo persistido. Todo en una transacción.
        """
        canonical = self._canonical_items(items, policy) if items is not None else None

        try:
            current = self._get_or_404(invoice_id)
            if current.is_final:
                raise ReadOnlyError(
                    "No se puede editar una factura finalizada",
                    details={"invoice_id": invoice_id},
                )
            check_version(expected_updated_at, current.updated_at)

            new_version = claim_draft(
                self.session, invoice_id, expected_updated_at, previous=current.updated_at
            )

            if proveedor is not None:
                current.proveedor = clean_text(proveedor)
            if supplier_snapshot is not None:
                current.supplier_snapshot = supplier_snapshot
            self.session.flush()

            if canonical is not None:
                reconcile(self.session, invoice_id, canonical)

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Borrador %s guardado (version=%s)", invoice_id, new_version.isoformat())
        return self._get_or_404(invoice_id)

    def finalize(self, invoice_id: int, expected_updated_at: Token) -> Invoice:
        """
        DRAFT -> FINAL. Valida la integridad y luego aplica la transición con
        una escritura condicional sobre (id, estado, token).
        """
        try:
            inv = self._get_or_404(invoice_id)
            if inv.is_final:
                raise ReadOnlyError(
                    "La factura ya está finalizada",
                    code=ErrorCodes.INVOICE_ALREADY_FINALIZED,
                    details={"invoice_id": invoice_id},
                )

            violation = check_integrity(inv)
            if violation is not None:
                raise IntegrityError(
                    "La factura no cumple las validaciones de integridad para finalizar",
                    details={
                        "reason": violation.message,
                        "violation": violation.as_dict(),
                        "invoice_id": invoice_id,
                        "state": inv.estado,
                        "item_count": len(inv.items),
                    },
                )

            finalized = transition_to_final(self.session, invoice_id, expected_updated_at)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Factura %s finalizada", finalized.id)
        return self._get_or_404(invoice_id)

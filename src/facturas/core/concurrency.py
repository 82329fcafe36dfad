"""
Bloqueo optimista de facturas.

El token de versión es Invoice.updated_at (UTC, precisión de microsegundos).
Se serializa en ISO-8601 con microsegundos y se compara por igualdad exacta
después de normalizar (mismo instante, mismo huso).

Tanto la finalización como el guardado de borradores se expresan como una única
escritura condicional; si no afecta filas se relee la factura para informar la
causa precisa (no existe / ya es FINAL / versión distinta).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.orm import Session

from facturas.data.models import Invoice, InvoiceStatus, as_utc_naive, next_version
from facturas.data.repository import InvoiceRepository

from .errors import ConflictError, ErrorCodes, NotFoundError, ReadOnlyError, ValidationError

logger = logging.getLogger(__name__)

Token = Union[datetime, str]


def normalize_token(value: Token) -> datetime:
    """datetime o string ISO-8601 -> datetime naive en UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(
                f"Token de versión inválido: {value!r}",
                details={"expected_updated_at": str(value)},
            ) from None
    return as_utc_naive(parsed)


def format_version(value: datetime) -> str:
    """Representación canónica del token: 2026-01-02T03:04:05.123456Z."""
    value = normalize_token(value)
    return value.isoformat(timespec="microseconds") + "Z"


def parse_version(value: Token) -> datetime:
    return normalize_token(value)


def _conflict(invoice_id: int) -> ConflictError:
    return ConflictError(
        "Conflicto: la factura cambió desde la última lectura",
        details={"invoice_id": invoice_id},
    )


def check_version(expected: Optional[Token], current: Token) -> None:
    """
    Sin token esperado no se verifica nada. Con token, debe coincidir
    exactamente con el actual; cualquier diferencia es un conflicto.
    """
    if expected is None:
        return
    if normalize_token(expected) != normalize_token(current):
        raise ConflictError(
            "Conflicto: la factura cambió desde la última lectura",
            details={
                "expected_updated_at": format_version(expected),
                "current_updated_at": format_version(current),
            },
        )


def _explain_miss(session: Session, invoice_id: int, *, finalizing: bool) -> Exception:
    """Relee la factura para distinguir no-existe / ya-FINAL / conflicto."""
    current = InvoiceRepository(session).find_by_id(invoice_id, populate_existing=True)
    if current is None:
        return NotFoundError("Factura no encontrada", details={"invoice_id": invoice_id})
    if current.is_final:
        if finalizing:
            return ReadOnlyError(
                "La factura ya está finalizada",
                code=ErrorCodes.INVOICE_ALREADY_FINALIZED,
                details={"invoice_id": invoice_id},
            )
        return ReadOnlyError(
            "No se puede editar una factura finalizada",
            details={"invoice_id": invoice_id},
        )
    return _conflict(invoice_id)


def claim_draft(
    session: Session,
    invoice_id: int,
    expected: Optional[Token],
    *,
    previous: Optional[datetime] = None,
) -> datetime:
    """
    Avanza el token de un borrador con una escritura condicional:
    UPDATE facturas SET updated_at = :nuevo
     WHERE id = :id AND estado = 'DRAFT' [AND updated_at = :esperado]
    Sin token esperado se omite la condición de versión; `previous` (la versión
    leída) asegura igualmente que el nuevo token sea mayor.
    Devuelve el nuevo token. No hace commit.
    """
    repo = InvoiceRepository(session)
    expected_dt = normalize_token(expected) if expected is not None else None
    new_token = next_version(expected_dt or previous)
    affected = repo.conditional_update(
        invoice_id,
        estado=InvoiceStatus.DRAFT.value,
        expected_version=expected_dt,
        values={"updated_at": new_token},
    )
    if affected == 0:
        error = _explain_miss(session, invoice_id, finalizing=False)
        logger.warning("Guardado de borrador rechazado para factura %s: %s", invoice_id, error)
        raise error
    return new_token


def transition_to_final(session: Session, invoice_id: int, expected: Token) -> Invoice:
    """
    DRAFT -> FINAL en una sola escritura condicional:
    UPDATE facturas SET estado = 'FINAL', updated_at = :nuevo
     WHERE id = :id AND estado = 'DRAFT' AND updated_at = :esperado
    Si no afecta filas, relee para informar NotFound / ya FINAL / conflicto.
    No hace commit.
    """
    repo = InvoiceRepository(session)
    expected_dt = normalize_token(expected)
    affected = repo.conditional_update(
        invoice_id,
        estado=InvoiceStatus.DRAFT.value,
        expected_version=expected_dt,
        values={"estado": InvoiceStatus.FINAL.value, "updated_at": next_version(expected_dt)},
    )
    if affected == 0:
        error = _explain_miss(session, invoice_id, finalizing=True)
        logger.warning("Finalización rechazada para factura %s: %s", invoice_id, error)
        raise error
    return repo.find_by_id(invoice_id, populate_existing=True)

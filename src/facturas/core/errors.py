from __future__ import annotations

from typing import Any, Optional


class ErrorCodes:
    VALIDATION_FAILED = "VALIDATION_FAILED"
    DUPLICATE_ITEM_COLOR_IN_PAYLOAD = "DUPLICATE_ITEM_COLOR_IN_PAYLOAD"
    NOT_FOUND = "NOT_FOUND"
    OPTIMISTIC_LOCK_CONFLICT = "OPTIMISTIC_LOCK_CONFLICT"
    INVOICE_FINAL_READ_ONLY = "INVOICE_FINAL_READ_ONLY"
    INVOICE_ALREADY_FINALIZED = "INVOICE_ALREADY_FINALIZED"
    INVOICE_FINALIZE_INVALID = "INVOICE_FINALIZE_INVALID"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class FacturaError(Exception):
    """Errores de lógica de facturas (siempre locales a una factura)."""
    default_code = ErrorCodes.VALIDATION_FAILED

    def __init__(self, message: str, *, code: Optional[str] = None, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details


class ValidationError(FacturaError):
    """Payload inválido (p.ej. ítem/color duplicado con política ERROR)."""
    default_code = ErrorCodes.VALIDATION_FAILED


class NotFoundError(FacturaError):
    default_code = ErrorCodes.NOT_FOUND


class ConflictError(FacturaError):
    """El token de versión esperado no coincide con el actual."""
    default_code = ErrorCodes.OPTIMISTIC_LOCK_CONFLICT


class ReadOnlyError(FacturaError):
    """Mutación sobre una factura FINAL."""
    default_code = ErrorCodes.INVOICE_FINAL_READ_ONLY


class IntegrityError(FacturaError):
    """La factura no cumple las reglas estructurales para finalizarse."""
    default_code = ErrorCodes.INVOICE_FINALIZE_INVALID

from .errors import (
    ErrorCodes,
    FacturaError,
    ValidationError,
    NotFoundError,
    ConflictError,
    ReadOnlyError,
    IntegrityError,
)
from .items import ColorVariant, DuplicatePolicy, InvoiceItemData
from .merge import merge_items, MergeResult, DuplicateItemColor
from .integrity import check_integrity, Violation
from .reconcile import plan_reconciliation, reconcile, ReconciliationPlan
from .concurrency import check_version, transition_to_final, format_version, parse_version
from .invoice_manager import InvoiceManager, InvoicePage

__all__ = [
    "ErrorCodes",
    "FacturaError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ReadOnlyError",
    "IntegrityError",
    "ColorVariant",
    "DuplicatePolicy",
    "InvoiceItemData",
    "merge_items",
    "MergeResult",
    "DuplicateItemColor",
    "check_integrity",
    "Violation",
    "plan_reconciliation",
    "reconcile",
    "ReconciliationPlan",
    "check_version",
    "transition_to_final",
    "format_version",
    "parse_version",
    "InvoiceManager",
    "InvoicePage",
]

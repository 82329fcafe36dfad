from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from facturas.config import configure_logging
from facturas.core import InvoiceManager
from facturas.core.errors import ErrorCodes, FacturaError, IntegrityError, NotFoundError
from facturas.core.errors import ConflictError, ReadOnlyError, ValidationError
from facturas.data.database import init_db, new_session
from facturas.data.repository import InvoiceFilters
from .schemas import (
    CreatorsOut,
    ErrorBody,
    ErrorOut,
    FacturaCreate,
    FacturaDraftUpdate,
    FacturaFinalize,
    FacturaListOut,
    FacturaOut,
    Message,
    Pagination,
)

logger = logging.getLogger(__name__)


def get_db():
    """Dependency que proporciona una sesión de DB por request.
    Sesión propia (no scoped): el teardown puede correr en otro hilo.
    """
    sess = new_session()
    try:
        yield sess
    finally:
        sess.close()


def status_for(error: FacturaError) -> int:
    """Código HTTP para cada error de dominio."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, ReadOnlyError):
        # finalizar dos veces es un error del llamador, no un conflicto
        return 400 if error.code == ErrorCodes.INVOICE_ALREADY_FINALIZED else 409
    if isinstance(error, IntegrityError):
        return 422
    if isinstance(error, ValidationError):
        return 400
    return 400


def _error_response(status: int, code: str, message: str, details=None) -> JSONResponse:
    body = ErrorOut(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


app = FastAPI(title="Facturas API", version="0.1.0")


@app.on_event("startup")
def _startup() -> None:
    configure_logging()
    init_db()


@app.exception_handler(FacturaError)
def _domain_error(request: Request, exc: FacturaError) -> JSONResponse:
    status = status_for(exc)
    logger.warning(
        "Error de dominio en %s %s: %s (%s)", request.method, request.url.path, exc.code, exc.message
    )
    return _error_response(status, exc.code, exc.message, exc.details)


@app.exception_handler(Exception)
def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Error no controlado en %s %s", request.method, request.url.path)
    return _error_response(500, ErrorCodes.INTERNAL_SERVER_ERROR, "Internal Server Error")


@app.get("/health", response_model=Message)
def health() -> Message:
    return Message(message="ok")


# -----------------------------
# Facturas
# -----------------------------


@app.get("/facturas", response_model=FacturaListOut)
def list_facturas(
    nro_factura: Optional[str] = None,
    proveedor: Optional[str] = None,
    estado: Optional[str] = None,
    created_by: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    sort_by: str = "fecha",
    sort_dir: str = "desc",
    page: int = 1,
    page_size: int = 50,
    db: Session = Depends(get_db),
):
    filters = InvoiceFilters(
        nro_factura=nro_factura,
        proveedor=proveedor,
        estado=estado,
        created_by=created_by,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_dir=sort_dir,
        page=page,
        page_size=page_size,
    )
    result = InvoiceManager(db).list_invoices(filters)
    return FacturaListOut(
        items=[FacturaOut.model_validate(inv) for inv in result.items],
        pagination=Pagination(
            page=result.page,
            page_size=result.page_size,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@app.get("/facturas/creators", response_model=CreatorsOut)
def list_creators(db: Session = Depends(get_db)):
    return CreatorsOut(items=InvoiceManager(db).list_creators())


@app.get("/facturas/{invoice_id}", response_model=FacturaOut)
def get_factura(invoice_id: int, db: Session = Depends(get_db)):
    return FacturaOut.model_validate(InvoiceManager(db).get_invoice(invoice_id))


@app.post("/facturas", response_model=FacturaOut, status_code=201)
def create_factura(payload: FacturaCreate, db: Session = Depends(get_db)):
    inv = InvoiceManager(db).create_draft(
        nro_factura=payload.nro_factura,
        proveedor=payload.proveedor,
        supplier_snapshot=payload.supplier_snapshot,
        fecha=payload.fecha,
        created_by=payload.created_by,
        items=[it.to_data() for it in payload.items],
    )
    return FacturaOut.model_validate(inv)


@app.patch("/facturas/{invoice_id}/draft", response_model=FacturaOut)
def update_factura_draft(invoice_id: int, payload: FacturaDraftUpdate, db: Session = Depends(get_db)):
    items = [it.to_data() for it in payload.items] if payload.items is not None else None
    inv = InvoiceManager(db).update_draft(
        invoice_id,
        items=items,
        proveedor=payload.proveedor,
        supplier_snapshot=payload.supplier_snapshot,
        expected_updated_at=payload.expected_updated_at,
        policy=payload.duplicate_handler,
    )
    return FacturaOut.model_validate(inv)


@app.patch("/facturas/{invoice_id}/finalize", response_model=FacturaOut)
def finalize_factura(invoice_id: int, payload: FacturaFinalize, db: Session = Depends(get_db)):
    inv = InvoiceManager(db).finalize(invoice_id, payload.expected_updated_at)
    return FacturaOut.model_validate(inv)

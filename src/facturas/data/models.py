from __future__ import annotations

import enum
from datetime import datetime as dt, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class Base(DeclarativeBase):
    """Base declarativa para todos los modelos."""
    pass


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    FINAL = "FINAL"


def utcnow() -> dt:
    """Instante actual en UTC, naive (así se persiste en la BD)."""
    return dt.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: dt) -> dt:
    """Convierte a UTC naive; los valores naive se asumen ya en UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def next_version(previous: Optional[dt] = None) -> dt:
    """
    Nuevo token de versión: siempre estrictamente mayor que el anterior,
    aunque el reloj no haya avanzado un microsegundo.
    """
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


# ====================================================
# FACTURAS
# ====================================================
class Invoice(Base):
    __tablename__ = "facturas"
    __table_args__ = (
        CheckConstraint("estado IN ('DRAFT', 'FINAL')", name="ck_facturas_estado"),
        CheckConstraint("length(trim(nro_factura)) > 0", name="ck_facturas_nro_not_empty"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Número de factura del proveedor (texto libre, no único en esta capa)
    nro_factura: Mapped[str] = mapped_column(String, nullable=False)
    proveedor: Mapped[Optional[str]] = mapped_column(String)
    supplier_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    # Usuario que registró la factura (texto libre; la autenticación es externa)
    created_by: Mapped[Optional[str]] = mapped_column(String, index=True)

    estado: Mapped[str] = mapped_column(String, nullable=False, default=InvoiceStatus.DRAFT.value)
    fecha: Mapped[dt] = mapped_column(DateTime, nullable=False, default=utcnow)
    created_at: Mapped[dt] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Token de versión (bloqueo optimista): cambia en cada mutación
    updated_at: Mapped[dt] = mapped_column(DateTime, nullable=False, default=utcnow)

    items: Mapped[List["InvoiceItem"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    @property
    def is_final(self) -> bool:
        return self.estado == InvoiceStatus.FINAL.value

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} nro={self.nro_factura} estado={self.estado}>"


class InvoiceItem(Base):
    __tablename__ = "factura_items"
    __table_args__ = (
        UniqueConstraint(
            "id_factura", "marca", "tipo_prenda", "codigo_articulo",
            name="uq_factura_items_business_key",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id_factura: Mapped[int] = mapped_column(
        ForeignKey("facturas.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Identidad de negocio: (marca, tipo_prenda, codigo_articulo)
    marca: Mapped[str] = mapped_column(String, nullable=False, default="")
    tipo_prenda: Mapped[str] = mapped_column(String, nullable=False)
    codigo_articulo: Mapped[str] = mapped_column(String, nullable=False)

    # Curva de talles ordenada, p.ej. ["S", "M", "L"]
    curva_talles: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    size_curve_id: Mapped[Optional[str]] = mapped_column(String)
    size_curve_snapshot: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    invoice: Mapped["Invoice"] = relationship(back_populates="items")
    colores: Mapped[List["InvoiceItemColor"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="InvoiceItemColor.id",
    )

    @property
    def key(self) -> tuple:
        return (self.marca, self.tipo_prenda, self.codigo_articulo)

    def __repr__(self) -> str:
        return f"<InvoiceItem id={self.id} key={self.key}>"


class InvoiceItemColor(Base):
    __tablename__ = "factura_item_colores"
    __table_args__ = (
        UniqueConstraint("id_item", "codigo_color", name="uq_factura_item_colores_codigo"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id_item: Mapped[int] = mapped_column(
        ForeignKey("factura_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    codigo_color: Mapped[str] = mapped_column(String, nullable=False)
    nombre_color: Mapped[str] = mapped_column(String, nullable=False, default="")

    # talle -> cantidad (enteros >= 0)
    cantidades_por_talle: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)

    item: Mapped["InvoiceItem"] = relationship(back_populates="colores")

    def __repr__(self) -> str:
        return f"<InvoiceItemColor id={self.id} item={self.id_item} codigo={self.codigo_color}>"

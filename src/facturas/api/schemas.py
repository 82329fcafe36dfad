from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from facturas.core.concurrency import format_version
from facturas.core.items import ColorVariant, DuplicatePolicy, InvoiceItemData
from facturas.utils.validators import normalize_curve


# ---------- Generic ----------

class Message(BaseModel):
  message: str


class ErrorBody(BaseModel):
  code: str
  message: str
  details: Optional[Any] = None


class ErrorOut(BaseModel):
  error: ErrorBody


# ---------- Payload (entrada) ----------

class ColorIn(BaseModel):
  codigo_color: str = Field(min_length=1)
  nombre_color: str = ""
  cantidades_por_talle: Dict[str, int] = Field(default_factory=dict)

  @field_validator("codigo_color")
  @classmethod
  def _code(cls, v: str) -> str:
    v = v.strip()
    if not v:
      raise ValueError("codigo_color no puede estar vacío")
    return v

  @field_validator("nombre_color")
  @classmethod
  def _strip(cls, v: str) -> str:
    return v.strip()

  @field_validator("cantidades_por_talle")
  @classmethod
  def _non_negative(cls, v: Dict[str, int]) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for talle, cantidad in v.items():
      if cantidad < 0:
        raise ValueError(f"cantidad negativa para talle {talle}")
      key = talle.strip()
      if not key:
        raise ValueError("talle vacío")
      if key in out:
        raise ValueError(f"talle repetido: {key}")
      out[key] = cantidad
    return out

  def to_data(self) -> ColorVariant:
    return ColorVariant(
      codigo_color=self.codigo_color,
      nombre_color=self.nombre_color,
      cantidades_por_talle=dict(self.cantidades_por_talle),
    )


class ItemIn(BaseModel):
  marca: str = ""
  tipo_prenda: str = Field(min_length=1)
  codigo_articulo: str = Field(min_length=1)
  curva_talles: List[str] = Field(default_factory=list)
  colores: List[ColorIn] = Field(default_factory=list)
  size_curve_id: Optional[str] = None
  size_curve_snapshot: Optional[Dict[str, Any]] = None

  @field_validator("marca")
  @classmethod
  def _strip(cls, v: str) -> str:
    return v.strip()

  @field_validator("tipo_prenda", "codigo_articulo")
  @classmethod
  def _required(cls, v: str, info) -> str:
    v = v.strip()
    if not v:
      raise ValueError(f"{info.field_name} no puede estar vacío")
    return v

  @field_validator("curva_talles")
  @classmethod
  def _curve(cls, v: List[str]) -> List[str]:
    return normalize_curve(v)

  def to_data(self) -> InvoiceItemData:
    return InvoiceItemData(
      marca=self.marca,
      tipo_prenda=self.tipo_prenda,
      codigo_articulo=self.codigo_articulo,
      curva_talles=list(self.curva_talles),
      colores=[c.to_data() for c in self.colores],
      size_curve_id=self.size_curve_id,
      size_curve_snapshot=self.size_curve_snapshot,
    )


class FacturaCreate(BaseModel):
  nro_factura: str = Field(min_length=1)
  proveedor: Optional[str] = None
  supplier_snapshot: Optional[Dict[str, Any]] = None
  created_by: Optional[str] = None
  fecha: Optional[datetime] = None
  items: List[ItemIn] = Field(default_factory=list)


class FacturaDraftUpdate(BaseModel):
  proveedor: Optional[str] = None
  supplier_snapshot: Optional[Dict[str, Any]] = None
  items: Optional[List[ItemIn]] = None
  expected_updated_at: Optional[str] = None
  duplicate_handler: DuplicatePolicy = DuplicatePolicy.ERROR


class FacturaFinalize(BaseModel):
  expected_updated_at: str = Field(min_length=1)


# ---------- Salida ----------

class ColorOut(BaseModel):
  id: int
  codigo_color: str
  nombre_color: str
  cantidades_por_talle: Dict[str, int]

  class Config:
    from_attributes = True


class ItemOut(BaseModel):
  id: int
  marca: str
  tipo_prenda: str
  codigo_articulo: str
  curva_talles: List[str]
  size_curve_id: Optional[str] = None
  size_curve_snapshot: Optional[Dict[str, Any]] = None
  colores: List[ColorOut]

  class Config:
    from_attributes = True


class FacturaOut(BaseModel):
  id: int
  nro_factura: str
  proveedor: Optional[str] = None
  supplier_snapshot: Optional[Dict[str, Any]] = None
  created_by: Optional[str] = None
  estado: str
  fecha: datetime
  created_at: datetime
  updated_at: datetime
  items: List[ItemOut]

  class Config:
    from_attributes = True

  @field_serializer("updated_at")
  def _token(self, value: datetime) -> str:
    # token de versión: debe volver intacto en expected_updated_at
    return format_version(value)


class Pagination(BaseModel):
  page: int
  page_size: int
  total: int
  total_pages: int


class FacturaListOut(BaseModel):
  items: List[FacturaOut]
  pagination: Pagination


class CreatorsOut(BaseModel):
  items: List[str]

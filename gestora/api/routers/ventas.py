"""
Documentos de venta: cotizaciones, órdenes de venta y facturas.
Cada escritura queda auditada por el servicio (recurso venta).
"""
from datetime import datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...application import services_ventas as svc

router = APIRouter(prefix="/empresas/{empresa_id}", tags=["ventas"])

ESTADOS_COTIZACION = "^(PENDIENTE|ENVIADA|ACEPTADA|RECHAZADA|VENCIDA|CONVERTIDA)$"
ESTADOS_FACTURA = "^(EMITIDA|PAGADA|VENCIDA|ANULADA)$"


class ItemIn(BaseModel):
    producto_id: int
    cantidad: Decimal = Field(gt=0)
    precio_unitario: Decimal = Field(ge=0)
    descuento: Decimal = Field(default=Decimal("0"), ge=0)


class ItemOut(BaseModel):
    id: int
    producto_id: int
    cantidad: Decimal
    precio_unitario: Decimal
    descuento: Decimal
    subtotal: Decimal

    class Config:
        from_attributes = True


class CotizacionIn(BaseModel):
    cliente_id: int
    fecha_emision: datetime | None = None
    fecha_validez: datetime | None = None
    notas: str | None = None
    items: List[ItemIn] = Field(min_length=1)


class CotizacionUpdate(BaseModel):
    cliente_id: int | None = None
    fecha_validez: datetime | None = None
    estado: str | None = Field(default=None, pattern=ESTADOS_COTIZACION)
    notas: str | None = None
    items: List[ItemIn] | None = None


class CotizacionOut(BaseModel):
    id: int
    empresa_id: int
    cliente_id: int
    fecha_emision: datetime
    fecha_validez: datetime | None = None
    estado: str
    subtotal: Decimal
    descuento: Decimal
    igv: Decimal
    total: Decimal
    notas: str | None = None
    items: List[ItemOut] = []

    class Config:
        from_attributes = True


class OrdenIn(BaseModel):
    cliente_id: int
    fecha_emision: datetime | None = None
    notas: str | None = None
    items: List[ItemIn] = Field(min_length=1)


class OrdenUpdate(BaseModel):
    cliente_id: int | None = None
    notas: str | None = None
    items: List[ItemIn] | None = None


class OrdenOut(BaseModel):
    id: int
    empresa_id: int
    cliente_id: int
    cotizacion_id: int | None = None
    fecha_emision: datetime
    estado: str
    subtotal: Decimal
    descuento: Decimal
    igv: Decimal
    total: Decimal
    notas: str | None = None
    items: List[ItemOut] = []

    class Config:
        from_attributes = True


class FacturaIn(BaseModel):
    orden_venta_id: int
    fecha_emision: datetime | None = None
    fecha_vencimiento: datetime | None = None
    moneda: str = Field(default="PEN", min_length=3, max_length=3)
    notas: str | None = None


class FacturaUpdate(BaseModel):
    estado: str | None = Field(default=None, pattern=ESTADOS_FACTURA)
    notas: str | None = None


class FacturaOut(BaseModel):
    id: int
    empresa_id: int
    cliente_id: int
    orden_venta_id: int
    numero_factura: str
    fecha_emision: datetime
    fecha_vencimiento: datetime | None = None
    estado: str
    moneda: str
    subtotal: Decimal
    descuento: Decimal
    igv: Decimal
    total: Decimal
    notas: str | None = None
    items: List[ItemOut] = []

    class Config:
        from_attributes = True


def _pagina(resultado: dict, out_model) -> dict:
    return {"data": [out_model.model_validate(d) for d in resultado["data"]], "meta": resultado["meta"]}


# ===== Cotizaciones =====

@router.post("/cotizaciones", response_model=CotizacionOut, status_code=201)
def create_cotizacion(empresa_id: int, payload: CotizacionIn, db: Session = Depends(get_db),
                      usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.crear_cotizacion(db, empresa_id, payload.model_dump(), usuario.id)


@router.get("/cotizaciones")
def list_cotizaciones(
    empresa_id: int,
    estado: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("venta", "leer")),
):
    return _pagina(svc.listar_cotizaciones(db, empresa_id, estado, page, limit), CotizacionOut)


@router.get("/cotizaciones/{cotizacion_id}", response_model=CotizacionOut)
def get_cotizacion(empresa_id: int, cotizacion_id: int, db: Session = Depends(get_db),
                   _: Usuario = Depends(requiere_permiso("venta", "leer"))):
    return svc.obtener_cotizacion(db, empresa_id, cotizacion_id)


@router.patch("/cotizaciones/{cotizacion_id}", response_model=CotizacionOut)
def update_cotizacion(empresa_id: int, cotizacion_id: int, payload: CotizacionUpdate, db: Session = Depends(get_db),
                      usuario: Usuario = Depends(requiere_permiso("venta", "actualizar"))):
    return svc.actualizar_cotizacion(db, empresa_id, cotizacion_id, payload.model_dump(exclude_unset=True), usuario.id)


@router.delete("/cotizaciones/{cotizacion_id}", status_code=204)
def delete_cotizacion(empresa_id: int, cotizacion_id: int, db: Session = Depends(get_db),
                      usuario: Usuario = Depends(requiere_permiso("venta", "eliminar"))):
    svc.eliminar_cotizacion(db, empresa_id, cotizacion_id, usuario.id)


@router.post("/cotizaciones/{cotizacion_id}/convertir", response_model=OrdenOut, status_code=201)
def convert_cotizacion(empresa_id: int, cotizacion_id: int, db: Session = Depends(get_db),
                       usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.convertir_cotizacion(db, empresa_id, cotizacion_id, usuario.id)


# ===== Órdenes de venta =====

@router.post("/ordenes-venta", response_model=OrdenOut, status_code=201)
def create_orden(empresa_id: int, payload: OrdenIn, db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.crear_orden(db, empresa_id, payload.model_dump(), usuario.id)


@router.get("/ordenes-venta")
def list_ordenes(
    empresa_id: int,
    estado: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("venta", "leer")),
):
    return _pagina(svc.listar_ordenes(db, empresa_id, estado, page, limit), OrdenOut)


@router.get("/ordenes-venta/{orden_id}", response_model=OrdenOut)
def get_orden(empresa_id: int, orden_id: int, db: Session = Depends(get_db),
              _: Usuario = Depends(requiere_permiso("venta", "leer"))):
    return svc.obtener_orden(db, empresa_id, orden_id)


@router.patch("/ordenes-venta/{orden_id}/aprobar", response_model=OrdenOut)
def approve_orden(empresa_id: int, orden_id: int, db: Session = Depends(get_db),
                  usuario: Usuario = Depends(requiere_permiso("venta", "aprobar"))):
    return svc.aprobar_orden(db, empresa_id, orden_id, usuario.id)


@router.patch("/ordenes-venta/{orden_id}/cancelar", response_model=OrdenOut)
def cancel_orden(empresa_id: int, orden_id: int, db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("venta", "aprobar"))):
    return svc.cancelar_orden(db, empresa_id, orden_id, usuario.id)


@router.patch("/ordenes-venta/{orden_id}", response_model=OrdenOut)
def update_orden(empresa_id: int, orden_id: int, payload: OrdenUpdate, db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("venta", "actualizar"))):
    return svc.actualizar_orden(db, empresa_id, orden_id, payload.model_dump(exclude_unset=True), usuario.id)


@router.delete("/ordenes-venta/{orden_id}", status_code=204)
def delete_orden(empresa_id: int, orden_id: int, db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("venta", "eliminar"))):
    svc.eliminar_orden(db, empresa_id, orden_id, usuario.id)


# ===== Facturas =====

@router.post("/facturas", response_model=FacturaOut, status_code=201)
def create_factura(empresa_id: int, payload: FacturaIn, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.crear_factura(db, empresa_id, payload.model_dump(), usuario.id)


@router.get("/facturas")
def list_facturas(
    empresa_id: int,
    estado: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("venta", "leer")),
):
    return _pagina(svc.listar_facturas(db, empresa_id, estado, page, limit), FacturaOut)


@router.get("/facturas/{factura_id}", response_model=FacturaOut)
def get_factura(empresa_id: int, factura_id: int, db: Session = Depends(get_db),
                _: Usuario = Depends(requiere_permiso("venta", "leer"))):
    return svc.obtener_factura(db, empresa_id, factura_id)


@router.patch("/facturas/{factura_id}", response_model=FacturaOut)
def update_factura(empresa_id: int, factura_id: int, payload: FacturaUpdate, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("venta", "actualizar"))):
    return svc.actualizar_factura(db, empresa_id, factura_id, payload.model_dump(exclude_unset=True), usuario.id)


@router.delete("/facturas/{factura_id}", status_code=204)
def delete_factura(empresa_id: int, factura_id: int, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("venta", "eliminar"))):
    svc.eliminar_factura(db, empresa_id, factura_id, usuario.id)

"""
Notas de crédito y débito sobre facturas emitidas.
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
from ...application import services_notas as svc

router = APIRouter(prefix="/empresas/{empresa_id}", tags=["notas"])


class ItemNotaIn(BaseModel):
    producto_id: int
    cantidad: Decimal = Field(gt=0)
    precio_unitario: Decimal = Field(ge=0)
    igv_porcentaje: Decimal = Field(default=Decimal("18"), ge=0, le=100)


class ItemNotaOut(BaseModel):
    id: int
    producto_id: int
    cantidad: Decimal
    precio_unitario: Decimal
    igv_porcentaje: Decimal
    subtotal: Decimal
    igv: Decimal

    class Config:
        from_attributes = True


class NotaBase(BaseModel):
    factura_id: int
    numero_nota: str | None = Field(default=None, max_length=20)
    motivo: str = Field(min_length=1, max_length=255)
    fecha_emision: datetime | None = None
    moneda: str | None = Field(default=None, min_length=3, max_length=3)
    observaciones: str | None = None
    items: List[ItemNotaIn] = Field(min_length=1)


class NotaCreditoIn(NotaBase):
    tipo: str = Field(pattern="^(ANULACION|DESCUENTO|DEVOLUCION)$")


class NotaDebitoIn(NotaBase):
    pass


class NotaCreditoUpdate(BaseModel):
    numero_nota: str | None = Field(default=None, max_length=20)
    tipo: str | None = Field(default=None, pattern="^(ANULACION|DESCUENTO|DEVOLUCION)$")
    motivo: str | None = Field(default=None, min_length=1, max_length=255)
    estado: str | None = Field(default=None, pattern="^(EMITIDA|APLICADA|ANULADA)$")
    observaciones: str | None = None
    items: List[ItemNotaIn] | None = None


class NotaDebitoUpdate(BaseModel):
    numero_nota: str | None = Field(default=None, max_length=20)
    motivo: str | None = Field(default=None, min_length=1, max_length=255)
    estado: str | None = Field(default=None, pattern="^(EMITIDA|APLICADA|CANCELADA)$")
    observaciones: str | None = None
    items: List[ItemNotaIn] | None = None


class NotaOut(BaseModel):
    id: int
    empresa_id: int
    factura_id: int
    cliente_id: int
    numero_nota: str
    motivo: str
    fecha_emision: datetime
    estado: str
    moneda: str
    subtotal: Decimal
    igv: Decimal
    monto: Decimal
    observaciones: str | None = None
    items: List[ItemNotaOut] = []

    class Config:
        from_attributes = True


class NotaCreditoOut(NotaOut):
    tipo: str


def _pagina(resultado: dict, out_model) -> dict:
    return {"data": [out_model.model_validate(d) for d in resultado["data"]], "meta": resultado["meta"]}


# ===== Notas de crédito =====

@router.post("/notas-credito", response_model=NotaCreditoOut, status_code=201)
def create_nota_credito(empresa_id: int, payload: NotaCreditoIn, db: Session = Depends(get_db),
                        usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.crear_nota_credito(db, empresa_id, payload.model_dump(), usuario.id)


@router.get("/notas-credito")
def list_notas_credito(
    empresa_id: int,
    estado: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("venta", "leer")),
):
    return _pagina(svc.listar_notas_credito(db, empresa_id, estado, page, limit), NotaCreditoOut)


@router.get("/notas-credito/{nota_id}", response_model=NotaCreditoOut)
def get_nota_credito(empresa_id: int, nota_id: int, db: Session = Depends(get_db),
                     _: Usuario = Depends(requiere_permiso("venta", "leer"))):
    return svc.obtener_nota_credito(db, empresa_id, nota_id)


@router.patch("/notas-credito/{nota_id}", response_model=NotaCreditoOut)
def update_nota_credito(empresa_id: int, nota_id: int, payload: NotaCreditoUpdate, db: Session = Depends(get_db),
                        usuario: Usuario = Depends(requiere_permiso("venta", "actualizar"))):
    return svc.actualizar_nota_credito(db, empresa_id, nota_id, payload.model_dump(exclude_unset=True), usuario.id)


@router.delete("/notas-credito/{nota_id}", status_code=204)
def delete_nota_credito(empresa_id: int, nota_id: int, db: Session = Depends(get_db),
                        usuario: Usuario = Depends(requiere_permiso("venta", "eliminar"))):
    svc.eliminar_nota_credito(db, empresa_id, nota_id, usuario.id)


# ===== Notas de débito =====

@router.post("/notas-debito", response_model=NotaOut, status_code=201)
def create_nota_debito(empresa_id: int, payload: NotaDebitoIn, db: Session = Depends(get_db),
                       usuario: Usuario = Depends(requiere_permiso("venta", "crear"))):
    return svc.crear_nota_debito(db, empresa_id, payload.model_dump(), usuario.id)


@router.get("/notas-debito")
def list_notas_debito(
    empresa_id: int,
    estado: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("venta", "leer")),
):
    return _pagina(svc.listar_notas_debito(db, empresa_id, estado, page, limit), NotaOut)


@router.get("/notas-debito/{nota_id}", response_model=NotaOut)
def get_nota_debito(empresa_id: int, nota_id: int, db: Session = Depends(get_db),
                    _: Usuario = Depends(requiere_permiso("venta", "leer"))):
    return svc.obtener_nota_debito(db, empresa_id, nota_id)


@router.patch("/notas-debito/{nota_id}", response_model=NotaOut)
def update_nota_debito(empresa_id: int, nota_id: int, payload: NotaDebitoUpdate, db: Session = Depends(get_db),
                       usuario: Usuario = Depends(requiere_permiso("venta", "actualizar"))):
    return svc.actualizar_nota_debito(db, empresa_id, nota_id, payload.model_dump(exclude_unset=True), usuario.id)


@router.delete("/notas-debito/{nota_id}", status_code=204)
def delete_nota_debito(empresa_id: int, nota_id: int, db: Session = Depends(get_db),
                       usuario: Usuario = Depends(requiere_permiso("venta", "eliminar"))):
    svc.eliminar_nota_debito(db, empresa_id, nota_id, usuario.id)

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...application import services_valoraciones as svc

router = APIRouter(prefix="/empresas/{empresa_id}/valoraciones", tags=["valoraciones"])


class ValoracionIn(BaseModel):
    cliente_id: int
    producto_id: int
    calificacion: int
    comentario: str | None = None


class ValoracionUpdate(BaseModel):
    calificacion: int | None = None
    comentario: str | None = None


class ModeracionIn(BaseModel):
    estado_moderacion: str = Field(description="pendiente, aprobada o rechazada")
    comentario_moderador: str | None = None


class ValoracionOut(BaseModel):
    id: int
    empresa_id: int
    cliente_id: int
    producto_id: int
    calificacion: int
    comentario: str | None = None
    estado_moderacion: str
    comentario_moderador: str | None = None
    fecha_moderacion: datetime | None = None
    fecha: datetime

    class Config:
        from_attributes = True


@router.get("/producto/{producto_id}/resumen")
def get_resumen_producto(empresa_id: int, producto_id: int, db: Session = Depends(get_db),
                         _: Usuario = Depends(requiere_permiso("valoracion", "leer"))):
    """Promedio y distribución de calificaciones del producto."""
    return svc.resumen_producto(db, empresa_id, producto_id)


@router.post("", response_model=ValoracionOut, status_code=201)
def create_valoracion(empresa_id: int, payload: ValoracionIn, db: Session = Depends(get_db),
                      _: Usuario = Depends(requiere_permiso("valoracion", "crear"))):
    return svc.crear_valoracion(db, empresa_id, payload.model_dump())


@router.get("")
def list_valoraciones(
    empresa_id: int,
    producto_id: int | None = Query(None),
    cliente_id: int | None = Query(None),
    calificacion_min: int | None = Query(None, ge=1, le=5),
    calificacion_max: int | None = Query(None, ge=1, le=5),
    estado_moderacion: str | None = Query(None, pattern="^(pendiente|aprobada|rechazada)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("valoracion", "leer")),
):
    filtros = {
        "producto_id": producto_id,
        "cliente_id": cliente_id,
        "calificacion_min": calificacion_min,
        "calificacion_max": calificacion_max,
        "estado_moderacion": estado_moderacion,
    }
    resultado = svc.listar_valoraciones(db, empresa_id, filtros, page, limit)
    return {"data": [ValoracionOut.model_validate(v) for v in resultado["data"]], "meta": resultado["meta"]}


@router.get("/{valoracion_id}", response_model=ValoracionOut)
def get_valoracion(empresa_id: int, valoracion_id: int, db: Session = Depends(get_db),
                   _: Usuario = Depends(requiere_permiso("valoracion", "leer"))):
    return svc.obtener_valoracion(db, empresa_id, valoracion_id)


@router.patch("/{valoracion_id}/moderar", response_model=ValoracionOut)
def moderate_valoracion(empresa_id: int, valoracion_id: int, payload: ModeracionIn, db: Session = Depends(get_db),
                        _: Usuario = Depends(requiere_permiso("valoracion", "moderar"))):
    return svc.moderar_valoracion(db, empresa_id, valoracion_id, payload.estado_moderacion,
                                  payload.comentario_moderador)


@router.patch("/{valoracion_id}", response_model=ValoracionOut)
def update_valoracion(empresa_id: int, valoracion_id: int, payload: ValoracionUpdate, db: Session = Depends(get_db),
                      _: Usuario = Depends(requiere_permiso("valoracion", "actualizar"))):
    return svc.actualizar_valoracion(db, empresa_id, valoracion_id, payload.model_dump(exclude_unset=True))


@router.delete("/{valoracion_id}", status_code=204)
def delete_valoracion(empresa_id: int, valoracion_id: int, db: Session = Depends(get_db),
                      _: Usuario = Depends(requiere_permiso("valoracion", "eliminar"))):
    svc.eliminar_valoracion(db, empresa_id, valoracion_id)

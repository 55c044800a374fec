from datetime import datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.auth import get_current_user, require_admin
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...domain.enums import TipoAccion, TipoRecurso
from ...application import services_empresas
from ...application.services_audit import log_audit
from ...application.validaciones import total_paginas
from ..contexto import client_ip, user_agent

router = APIRouter(prefix="/empresas", tags=["empresas"])


class EmpresaIn(BaseModel):
    nombre: str = Field(min_length=2, max_length=100)
    razon_social: str = Field(min_length=2, max_length=200)
    nombre_comercial: str | None = Field(default=None, max_length=100)
    ruc: str
    telefono: str | None = None
    tipo_empresa: str
    tipo_contribuyente: str | None = None
    latitud: float | None = Field(default=None, ge=-90, le=90)
    longitud: float | None = Field(default=None, ge=-180, le=180)


class EmpresaUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=2, max_length=100)
    nombre_comercial: str | None = Field(default=None, max_length=100)
    telefono: str | None = None
    tipo_empresa: str | None = None
    estado: str | None = Field(default=None, pattern="^(activo|inactivo)$")
    latitud: float | None = Field(default=None, ge=-90, le=90)
    longitud: float | None = Field(default=None, ge=-180, le=180)


class EmpresaOut(BaseModel):
    id: int
    nombre: str
    razon_social: str
    nombre_comercial: str | None = None
    ruc: str
    telefono: str | None = None
    tipo_empresa: str
    tipo_contribuyente: str
    estado: str
    latitud: float | None = None
    longitud: float | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class DireccionIn(BaseModel):
    tipo_direccion: str | None = Field(default="principal", max_length=30)
    departamento: str | None = None
    provincia: str | None = None
    distrito: str | None = None
    direccion: str = Field(min_length=1, max_length=300)
    codigo_postal: str | None = Field(default=None, max_length=10)
    referencia: str | None = Field(default=None, max_length=300)
    latitud: float | None = None
    longitud: float | None = None


class DireccionUpdate(BaseModel):
    tipo_direccion: str | None = None
    departamento: str | None = None
    provincia: str | None = None
    distrito: str | None = None
    direccion: str | None = Field(default=None, min_length=1, max_length=300)
    codigo_postal: str | None = None
    referencia: str | None = None
    latitud: float | None = None
    longitud: float | None = None
    activa: bool | None = None


class DireccionOut(BaseModel):
    id: int
    empresa_id: int
    tipo_direccion: str
    departamento: str | None = None
    provincia: str | None = None
    distrito: str | None = None
    direccion: str
    codigo_postal: str | None = None
    referencia: str | None = None
    latitud: float | None = None
    longitud: float | None = None
    activa: bool

    class Config:
        from_attributes = True


class MiembroIn(BaseModel):
    es_dueno: bool = False


class ImpuestoIn(BaseModel):
    nombre: str = Field(min_length=1, max_length=50)
    tipo: str = "IGV"
    tasa: Decimal
    activo: bool = True


class ImpuestoUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=1, max_length=50)
    tipo: str | None = None
    tasa: Decimal | None = None
    activo: bool | None = None


class ImpuestoOut(BaseModel):
    id: int
    empresa_id: int
    nombre: str
    tipo: str
    tasa: Decimal
    activo: bool

    class Config:
        from_attributes = True


def _auditar(request: Request, empresa_id: int, accion: TipoAccion, descripcion: str, usuario: Usuario,
             recurso: TipoRecurso = TipoRecurso.EMPRESA, **extra):
    log_audit(
        empresa_id, accion.value, recurso.value, descripcion,
        recurso_id=extra.pop("recurso_id", empresa_id),
        usuario_id=usuario.id,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
        **extra,
    )


# ===== Empresas =====

@router.post("", response_model=EmpresaOut, status_code=201)
def create_empresa(payload: EmpresaIn, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(get_current_user)):
    empresa = services_empresas.crear_empresa(db, payload.model_dump(), creador=usuario)
    _auditar(request, empresa.id, TipoAccion.CREAR, f"Empresa {empresa.nombre} creada", usuario,
             datos_nuevos={"ruc": empresa.ruc, "nombre": empresa.nombre})
    return empresa


@router.get("")
def list_empresas(
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(get_current_user),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None, description="Buscar por nombre o tipo de empresa"),
):
    items, total = services_empresas.listar_empresas(db, page, limit, search, usuario)
    return {
        "data": [EmpresaOut.model_validate(e) for e in items],
        "meta": {"total": total, "page": page, "limit": limit, "totalPages": total_paginas(total, limit)},
    }


@router.get("/{empresa_id}", response_model=EmpresaOut)
def get_empresa(empresa_id: int, db: Session = Depends(get_db),
                _: Usuario = Depends(requiere_permiso("empresa", "leer"))):
    return services_empresas.obtener_empresa(db, empresa_id)


@router.patch("/{empresa_id}", response_model=EmpresaOut)
def update_empresa(empresa_id: int, payload: EmpresaUpdate, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    cambios = payload.model_dump(exclude_unset=True)
    empresa = services_empresas.actualizar_empresa(db, empresa_id, cambios)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Empresa {empresa.nombre} actualizada", usuario,
             datos_nuevos=cambios)
    return empresa


@router.delete("/{empresa_id}", status_code=204)
def delete_empresa(empresa_id: int, db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    services_empresas.eliminar_empresa(db, empresa_id)


# ===== Direcciones =====

@router.post("/{empresa_id}/direcciones", response_model=DireccionOut, status_code=201)
def create_direccion(empresa_id: int, payload: DireccionIn, db: Session = Depends(get_db),
                     _: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    return services_empresas.crear_direccion(db, empresa_id, payload.model_dump())


@router.patch("/{empresa_id}/direcciones/{direccion_id}", response_model=DireccionOut)
def update_direccion(empresa_id: int, direccion_id: int, payload: DireccionUpdate, db: Session = Depends(get_db),
                     _: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    return services_empresas.actualizar_direccion(db, empresa_id, direccion_id, payload.model_dump(exclude_unset=True))


@router.delete("/{empresa_id}/direcciones/{direccion_id}", status_code=204)
def delete_direccion(empresa_id: int, direccion_id: int, db: Session = Depends(get_db),
                     _: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    services_empresas.eliminar_direccion(db, empresa_id, direccion_id)


# ===== Miembros =====

@router.post("/{empresa_id}/usuarios/{usuario_id}", status_code=201)
def add_miembro(empresa_id: int, usuario_id: int, request: Request, payload: MiembroIn | None = None,
                db: Session = Depends(get_db),
                usuario: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    es_dueno = payload.es_dueno if payload else False
    services_empresas.asignar_usuario(db, empresa_id, usuario_id, es_dueno)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Usuario {usuario_id} agregado a la empresa", usuario,
             recurso=TipoRecurso.USUARIO, recurso_id=usuario_id)
    return {"empresa_id": empresa_id, "usuario_id": usuario_id, "es_dueno": es_dueno, "activo": True}


@router.delete("/{empresa_id}/usuarios/{usuario_id}", status_code=204)
def remove_miembro(empresa_id: int, usuario_id: int, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("empresa", "actualizar"))):
    services_empresas.remover_usuario(db, empresa_id, usuario_id)
    _auditar(request, empresa_id, TipoAccion.ELIMINAR, f"Usuario {usuario_id} removido de la empresa", usuario,
             recurso=TipoRecurso.USUARIO, recurso_id=usuario_id)


# ===== Configuración de impuestos =====

@router.post("/{empresa_id}/configuracion-impuestos", response_model=ImpuestoOut, status_code=201)
def create_impuesto(empresa_id: int, payload: ImpuestoIn, request: Request, db: Session = Depends(get_db),
                    usuario: Usuario = Depends(requiere_permiso("configuracion", "actualizar"))):
    config = services_empresas.crear_configuracion_impuestos(db, empresa_id, payload.model_dump())
    _auditar(request, empresa_id, TipoAccion.CONFIGURAR, f"Impuesto {config.nombre} configurado", usuario,
             recurso=TipoRecurso.CONFIGURACION, recurso_id=config.id,
             datos_nuevos={"nombre": config.nombre, "tasa": config.tasa})
    return config


@router.get("/{empresa_id}/configuracion-impuestos", response_model=List[ImpuestoOut])
def list_impuestos(empresa_id: int, db: Session = Depends(get_db),
                   _: Usuario = Depends(requiere_permiso("configuracion", "leer"))):
    return services_empresas.listar_configuraciones_impuestos(db, empresa_id)


@router.patch("/{empresa_id}/configuracion-impuestos/{config_id}", response_model=ImpuestoOut)
def update_impuesto(empresa_id: int, config_id: int, payload: ImpuestoUpdate, request: Request,
                    db: Session = Depends(get_db),
                    usuario: Usuario = Depends(requiere_permiso("configuracion", "actualizar"))):
    cambios = payload.model_dump(exclude_unset=True)
    config = services_empresas.actualizar_configuracion_impuestos(db, empresa_id, config_id, cambios)
    _auditar(request, empresa_id, TipoAccion.CONFIGURAR, f"Impuesto {config.nombre} actualizado", usuario,
             recurso=TipoRecurso.CONFIGURACION, recurso_id=config.id, datos_nuevos=cambios)
    return config


@router.delete("/{empresa_id}/configuracion-impuestos/{config_id}", status_code=204)
def delete_impuesto(empresa_id: int, config_id: int, db: Session = Depends(get_db),
                    _: Usuario = Depends(requiere_permiso("configuracion", "actualizar"))):
    services_empresas.eliminar_configuracion_impuestos(db, empresa_id, config_id)

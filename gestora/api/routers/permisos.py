"""
Catálogo global de permisos, permisos directos por usuario y roles del sistema.
Escritura solo para administradores.
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.auth import get_current_user, require_admin
from ...domain.models import Usuario
from ...application import services_permisos

router = APIRouter(tags=["permisos"])


class PermisoIn(BaseModel):
    recurso: str = Field(min_length=1, max_length=50)
    accion: str = Field(min_length=1, max_length=50)
    descripcion: str | None = None


class PermisoOut(BaseModel):
    id: int
    recurso: str
    accion: str
    descripcion: str | None = None
    codigo: str

    class Config:
        from_attributes = True


class PermisoUsuarioIn(BaseModel):
    permiso_id: int


class RolSistemaIn(BaseModel):
    nombre: str = Field(min_length=1, max_length=50)
    descripcion: str | None = None
    permisos: List[int] = []


def _rol_sistema_out(rol) -> dict:
    return {
        "id": rol.id,
        "nombre": rol.nombre,
        "descripcion": rol.descripcion,
        "activo": rol.activo,
        "permisos": [rp.permiso.codigo for rp in rol.permisos],
    }


@router.get("/permisos", response_model=List[PermisoOut])
def list_permisos(db: Session = Depends(get_db), _: Usuario = Depends(get_current_user)):
    return services_permisos.listar_permisos(db)


@router.post("/permisos", response_model=PermisoOut, status_code=201)
def create_permiso(payload: PermisoIn, db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    return services_permisos.crear_permiso(db, payload.recurso, payload.accion, payload.descripcion)


@router.post("/permisos/usuarios/{usuario_id}", status_code=201)
def grant_permiso_usuario(usuario_id: int, payload: PermisoUsuarioIn, db: Session = Depends(get_db),
                          _: Usuario = Depends(require_admin)):
    otorgado = services_permisos.otorgar_permiso_usuario(db, usuario_id, payload.permiso_id)
    return {"id": otorgado.id, "usuario_id": usuario_id, "permiso_id": otorgado.permiso_id}


@router.delete("/permisos/usuarios/{usuario_id}/{permiso_id}", status_code=204)
def revoke_permiso_usuario(usuario_id: int, permiso_id: int, db: Session = Depends(get_db),
                           _: Usuario = Depends(require_admin)):
    services_permisos.revocar_permiso_usuario(db, usuario_id, permiso_id)


@router.get("/roles-sistema")
def list_roles_sistema(db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    return [_rol_sistema_out(r) for r in services_permisos.listar_roles_sistema(db)]


@router.post("/roles-sistema", status_code=201)
def create_rol_sistema(payload: RolSistemaIn, db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    rol = services_permisos.crear_rol_sistema(db, payload.nombre, payload.descripcion, payload.permisos)
    return _rol_sistema_out(rol)

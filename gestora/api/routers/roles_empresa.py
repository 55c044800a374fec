"""
Roles por empresa
=================

CRUD de roles, permisos del rol, asignación a usuarios y verificación de permisos.
Las rutas fijas se declaran antes de /{rol_id}.
"""
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario, RolEmpresa
from ...domain.enums import TipoAccion, TipoRecurso
from ...application import services_roles_empresa as svc
from ...application.services_audit import log_audit
from ...application.services_permisos import verificar_permiso
from ..contexto import client_ip, user_agent

router = APIRouter(prefix="/empresas/{empresa_id}/roles", tags=["roles-empresa"])


class RolIn(BaseModel):
    nombre: str
    descripcion: str | None = None
    horario_inicio: str | None = None
    horario_fin: str | None = None
    fecha_inicio: datetime | None = None
    fecha_fin: datetime | None = None
    activo: bool = True
    permisos: List[int] = []


class RolUpdate(BaseModel):
    nombre: str | None = None
    descripcion: str | None = None
    horario_inicio: str | None = None
    horario_fin: str | None = None
    fecha_inicio: datetime | None = None
    fecha_fin: datetime | None = None
    activo: bool | None = None


class PermisosRolIn(BaseModel):
    permisos: List[int]


class AsignacionIn(BaseModel):
    usuario_id: int
    rol_id: int
    fecha_inicio: datetime | None = None
    fecha_fin: datetime | None = None


class AsignacionOut(BaseModel):
    id: int
    usuario_id: int
    rol_id: int
    fecha_inicio: datetime
    fecha_fin: datetime | None = None

    class Config:
        from_attributes = True


def _rol_out(db: Session, rol: RolEmpresa) -> dict:
    return {
        "id": rol.id,
        "empresa_id": rol.empresa_id,
        "nombre": rol.nombre,
        "descripcion": rol.descripcion,
        "horario_inicio": rol.horario_inicio,
        "horario_fin": rol.horario_fin,
        "fecha_inicio": rol.fecha_inicio,
        "fecha_fin": rol.fecha_fin,
        "activo": rol.activo,
        "permisos": [{"permiso_id": p.permiso_id, "recurso": p.recurso, "accion": p.accion} for p in rol.permisos],
        "usuarios_activos": svc.contar_asignaciones_activas(db, rol.id),
        "created_at": rol.created_at,
        "updated_at": rol.updated_at,
    }


def _auditar(request: Request, empresa_id: int, accion: TipoAccion, descripcion: str, usuario: Usuario,
             recurso_id, recurso: TipoRecurso = TipoRecurso.CONFIGURACION, **extra):
    log_audit(empresa_id, accion.value, recurso.value, descripcion, recurso_id=recurso_id,
              usuario_id=usuario.id, ip_address=client_ip(request), user_agent=user_agent(request), **extra)


# ===== Rutas fijas =====

@router.get("/verificar-permiso")
def check_permiso(
    empresa_id: int,
    usuario_id: int = Query(...),
    recurso: str = Query(..., min_length=1),
    accion: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("rol", "leer")),
):
    resultado = verificar_permiso(db, usuario_id, empresa_id, recurso, accion)
    return {
        "usuario_id": usuario_id,
        "empresa_id": empresa_id,
        "recurso": recurso,
        "accion": accion,
        "tiene_permiso": resultado.tiene_permiso,
        "origen": resultado.origen,
        "rol": resultado.rol,
    }


@router.post("/asignar", response_model=AsignacionOut, status_code=201)
def assign_rol(empresa_id: int, payload: AsignacionIn, request: Request, db: Session = Depends(get_db),
               usuario: Usuario = Depends(requiere_permiso("rol", "asignar"))):
    asignacion = svc.asignar_rol(db, empresa_id, payload.usuario_id, payload.rol_id,
                                 payload.fecha_inicio, payload.fecha_fin)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR,
             f"Rol {payload.rol_id} asignado al usuario {payload.usuario_id}", usuario,
             payload.usuario_id, recurso=TipoRecurso.USUARIO)
    return asignacion


@router.delete("/remover/{usuario_id}/{rol_id}", response_model=AsignacionOut)
def unassign_rol(empresa_id: int, usuario_id: int, rol_id: int, request: Request, db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("rol", "asignar"))):
    asignacion = svc.remover_rol(db, empresa_id, usuario_id, rol_id)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Rol {rol_id} removido del usuario {usuario_id}",
             usuario, usuario_id, recurso=TipoRecurso.USUARIO)
    return asignacion


@router.post("/inicializar", status_code=201)
def init_roles(empresa_id: int, request: Request, db: Session = Depends(get_db),
               usuario: Usuario = Depends(requiere_permiso("rol", "crear"))):
    roles = svc.inicializar_roles_predefinidos(db, empresa_id)
    _auditar(request, empresa_id, TipoAccion.CREAR, "Roles predefinidos inicializados", usuario, None)
    return [_rol_out(db, r) for r in roles]


# ===== CRUD =====

@router.post("", status_code=201)
def create_rol(empresa_id: int, payload: RolIn, request: Request, db: Session = Depends(get_db),
               usuario: Usuario = Depends(requiere_permiso("rol", "crear"))):
    rol, advertencias = svc.crear_rol(db, empresa_id, payload.model_dump())
    _auditar(request, empresa_id, TipoAccion.CREAR, f"Rol {rol.nombre} creado", usuario, rol.id,
             datos_nuevos={"nombre": rol.nombre, "permisos": payload.permisos})
    return {**_rol_out(db, rol), "advertencias": advertencias}


@router.get("")
def list_roles(empresa_id: int, db: Session = Depends(get_db),
               _: Usuario = Depends(requiere_permiso("rol", "leer"))):
    return [_rol_out(db, r) for r in svc.listar_roles(db, empresa_id)]


@router.get("/{rol_id}")
def get_rol(empresa_id: int, rol_id: int, db: Session = Depends(get_db),
            _: Usuario = Depends(requiere_permiso("rol", "leer"))):
    return _rol_out(db, svc.obtener_rol(db, empresa_id, rol_id))


@router.patch("/{rol_id}")
def update_rol(empresa_id: int, rol_id: int, payload: RolUpdate, request: Request, db: Session = Depends(get_db),
               usuario: Usuario = Depends(requiere_permiso("rol", "actualizar"))):
    cambios = payload.model_dump(exclude_unset=True)
    rol, advertencias = svc.actualizar_rol(db, empresa_id, rol_id, cambios)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Rol {rol.nombre} actualizado", usuario, rol.id,
             datos_nuevos=cambios)
    return {**_rol_out(db, rol), "advertencias": advertencias}


@router.delete("/{rol_id}", status_code=204)
def delete_rol(empresa_id: int, rol_id: int, request: Request, db: Session = Depends(get_db),
               usuario: Usuario = Depends(requiere_permiso("rol", "eliminar"))):
    svc.eliminar_rol(db, empresa_id, rol_id)
    _auditar(request, empresa_id, TipoAccion.ELIMINAR, f"Rol {rol_id} eliminado", usuario, rol_id)


@router.post("/{rol_id}/permisos")
def set_permisos(empresa_id: int, rol_id: int, payload: PermisosRolIn, request: Request,
                 db: Session = Depends(get_db),
                 usuario: Usuario = Depends(requiere_permiso("rol", "actualizar"))):
    rol = svc.asignar_permisos(db, empresa_id, rol_id, payload.permisos)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Permisos del rol {rol.nombre} reemplazados", usuario,
             rol.id, datos_nuevos={"permisos": payload.permisos})
    return _rol_out(db, rol)


@router.delete("/{rol_id}/permisos/{permiso_id}", status_code=204)
def remove_permiso(empresa_id: int, rol_id: int, permiso_id: int, db: Session = Depends(get_db),
                   _: Usuario = Depends(requiere_permiso("rol", "actualizar"))):
    svc.remover_permiso(db, empresa_id, rol_id, permiso_id)

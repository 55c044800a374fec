"""
Catálogo global de permisos y resolución de permisos por empresa.

Resolución en tres niveles, en este orden:
1. Permiso directo del usuario
2. Roles de empresa con asignación activa (vigencia y horario del rol),
   recorridos por id de asignación; gana el primero que otorga
3. Rol del sistema del usuario
Sin caché y sin permisos de denegación: la ausencia de permiso es denegación.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy.orm import Session, selectinload

from ..domain.models import (
    Permiso, PermisoUsuario, Usuario, Rol, RolPermiso, RolEmpresa, UsuarioRolEmpresa,
)
from ..domain.enums import OrigenPermiso
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ConflictoError, ValidacionError

logger = logging.getLogger(__name__)

ACCIONES_CRUD = ("crear", "leer", "actualizar", "eliminar")

# Catálogo base: (recurso, accion, descripcion)
PERMISOS_DISPONIBLES: List[Tuple[str, str, str]] = (
    [("empresa", "leer", "Ver datos de la empresa"),
     ("empresa", "actualizar", "Editar datos, direcciones y miembros de la empresa"),
     ("configuracion", "leer", "Ver configuración de impuestos"),
     ("configuracion", "actualizar", "Editar configuración de impuestos")]
    + [("rol", a, f"Roles de empresa: {a}") for a in ACCIONES_CRUD]
    + [("rol", "asignar", "Asignar y remover roles de empresa a usuarios")]
    + [("cliente", a, f"Clientes: {a}") for a in ACCIONES_CRUD]
    + [("producto", a, f"Productos: {a}") for a in ACCIONES_CRUD]
    + [("venta", a, f"Documentos de venta: {a}") for a in ACCIONES_CRUD]
    + [("venta", "aprobar", "Aprobar y cancelar órdenes de venta")]
    + [("archivo", a, f"Archivos: {a}") for a in ACCIONES_CRUD]
    + [("valoracion", a, f"Valoraciones: {a}") for a in ACCIONES_CRUD]
    + [("valoracion", "moderar", "Moderar valoraciones")]
    + [("auditoria", "crear", "Registrar eventos de auditoría"),
       ("auditoria", "leer", "Consultar eventos y estadísticas de auditoría"),
       ("auditoria", "exportar", "Exportar eventos de auditoría"),
       ("auditoria", "eliminar", "Depurar eventos de auditoría antiguos")]
)


@dataclass
class ResultadoPermiso:
    tiene_permiso: bool
    origen: Optional[str] = None
    rol: Optional[str] = None


# ===== Catálogo =====

def sembrar_permisos(db: Session) -> int:
    """Inserta los permisos del catálogo que falten. Idempotente."""
    existentes = {(p.recurso, p.accion) for p in db.query(Permiso).all()}
    nuevos = [
        Permiso(recurso=r, accion=a, descripcion=d)
        for r, a, d in PERMISOS_DISPONIBLES
        if (r, a) not in existentes
    ]
    if nuevos:
        db.add_all(nuevos)
        db.commit()
        logger.info("Catálogo de permisos: %s permisos agregados", len(nuevos))
    return len(nuevos)


def listar_permisos(db: Session) -> List[Permiso]:
    return UnitOfWork(db).permisos.list()


def crear_permiso(db: Session, recurso: str, accion: str, descripcion: Optional[str] = None) -> Permiso:
    recurso, accion = recurso.strip().lower(), accion.strip().lower()
    if not recurso or not accion:
        raise ValidacionError("Recurso y acción son obligatorios")
    uow = UnitOfWork(db)
    if uow.permisos.by_codigo(recurso, accion):
        raise ConflictoError(f"El permiso {recurso}.{accion} ya existe")
    with uow.transaction():
        permiso = Permiso(recurso=recurso, accion=accion, descripcion=descripcion)
        db.add(permiso)
    db.refresh(permiso)
    return permiso


def otorgar_permiso_usuario(db: Session, usuario_id: int, permiso_id: int) -> PermisoUsuario:
    if not db.get(Usuario, usuario_id):
        raise NoEncontradoError(f"Usuario con ID {usuario_id} no encontrado")
    uow = UnitOfWork(db)
    if not uow.permisos.get(permiso_id):
        raise NoEncontradoError(f"Permiso con ID {permiso_id} no encontrado")
    existente = db.query(PermisoUsuario).filter(
        PermisoUsuario.usuario_id == usuario_id, PermisoUsuario.permiso_id == permiso_id
    ).first()
    if existente:
        raise ConflictoError("El usuario ya tiene este permiso")
    with uow.transaction():
        otorgado = PermisoUsuario(usuario_id=usuario_id, permiso_id=permiso_id)
        db.add(otorgado)
    db.refresh(otorgado)
    return otorgado


def revocar_permiso_usuario(db: Session, usuario_id: int, permiso_id: int) -> None:
    otorgado = db.query(PermisoUsuario).filter(
        PermisoUsuario.usuario_id == usuario_id, PermisoUsuario.permiso_id == permiso_id
    ).first()
    if not otorgado:
        raise NoEncontradoError(f"El permiso {permiso_id} no está asignado al usuario {usuario_id}")
    with UnitOfWork(db).transaction():
        db.delete(otorgado)


# ===== Roles del sistema =====

def listar_roles_sistema(db: Session) -> List[Rol]:
    return db.query(Rol).options(selectinload(Rol.permisos).selectinload(RolPermiso.permiso)).order_by(Rol.nombre).all()


def crear_rol_sistema(db: Session, nombre: str, descripcion: Optional[str] = None,
                      permiso_ids: Optional[List[int]] = None) -> Rol:
    nombre = (nombre or "").strip()
    if not nombre:
        raise ValidacionError("El nombre del rol es obligatorio")
    if db.query(Rol.id).filter(Rol.nombre == nombre).first():
        raise ConflictoError(f"Ya existe un rol del sistema con el nombre '{nombre}'")
    uow = UnitOfWork(db)
    permisos = []
    for permiso_id in permiso_ids or []:
        permiso = uow.permisos.get(permiso_id)
        if not permiso:
            raise NoEncontradoError(f"Permiso con ID {permiso_id} no encontrado")
        permisos.append(permiso)
    with uow.transaction():
        rol = Rol(nombre=nombre, descripcion=descripcion)
        rol.permisos = [RolPermiso(permiso_id=p.id) for p in permisos]
        db.add(rol)
    db.refresh(rol)
    logger.info("Rol del sistema creado: %s (%s permisos)", rol.nombre, len(permisos))
    return rol


def asignar_rol_sistema(db: Session, usuario_id: int, rol_id: Optional[int]) -> Usuario:
    """Asigna (o quita, con rol_id None) el rol del sistema de un usuario."""
    usuario = db.get(Usuario, usuario_id)
    if not usuario:
        raise NoEncontradoError(f"Usuario con ID {usuario_id} no encontrado")
    if rol_id is not None and not db.get(Rol, rol_id):
        raise NoEncontradoError(f"Rol con ID {rol_id} no encontrado")
    with UnitOfWork(db).transaction():
        usuario.rol_id = rol_id
    db.refresh(usuario)
    return usuario


# ===== Ventanas de tiempo del rol =====

def minutos_del_dia(hhmm: str) -> int:
    horas, minutos = hhmm.split(":")
    return int(horas) * 60 + int(minutos)


def dentro_de_horario(rol: RolEmpresa, momento: datetime) -> bool:
    """Sin horario definido el rol aplica todo el día."""
    if not rol.horario_inicio or not rol.horario_fin:
        return True
    actual = momento.hour * 60 + momento.minute
    return minutos_del_dia(rol.horario_inicio) <= actual <= minutos_del_dia(rol.horario_fin)


def dentro_de_vigencia(rol: RolEmpresa, momento: datetime) -> bool:
    if rol.fecha_inicio and momento < rol.fecha_inicio:
        return False
    if rol.fecha_fin and momento > rol.fecha_fin:
        return False
    return True


# ===== Resolución =====

def _permiso_directo(db: Session, usuario_id: int, recurso: str, accion: str) -> bool:
    return db.query(PermisoUsuario.id).join(Permiso, Permiso.id == PermisoUsuario.permiso_id).filter(
        PermisoUsuario.usuario_id == usuario_id,
        Permiso.recurso == recurso,
        Permiso.accion == accion,
    ).first() is not None


def _asignaciones_activas(db: Session, usuario_id: int, empresa_id: int, ahora: datetime) -> List[UsuarioRolEmpresa]:
    return (
        db.query(UsuarioRolEmpresa)
        .join(RolEmpresa, RolEmpresa.id == UsuarioRolEmpresa.rol_id)
        .options(selectinload(UsuarioRolEmpresa.rol).selectinload(RolEmpresa.permisos))
        .filter(
            UsuarioRolEmpresa.usuario_id == usuario_id,
            RolEmpresa.empresa_id == empresa_id,
            RolEmpresa.activo == True,
            UsuarioRolEmpresa.esta_activa(ahora),
        )
        .order_by(UsuarioRolEmpresa.id.asc())
        .all()
    )


def _rol_sistema_otorga(db: Session, usuario_id: int, recurso: str, accion: str) -> Optional[str]:
    fila = (
        db.query(Rol.nombre)
        .join(Usuario, Usuario.rol_id == Rol.id)
        .join(RolPermiso, RolPermiso.rol_id == Rol.id)
        .join(Permiso, Permiso.id == RolPermiso.permiso_id)
        .filter(
            Usuario.id == usuario_id,
            Rol.activo == True,
            Permiso.recurso == recurso,
            Permiso.accion == accion,
        )
        .first()
    )
    return fila[0] if fila else None


def verificar_permiso(
    db: Session,
    usuario_id: int,
    empresa_id: int,
    recurso: str,
    accion: str,
    ahora: Optional[datetime] = None,
) -> ResultadoPermiso:
    ahora = ahora or datetime.now()

    if _permiso_directo(db, usuario_id, recurso, accion):
        return ResultadoPermiso(True, OrigenPermiso.DIRECTO.value)

    for asignacion in _asignaciones_activas(db, usuario_id, empresa_id, ahora):
        rol = asignacion.rol
        if not dentro_de_vigencia(rol, ahora) or not dentro_de_horario(rol, ahora):
            continue
        if any(p.recurso == recurso and p.accion == accion for p in rol.permisos):
            return ResultadoPermiso(True, OrigenPermiso.ROL_EMPRESA.value, rol.nombre)

    nombre_rol = _rol_sistema_otorga(db, usuario_id, recurso, accion)
    if nombre_rol:
        return ResultadoPermiso(True, OrigenPermiso.ROL_SISTEMA.value, nombre_rol)

    return ResultadoPermiso(False)


def tiene_permiso(
    db: Session,
    usuario_id: int,
    empresa_id: int,
    recurso: str,
    accion: str,
    ahora: Optional[datetime] = None,
) -> bool:
    return verificar_permiso(db, usuario_id, empresa_id, recurso, accion, ahora).tiene_permiso

"""
Servicio de Roles de Empresa
============================

Roles definidos por cada empresa, con permisos del catálogo global,
horario diario opcional (HH:MM) y vigencia opcional.

Reglas:
- Nombre único por empresa (409 si se repite), máximo 50 roles por empresa
- Horario entre 06:00 y 23:00; más de 8 horas solo genera advertencia
- Vigencia: inicio < fin, fin no pasada, máximo 5 años
- No se elimina un rol con asignaciones activas
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..domain.models import RolEmpresa, PermisoRolEmpresa, UsuarioRolEmpresa, Permiso
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError, ConflictoError
from .validaciones import ejecutar_validaciones, fecha_local, validar_no_nulos
from .services_empresas import obtener_empresa, es_miembro_activo
from .services_permisos import minutos_del_dia

logger = logging.getLogger(__name__)

MAX_ROLES_POR_EMPRESA = 50
NOMBRE_MIN, NOMBRE_MAX = 3, 100
DESCRIPCION_MAX = 1000
NOMBRES_RESERVADOS = {"ADMIN", "ROOT", "SUDO", "SYSTEM"}
NOMBRE_REGEX = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑ0-9\s\-_]+$")
HORA_REGEX = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
HORARIO_MINIMO = 6 * 60   # 06:00
HORARIO_MAXIMO = 23 * 60  # 23:00
JORNADA_MAXIMA = 8 * 60   # Jornada legal diaria
HORA_TEMPRANA = 7 * 60
HORA_TARDIA = 22 * 60
VIGENCIA_MAXIMA = timedelta(days=5 * 365)

# Roles que crea /inicializar. Permisos: None = todo el catálogo.
ROLES_PREDEFINIDOS = [
    {"nombre": "Administrador", "descripcion": "Administrador de la empresa con acceso total",
     "acciones": None},
    {"nombre": "Gerente", "descripcion": "Gerente con acceso a la mayoría de funcionalidades",
     "excluir_acciones": {"eliminar"}},
    {"nombre": "Empleado", "descripcion": "Empleado con acceso básico",
     "acciones": {"leer"}},
]


# ===== Pasos de validación =====

def validar_nombre(nombre: Optional[str]) -> None:
    if nombre is None:
        return
    if nombre != nombre.strip():
        raise ValidacionError("El nombre no puede empezar ni terminar con espacios")
    if not (NOMBRE_MIN <= len(nombre) <= NOMBRE_MAX):
        raise ValidacionError(f"El nombre debe tener entre {NOMBRE_MIN} y {NOMBRE_MAX} caracteres")
    if not NOMBRE_REGEX.match(nombre):
        raise ValidacionError("El nombre solo puede contener letras, números, espacios, guiones y guiones bajos")
    if nombre.upper() in NOMBRES_RESERVADOS:
        raise ValidacionError(f"El nombre '{nombre}' está reservado por el sistema")


def validar_descripcion(descripcion: Optional[str]) -> None:
    if descripcion is not None and len(descripcion) > DESCRIPCION_MAX:
        raise ValidacionError(f"La descripción no puede exceder {DESCRIPCION_MAX} caracteres")


def validar_horario(inicio: Optional[str], fin: Optional[str]) -> List[str]:
    """Valida el horario diario. Devuelve advertencias (no bloqueantes)."""
    if inicio is None and fin is None:
        return []
    if not inicio or not fin:
        raise ValidacionError("Debe indicar horario_inicio y horario_fin")
    for valor in (inicio, fin):
        if not HORA_REGEX.match(valor):
            raise ValidacionError(f"Formato de hora inválido: {valor}. Use HH:MM")
    desde, hasta = minutos_del_dia(inicio), minutos_del_dia(fin)
    if desde >= hasta:
        raise ValidacionError("La hora de inicio debe ser anterior a la hora de fin")
    if desde < HORARIO_MINIMO or hasta > HORARIO_MAXIMO:
        raise ValidacionError("El horario debe estar entre 06:00 y 23:00")

    advertencias = []
    if hasta - desde > JORNADA_MAXIMA:
        advertencias.append(
            f"El horario {inicio}-{fin} supera la jornada máxima de 8 horas diarias"
        )
    if desde < HORA_TEMPRANA or hasta > HORA_TARDIA:
        advertencias.append(f"El horario {inicio}-{fin} incluye horas atípicas (antes de 07:00 o después de 22:00)")
    for advertencia in advertencias:
        logger.warning("Rol con horario no conforme: %s", advertencia)
    return advertencias


def validar_fechas(inicio: Optional[datetime], fin: Optional[datetime], ahora: Optional[datetime] = None) -> None:
    ahora = ahora or datetime.now()
    if inicio and fin and inicio >= fin:
        raise ValidacionError("La fecha de inicio debe ser anterior a la fecha de fin")
    if fin and fin < ahora:
        raise ValidacionError("La fecha de fin no puede estar en el pasado")
    if inicio and fin and fin - inicio > VIGENCIA_MAXIMA:
        raise ValidacionError("La vigencia del rol no puede superar 5 años")


def validar_nombre_unico(db: Session, empresa_id: int, nombre: str, excluir_id: Optional[int] = None) -> None:
    q = db.query(RolEmpresa.id).filter(RolEmpresa.empresa_id == empresa_id, RolEmpresa.nombre == nombre)
    if excluir_id:
        q = q.filter(RolEmpresa.id != excluir_id)
    if q.first():
        raise ConflictoError(f"Ya existe un rol con el nombre '{nombre}' en esta empresa")


def validar_limite_roles(db: Session, empresa_id: int) -> None:
    if UnitOfWork(db).roles.count(empresa_id) >= MAX_ROLES_POR_EMPRESA:
        raise ValidacionError(f"La empresa alcanzó el máximo de {MAX_ROLES_POR_EMPRESA} roles")


# ===== Consultas =====

def obtener_rol(db: Session, empresa_id: int, rol_id: int) -> RolEmpresa:
    rol = UnitOfWork(db).roles.get(empresa_id, rol_id)
    if not rol:
        raise NoEncontradoError(f"Rol con ID {rol_id} no encontrado en la empresa")
    return rol


def listar_roles(db: Session, empresa_id: int) -> List[RolEmpresa]:
    obtener_empresa(db, empresa_id)
    return UnitOfWork(db).roles.list(empresa_id)


def contar_asignaciones_activas(db: Session, rol_id: int, ahora: Optional[datetime] = None) -> int:
    ahora = ahora or datetime.now()
    return db.query(func.count(UsuarioRolEmpresa.id)).filter(
        UsuarioRolEmpresa.rol_id == rol_id,
        UsuarioRolEmpresa.esta_activa(ahora),
    ).scalar() or 0


def _permisos_por_ids(db: Session, permiso_ids: List[int]) -> List[Permiso]:
    ids = list(dict.fromkeys(permiso_ids))
    permisos = UnitOfWork(db).permisos.by_ids(ids)
    faltantes = set(ids) - {p.id for p in permisos}
    if faltantes:
        raise NoEncontradoError(f"Permisos no encontrados: {', '.join(str(i) for i in sorted(faltantes))}")
    return sorted(permisos, key=lambda p: ids.index(p.id))


def _otorgar(rol: RolEmpresa, permisos: List[Permiso]) -> None:
    for permiso in permisos:
        rol.permisos.append(PermisoRolEmpresa(
            permiso_id=permiso.id, recurso=permiso.recurso, accion=permiso.accion
        ))


# ===== CRUD =====

def crear_rol(db: Session, empresa_id: int, datos: Dict[str, Any]) -> Tuple[RolEmpresa, List[str]]:
    obtener_empresa(db, empresa_id)
    datos = dict(datos)
    datos["fecha_inicio"] = fecha_local(datos.get("fecha_inicio"))
    datos["fecha_fin"] = fecha_local(datos.get("fecha_fin"))

    advertencias = ejecutar_validaciones([
        lambda d: validar_nombre(d["nombre"]),
        lambda d: validar_descripcion(d.get("descripcion")),
        lambda d: validar_horario(d.get("horario_inicio"), d.get("horario_fin")),
        lambda d: validar_fechas(d.get("fecha_inicio"), d.get("fecha_fin")),
        lambda d: validar_limite_roles(db, empresa_id),
        lambda d: validar_nombre_unico(db, empresa_id, d["nombre"]),
    ], datos)
    permisos = _permisos_por_ids(db, datos.get("permisos") or [])

    uow = UnitOfWork(db)
    with uow.transaction():
        rol = uow.roles.add(RolEmpresa(
            empresa_id=empresa_id,
            nombre=datos["nombre"],
            descripcion=datos.get("descripcion"),
            horario_inicio=datos.get("horario_inicio"),
            horario_fin=datos.get("horario_fin"),
            fecha_inicio=datos.get("fecha_inicio"),
            fecha_fin=datos.get("fecha_fin"),
            activo=datos.get("activo", True),
        ))
        _otorgar(rol, permisos)
    db.refresh(rol)
    logger.info("Rol '%s' creado en empresa %s", rol.nombre, empresa_id)
    return rol, advertencias


def actualizar_rol(db: Session, empresa_id: int, rol_id: int, cambios: Dict[str, Any]) -> Tuple[RolEmpresa, List[str]]:
    """Solo se revalidan los campos enviados."""
    rol = obtener_rol(db, empresa_id, rol_id)
    cambios = dict(cambios)
    validar_no_nulos(cambios, RolEmpresa)
    for campo in ("fecha_inicio", "fecha_fin"):
        if campo in cambios:
            cambios[campo] = fecha_local(cambios[campo])

    pasos = []
    if "nombre" in cambios:
        pasos += [
            lambda d: validar_nombre(d["nombre"]),
            lambda d: validar_nombre_unico(db, empresa_id, d["nombre"], excluir_id=rol_id),
        ]
    if "descripcion" in cambios:
        pasos.append(lambda d: validar_descripcion(d["descripcion"]))
    if "horario_inicio" in cambios or "horario_fin" in cambios:
        pasos.append(lambda d: validar_horario(
            d.get("horario_inicio", rol.horario_inicio), d.get("horario_fin", rol.horario_fin)
        ))
    if "fecha_inicio" in cambios or "fecha_fin" in cambios:
        pasos.append(lambda d: validar_fechas(
            d.get("fecha_inicio", rol.fecha_inicio), d.get("fecha_fin", rol.fecha_fin)
        ))
    advertencias = ejecutar_validaciones(pasos, cambios)

    with UnitOfWork(db).transaction():
        for campo in ("nombre", "descripcion", "horario_inicio", "horario_fin", "fecha_inicio", "fecha_fin", "activo"):
            if campo in cambios:
                setattr(rol, campo, cambios[campo])
    db.refresh(rol)
    return rol, advertencias


def eliminar_rol(db: Session, empresa_id: int, rol_id: int) -> None:
    rol = obtener_rol(db, empresa_id, rol_id)
    activas = contar_asignaciones_activas(db, rol.id)
    if activas:
        raise ConflictoError(
            f"No se puede eliminar el rol '{rol.nombre}': tiene {activas} usuario(s) asignado(s) activamente"
        )
    with UnitOfWork(db).transaction():
        db.delete(rol)
    logger.info("Rol %s eliminado de la empresa %s", rol_id, empresa_id)


# ===== Permisos del rol =====

def asignar_permisos(db: Session, empresa_id: int, rol_id: int, permiso_ids: List[int]) -> RolEmpresa:
    """Reemplaza todos los permisos del rol por los indicados."""
    rol = obtener_rol(db, empresa_id, rol_id)
    permisos = _permisos_por_ids(db, permiso_ids)
    with UnitOfWork(db).transaction():
        rol.permisos.clear()
        db.flush()
        _otorgar(rol, permisos)
    db.refresh(rol)
    logger.info("Rol %s: %s permisos asignados", rol_id, len(permisos))
    return rol


def remover_permiso(db: Session, empresa_id: int, rol_id: int, permiso_id: int) -> None:
    obtener_rol(db, empresa_id, rol_id)
    otorgado = db.query(PermisoRolEmpresa).filter(
        PermisoRolEmpresa.rol_id == rol_id, PermisoRolEmpresa.permiso_id == permiso_id
    ).first()
    if not otorgado:
        raise NoEncontradoError(f"El permiso {permiso_id} no está asignado al rol {rol_id}")
    with UnitOfWork(db).transaction():
        db.delete(otorgado)
    logger.info("Permiso %s eliminado del rol %s de la empresa %s", permiso_id, rol_id, empresa_id)


# ===== Asignación de roles a usuarios =====

def asignar_rol(
    db: Session,
    empresa_id: int,
    usuario_id: int,
    rol_id: int,
    fecha_inicio: Optional[datetime] = None,
    fecha_fin: Optional[datetime] = None,
) -> UsuarioRolEmpresa:
    rol = obtener_rol(db, empresa_id, rol_id)
    if not es_miembro_activo(db, empresa_id, usuario_id):
        raise ValidacionError("El usuario no pertenece a esta empresa")
    fecha_inicio, fecha_fin = fecha_local(fecha_inicio), fecha_local(fecha_fin)
    validar_fechas(fecha_inicio, fecha_fin)

    ahora = datetime.now()
    existente = db.query(UsuarioRolEmpresa.id).filter(
        UsuarioRolEmpresa.usuario_id == usuario_id,
        UsuarioRolEmpresa.rol_id == rol.id,
        UsuarioRolEmpresa.esta_activa(ahora),
    ).first()
    if existente:
        raise ConflictoError("El usuario ya tiene este rol asignado")

    with UnitOfWork(db).transaction():
        asignacion = UsuarioRolEmpresa(
            usuario_id=usuario_id, rol_id=rol.id,
            fecha_inicio=fecha_inicio or ahora, fecha_fin=fecha_fin,
        )
        db.add(asignacion)
    db.refresh(asignacion)
    logger.info("Rol '%s' asignado al usuario %s en empresa %s", rol.nombre, usuario_id, empresa_id)
    return asignacion


def remover_rol(db: Session, empresa_id: int, usuario_id: int, rol_id: int) -> UsuarioRolEmpresa:
    """Cierra la asignación activa (fecha_fin = ahora); el historial se conserva."""
    obtener_rol(db, empresa_id, rol_id)
    ahora = datetime.now()
    asignacion = db.query(UsuarioRolEmpresa).filter(
        UsuarioRolEmpresa.usuario_id == usuario_id,
        UsuarioRolEmpresa.rol_id == rol_id,
        UsuarioRolEmpresa.esta_activa(ahora),
    ).first()
    if not asignacion:
        raise NoEncontradoError("El usuario no tiene este rol asignado")
    with UnitOfWork(db).transaction():
        asignacion.fecha_fin = ahora
    db.refresh(asignacion)
    return asignacion


# ===== Roles predefinidos =====

def inicializar_roles_predefinidos(db: Session, empresa_id: int) -> List[RolEmpresa]:
    obtener_empresa(db, empresa_id)
    uow = UnitOfWork(db)
    if uow.roles.count(empresa_id) > 0:
        raise ConflictoError(
            "Ya existen roles para esta empresa. No se pueden inicializar roles predefinidos."
        )
    catalogo = uow.permisos.list()
    creados = []
    with uow.transaction():
        for definicion in ROLES_PREDEFINIDOS:
            if definicion.get("acciones"):
                permisos = [p for p in catalogo if p.accion in definicion["acciones"]]
            elif definicion.get("excluir_acciones"):
                permisos = [p for p in catalogo if p.accion not in definicion["excluir_acciones"]]
            else:
                permisos = list(catalogo)
            rol = uow.roles.add(RolEmpresa(
                empresa_id=empresa_id, nombre=definicion["nombre"], descripcion=definicion["descripcion"]
            ))
            _otorgar(rol, permisos)
            creados.append(rol)
    for rol in creados:
        db.refresh(rol)
    logger.info("Roles predefinidos creados en empresa %s", empresa_id)
    return creados

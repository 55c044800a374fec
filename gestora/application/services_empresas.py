"""
Servicio de Empresas (registro de inquilinos)
- RUC peruano: 11 dígitos, prefijo 10/15/17/20 y dígito verificador
- Direcciones, miembros y configuración de impuestos por empresa
"""
import logging
import re
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, List

from sqlalchemy import select, update, delete, and_
from sqlalchemy.orm import Session

from ..domain.models import Empresa, Direccion, ConfiguracionImpuestos, Usuario, usuario_empresas
from ..domain.enums import TipoEmpresa, TipoContribuyente, TipoImpuesto, EstadoEmpresa
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError, ConflictoError
from .validaciones import ejecutar_validaciones, validar_paginacion, validar_no_nulos

logger = logging.getLogger(__name__)

RUC_REGEX = re.compile(r"^(10|15|17|20)\d{9}$")
TELEFONO_REGEX = re.compile(r"^\+51[0-9]{9}$")
RUC_FACTORES = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)

TIPOS_EMPRESA_VALIDOS = [t.value for t in TipoEmpresa]
TIPOS_CONTRIBUYENTE_VALIDOS = [t.value for t in TipoContribuyente]


# ===== Validaciones =====

def ruc_digito_verificador_valido(ruc: str) -> bool:
    """Módulo 11 con factores 5,4,3,2,7,6,5,4,3,2 sobre los 10 primeros dígitos."""
    if len(ruc) != 11 or not ruc.isdigit():
        return False
    suma = sum(int(d) * f for d, f in zip(ruc[:10], RUC_FACTORES))
    resto = suma % 11
    digito = resto if resto < 2 else 11 - resto
    return digito == int(ruc[10])


def validar_ruc(ruc: str) -> None:
    if not ruc or not RUC_REGEX.match(ruc):
        raise ValidacionError("El RUC debe tener 11 dígitos y empezar con 10, 15, 17 o 20")
    if not ruc_digito_verificador_valido(ruc):
        raise ValidacionError("El RUC tiene un dígito verificador inválido")


def validar_telefono(telefono: Optional[str]) -> None:
    if telefono and not TELEFONO_REGEX.match(telefono):
        raise ValidacionError("El teléfono debe tener formato peruano: +51XXXXXXXXX")


def validar_tipo_empresa(tipo: Optional[str]) -> None:
    if tipo is not None and tipo.upper() not in TIPOS_EMPRESA_VALIDOS:
        raise ValidacionError(
            f"Tipo de empresa inválido. Valores permitidos: {', '.join(TIPOS_EMPRESA_VALIDOS)}"
        )


def validar_tipo_contribuyente(tipo: Optional[str]) -> None:
    if tipo and tipo.upper() not in TIPOS_CONTRIBUYENTE_VALIDOS:
        raise ValidacionError(
            f"Tipo de contribuyente inválido. Valores permitidos: {', '.join(TIPOS_CONTRIBUYENTE_VALIDOS)}"
        )


def validar_ruc_unico(db: Session, ruc: str, excluir_id: Optional[int] = None) -> None:
    existente = UnitOfWork(db).empresas.by_ruc(ruc)
    if existente and existente.id != excluir_id:
        raise ValidacionError(f"Ya existe una empresa registrada con el RUC {ruc}")


def obtener_empresa(db: Session, empresa_id: int) -> Empresa:
    empresa = UnitOfWork(db).empresas.get(empresa_id)
    if not empresa:
        raise NoEncontradoError(f"Empresa con ID {empresa_id} no encontrada")
    return empresa


validar_empresa_existe = obtener_empresa


# ===== Empresas =====

def _pasos_empresa():
    return [
        lambda d: validar_ruc(d["ruc"]) if "ruc" in d else None,
        lambda d: validar_telefono(d.get("telefono")),
        lambda d: validar_tipo_empresa(d.get("tipo_empresa")),
        lambda d: validar_tipo_contribuyente(d.get("tipo_contribuyente")),
    ]


def crear_empresa(db: Session, datos: Dict[str, Any], creador: Optional[Usuario] = None) -> Empresa:
    ejecutar_validaciones(_pasos_empresa() + [lambda d: validar_ruc_unico(db, d["ruc"])], datos)

    uow = UnitOfWork(db)
    with uow.transaction():
        empresa = Empresa(
            nombre=datos["nombre"],
            razon_social=datos["razon_social"],
            nombre_comercial=datos.get("nombre_comercial"),
            ruc=datos["ruc"],
            telefono=datos.get("telefono"),
            tipo_empresa=datos["tipo_empresa"].upper(),
            tipo_contribuyente=(datos.get("tipo_contribuyente") or TipoContribuyente.RER.value).upper(),
            estado=EstadoEmpresa.ACTIVO.value,
            latitud=datos.get("latitud"),
            longitud=datos.get("longitud"),
        )
        db.add(empresa)
        db.flush()
        if creador is not None:
            db.execute(usuario_empresas.insert().values(
                usuario_id=creador.id, empresa_id=empresa.id, es_dueno=True, activo=True
            ))
    db.refresh(empresa)
    logger.info("Empresa creada: %s (RUC %s)", empresa.nombre, empresa.ruc)
    return empresa


def listar_empresas(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    usuario: Optional[Usuario] = None,
) -> Tuple[List[Empresa], int]:
    validar_paginacion(page, limit)
    q = db.query(Empresa)
    if usuario is not None and not usuario.is_admin:
        q = q.join(usuario_empresas, usuario_empresas.c.empresa_id == Empresa.id).filter(
            usuario_empresas.c.usuario_id == usuario.id,
            usuario_empresas.c.activo == True,
        )
    if search:
        like = f"%{search}%"
        q = q.filter((Empresa.nombre.ilike(like)) | (Empresa.tipo_empresa.ilike(like)))
    total = q.count()
    items = q.order_by(Empresa.nombre.asc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def actualizar_empresa(db: Session, empresa_id: int, cambios: Dict[str, Any]) -> Empresa:
    empresa = obtener_empresa(db, empresa_id)
    validar_no_nulos(cambios, Empresa)
    ejecutar_validaciones(_pasos_empresa(), cambios)
    with UnitOfWork(db).transaction():
        for campo in ("nombre", "telefono", "latitud", "longitud", "nombre_comercial"):
            if campo in cambios:
                setattr(empresa, campo, cambios[campo])
        if cambios.get("tipo_empresa"):
            empresa.tipo_empresa = cambios["tipo_empresa"].upper()
        if cambios.get("estado"):
            empresa.estado = EstadoEmpresa(cambios["estado"]).value
    db.refresh(empresa)
    return empresa


def eliminar_empresa(db: Session, empresa_id: int) -> None:
    empresa = obtener_empresa(db, empresa_id)
    with UnitOfWork(db).transaction():
        db.delete(empresa)
    logger.info("Empresa %s eliminada", empresa_id)


# ===== Direcciones =====

def _obtener_direccion(db: Session, empresa_id: int, direccion_id: int) -> Direccion:
    direccion = db.query(Direccion).filter(
        Direccion.id == direccion_id, Direccion.empresa_id == empresa_id
    ).first()
    if not direccion:
        raise NoEncontradoError(f"Dirección con ID {direccion_id} no encontrada")
    return direccion


def crear_direccion(db: Session, empresa_id: int, datos: Dict[str, Any]) -> Direccion:
    obtener_empresa(db, empresa_id)
    with UnitOfWork(db).transaction():
        direccion = Direccion(empresa_id=empresa_id, activa=True, **datos)
        if not direccion.tipo_direccion:
            direccion.tipo_direccion = "principal"
        db.add(direccion)
    db.refresh(direccion)
    return direccion


def actualizar_direccion(db: Session, empresa_id: int, direccion_id: int, cambios: Dict[str, Any]) -> Direccion:
    direccion = _obtener_direccion(db, empresa_id, direccion_id)
    validar_no_nulos(cambios, Direccion)
    with UnitOfWork(db).transaction():
        for campo, valor in cambios.items():
            setattr(direccion, campo, valor)
    db.refresh(direccion)
    return direccion


def eliminar_direccion(db: Session, empresa_id: int, direccion_id: int) -> None:
    direccion = _obtener_direccion(db, empresa_id, direccion_id)
    with UnitOfWork(db).transaction():
        db.delete(direccion)


# ===== Miembros =====

def es_miembro_activo(db: Session, empresa_id: int, usuario_id: int) -> bool:
    fila = db.execute(
        select(usuario_empresas.c.activo).where(
            and_(usuario_empresas.c.empresa_id == empresa_id, usuario_empresas.c.usuario_id == usuario_id)
        )
    ).first()
    return bool(fila and fila[0])


def asignar_usuario(db: Session, empresa_id: int, usuario_id: int, es_dueno: bool = False) -> None:
    obtener_empresa(db, empresa_id)
    if not db.get(Usuario, usuario_id):
        raise NoEncontradoError(f"Usuario con ID {usuario_id} no encontrado")
    existente = db.execute(
        select(usuario_empresas.c.activo).where(
            and_(usuario_empresas.c.empresa_id == empresa_id, usuario_empresas.c.usuario_id == usuario_id)
        )
    ).first()
    with UnitOfWork(db).transaction():
        if existente is None:
            db.execute(usuario_empresas.insert().values(
                usuario_id=usuario_id, empresa_id=empresa_id, es_dueno=es_dueno, activo=True
            ))
        elif existente[0]:
            raise ConflictoError("El usuario ya está asignado a esta empresa")
        else:
            db.execute(
                update(usuario_empresas)
                .where(and_(usuario_empresas.c.empresa_id == empresa_id, usuario_empresas.c.usuario_id == usuario_id))
                .values(activo=True, es_dueno=es_dueno)
            )


def remover_usuario(db: Session, empresa_id: int, usuario_id: int) -> None:
    obtener_empresa(db, empresa_id)
    with UnitOfWork(db).transaction():
        resultado = db.execute(
            delete(usuario_empresas).where(
                and_(usuario_empresas.c.empresa_id == empresa_id, usuario_empresas.c.usuario_id == usuario_id)
            )
        )
        if resultado.rowcount == 0:
            raise NoEncontradoError("El usuario no pertenece a esta empresa")


# ===== Configuración de impuestos =====

def _validar_tasa(tasa) -> None:
    if tasa is not None and not (Decimal("0") <= Decimal(str(tasa)) <= Decimal("100")):
        raise ValidacionError("La tasa debe estar entre 0 y 100")


def _validar_tipo_impuesto(tipo: Optional[str]) -> None:
    if tipo is not None and tipo not in [t.value for t in TipoImpuesto]:
        raise ValidacionError("Tipo de impuesto inválido. Valores permitidos: IGV, ISC, OTRO")


def _obtener_configuracion(db: Session, empresa_id: int, config_id: int) -> ConfiguracionImpuestos:
    config = db.query(ConfiguracionImpuestos).filter(
        ConfiguracionImpuestos.id == config_id, ConfiguracionImpuestos.empresa_id == empresa_id
    ).first()
    if not config:
        raise NoEncontradoError(f"Configuración de impuestos con ID {config_id} no encontrada")
    return config


def _validar_nombre_impuesto_unico(db: Session, empresa_id: int, nombre: str, excluir_id: Optional[int] = None) -> None:
    q = db.query(ConfiguracionImpuestos.id).filter(
        ConfiguracionImpuestos.empresa_id == empresa_id, ConfiguracionImpuestos.nombre == nombre
    )
    if excluir_id:
        q = q.filter(ConfiguracionImpuestos.id != excluir_id)
    if q.first():
        raise ConflictoError(f"Ya existe un impuesto '{nombre}' en esta empresa")


def crear_configuracion_impuestos(db: Session, empresa_id: int, datos: Dict[str, Any]) -> ConfiguracionImpuestos:
    obtener_empresa(db, empresa_id)
    ejecutar_validaciones([
        lambda d: _validar_tasa(d.get("tasa")),
        lambda d: _validar_tipo_impuesto(d.get("tipo")),
        lambda d: _validar_nombre_impuesto_unico(db, empresa_id, d["nombre"]),
    ], datos)
    with UnitOfWork(db).transaction():
        config = ConfiguracionImpuestos(empresa_id=empresa_id, **datos)
        db.add(config)
    db.refresh(config)
    return config


def listar_configuraciones_impuestos(db: Session, empresa_id: int) -> List[ConfiguracionImpuestos]:
    obtener_empresa(db, empresa_id)
    return db.query(ConfiguracionImpuestos).filter(
        ConfiguracionImpuestos.empresa_id == empresa_id
    ).order_by(ConfiguracionImpuestos.nombre).all()


def actualizar_configuracion_impuestos(
    db: Session, empresa_id: int, config_id: int, cambios: Dict[str, Any]
) -> ConfiguracionImpuestos:
    config = _obtener_configuracion(db, empresa_id, config_id)
    validar_no_nulos(cambios, ConfiguracionImpuestos)
    pasos = [
        lambda d: _validar_tasa(d.get("tasa")),
        lambda d: _validar_tipo_impuesto(d.get("tipo")),
    ]
    if cambios.get("nombre"):
        pasos.append(lambda d: _validar_nombre_impuesto_unico(db, empresa_id, d["nombre"], excluir_id=config_id))
    ejecutar_validaciones(pasos, cambios)
    with UnitOfWork(db).transaction():
        for campo, valor in cambios.items():
            setattr(config, campo, valor)
    db.refresh(config)
    return config


def eliminar_configuracion_impuestos(db: Session, empresa_id: int, config_id: int) -> None:
    config = _obtener_configuracion(db, empresa_id, config_id)
    with UnitOfWork(db).transaction():
        db.delete(config)

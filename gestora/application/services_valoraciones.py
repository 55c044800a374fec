"""
Valoraciones de productos por clientes, con moderación.
Una valoración por par (cliente, producto). Las rechazadas no cuentan en el resumen.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..domain.enums import EstadoModeracion
from ..domain.models_catalogo import Valoracion
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError
from .services_catalogo import obtener_cliente, obtener_producto
from .services_empresas import obtener_empresa
from .validaciones import validar_paginacion, total_paginas, validar_no_nulos

logger = logging.getLogger(__name__)

COMENTARIO_MAX = 500
PALABRAS_PROHIBIDAS = ("spam", "fake", "falso", "mentira", "estafa")


def validar_calificacion(calificacion: Optional[int]) -> None:
    if calificacion is None or not (1 <= calificacion <= 5):
        raise ValidacionError("La calificación debe estar entre 1 y 5")


def validar_comentario(comentario: Optional[str], campo: str = "comentario") -> None:
    if not comentario:
        return
    if len(comentario) > COMENTARIO_MAX:
        raise ValidacionError(f"El {campo} no puede exceder {COMENTARIO_MAX} caracteres")
    texto = comentario.lower()
    if any(palabra in texto for palabra in PALABRAS_PROHIBIDAS):
        raise ValidacionError("El comentario contiene contenido inapropiado")


def obtener_valoracion(db: Session, empresa_id: int, valoracion_id: int) -> Valoracion:
    valoracion = db.query(Valoracion).filter(
        Valoracion.id == valoracion_id, Valoracion.empresa_id == empresa_id
    ).first()
    if not valoracion:
        raise NoEncontradoError(f"Valoración con ID {valoracion_id} no encontrada")
    return valoracion


def crear_valoracion(db: Session, empresa_id: int, datos: Dict[str, Any]) -> Valoracion:
    obtener_empresa(db, empresa_id)
    validar_calificacion(datos.get("calificacion"))
    validar_comentario(datos.get("comentario"))
    obtener_cliente(db, empresa_id, datos["cliente_id"])
    obtener_producto(db, empresa_id, datos["producto_id"])
    existente = db.query(Valoracion.id).filter(
        Valoracion.cliente_id == datos["cliente_id"], Valoracion.producto_id == datos["producto_id"]
    ).first()
    if existente:
        raise ValidacionError("El cliente ya ha valorado este producto")

    with UnitOfWork(db).transaction():
        valoracion = Valoracion(
            empresa_id=empresa_id,
            cliente_id=datos["cliente_id"],
            producto_id=datos["producto_id"],
            calificacion=datos["calificacion"],
            comentario=datos.get("comentario"),
            estado_moderacion=EstadoModeracion.PENDIENTE.value,
        )
        db.add(valoracion)
    db.refresh(valoracion)
    return valoracion


def listar_valoraciones(db: Session, empresa_id: int, filtros: Optional[Dict[str, Any]] = None,
                        page: int = 1, limit: int = 10) -> Dict[str, Any]:
    validar_paginacion(page, limit)
    obtener_empresa(db, empresa_id)
    filtros = filtros or {}
    minimo, maximo = filtros.get("calificacion_min"), filtros.get("calificacion_max")
    if minimo is not None and maximo is not None and minimo > maximo:
        raise ValidacionError("La calificación mínima no puede ser mayor que la máxima")

    q = db.query(Valoracion).filter(Valoracion.empresa_id == empresa_id)
    if filtros.get("producto_id"):
        q = q.filter(Valoracion.producto_id == filtros["producto_id"])
    if filtros.get("cliente_id"):
        q = q.filter(Valoracion.cliente_id == filtros["cliente_id"])
    if minimo is not None:
        q = q.filter(Valoracion.calificacion >= minimo)
    if maximo is not None:
        q = q.filter(Valoracion.calificacion <= maximo)
    if filtros.get("estado_moderacion"):
        q = q.filter(Valoracion.estado_moderacion == filtros["estado_moderacion"])
    total = q.count()
    data = q.order_by(Valoracion.fecha.desc(), Valoracion.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"data": data, "meta": {"total": total, "page": page, "limit": limit,
                                   "totalPages": total_paginas(total, limit)}}


def actualizar_valoracion(db: Session, empresa_id: int, valoracion_id: int, cambios: Dict[str, Any]) -> Valoracion:
    valoracion = obtener_valoracion(db, empresa_id, valoracion_id)
    validar_no_nulos(cambios, Valoracion)
    if "calificacion" in cambios:
        validar_calificacion(cambios["calificacion"])
    if "comentario" in cambios:
        validar_comentario(cambios["comentario"])
    with UnitOfWork(db).transaction():
        for campo in ("calificacion", "comentario"):
            if campo in cambios:
                setattr(valoracion, campo, cambios[campo])
    db.refresh(valoracion)
    return valoracion


def eliminar_valoracion(db: Session, empresa_id: int, valoracion_id: int) -> None:
    valoracion = obtener_valoracion(db, empresa_id, valoracion_id)
    with UnitOfWork(db).transaction():
        db.delete(valoracion)


def moderar_valoracion(db: Session, empresa_id: int, valoracion_id: int, estado: str,
                       comentario_moderador: Optional[str] = None) -> Valoracion:
    valoracion = obtener_valoracion(db, empresa_id, valoracion_id)
    if estado not in {e.value for e in EstadoModeracion}:
        raise ValidacionError("Estado de moderación inválido. Debe ser pendiente, aprobada o rechazada")
    if comentario_moderador and len(comentario_moderador) > COMENTARIO_MAX:
        raise ValidacionError(f"El comentario del moderador no puede exceder {COMENTARIO_MAX} caracteres")
    if valoracion.estado_moderacion != EstadoModeracion.PENDIENTE.value and valoracion.estado_moderacion == estado:
        raise ValidacionError(f"La valoración ya está en estado {estado}")

    with UnitOfWork(db).transaction():
        valoracion.estado_moderacion = estado
        valoracion.comentario_moderador = comentario_moderador
        valoracion.fecha_moderacion = datetime.now()
    db.refresh(valoracion)
    logger.info("Valoración %s moderada: %s", valoracion_id, estado)
    return valoracion


def resumen_producto(db: Session, empresa_id: int, producto_id: int) -> Dict[str, Any]:
    """Promedio y distribución 1-5 de las valoraciones no rechazadas."""
    obtener_producto(db, empresa_id, producto_id, solo_activos=False)
    calificaciones = [
        c for (c,) in db.query(Valoracion.calificacion).filter(
            Valoracion.empresa_id == empresa_id,
            Valoracion.producto_id == producto_id,
            Valoracion.estado_moderacion != EstadoModeracion.RECHAZADA.value,
        ).all()
    ]
    distribucion = {str(n): calificaciones.count(n) for n in range(1, 6)}
    total = len(calificaciones)
    return {
        "producto_id": producto_id,
        "total_valoraciones": total,
        "promedio_calificacion": round(sum(calificaciones) / total, 2) if total else 0,
        "distribucion_calificaciones": distribucion,
    }

"""
Límite de eventos por minuto respaldado en base de datos.

La cuenta vive en la tabla contadores_auditoria (una fila por clave y
ventana de un minuto), así el límite se comparte entre instancias.
El incremento queda en la transacción del llamador: si el evento no se
persiste, tampoco cuenta.
"""
import logging
import time
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.models_audit import ContadorAuditoria

logger = logging.getLogger(__name__)


def ventana_actual(ahora: Optional[float] = None) -> int:
    return int((ahora if ahora is not None else time.time()) // 60)


def _buscar(db: Session, clave: str, ventana: int) -> Optional[ContadorAuditoria]:
    return (
        db.query(ContadorAuditoria)
        .filter(ContadorAuditoria.clave == clave, ContadorAuditoria.ventana == ventana)
        .with_for_update()
        .first()
    )


def _crear_o_buscar(db: Session, clave: str, ventana: int) -> ContadorAuditoria:
    """Inserta la fila de la ventana en un savepoint; si otra instancia la creó primero, la relee."""
    try:
        with db.begin_nested():
            contador = ContadorAuditoria(clave=clave, ventana=ventana, conteo=0)
            db.add(contador)
        return contador
    except IntegrityError:
        logger.debug("Ventana %s de %s creada en paralelo; se relee", ventana, clave)
        return _buscar(db, clave, ventana)


def consumir(db: Session, clave: str, limite: int, ahora: Optional[float] = None) -> bool:
    """
    Suma un evento a la ventana actual de la clave.
    Devuelve False (sin sumar) si la ventana ya alcanzó el límite.
    """
    ventana = ventana_actual(ahora)
    contador = _buscar(db, clave, ventana)
    if contador is None:
        contador = _crear_o_buscar(db, clave, ventana)
    if contador.conteo >= limite:
        return False
    contador.conteo += 1
    db.flush()
    return True


def purgar_ventanas(db: Session, antes_de_minutos: int = 60) -> int:
    """Elimina ventanas viejas; no hace commit."""
    limite = ventana_actual() - antes_de_minutos
    return db.query(ContadorAuditoria).filter(ContadorAuditoria.ventana < limite).delete(
        synchronize_session=False
    )

"""
Servicio de Notas de Crédito y Débito
=====================================

- Referencia obligatoria a una factura de la empresa (no ANULADA)
- Totales propios: IGV por ítem según su porcentaje, monto = subtotal + igv
- Nota de crédito: EMITIDA -> APLICADA | ANULADA
- Nota de débito: EMITIDA -> APLICADA | CANCELADA
- Sin edición en estado final; sin eliminación una vez APLICADA
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..domain.enums import EstadoFactura, EstadoNotaCredito, EstadoNotaDebito, TipoNotaCredito, TipoAccion
from ..domain.models_ventas import NotaCredito, ItemNotaCredito, NotaDebito, ItemNotaDebito
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import ValidacionError, ConflictoError
from .services_catalogo import validar_productos
from .services_ventas import (
    obtener_documento, listar_documentos, obtener_factura, siguiente_numero, auditar_venta,
)
from .totales import totales_nota, redondear
from .validaciones import fecha_local

logger = logging.getLogger(__name__)

SERIE_NOTA_CREDITO = "FC01"
SERIE_NOTA_DEBITO = "FD01"


class _TipoNota:
    """Parámetros de cada clase de nota."""

    def __init__(self, modelo, modelo_item, etiqueta: str, serie: str,
                 estados: set, no_editables: set, no_eliminables: set):
        self.modelo = modelo
        self.modelo_item = modelo_item
        self.etiqueta = etiqueta
        self.serie = serie
        self.estados = estados
        self.no_editables = no_editables
        self.no_eliminables = no_eliminables


CREDITO = _TipoNota(
    NotaCredito, ItemNotaCredito, "Nota de crédito", SERIE_NOTA_CREDITO,
    estados={e.value for e in EstadoNotaCredito},
    no_editables={EstadoNotaCredito.APLICADA.value, EstadoNotaCredito.ANULADA.value},
    no_eliminables={EstadoNotaCredito.APLICADA.value},
)
DEBITO = _TipoNota(
    NotaDebito, ItemNotaDebito, "Nota de débito", SERIE_NOTA_DEBITO,
    estados={e.value for e in EstadoNotaDebito},
    no_editables={EstadoNotaDebito.APLICADA.value, EstadoNotaDebito.CANCELADA.value},
    no_eliminables={EstadoNotaDebito.APLICADA.value},
)


def validar_items_nota(items: List[Dict[str, Any]]) -> None:
    if not items:
        raise ValidacionError("La nota debe tener al menos un ítem")
    for item in items:
        if redondear(item["cantidad"]) <= 0:
            raise ValidacionError("La cantidad debe ser mayor a 0")
        if Decimal(str(item["precio_unitario"])) < 0:
            raise ValidacionError("El precio unitario no puede ser negativo")
        porcentaje = Decimal(str(item.get("igv_porcentaje", 18)))
        if porcentaje < 0 or porcentaje > 100:
            raise ValidacionError("El porcentaje de IGV debe estar entre 0 y 100")


def _items(tipo: _TipoNota, lineas: List[Dict[str, Any]]):
    return [
        tipo.modelo_item(
            producto_id=linea["producto_id"],
            cantidad=redondear(linea["cantidad"]),
            precio_unitario=redondear(linea["precio_unitario"]),
            igv_porcentaje=redondear(linea.get("igv_porcentaje", 18)),
            subtotal=linea["subtotal"],
            igv=linea["igv"],
        )
        for linea in lineas
    ]


def _aplicar_totales(nota, totales: Dict[str, Any]) -> None:
    nota.subtotal = totales["subtotal"]
    nota.igv = totales["igv"]
    nota.monto = totales["monto"]


def _resumen(nota) -> Dict[str, Any]:
    return {
        "id": nota.id,
        "numero_nota": nota.numero_nota,
        "factura_id": nota.factura_id,
        "estado": nota.estado,
        "subtotal": nota.subtotal,
        "igv": nota.igv,
        "monto": nota.monto,
    }


def _validar_numero_unico(db: Session, tipo: _TipoNota, empresa_id: int, numero: str, excluir_id: Optional[int] = None):
    q = db.query(tipo.modelo.id).filter(tipo.modelo.empresa_id == empresa_id, tipo.modelo.numero_nota == numero)
    if excluir_id:
        q = q.filter(tipo.modelo.id != excluir_id)
    if q.first():
        raise ConflictoError(f"Ya existe una {tipo.etiqueta.lower()} con número {numero}")


def _crear(db: Session, tipo: _TipoNota, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int]):
    factura = obtener_factura(db, empresa_id, datos["factura_id"])
    if factura.estado == EstadoFactura.ANULADA.value:
        raise ValidacionError(f"No se puede emitir una {tipo.etiqueta.lower()} sobre una factura anulada")
    items = datos.get("items") or []
    validar_items_nota(items)
    validar_productos(db, empresa_id, [i["producto_id"] for i in items])
    if datos.get("numero_nota"):
        _validar_numero_unico(db, tipo, empresa_id, datos["numero_nota"])
    totales = totales_nota(items)

    with UnitOfWork(db).transaction():
        nota = tipo.modelo(
            empresa_id=empresa_id,
            factura_id=factura.id,
            cliente_id=factura.cliente_id,
            numero_nota=datos.get("numero_nota") or siguiente_numero(db, tipo.modelo, "numero_nota", empresa_id, tipo.serie),
            motivo=datos["motivo"],
            fecha_emision=fecha_local(datos.get("fecha_emision")) or datetime.now(),
            moneda=datos.get("moneda") or factura.moneda,
            observaciones=datos.get("observaciones"),
        )
        if tipo is CREDITO:
            nota.tipo = datos["tipo"]
        _aplicar_totales(nota, totales)
        nota.items = _items(tipo, totales["items"])
        db.add(nota)
    db.refresh(nota)
    logger.info("%s %s emitida sobre factura %s (monto %s)", tipo.etiqueta, nota.numero_nota,
                factura.numero_factura, nota.monto)
    auditar_venta(empresa_id, TipoAccion.CREAR, f"{tipo.etiqueta} {nota.numero_nota} emitida", nota.id,
                  usuario_id, datos_nuevos=_resumen(nota))
    return nota


def _actualizar(db: Session, tipo: _TipoNota, empresa_id: int, nota_id: int, cambios: Dict[str, Any],
                usuario_id: Optional[int]):
    nota = obtener_documento(db, tipo.modelo, empresa_id, nota_id, tipo.etiqueta)
    if nota.estado in tipo.no_editables:
        raise ValidacionError(f"No se puede modificar una {tipo.etiqueta.lower()} {nota.estado.lower()}")
    if cambios.get("estado") and cambios["estado"] not in tipo.estados:
        raise ValidacionError(f"Estado inválido: {cambios['estado']}")
    if cambios.get("numero_nota"):
        _validar_numero_unico(db, tipo, empresa_id, cambios["numero_nota"], excluir_id=nota.id)
    items = cambios.get("items")
    if items is not None:
        validar_items_nota(items)
        validar_productos(db, empresa_id, [i["producto_id"] for i in items])
    anterior = _resumen(nota)

    with UnitOfWork(db).transaction():
        for campo in ("numero_nota", "motivo", "observaciones", "estado"):
            if cambios.get(campo) is not None:
                setattr(nota, campo, cambios[campo])
        if tipo is CREDITO and cambios.get("tipo"):
            nota.tipo = cambios["tipo"]
        if items is not None:
            totales = totales_nota(items)
            nota.items.clear()
            db.flush()
            nota.items.extend(_items(tipo, totales["items"]))
            _aplicar_totales(nota, totales)
    db.refresh(nota)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"{tipo.etiqueta} {nota.numero_nota} actualizada", nota.id,
                  usuario_id, anterior, _resumen(nota))
    return nota


def _eliminar(db: Session, tipo: _TipoNota, empresa_id: int, nota_id: int, usuario_id: Optional[int]) -> None:
    nota = obtener_documento(db, tipo.modelo, empresa_id, nota_id, tipo.etiqueta)
    if nota.estado in tipo.no_eliminables:
        raise ValidacionError(f"No se puede eliminar una {tipo.etiqueta.lower()} aplicada")
    anterior = _resumen(nota)
    with UnitOfWork(db).transaction():
        db.delete(nota)
    auditar_venta(empresa_id, TipoAccion.ELIMINAR, f"{tipo.etiqueta} {anterior['numero_nota']} eliminada", nota_id,
                  usuario_id, datos_anteriores=anterior)


# ===== Notas de crédito =====

def crear_nota_credito(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> NotaCredito:
    if datos.get("tipo") not in {t.value for t in TipoNotaCredito}:
        raise ValidacionError("Tipo de nota de crédito inválido. Use ANULACION, DESCUENTO o DEVOLUCION")
    return _crear(db, CREDITO, empresa_id, datos, usuario_id)


def obtener_nota_credito(db: Session, empresa_id: int, nota_id: int) -> NotaCredito:
    return obtener_documento(db, NotaCredito, empresa_id, nota_id, CREDITO.etiqueta)


def listar_notas_credito(db: Session, empresa_id: int, estado: Optional[str] = None,
                         page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return listar_documentos(db, NotaCredito, empresa_id, estado, page, limit)


def actualizar_nota_credito(db: Session, empresa_id: int, nota_id: int, cambios: Dict[str, Any],
                            usuario_id: Optional[int] = None) -> NotaCredito:
    if cambios.get("tipo") and cambios["tipo"] not in {t.value for t in TipoNotaCredito}:
        raise ValidacionError("Tipo de nota de crédito inválido. Use ANULACION, DESCUENTO o DEVOLUCION")
    return _actualizar(db, CREDITO, empresa_id, nota_id, cambios, usuario_id)


def eliminar_nota_credito(db: Session, empresa_id: int, nota_id: int, usuario_id: Optional[int] = None) -> None:
    _eliminar(db, CREDITO, empresa_id, nota_id, usuario_id)


# ===== Notas de débito =====

def crear_nota_debito(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> NotaDebito:
    return _crear(db, DEBITO, empresa_id, datos, usuario_id)


def obtener_nota_debito(db: Session, empresa_id: int, nota_id: int) -> NotaDebito:
    return obtener_documento(db, NotaDebito, empresa_id, nota_id, DEBITO.etiqueta)


def listar_notas_debito(db: Session, empresa_id: int, estado: Optional[str] = None,
                        page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return listar_documentos(db, NotaDebito, empresa_id, estado, page, limit)


def actualizar_nota_debito(db: Session, empresa_id: int, nota_id: int, cambios: Dict[str, Any],
                           usuario_id: Optional[int] = None) -> NotaDebito:
    return _actualizar(db, DEBITO, empresa_id, nota_id, cambios, usuario_id)


def eliminar_nota_debito(db: Session, empresa_id: int, nota_id: int, usuario_id: Optional[int] = None) -> None:
    _eliminar(db, DEBITO, empresa_id, nota_id, usuario_id)

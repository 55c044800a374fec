"""
Servicio de Documentos de Venta
===============================

Cadena: Cotización -> Orden de Venta -> Factura (-> Notas, ver services_notas)

PRINCIPIOS:
- Cada etapa es una entidad independiente con sus propios ítems
- Los totales se recalculan en cada etapa (totales.py); la factura copia los de la orden
- Los estados terminales congelan el documento (sin edición ni eliminación)
- Cabecera + ítems se escriben en una sola transacción
- Cada escritura exitosa deja un evento de auditoría (recurso "venta")
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..domain.enums import EstadoCotizacion, EstadoOrdenVenta, EstadoFactura, TipoAccion, TipoRecurso
from ..domain.models_ventas import (
    Cotizacion, ItemCotizacion, OrdenVenta, ItemOrdenVenta, Factura, ItemFactura,
)
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError
from .services_audit import log_audit
from .services_catalogo import obtener_cliente, validar_productos
from .services_empresas import obtener_empresa
from .totales import totales_cotizacion, totales_orden, redondear
from .validaciones import validar_paginacion, total_paginas, fecha_local

logger = logging.getLogger(__name__)

SERIE_FACTURA = "F001"
DIGITOS_CORRELATIVO = 8

ESTADOS_CONVERTIBLES = {
    EstadoCotizacion.PENDIENTE.value,
    EstadoCotizacion.ENVIADA.value,
    EstadoCotizacion.ACEPTADA.value,
}
ORDEN_TERMINALES = {EstadoOrdenVenta.FACTURADA.value, EstadoOrdenVenta.CANCELADA.value}
FACTURA_TERMINALES = {EstadoFactura.PAGADA.value, EstadoFactura.ANULADA.value}
TRANSICIONES_FACTURA = {
    EstadoFactura.EMITIDA.value: {EstadoFactura.PAGADA.value, EstadoFactura.VENCIDA.value, EstadoFactura.ANULADA.value},
    EstadoFactura.VENCIDA.value: {EstadoFactura.PAGADA.value, EstadoFactura.ANULADA.value},
}


# ===== Utilidades comunes =====

def obtener_documento(db: Session, modelo, empresa_id: int, documento_id: int, etiqueta: str):
    doc = db.query(modelo).filter(modelo.id == documento_id, modelo.empresa_id == empresa_id).first()
    if not doc:
        raise NoEncontradoError(f"{etiqueta} con ID {documento_id} no encontrada")
    return doc


def listar_documentos(db: Session, modelo, empresa_id: int, estado: Optional[str] = None,
                      page: int = 1, limit: int = 10) -> Dict[str, Any]:
    validar_paginacion(page, limit)
    obtener_empresa(db, empresa_id)
    q = db.query(modelo).filter(modelo.empresa_id == empresa_id)
    if estado:
        q = q.filter(modelo.estado == estado)
    total = q.count()
    data = q.order_by(modelo.fecha_emision.desc(), modelo.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"data": data, "meta": {"total": total, "page": page, "limit": limit,
                                   "totalPages": total_paginas(total, limit)}}


def siguiente_numero(db: Session, modelo, columna: str, empresa_id: int, serie: str) -> str:
    """
    Correlativo SERIE-NNNNNNNN por empresa (último + 1).
    Lee el id del último documento y bloquea esa fila hasta el commit.
    """
    campo = getattr(modelo, columna)
    ultimo_id = (
        db.query(modelo.id)
        .filter(modelo.empresa_id == empresa_id, campo.like(f"{serie}-%"))
        .order_by(modelo.id.desc())
        .limit(1)
        .scalar()
    )
    secuencial = 0
    if ultimo_id:
        ultimo = db.query(modelo).filter(modelo.id == ultimo_id).with_for_update(nowait=False).first()
        try:
            secuencial = int(getattr(ultimo, columna).split("-")[1])
        except (IndexError, ValueError):
            logger.warning("Correlativo no numérico en %s id=%s", modelo.__tablename__, ultimo_id)
    return f"{serie}-{str(secuencial + 1).zfill(DIGITOS_CORRELATIVO)}"


def validar_items(items: List[Dict[str, Any]], descuento_porcentual: bool = False) -> None:
    if not items:
        raise ValidacionError("El documento debe tener al menos un ítem")
    for item in items:
        cantidad = Decimal(str(item["cantidad"]))
        precio = Decimal(str(item["precio_unitario"]))
        descuento = Decimal(str(item.get("descuento") or 0))
        if redondear(cantidad) <= 0:
            raise ValidacionError("La cantidad debe ser mayor a 0")
        if precio < 0:
            raise ValidacionError("El precio unitario no puede ser negativo")
        if descuento < 0:
            raise ValidacionError("El descuento no puede ser negativo")
        if descuento_porcentual and descuento > 100:
            raise ValidacionError("El descuento debe estar entre 0 y 100%")
        if not descuento_porcentual and descuento > cantidad * precio:
            raise ValidacionError("El descuento no puede superar el importe del ítem")


def _validar_referencias(db: Session, empresa_id: int, cliente_id: int, items: List[Dict[str, Any]]) -> None:
    obtener_cliente(db, empresa_id, cliente_id)
    validar_productos(db, empresa_id, [i["producto_id"] for i in items])


def _aplicar_totales(doc, totales: Dict[str, Any]) -> None:
    doc.subtotal = totales["subtotal"]
    doc.descuento = totales["descuento"]
    doc.igv = totales["igv"]
    doc.total = totales["total"]


def resumen_documento(doc) -> Dict[str, Any]:
    """Instantánea para auditoría."""
    return {
        "id": doc.id,
        "estado": doc.estado,
        "cliente_id": doc.cliente_id,
        "subtotal": doc.subtotal,
        "descuento": doc.descuento,
        "igv": doc.igv,
        "total": doc.total,
    }


def auditar_venta(empresa_id: int, accion: TipoAccion, descripcion: str, recurso_id: Any,
                  usuario_id: Optional[int], datos_anteriores=None, datos_nuevos=None) -> None:
    log_audit(
        empresa_id=empresa_id,
        accion=accion.value,
        recurso=TipoRecurso.VENTA.value,
        recurso_id=recurso_id,
        descripcion=descripcion,
        usuario_id=usuario_id,
        datos_anteriores=datos_anteriores,
        datos_nuevos=datos_nuevos,
    )


# ===== Cotizaciones =====

def obtener_cotizacion(db: Session, empresa_id: int, cotizacion_id: int) -> Cotizacion:
    return obtener_documento(db, Cotizacion, empresa_id, cotizacion_id, "Cotización")


def listar_cotizaciones(db: Session, empresa_id: int, estado: Optional[str] = None,
                        page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return listar_documentos(db, Cotizacion, empresa_id, estado, page, limit)


def _items_cotizacion(lineas: List[Dict[str, Any]]) -> List[ItemCotizacion]:
    return [
        ItemCotizacion(
            producto_id=linea["producto_id"],
            cantidad=redondear(linea["cantidad"]),
            precio_unitario=redondear(linea["precio_unitario"]),
            descuento=redondear(linea.get("descuento") or 0),
            subtotal=linea["subtotal"],
        )
        for linea in lineas
    ]


def crear_cotizacion(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> Cotizacion:
    obtener_empresa(db, empresa_id)
    items = datos.get("items") or []
    validar_items(items, descuento_porcentual=True)
    _validar_referencias(db, empresa_id, datos["cliente_id"], items)
    totales = totales_cotizacion(items)

    with UnitOfWork(db).transaction():
        cotizacion = Cotizacion(
            empresa_id=empresa_id,
            cliente_id=datos["cliente_id"],
            fecha_emision=fecha_local(datos.get("fecha_emision")) or datetime.now(),
            fecha_validez=fecha_local(datos.get("fecha_validez")),
            notas=datos.get("notas"),
            estado=EstadoCotizacion.PENDIENTE.value,
        )
        _aplicar_totales(cotizacion, totales)
        cotizacion.items = _items_cotizacion(totales["items"])
        db.add(cotizacion)
    db.refresh(cotizacion)
    logger.info("Cotización %s creada en empresa %s (total %s)", cotizacion.id, empresa_id, cotizacion.total)
    auditar_venta(empresa_id, TipoAccion.CREAR, f"Cotización {cotizacion.id} creada", cotizacion.id,
                  usuario_id, datos_nuevos=resumen_documento(cotizacion))
    return cotizacion


def actualizar_cotizacion(db: Session, empresa_id: int, cotizacion_id: int, cambios: Dict[str, Any],
                          usuario_id: Optional[int] = None) -> Cotizacion:
    cotizacion = obtener_cotizacion(db, empresa_id, cotizacion_id)
    if cotizacion.estado == EstadoCotizacion.CONVERTIDA.value:
        raise ValidacionError("No se puede modificar una cotización ya convertida en orden de venta")
    if cambios.get("estado") == EstadoCotizacion.CONVERTIDA.value:
        raise ValidacionError("Use la conversión a orden de venta para marcar la cotización como convertida")
    anterior = resumen_documento(cotizacion)

    cliente_id = cambios.get("cliente_id") or cotizacion.cliente_id
    items = cambios.get("items")
    if items is not None:
        validar_items(items, descuento_porcentual=True)
        _validar_referencias(db, empresa_id, cliente_id, items)
    elif "cliente_id" in cambios:
        obtener_cliente(db, empresa_id, cliente_id)

    with UnitOfWork(db).transaction():
        for campo in ("cliente_id", "notas", "estado"):
            if cambios.get(campo) is not None:
                setattr(cotizacion, campo, cambios[campo])
        if "fecha_validez" in cambios:
            cotizacion.fecha_validez = fecha_local(cambios["fecha_validez"])
        if items is not None:
            totales = totales_cotizacion(items)
            cotizacion.items.clear()
            db.flush()
            cotizacion.items.extend(_items_cotizacion(totales["items"]))
            _aplicar_totales(cotizacion, totales)
    db.refresh(cotizacion)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"Cotización {cotizacion.id} actualizada", cotizacion.id,
                  usuario_id, anterior, resumen_documento(cotizacion))
    return cotizacion


def eliminar_cotizacion(db: Session, empresa_id: int, cotizacion_id: int, usuario_id: Optional[int] = None) -> None:
    cotizacion = obtener_cotizacion(db, empresa_id, cotizacion_id)
    if cotizacion.estado == EstadoCotizacion.CONVERTIDA.value:
        raise ValidacionError("No se puede eliminar una cotización convertida en orden de venta")
    anterior = resumen_documento(cotizacion)
    with UnitOfWork(db).transaction():
        db.delete(cotizacion)
    auditar_venta(empresa_id, TipoAccion.ELIMINAR, f"Cotización {cotizacion_id} eliminada", cotizacion_id,
                  usuario_id, datos_anteriores=anterior)


def convertir_cotizacion(db: Session, empresa_id: int, cotizacion_id: int,
                         usuario_id: Optional[int] = None) -> OrdenVenta:
    """
    Genera una orden de venta desde la cotización.
    El descuento porcentual de cada ítem pasa a monto fijo y la orden
    recalcula sus totales con su propia tasa.
    """
    cotizacion = obtener_cotizacion(db, empresa_id, cotizacion_id)
    if cotizacion.estado not in ESTADOS_CONVERTIBLES:
        raise ValidacionError(
            f"Solo se pueden convertir cotizaciones en estado {', '.join(sorted(ESTADOS_CONVERTIBLES))}"
        )
    items = [
        {
            "producto_id": i.producto_id,
            "cantidad": i.cantidad,
            "precio_unitario": i.precio_unitario,
            "descuento": redondear(i.cantidad * i.precio_unitario * (i.descuento or 0) / 100),
        }
        for i in cotizacion.items
    ]
    totales = totales_orden(items)

    with UnitOfWork(db).transaction():
        orden = OrdenVenta(
            empresa_id=empresa_id,
            cliente_id=cotizacion.cliente_id,
            cotizacion_id=cotizacion.id,
            fecha_emision=datetime.now(),
            notas=cotizacion.notas,
            estado=EstadoOrdenVenta.PENDIENTE.value,
        )
        _aplicar_totales(orden, totales)
        orden.items = _items_orden(totales["items"])
        db.add(orden)
        cotizacion.estado = EstadoCotizacion.CONVERTIDA.value
    db.refresh(orden)
    logger.info("Cotización %s convertida en orden %s", cotizacion_id, orden.id)
    auditar_venta(empresa_id, TipoAccion.CREAR, f"Orden {orden.id} generada desde cotización {cotizacion_id}",
                  orden.id, usuario_id, datos_nuevos=resumen_documento(orden))
    return orden


# ===== Órdenes de venta =====

def obtener_orden(db: Session, empresa_id: int, orden_id: int) -> OrdenVenta:
    return obtener_documento(db, OrdenVenta, empresa_id, orden_id, "Orden de venta")


def listar_ordenes(db: Session, empresa_id: int, estado: Optional[str] = None,
                   page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return listar_documentos(db, OrdenVenta, empresa_id, estado, page, limit)


def _items_orden(lineas: List[Dict[str, Any]]) -> List[ItemOrdenVenta]:
    return [
        ItemOrdenVenta(
            producto_id=linea["producto_id"],
            cantidad=redondear(linea["cantidad"]),
            precio_unitario=redondear(linea["precio_unitario"]),
            descuento=redondear(linea.get("descuento") or 0),
            subtotal=linea["subtotal"],
        )
        for linea in lineas
    ]


def crear_orden(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> OrdenVenta:
    obtener_empresa(db, empresa_id)
    items = datos.get("items") or []
    validar_items(items)
    _validar_referencias(db, empresa_id, datos["cliente_id"], items)
    totales = totales_orden(items)

    with UnitOfWork(db).transaction():
        orden = OrdenVenta(
            empresa_id=empresa_id,
            cliente_id=datos["cliente_id"],
            fecha_emision=fecha_local(datos.get("fecha_emision")) or datetime.now(),
            notas=datos.get("notas"),
            estado=EstadoOrdenVenta.PENDIENTE.value,
        )
        _aplicar_totales(orden, totales)
        orden.items = _items_orden(totales["items"])
        db.add(orden)
    db.refresh(orden)
    logger.info("Orden de venta %s creada en empresa %s (total %s)", orden.id, empresa_id, orden.total)
    auditar_venta(empresa_id, TipoAccion.CREAR, f"Orden de venta {orden.id} creada", orden.id,
                  usuario_id, datos_nuevos=resumen_documento(orden))
    return orden


def _validar_orden_editable(orden: OrdenVenta, operacion: str) -> None:
    if orden.estado in ORDEN_TERMINALES:
        raise ValidacionError(f"No se puede {operacion} una orden de venta {orden.estado.lower()}")


def actualizar_orden(db: Session, empresa_id: int, orden_id: int, cambios: Dict[str, Any],
                     usuario_id: Optional[int] = None) -> OrdenVenta:
    orden = obtener_orden(db, empresa_id, orden_id)
    _validar_orden_editable(orden, "modificar")
    anterior = resumen_documento(orden)

    cliente_id = cambios.get("cliente_id") or orden.cliente_id
    items = cambios.get("items")
    if items is not None:
        validar_items(items)
        _validar_referencias(db, empresa_id, cliente_id, items)
    elif "cliente_id" in cambios:
        obtener_cliente(db, empresa_id, cliente_id)

    with UnitOfWork(db).transaction():
        for campo in ("cliente_id", "notas"):
            if cambios.get(campo) is not None:
                setattr(orden, campo, cambios[campo])
        if items is not None:
            totales = totales_orden(items)
            orden.items.clear()
            db.flush()
            orden.items.extend(_items_orden(totales["items"]))
            _aplicar_totales(orden, totales)
    db.refresh(orden)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"Orden de venta {orden.id} actualizada", orden.id,
                  usuario_id, anterior, resumen_documento(orden))
    return orden


def eliminar_orden(db: Session, empresa_id: int, orden_id: int, usuario_id: Optional[int] = None) -> None:
    orden = obtener_orden(db, empresa_id, orden_id)
    _validar_orden_editable(orden, "eliminar")
    anterior = resumen_documento(orden)
    with UnitOfWork(db).transaction():
        db.delete(orden)
    auditar_venta(empresa_id, TipoAccion.ELIMINAR, f"Orden de venta {orden_id} eliminada", orden_id,
                  usuario_id, datos_anteriores=anterior)


def aprobar_orden(db: Session, empresa_id: int, orden_id: int, usuario_id: Optional[int] = None) -> OrdenVenta:
    orden = obtener_orden(db, empresa_id, orden_id)
    if orden.estado != EstadoOrdenVenta.PENDIENTE.value:
        raise ValidacionError("Solo se pueden aprobar órdenes en estado PENDIENTE")
    with UnitOfWork(db).transaction():
        orden.estado = EstadoOrdenVenta.APROBADA.value
    db.refresh(orden)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"Orden de venta {orden.id} aprobada", orden.id,
                  usuario_id, {"estado": EstadoOrdenVenta.PENDIENTE.value}, {"estado": orden.estado})
    return orden


def cancelar_orden(db: Session, empresa_id: int, orden_id: int, usuario_id: Optional[int] = None) -> OrdenVenta:
    orden = obtener_orden(db, empresa_id, orden_id)
    if orden.estado == EstadoOrdenVenta.FACTURADA.value:
        raise ValidacionError("No se puede cancelar una orden de venta facturada")
    if orden.estado == EstadoOrdenVenta.CANCELADA.value:
        raise ValidacionError("La orden de venta ya está cancelada")
    estado_anterior = orden.estado
    with UnitOfWork(db).transaction():
        orden.estado = EstadoOrdenVenta.CANCELADA.value
    db.refresh(orden)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"Orden de venta {orden.id} cancelada", orden.id,
                  usuario_id, {"estado": estado_anterior}, {"estado": orden.estado})
    return orden


# ===== Facturas =====

def obtener_factura(db: Session, empresa_id: int, factura_id: int) -> Factura:
    return obtener_documento(db, Factura, empresa_id, factura_id, "Factura")


def listar_facturas(db: Session, empresa_id: int, estado: Optional[str] = None,
                    page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return listar_documentos(db, Factura, empresa_id, estado, page, limit)


def crear_factura(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> Factura:
    """Factura la orden: copia totales e ítems y marca la orden FACTURADA."""
    orden = obtener_orden(db, empresa_id, datos["orden_venta_id"])
    if orden.estado == EstadoOrdenVenta.FACTURADA.value:
        raise ValidacionError("La orden de venta ya fue facturada")
    if orden.estado == EstadoOrdenVenta.CANCELADA.value:
        raise ValidacionError("No se puede facturar una orden de venta cancelada")
    fecha_emision = fecha_local(datos.get("fecha_emision")) or datetime.now()
    fecha_vencimiento = fecha_local(datos.get("fecha_vencimiento"))
    if fecha_vencimiento and fecha_vencimiento < fecha_emision:
        raise ValidacionError("La fecha de vencimiento no puede ser anterior a la fecha de emisión")

    with UnitOfWork(db).transaction():
        factura = Factura(
            empresa_id=empresa_id,
            cliente_id=orden.cliente_id,
            orden_venta_id=orden.id,
            numero_factura=siguiente_numero(db, Factura, "numero_factura", empresa_id, SERIE_FACTURA),
            fecha_emision=fecha_emision,
            fecha_vencimiento=fecha_vencimiento,
            moneda=datos.get("moneda") or "PEN",
            notas=datos.get("notas"),
            estado=EstadoFactura.EMITIDA.value,
            subtotal=orden.subtotal,
            descuento=orden.descuento,
            igv=orden.igv,
            total=orden.total,
        )
        factura.items = [
            ItemFactura(
                producto_id=i.producto_id,
                cantidad=i.cantidad,
                precio_unitario=i.precio_unitario,
                descuento=i.descuento,
                subtotal=i.subtotal,
            )
            for i in orden.items
        ]
        db.add(factura)
        orden.estado = EstadoOrdenVenta.FACTURADA.value
    db.refresh(factura)
    logger.info("Factura %s emitida en empresa %s (orden %s)", factura.numero_factura, empresa_id, orden.id)
    auditar_venta(empresa_id, TipoAccion.CREAR, f"Factura {factura.numero_factura} emitida", factura.id,
                  usuario_id, datos_nuevos={**resumen_documento(factura), "numero_factura": factura.numero_factura})
    return factura


def actualizar_factura(db: Session, empresa_id: int, factura_id: int, cambios: Dict[str, Any],
                       usuario_id: Optional[int] = None) -> Factura:
    """Solo estado y notas son editables."""
    factura = obtener_factura(db, empresa_id, factura_id)
    if factura.estado in FACTURA_TERMINALES:
        raise ValidacionError(f"No se puede modificar una factura {factura.estado.lower()}")
    nuevo_estado = cambios.get("estado")
    if nuevo_estado and nuevo_estado != factura.estado:
        if nuevo_estado not in TRANSICIONES_FACTURA.get(factura.estado, set()):
            raise ValidacionError(f"Transición de estado inválida: {factura.estado} -> {nuevo_estado}")
    anterior = {"estado": factura.estado, "notas": factura.notas}

    with UnitOfWork(db).transaction():
        if nuevo_estado:
            factura.estado = nuevo_estado
        if "notas" in cambios:
            factura.notas = cambios["notas"]
    db.refresh(factura)
    auditar_venta(empresa_id, TipoAccion.ACTUALIZAR, f"Factura {factura.numero_factura} actualizada", factura.id,
                  usuario_id, anterior, {"estado": factura.estado, "notas": factura.notas})
    return factura


def eliminar_factura(db: Session, empresa_id: int, factura_id: int, usuario_id: Optional[int] = None) -> None:
    """Elimina la factura y devuelve la orden a PENDIENTE."""
    factura = obtener_factura(db, empresa_id, factura_id)
    if factura.estado in FACTURA_TERMINALES:
        raise ValidacionError(f"No se puede eliminar una factura {factura.estado.lower()}")
    if factura.notas_credito or factura.notas_debito:
        raise ValidacionError("No se puede eliminar una factura con notas de crédito o débito asociadas")
    anterior = {**resumen_documento(factura), "numero_factura": factura.numero_factura}

    with UnitOfWork(db).transaction():
        orden = factura.orden
        if orden is not None:
            orden.estado = EstadoOrdenVenta.PENDIENTE.value
        db.delete(factura)
    logger.info("Factura %s eliminada en empresa %s", anterior["numero_factura"], empresa_id)
    auditar_venta(empresa_id, TipoAccion.ELIMINAR, f"Factura {anterior['numero_factura']} eliminada", factura_id,
                  usuario_id, datos_anteriores=anterior)

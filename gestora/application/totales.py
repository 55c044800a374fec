"""
Cálculo de totales de documentos de venta.

Cada etapa recalcula sus propios totales; no se heredan de la etapa anterior
(salvo la factura, que copia los de la orden).
Invariante: total = subtotal - descuento + igv
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List

# La cotización y la orden usan tasas distintas (ver DESIGN.md)
TASA_IGV_COTIZACION = Decimal('0.18')
TASA_IGV_ORDEN = Decimal('0.19')

CENTIMOS = Decimal('0.01')
# Columnas Numeric(12, 2) de los ítems
CAMPOS_ITEM = ("cantidad", "precio_unitario", "descuento", "igv_porcentaje")


def redondear(valor) -> Decimal:
    return Decimal(str(valor)).quantize(CENTIMOS, rounding=ROUND_HALF_UP)


def _dec(valor) -> Decimal:
    return Decimal(str(valor or 0))


def normalizar_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Lleva a céntimos los valores que se guardan en el ítem; los totales se calculan sobre ellos."""
    return {**item, **{c: redondear(item[c]) for c in CAMPOS_ITEM if item.get(c) is not None}}


def _resumen(items: List[Dict[str, Any]], subtotal: Decimal, descuento: Decimal, tasa: Decimal) -> Dict[str, Any]:
    igv = redondear((subtotal - descuento) * tasa)
    return {
        "items": items,
        "subtotal": subtotal,
        "descuento": descuento,
        "igv": igv,
        "total": subtotal - descuento + igv,
    }


def totales_cotizacion(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Descuento por ítem en porcentaje (0-100).
    El subtotal de cada ítem se guarda neto de descuento.
    """
    lineas = []
    subtotal = descuento = Decimal('0')
    for item in map(normalizar_item, items):
        bruto = redondear(_dec(item["cantidad"]) * _dec(item["precio_unitario"]))
        desc_item = redondear(bruto * _dec(item.get("descuento")) / 100)
        subtotal += bruto
        descuento += desc_item
        lineas.append({**item, "subtotal": bruto - desc_item})
    return _resumen(lineas, subtotal, descuento, TASA_IGV_COTIZACION)


def totales_orden(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Descuento por ítem como monto fijo."""
    lineas = []
    subtotal = descuento = Decimal('0')
    for item in map(normalizar_item, items):
        bruto = redondear(_dec(item["cantidad"]) * _dec(item["precio_unitario"]))
        desc_item = redondear(_dec(item.get("descuento")))
        subtotal += bruto
        descuento += desc_item
        lineas.append({**item, "subtotal": bruto - desc_item})
    return _resumen(lineas, subtotal, descuento, TASA_IGV_ORDEN)


def totales_nota(items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Notas de crédito/débito: IGV por ítem según su porcentaje.
    monto = Σ (subtotal_item + igv_item); sin descuento.
    """
    lineas = []
    subtotal = igv = Decimal('0')
    for item in map(normalizar_item, items):
        sub_item = redondear(_dec(item["cantidad"]) * _dec(item["precio_unitario"]))
        igv_item = redondear(sub_item * _dec(item.get("igv_porcentaje", 18)) / 100)
        subtotal += sub_item
        igv += igv_item
        lineas.append({**item, "subtotal": sub_item, "igv": igv_item})
    return {
        "items": lineas,
        "subtotal": subtotal,
        "descuento": Decimal('0'),
        "igv": igv,
        "monto": subtotal + igv,
    }

"""
Tests del cálculo de totales de documentos de venta.
Invariante: total = subtotal - descuento + igv
"""
from decimal import Decimal

from gestora.application.totales import (
    totales_cotizacion, totales_orden, totales_nota, redondear,
)


def _item(cantidad, precio, **extra):
    return {"producto_id": 1, "cantidad": cantidad, "precio_unitario": precio, **extra}


class TestTotalesCotizacion:

    def test_sin_descuento(self):
        """2 x 50 -> subtotal 100, IGV 18, total 118"""
        t = totales_cotizacion([_item(2, 50)])
        assert t["subtotal"] == Decimal("100.00")
        assert t["descuento"] == Decimal("0.00")
        assert t["igv"] == Decimal("18.00")
        assert t["total"] == Decimal("118.00")

    def test_descuento_porcentual(self):
        t = totales_cotizacion([_item(2, 50, descuento=10)])
        assert t["descuento"] == Decimal("10.00")
        assert t["igv"] == Decimal("16.20")
        assert t["total"] == Decimal("106.20")
        assert t["items"][0]["subtotal"] == Decimal("90.00")


class TestTotalesOrden:

    def test_tasa_de_orden(self):
        t = totales_orden([_item(2, 50)])
        assert t["igv"] == Decimal("19.00")
        assert t["total"] == Decimal("119.00")

    def test_descuento_monto_fijo(self):
        t = totales_orden([_item(2, 50, descuento=5)])
        assert t["descuento"] == Decimal("5.00")
        assert t["igv"] == Decimal("18.05")
        assert t["total"] == t["subtotal"] - t["descuento"] + t["igv"]


class TestTotalesNota:

    def test_igv_por_item(self):
        t = totales_nota([_item(2, 50, igv_porcentaje=18), _item(1, 10, igv_porcentaje=0)])
        assert t["subtotal"] == Decimal("110.00")
        assert t["igv"] == Decimal("18.00")
        assert t["monto"] == Decimal("128.00")

    def test_porcentaje_por_defecto(self):
        t = totales_nota([_item(1, 100)])
        assert t["igv"] == Decimal("18.00")


def test_redondeo_mitad_hacia_arriba():
    assert redondear(Decimal("0.125")) == Decimal("0.13")
    assert redondear("2.675") == Decimal("2.68")


class TestCantidadesFraccionarias:
    """Los totales se calculan con los mismos valores en céntimos que se guardan en el ítem"""

    def test_cotizacion(self):
        t = totales_cotizacion([_item("1.005", 100)])
        linea = t["items"][0]
        assert linea["cantidad"] == Decimal("1.01")
        assert linea["subtotal"] == linea["cantidad"] * linea["precio_unitario"] == Decimal("101.00")
        assert t["total"] == Decimal("119.18")

    def test_orden_con_descuento(self):
        t = totales_orden([_item("2.675", "10.005", descuento="0.555")])
        linea = t["items"][0]
        assert (linea["cantidad"], linea["precio_unitario"], linea["descuento"]) == (
            Decimal("2.68"), Decimal("10.01"), Decimal("0.56"),
        )
        assert t["subtotal"] == redondear(Decimal("2.68") * Decimal("10.01"))
        assert linea["subtotal"] == t["subtotal"] - Decimal("0.56")

    def test_nota(self):
        t = totales_nota([_item("0.335", 200, igv_porcentaje=18)])
        assert t["items"][0]["cantidad"] == Decimal("0.34")
        assert t["subtotal"] == Decimal("68.00")
        assert t["monto"] == Decimal("80.24")

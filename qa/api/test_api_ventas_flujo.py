"""
Flujo de documentos de venta por API:
cotización -> orden de venta -> factura -> nota de crédito / débito
"""
from decimal import Decimal

import pytest


@pytest.fixture
def base(client, empresa, admin_headers):
    url = f"/empresas/{empresa.id}"
    cliente = client.post(f"{url}/clientes", json={"nombre": "Bodega Los Andes", "tipo_documento": "RUC",
                                                   "numero_documento": "20200000006"}, headers=admin_headers)
    producto = client.post(f"{url}/productos", json={"nombre": "Arroz 50kg", "precio": "50"}, headers=admin_headers)
    assert cliente.status_code == 201, cliente.text
    assert producto.status_code == 201, producto.text
    return {"url": url, "headers": admin_headers, "cliente_id": cliente.json()["id"],
            "producto_id": producto.json()["id"]}


def _item(base, cantidad=2, precio=50, **extra):
    return {"producto_id": base["producto_id"], "cantidad": cantidad, "precio_unitario": precio, **extra}


def _orden(client, base):
    r = client.post(f"{base['url']}/ordenes-venta", headers=base["headers"],
                    json={"cliente_id": base["cliente_id"], "items": [_item(base)]})
    assert r.status_code == 201, r.text
    return r.json()


class TestCotizacion:

    def test_totales_con_descuento_porcentual(self, client, base):
        r = client.post(f"{base['url']}/cotizaciones", headers=base["headers"],
                        json={"cliente_id": base["cliente_id"], "items": [_item(base, descuento=10)]})
        assert r.status_code == 201, r.text
        cot = r.json()
        assert cot["estado"] == "PENDIENTE"
        assert Decimal(cot["igv"]) == Decimal("16.20")
        assert Decimal(cot["total"]) == Decimal("106.20")

    def test_sin_items(self, client, base):
        r = client.post(f"{base['url']}/cotizaciones", headers=base["headers"],
                        json={"cliente_id": base["cliente_id"], "items": []})
        assert r.status_code == 422

    def test_producto_inexistente(self, client, base):
        r = client.post(f"{base['url']}/cotizaciones", headers=base["headers"],
                        json={"cliente_id": base["cliente_id"], "items": [{**_item(base), "producto_id": 999}]})
        assert r.status_code == 404

    def test_convertir_una_sola_vez(self, client, base):
        cot = client.post(f"{base['url']}/cotizaciones", headers=base["headers"],
                          json={"cliente_id": base["cliente_id"], "items": [_item(base, descuento=10)]}).json()
        r = client.post(f"{base['url']}/cotizaciones/{cot['id']}/convertir", headers=base["headers"])
        assert r.status_code == 201, r.text
        orden = r.json()
        # El descuento pasa a monto fijo y la orden usa su propia tasa
        assert orden["cotizacion_id"] == cot["id"]
        assert Decimal(orden["descuento"]) == Decimal("10.00")
        assert Decimal(orden["igv"]) == Decimal("17.10")
        assert Decimal(orden["total"]) == Decimal("107.10")

        estado = client.get(f"{base['url']}/cotizaciones/{cot['id']}", headers=base["headers"]).json()["estado"]
        assert estado == "CONVERTIDA"
        r = client.post(f"{base['url']}/cotizaciones/{cot['id']}/convertir", headers=base["headers"])
        assert r.status_code == 400


class TestOrden:

    def test_totales_con_tasa_de_orden(self, client, base):
        orden = _orden(client, base)
        assert Decimal(orden["igv"]) == Decimal("19.00")
        assert Decimal(orden["total"]) == Decimal("119.00")

    def test_cancelada_no_se_aprueba(self, client, base):
        orden = _orden(client, base)
        url = f"{base['url']}/ordenes-venta/{orden['id']}"
        assert client.patch(f"{url}/cancelar", headers=base["headers"]).json()["estado"] == "CANCELADA"
        r = client.patch(f"{url}/aprobar", headers=base["headers"])
        assert r.status_code == 400
        assert r.json()["detail"] == "Solo se pueden aprobar órdenes en estado PENDIENTE"


class TestFacturaYNotas:

    def test_flujo_completo(self, client, base):
        orden = _orden(client, base)
        client.patch(f"{base['url']}/ordenes-venta/{orden['id']}/aprobar", headers=base["headers"])

        r = client.post(f"{base['url']}/facturas", headers=base["headers"], json={"orden_venta_id": orden["id"]})
        assert r.status_code == 201, r.text
        factura = r.json()
        assert factura["numero_factura"] == "F001-00000001"
        assert factura["estado"] == "EMITIDA"
        assert Decimal(factura["total"]) == Decimal(orden["total"])
        assert len(factura["items"]) == 1

        orden_actual = client.get(f"{base['url']}/ordenes-venta/{orden['id']}", headers=base["headers"]).json()
        assert orden_actual["estado"] == "FACTURADA"
        r = client.post(f"{base['url']}/facturas", headers=base["headers"], json={"orden_venta_id": orden["id"]})
        assert r.status_code == 400

        r = client.post(f"{base['url']}/notas-credito", headers=base["headers"], json={
            "factura_id": factura["id"], "tipo": "DEVOLUCION", "motivo": "Devolución de un saco",
            "items": [_item(base, cantidad=1)],
        })
        assert r.status_code == 201, r.text
        nota = r.json()
        assert nota["numero_nota"] == "FC01-00000001"
        assert Decimal(nota["igv"]) == Decimal("9.00")
        assert Decimal(nota["monto"]) == Decimal("59.00")

        r = client.post(f"{base['url']}/notas-debito", headers=base["headers"], json={
            "factura_id": factura["id"], "motivo": "Flete", "items": [_item(base, cantidad=1, precio=10, igv_porcentaje=0)],
        })
        assert r.status_code == 201, r.text
        assert r.json()["numero_nota"] == "FD01-00000001"
        assert Decimal(r.json()["monto"]) == Decimal("10.00")

        r = client.delete(f"{base['url']}/facturas/{factura['id']}", headers=base["headers"])
        assert r.status_code == 400

    def test_estados_de_factura(self, client, base):
        orden = _orden(client, base)
        factura = client.post(f"{base['url']}/facturas", headers=base["headers"],
                              json={"orden_venta_id": orden["id"]}).json()
        url = f"{base['url']}/facturas/{factura['id']}"

        r = client.patch(url, headers=base["headers"], json={"estado": "PAGADA"})
        assert r.status_code == 200
        r = client.patch(url, headers=base["headers"], json={"notas": "Corrección"})
        assert r.status_code == 400

    def test_eliminar_factura_libera_la_orden(self, client, base):
        orden = _orden(client, base)
        factura = client.post(f"{base['url']}/facturas", headers=base["headers"],
                              json={"orden_venta_id": orden["id"]}).json()
        r = client.delete(f"{base['url']}/facturas/{factura['id']}", headers=base["headers"])
        assert r.status_code == 204
        estado = client.get(f"{base['url']}/ordenes-venta/{orden['id']}", headers=base["headers"]).json()["estado"]
        assert estado == "PENDIENTE"

    def test_escrituras_quedan_auditadas(self, client, base, empresa):
        _orden(client, base)
        r = client.get(f"/auditoria/{empresa.id}", headers=base["headers"], params={"recurso": "venta"})
        assert r.status_code == 200
        assert r.json()["meta"]["total"] == 1
        assert r.json()["data"][0]["accion"] == "crear"


def _factura(client, base):
    orden = _orden(client, base)
    r = client.post(f"{base['url']}/facturas", headers=base["headers"], json={"orden_venta_id": orden["id"]})
    assert r.status_code == 201, r.text
    return orden, r.json()


class TestEstadosTerminales:
    """Documentos en estado terminal no se editan ni se eliminan"""

    def test_cotizacion_convertida(self, client, base):
        cot = client.post(f"{base['url']}/cotizaciones", headers=base["headers"],
                          json={"cliente_id": base["cliente_id"], "items": [_item(base)]}).json()
        client.post(f"{base['url']}/cotizaciones/{cot['id']}/convertir", headers=base["headers"])
        url = f"{base['url']}/cotizaciones/{cot['id']}"

        r = client.patch(url, headers=base["headers"], json={"notas": "Cambio tardío", "items": [_item(base, cantidad=5)]})
        assert r.status_code == 400
        assert client.delete(url, headers=base["headers"]).status_code == 400

        actual = client.get(url, headers=base["headers"]).json()
        assert actual["estado"] == "CONVERTIDA"
        assert actual["notas"] is None
        assert Decimal(actual["total"]) == Decimal(cot["total"])

    @pytest.mark.parametrize("terminal", ["FACTURADA", "CANCELADA"])
    def test_orden_terminal(self, client, base, terminal):
        if terminal == "FACTURADA":
            orden, _ = _factura(client, base)
        else:
            orden = _orden(client, base)
            client.patch(f"{base['url']}/ordenes-venta/{orden['id']}/cancelar", headers=base["headers"])
        url = f"{base['url']}/ordenes-venta/{orden['id']}"

        r = client.patch(url, headers=base["headers"], json={"items": [_item(base, cantidad=10)]})
        assert r.status_code == 400
        assert r.json()["detail"] == f"No se puede modificar una orden de venta {terminal.lower()}"
        r = client.delete(url, headers=base["headers"])
        assert r.status_code == 400
        assert r.json()["detail"] == f"No se puede eliminar una orden de venta {terminal.lower()}"

        actual = client.get(url, headers=base["headers"]).json()
        assert actual["estado"] == terminal
        assert Decimal(actual["total"]) == Decimal("119.00")

    @pytest.mark.parametrize("tipo", ["notas-credito", "notas-debito"])
    def test_nota_aplicada(self, client, base, tipo):
        _, factura = _factura(client, base)
        datos = {"factura_id": factura["id"], "motivo": "Ajuste", "items": [_item(base, cantidad=1)]}
        if tipo == "notas-credito":
            datos["tipo"] = "DESCUENTO"
        nota = client.post(f"{base['url']}/{tipo}", headers=base["headers"], json=datos).json()
        url = f"{base['url']}/{tipo}/{nota['id']}"
        assert client.patch(url, headers=base["headers"], json={"estado": "APLICADA"}).status_code == 200

        r = client.patch(url, headers=base["headers"], json={"motivo": "Otro motivo"})
        assert r.status_code == 400
        assert client.delete(url, headers=base["headers"]).status_code == 400

        actual = client.get(url, headers=base["headers"]).json()
        assert actual["estado"] == "APLICADA"
        assert actual["motivo"] == "Ajuste"
        assert Decimal(actual["monto"]) == Decimal(nota["monto"])

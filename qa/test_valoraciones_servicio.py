"""
Tests de valoraciones de productos y su moderación
"""
import pytest

from gestora.application import services_valoraciones as svc
from gestora.application.services_catalogo import crear_cliente, crear_producto
from gestora.application.errores import ValidacionError, NoEncontradoError


@pytest.fixture
def catalogo(db, empresa):
    clientes = [
        crear_cliente(db, empresa.id, {"nombre": nombre}) for nombre in ("Lucía", "Mario", "Nora")
    ]
    producto = crear_producto(db, empresa.id, {"nombre": "Quinua", "precio": 12})
    return clientes, producto


def _valorar(db, empresa, cliente, producto, calificacion, comentario=None):
    return svc.crear_valoracion(db, empresa.id, {
        "cliente_id": cliente.id, "producto_id": producto.id,
        "calificacion": calificacion, "comentario": comentario,
    })


class TestCrearValoracion:

    def test_queda_pendiente(self, db, empresa, catalogo):
        (cliente, *_), producto = catalogo
        valoracion = _valorar(db, empresa, cliente, producto, 5, "Muy buena")
        assert valoracion.estado_moderacion == "pendiente"

    @pytest.mark.parametrize("calificacion", [0, 6, None])
    def test_calificacion_fuera_de_rango(self, db, empresa, catalogo, calificacion):
        (cliente, *_), producto = catalogo
        with pytest.raises(ValidacionError, match="entre 1 y 5"):
            _valorar(db, empresa, cliente, producto, calificacion)

    def test_una_por_cliente_y_producto(self, db, empresa, catalogo):
        (cliente, *_), producto = catalogo
        _valorar(db, empresa, cliente, producto, 4)
        with pytest.raises(ValidacionError, match="ya ha valorado"):
            _valorar(db, empresa, cliente, producto, 2)

    @pytest.mark.parametrize("comentario", ["Es una ESTAFA", "puro spam", "x" * 501])
    def test_comentario_rechazado(self, db, empresa, catalogo, comentario):
        (cliente, *_), producto = catalogo
        with pytest.raises(ValidacionError):
            _valorar(db, empresa, cliente, producto, 3, comentario)

    def test_producto_de_otra_empresa(self, db, empresa, catalogo):
        (cliente, *_), _ = catalogo
        with pytest.raises(NoEncontradoError):
            svc.crear_valoracion(db, empresa.id, {"cliente_id": cliente.id, "producto_id": 999, "calificacion": 4})


class TestModeracion:

    def test_moderar(self, db, empresa, catalogo):
        (cliente, *_), producto = catalogo
        valoracion = _valorar(db, empresa, cliente, producto, 1)
        moderada = svc.moderar_valoracion(db, empresa.id, valoracion.id, "aprobada", "Revisada")
        assert moderada.estado_moderacion == "aprobada"
        assert moderada.fecha_moderacion is not None
        with pytest.raises(ValidacionError, match="ya está en estado"):
            svc.moderar_valoracion(db, empresa.id, valoracion.id, "aprobada")

    def test_estado_invalido(self, db, empresa, catalogo):
        (cliente, *_), producto = catalogo
        valoracion = _valorar(db, empresa, cliente, producto, 1)
        with pytest.raises(ValidacionError):
            svc.moderar_valoracion(db, empresa.id, valoracion.id, "oculta")


class TestConsultas:

    def test_resumen_excluye_rechazadas(self, db, empresa, catalogo):
        (lucia, mario, nora), producto = catalogo
        _valorar(db, empresa, lucia, producto, 5)
        _valorar(db, empresa, mario, producto, 4)
        rechazada = _valorar(db, empresa, nora, producto, 1)
        svc.moderar_valoracion(db, empresa.id, rechazada.id, "rechazada")

        resumen = svc.resumen_producto(db, empresa.id, producto.id)
        assert resumen["total_valoraciones"] == 2
        assert resumen["promedio_calificacion"] == 4.5
        assert resumen["distribucion_calificaciones"] == {"1": 0, "2": 0, "3": 0, "4": 1, "5": 1}

    def test_resumen_sin_valoraciones(self, db, empresa, catalogo):
        _, producto = catalogo
        resumen = svc.resumen_producto(db, empresa.id, producto.id)
        assert (resumen["total_valoraciones"], resumen["promedio_calificacion"]) == (0, 0)

    def test_listar_con_filtros(self, db, empresa, catalogo):
        (lucia, mario, nora), producto = catalogo
        for cliente, nota in ((lucia, 5), (mario, 3), (nora, 1)):
            _valorar(db, empresa, cliente, producto, nota)
        resultado = svc.listar_valoraciones(db, empresa.id, {"calificacion_min": 3})
        assert resultado["meta"]["total"] == 2
        with pytest.raises(ValidacionError):
            svc.listar_valoraciones(db, empresa.id, {"calificacion_min": 4, "calificacion_max": 2})

    def test_actualizar_y_eliminar(self, db, empresa, catalogo):
        (cliente, *_), producto = catalogo
        valoracion = _valorar(db, empresa, cliente, producto, 2)
        assert svc.actualizar_valoracion(db, empresa.id, valoracion.id, {"calificacion": 4}).calificacion == 4
        svc.eliminar_valoracion(db, empresa.id, valoracion.id)
        with pytest.raises(NoEncontradoError):
            svc.obtener_valoracion(db, empresa.id, valoracion.id)

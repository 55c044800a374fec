"""
Tests de la resolución de permisos en tres niveles:
directo, rol de empresa (vigencia y horario) y rol del sistema.
"""
from datetime import datetime, time, timedelta

import pytest

from gestora.application import services_permisos as svc
from gestora.application.services_empresas import asignar_usuario
from gestora.application.services_roles_empresa import crear_rol, asignar_rol, actualizar_rol, remover_rol
from gestora.domain.models import Permiso, UsuarioRolEmpresa


@pytest.fixture
def permiso(db):
    def _buscar(recurso, accion):
        return db.query(Permiso).filter(Permiso.recurso == recurso, Permiso.accion == accion).one()
    return _buscar


@pytest.fixture
def miembro(db, empresa, crear_usuario):
    usuario = crear_usuario("fabio")
    asignar_usuario(db, empresa.id, usuario.id)
    return usuario


def _hoy(hora):
    return datetime.combine(datetime.now().date(), time(hora, 0))


class TestNiveles:

    def test_sin_permisos(self, db, empresa, miembro):
        resultado = svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear")
        assert resultado.tiene_permiso is False
        assert resultado.origen is None

    def test_permiso_directo(self, db, empresa, miembro, permiso):
        svc.otorgar_permiso_usuario(db, miembro.id, permiso("venta", "crear").id)
        resultado = svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear")
        assert resultado.tiene_permiso
        assert resultado.origen == "directo"

    def test_directo_tiene_prioridad(self, db, empresa, miembro, permiso):
        rol, _ = crear_rol(db, empresa.id, {"nombre": "Vendedor", "permisos": [permiso("venta", "crear").id]})
        asignar_rol(db, empresa.id, miembro.id, rol.id)
        svc.otorgar_permiso_usuario(db, miembro.id, permiso("venta", "crear").id)
        assert svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear").origen == "directo"

    def test_rol_de_empresa(self, db, empresa, miembro, permiso):
        rol, _ = crear_rol(db, empresa.id, {"nombre": "Vendedor", "permisos": [permiso("venta", "crear").id]})
        asignar_rol(db, empresa.id, miembro.id, rol.id)
        resultado = svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear")
        assert (resultado.tiene_permiso, resultado.origen, resultado.rol) == (True, "rol_empresa", "Vendedor")
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "eliminar")

    def test_rol_de_otra_empresa_no_cuenta(self, db, empresa, miembro, permiso):
        from gestora.application.services_empresas import crear_empresa
        otra = crear_empresa(db, {"nombre": "Otra", "razon_social": "Otra SA", "ruc": "20200000006", "tipo_empresa": "SA"})
        asignar_usuario(db, otra.id, miembro.id)
        rol, _ = crear_rol(db, otra.id, {"nombre": "Vendedor", "permisos": [permiso("venta", "crear").id]})
        asignar_rol(db, otra.id, miembro.id, rol.id)
        assert svc.tiene_permiso(db, miembro.id, otra.id, "venta", "crear")
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "crear")

    def test_rol_del_sistema(self, db, empresa, miembro, permiso):
        rol = svc.crear_rol_sistema(db, "Auditor", "Solo lectura", [permiso("auditoria", "leer").id])
        svc.asignar_rol_sistema(db, miembro.id, rol.id)
        resultado = svc.verificar_permiso(db, miembro.id, empresa.id, "auditoria", "leer")
        assert (resultado.origen, resultado.rol) == ("rol_sistema", "Auditor")

        svc.asignar_rol_sistema(db, miembro.id, None)
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "auditoria", "leer")


class TestVentanasDeTiempo:

    def test_fuera_de_horario(self, db, empresa, miembro, permiso):
        rol, _ = crear_rol(db, empresa.id, {
            "nombre": "Mañana", "horario_inicio": "08:00", "horario_fin": "12:00",
            "permisos": [permiso("venta", "leer").id],
        })
        asignar_rol(db, empresa.id, miembro.id, rol.id)
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "leer", ahora=_hoy(15))
        assert svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "leer", ahora=_hoy(10))

    def test_vigencia_futura(self, db, empresa, miembro, permiso):
        ahora = datetime.now()
        rol, _ = crear_rol(db, empresa.id, {
            "nombre": "Campaña", "fecha_inicio": ahora + timedelta(days=10), "fecha_fin": ahora + timedelta(days=30),
            "permisos": [permiso("venta", "crear").id],
        })
        asignar_rol(db, empresa.id, miembro.id, rol.id)
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "crear", ahora=ahora)
        assert svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "crear", ahora=ahora + timedelta(days=15))
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "crear", ahora=ahora + timedelta(days=40))

    def test_rol_inactivo(self, db, empresa, miembro, permiso):
        rol, _ = crear_rol(db, empresa.id, {"nombre": "Vendedor", "permisos": [permiso("venta", "crear").id]})
        asignar_rol(db, empresa.id, miembro.id, rol.id)
        actualizar_rol(db, empresa.id, rol.id, {"activo": False})
        assert not svc.tiene_permiso(db, miembro.id, empresa.id, "venta", "crear")


class TestOrden:

    def test_gana_la_primera_asignacion(self, db, empresa, miembro, permiso):
        permiso_id = permiso("venta", "crear").id
        primero, _ = crear_rol(db, empresa.id, {"nombre": "Vendedor", "permisos": [permiso_id]})
        segundo, _ = crear_rol(db, empresa.id, {"nombre": "Supervisor", "permisos": [permiso_id]})
        asignar_rol(db, empresa.id, miembro.id, primero.id)
        asignar_rol(db, empresa.id, miembro.id, segundo.id)
        assert svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear").rol == "Vendedor"

    def test_salta_roles_fuera_de_horario(self, db, empresa, miembro, permiso):
        permiso_id = permiso("venta", "crear").id
        manana, _ = crear_rol(db, empresa.id, {
            "nombre": "Mañana", "horario_inicio": "08:00", "horario_fin": "12:00", "permisos": [permiso_id],
        })
        tarde, _ = crear_rol(db, empresa.id, {
            "nombre": "Tarde", "horario_inicio": "13:00", "horario_fin": "18:00", "permisos": [permiso_id],
        })
        asignar_rol(db, empresa.id, miembro.id, manana.id)
        asignar_rol(db, empresa.id, miembro.id, tarde.id)
        assert svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear", ahora=_hoy(15)).rol == "Tarde"
        assert svc.verificar_permiso(db, miembro.id, empresa.id, "venta", "crear", ahora=_hoy(9)).rol == "Mañana"


class TestAsignacionActiva:

    def test_en_memoria_y_en_consulta(self, db, empresa, miembro):
        rol, _ = crear_rol(db, empresa.id, {"nombre": "Vendedor"})
        vigente = asignar_rol(db, empresa.id, miembro.id, rol.id)
        ahora = datetime.now()
        assert vigente.esta_activa(ahora)

        remover_rol(db, empresa.id, miembro.id, rol.id)
        db.refresh(vigente)
        assert not vigente.esta_activa(ahora + timedelta(seconds=1))
        activas = db.query(UsuarioRolEmpresa).filter(
            UsuarioRolEmpresa.usuario_id == miembro.id,
            UsuarioRolEmpresa.esta_activa(ahora + timedelta(seconds=1)),
        ).all()
        assert activas == []

"""
Tests del servicio de roles de empresa
"""
from datetime import datetime, timedelta

import pytest

from gestora.application import services_roles_empresa as svc
from gestora.application.services_empresas import asignar_usuario
from gestora.application.errores import ValidacionError, ConflictoError, NoEncontradoError
from gestora.domain.models import Permiso


def _permiso_id(db, recurso, accion):
    return db.query(Permiso.id).filter(Permiso.recurso == recurso, Permiso.accion == accion).scalar()


class TestCrearRol:

    def test_crear_con_permisos(self, db, empresa):
        rol, advertencias = svc.crear_rol(db, empresa.id, {
            "nombre": "Vendedor",
            "permisos": [_permiso_id(db, "venta", "crear"), _permiso_id(db, "cliente", "leer")],
        })
        assert advertencias == []
        assert {(p.recurso, p.accion) for p in rol.permisos} == {("venta", "crear"), ("cliente", "leer")}

    def test_jornada_larga_solo_advierte(self, db, empresa):
        """Más de 8 horas crea el rol igual, con advertencia"""
        rol, advertencias = svc.crear_rol(db, empresa.id, {
            "nombre": "Turno Largo", "horario_inicio": "08:00", "horario_fin": "18:00",
        })
        assert rol.id is not None
        assert any("jornada máxima de 8 horas" in a for a in advertencias)

    def test_horas_atipicas_advierten(self, db, empresa):
        _, advertencias = svc.crear_rol(db, empresa.id, {
            "nombre": "Madrugada", "horario_inicio": "06:30", "horario_fin": "10:00",
        })
        assert any("atípicas" in a for a in advertencias)

    @pytest.mark.parametrize("inicio,fin", [("05:00", "10:00"), ("10:00", "23:30"), ("12:00", "09:00"), ("8h", "12:00")])
    def test_horario_invalido(self, db, empresa, inicio, fin):
        with pytest.raises(ValidacionError):
            svc.crear_rol(db, empresa.id, {"nombre": "Turno", "horario_inicio": inicio, "horario_fin": fin})

    def test_horario_incompleto(self, db, empresa):
        with pytest.raises(ValidacionError, match="horario_inicio y horario_fin"):
            svc.crear_rol(db, empresa.id, {"nombre": "Turno", "horario_inicio": "08:00"})

    @pytest.mark.parametrize("nombre", ["admin", "Root", "SYSTEM"])
    def test_nombre_reservado(self, db, empresa, nombre):
        with pytest.raises(ValidacionError, match="reservado"):
            svc.crear_rol(db, empresa.id, {"nombre": nombre})

    @pytest.mark.parametrize("nombre", ["ab", " Cajero", "Caja@1"])
    def test_nombre_invalido(self, db, empresa, nombre):
        with pytest.raises(ValidacionError):
            svc.crear_rol(db, empresa.id, {"nombre": nombre})

    def test_nombre_duplicado_es_conflicto(self, db, empresa):
        svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})
        with pytest.raises(ConflictoError):
            svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})

    def test_fechas(self, db, empresa):
        ahora = datetime.now()
        with pytest.raises(ValidacionError, match="anterior"):
            svc.crear_rol(db, empresa.id, {
                "nombre": "Temporal", "fecha_inicio": ahora + timedelta(days=5), "fecha_fin": ahora + timedelta(days=1),
            })
        with pytest.raises(ValidacionError, match="pasado"):
            svc.crear_rol(db, empresa.id, {"nombre": "Temporal", "fecha_fin": ahora - timedelta(days=1)})
        with pytest.raises(ValidacionError, match="5 años"):
            svc.crear_rol(db, empresa.id, {
                "nombre": "Temporal", "fecha_inicio": ahora, "fecha_fin": ahora + timedelta(days=6 * 365),
            })

    def test_permiso_inexistente(self, db, empresa):
        with pytest.raises(NoEncontradoError):
            svc.crear_rol(db, empresa.id, {"nombre": "Cajero", "permisos": [99999]})


class TestActualizarRol:

    def test_solo_revalida_lo_enviado(self, db, empresa):
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Cajero", "horario_inicio": "08:00", "horario_fin": "12:00"})
        actualizado, advertencias = svc.actualizar_rol(db, empresa.id, rol.id, {"horario_fin": "19:00"})
        assert actualizado.horario_fin == "19:00"
        assert actualizado.nombre == "Cajero"
        assert advertencias

    def test_renombrar_a_existente(self, db, empresa):
        svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Almacenero"})
        with pytest.raises(ConflictoError):
            svc.actualizar_rol(db, empresa.id, rol.id, {"nombre": "Cajero"})


class TestAsignaciones:

    def test_asignar_requiere_membresia(self, db, empresa, crear_usuario):
        usuario = crear_usuario("carla")
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})
        with pytest.raises(ValidacionError, match="no pertenece"):
            svc.asignar_rol(db, empresa.id, usuario.id, rol.id)

    def test_eliminar_con_asignacion_activa(self, db, empresa, crear_usuario):
        """409 mientras haya asignación activa; al removerla se puede eliminar"""
        usuario = crear_usuario("dario")
        asignar_usuario(db, empresa.id, usuario.id)
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})
        svc.asignar_rol(db, empresa.id, usuario.id, rol.id)

        with pytest.raises(ConflictoError):
            svc.asignar_rol(db, empresa.id, usuario.id, rol.id)
        with pytest.raises(ConflictoError, match="asignado"):
            svc.eliminar_rol(db, empresa.id, rol.id)

        asignacion = svc.remover_rol(db, empresa.id, usuario.id, rol.id)
        assert asignacion.fecha_fin is not None
        svc.eliminar_rol(db, empresa.id, rol.id)
        with pytest.raises(NoEncontradoError):
            svc.obtener_rol(db, empresa.id, rol.id)

    def test_remover_sin_asignacion(self, db, empresa, crear_usuario):
        usuario = crear_usuario("elena")
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Cajero"})
        with pytest.raises(NoEncontradoError):
            svc.remover_rol(db, empresa.id, usuario.id, rol.id)


class TestPermisosDelRol:

    def test_reemplazar_y_remover(self, db, empresa):
        rol, _ = svc.crear_rol(db, empresa.id, {"nombre": "Cajero", "permisos": [_permiso_id(db, "venta", "leer")]})
        crear = _permiso_id(db, "venta", "crear")
        rol = svc.asignar_permisos(db, empresa.id, rol.id, [crear, _permiso_id(db, "cliente", "leer")])
        assert {p.permiso_id for p in rol.permisos} == {crear, _permiso_id(db, "cliente", "leer")}

        svc.remover_permiso(db, empresa.id, rol.id, crear)
        with pytest.raises(NoEncontradoError):
            svc.remover_permiso(db, empresa.id, rol.id, crear)


class TestRolesPredefinidos:

    def test_inicializar(self, db, empresa):
        roles = {r.nombre: r for r in svc.inicializar_roles_predefinidos(db, empresa.id)}
        assert set(roles) == {"Administrador", "Gerente", "Empleado"}
        assert {p.accion for p in roles["Empleado"].permisos} == {"leer"}
        assert "eliminar" not in {p.accion for p in roles["Gerente"].permisos}
        assert len(roles["Administrador"].permisos) == db.query(Permiso).count()

    def test_inicializar_dos_veces(self, db, empresa):
        svc.inicializar_roles_predefinidos(db, empresa.id)
        with pytest.raises(ConflictoError):
            svc.inicializar_roles_predefinidos(db, empresa.id)

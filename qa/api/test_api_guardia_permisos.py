"""
Tests de la guarda de permisos por empresa en los endpoints:
membresía, permisos por rol, bypass de administrador y registro de accesos denegados.
"""
import pytest

from gestora.application.services_empresas import asignar_usuario
from gestora.application.services_roles_empresa import crear_rol, asignar_rol
from gestora.domain.models import Permiso
from gestora.domain.models_audit import EventoAuditoria


@pytest.fixture
def vendedor(db, empresa, crear_usuario):
    usuario = crear_usuario("mara")
    asignar_usuario(db, empresa.id, usuario.id)
    return usuario


def _dar_rol(db, empresa, usuario, *codigos):
    ids = [
        db.query(Permiso.id).filter(Permiso.recurso == r, Permiso.accion == a).scalar()
        for r, a in codigos
    ]
    rol, _ = crear_rol(db, empresa.id, {"nombre": "Ventas", "permisos": ids})
    asignar_rol(db, empresa.id, usuario.id, rol.id)
    return rol


class TestGuarda:

    def test_no_miembro(self, client, empresa, crear_usuario, autenticar):
        crear_usuario("nico")
        r = client.get(f"/empresas/{empresa.id}/clientes", headers=autenticar("nico"))
        assert r.status_code == 403
        assert r.json()["detail"] == "No tiene acceso a esta empresa"

    def test_miembro_sin_permiso_queda_auditado(self, client, db, empresa, vendedor, autenticar):
        r = client.post(f"/empresas/{empresa.id}/clientes", json={"nombre": "Ana"}, headers=autenticar("mara"))
        assert r.status_code == 403
        assert r.json()["detail"] == "No tiene permiso para crear cliente"

        evento = db.query(EventoAuditoria).filter(EventoAuditoria.accion == "acceso_denegado").one()
        assert evento.usuario_id == vendedor.id
        assert evento.recurso == "cliente"
        assert evento.severidad == "critical"

    def test_recurso_sin_tipo_de_auditoria(self, client, db, empresa, vendedor, autenticar):
        r = client.get(f"/empresas/{empresa.id}/roles", headers=autenticar("mara"))
        assert r.status_code == 403
        evento = db.query(EventoAuditoria).one()
        assert evento.recurso == "sistema"

    def test_rol_otorga_acceso(self, client, db, empresa, vendedor, autenticar):
        _dar_rol(db, empresa, vendedor, ("cliente", "crear"), ("cliente", "leer"))
        headers = autenticar("mara")
        r = client.post(f"/empresas/{empresa.id}/clientes", json={"nombre": "Ana"}, headers=headers)
        assert r.status_code == 201
        r = client.get(f"/empresas/{empresa.id}/clientes", headers=headers)
        assert r.json()["meta"]["total"] == 1
        r = client.delete(f"/empresas/{empresa.id}/clientes/1", headers=headers)
        assert r.status_code == 403

    def test_admin_no_pasa_por_el_resolvedor(self, client, empresa, admin_headers):
        r = client.get(f"/empresas/{empresa.id}/clientes", headers=admin_headers)
        assert r.status_code == 200

    def test_verificar_permiso(self, client, db, empresa, vendedor, admin_headers):
        _dar_rol(db, empresa, vendedor, ("venta", "crear"))
        r = client.get(f"/empresas/{empresa.id}/roles/verificar-permiso", headers=admin_headers,
                       params={"usuario_id": vendedor.id, "recurso": "venta", "accion": "crear"})
        assert r.status_code == 200
        assert r.json()["tiene_permiso"] is True
        assert r.json()["origen"] == "rol_empresa"
        assert r.json()["rol"] == "Ventas"


class TestErroresDeDominio:

    def test_no_encontrado(self, client, empresa, admin_headers):
        r = client.get(f"/empresas/{empresa.id}/clientes/999", headers=admin_headers)
        assert r.status_code == 404
        assert r.json()["detail"] == "Cliente con ID 999 no encontrado"

    def test_conflicto_de_rol(self, client, empresa, admin_headers):
        url = f"/empresas/{empresa.id}/roles"
        assert client.post(url, json={"nombre": "Caja"}, headers=admin_headers).status_code == 201
        r = client.post(url, json={"nombre": "Caja"}, headers=admin_headers)
        assert r.status_code == 409

    def test_advertencias_de_horario(self, client, empresa, admin_headers):
        r = client.post(f"/empresas/{empresa.id}/roles", headers=admin_headers,
                        json={"nombre": "Turno Largo", "horario_inicio": "08:00", "horario_fin": "18:00"})
        assert r.status_code == 201
        assert r.json()["advertencias"]

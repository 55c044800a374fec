"""Tests de PATCH con null explícito en campos obligatorios"""
import pytest


@pytest.fixture
def rol_id(client, empresa, admin_headers):
    r = client.post(f"/empresas/{empresa.id}/roles", json={"nombre": "Caja"}, headers=admin_headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


@pytest.fixture
def archivo_id(client, empresa, admin_headers):
    r = client.post(f"/empresas/{empresa.id}/archivos", headers=admin_headers, json={
        "nombre_archivo": "logo.png", "mime_type": "image/png",
        "url_archivo": "https://cdn.example.com/logo.png", "tamanio_bytes": 512,
    })
    assert r.status_code == 201, r.text
    return r.json()["id"]


class TestNulosRechazados:

    @pytest.mark.parametrize("campo", ["nombre", "activo"])
    def test_rol(self, client, empresa, admin_headers, rol_id, campo):
        url = f"/empresas/{empresa.id}/roles/{rol_id}"
        r = client.patch(url, json={campo: None}, headers=admin_headers)
        assert r.status_code == 400
        assert campo in r.json()["detail"]
        rol = client.get(url, headers=admin_headers).json()
        assert rol["nombre"] == "Caja"
        assert rol["activo"] is True

    def test_archivo(self, client, empresa, admin_headers, archivo_id):
        url = f"/empresas/{empresa.id}/archivos/{archivo_id}"
        r = client.patch(url, json={"tipo_archivo": None}, headers=admin_headers)
        assert r.status_code == 400
        assert "tipo_archivo" in r.json()["detail"]
        assert client.get(url, headers=admin_headers).json()["tipo_archivo"] == "imagen"

    def test_producto(self, client, empresa, admin_headers):
        url = f"/empresas/{empresa.id}/productos"
        producto_id = client.post(url, json={"nombre": "Panetón"}, headers=admin_headers).json()["id"]
        r = client.patch(f"{url}/{producto_id}", json={"nombre": None, "precio": None}, headers=admin_headers)
        assert r.status_code == 400
        assert "nombre, precio" in r.json()["detail"]

    def test_empresa(self, client, empresa, admin_headers):
        r = client.patch(f"/empresas/{empresa.id}", json={"nombre": None}, headers=admin_headers)
        assert r.status_code == 400
        assert client.get(f"/empresas/{empresa.id}", headers=admin_headers).json()["nombre"] == "Comercial Andina"

    def test_nulo_en_campo_opcional_se_acepta(self, client, empresa, admin_headers, rol_id):
        url = f"/empresas/{empresa.id}/roles/{rol_id}"
        client.patch(url, json={"descripcion": "Atiende caja"}, headers=admin_headers)
        r = client.patch(url, json={"descripcion": None}, headers=admin_headers)
        assert r.status_code == 200, r.text
        assert r.json()["descripcion"] is None

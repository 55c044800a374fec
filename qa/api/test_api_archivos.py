"""Tests de subida y consulta de archivos por API"""
import pytest


@pytest.fixture
def producto_id(client, empresa, admin_headers):
    r = client.post(f"/empresas/{empresa.id}/productos", json={"nombre": "Panetón"}, headers=admin_headers)
    return r.json()["id"]


class TestSubida:

    def test_subir_y_listar(self, client, empresa, admin_headers, producto_id):
        url = f"/empresas/{empresa.id}/archivos"
        r = client.post(f"{url}/subir/producto/{producto_id}", headers=admin_headers,
                        files={"file": ("ficha.pdf", b"%PDF-1.4 ficha", "application/pdf")})
        assert r.status_code == 201, r.text
        archivo = r.json()
        assert archivo["tipo_archivo"] == "documento"
        assert archivo["tamanio_bytes"] == len(b"%PDF-1.4 ficha")
        assert archivo["url_archivo"].startswith("http://localhost:8000/files/")

        listado = client.get(url, headers=admin_headers).json()
        assert listado["total"] == 1
        por_entidad = client.get(f"{url}/entidad/producto/{producto_id}", headers=admin_headers).json()
        assert [a["id"] for a in por_entidad] == [archivo["id"]]

    def test_tipo_no_permitido(self, client, empresa, admin_headers, producto_id):
        r = client.post(f"/empresas/{empresa.id}/archivos/subir/producto/{producto_id}", headers=admin_headers,
                        files={"file": ("virus.exe", b"MZ", "application/x-msdownload")})
        assert r.status_code == 400

    def test_eliminado_no_se_encuentra(self, client, empresa, admin_headers):
        url = f"/empresas/{empresa.id}/archivos"
        r = client.post(url, headers=admin_headers, json={
            "nombre_archivo": "logo.png", "mime_type": "image/png",
            "url_archivo": "https://cdn.example.com/logo.png", "tamanio_bytes": 512,
        })
        assert r.status_code == 201, r.text
        archivo_id = r.json()["id"]
        assert client.delete(f"{url}/{archivo_id}", headers=admin_headers).status_code == 204
        assert client.get(f"{url}/{archivo_id}", headers=admin_headers).status_code == 404

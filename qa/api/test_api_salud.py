"""Tests de los endpoints de salud y cabeceras de seguridad"""


class TestSalud:

    def test_live(self, client):
        r = client.get("/health/live")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}

    def test_ready_consulta_bd(self, client):
        r = client.get("/health/ready")
        assert r.status_code == 200

    def test_cabeceras_de_seguridad(self, client):
        r = client.get("/health/live")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "DENY"
        # Solo en producción
        assert "Strict-Transport-Security" not in r.headers

"""Tests de login y usuario actual"""


class TestLogin:

    def test_credenciales_invalidas(self, client, crear_usuario):
        crear_usuario("gina")
        r = client.post("/auth/login", data={"username": "gina", "password": "otra"})
        assert r.status_code == 401
        r = client.post("/auth/login", data={"username": "nadie", "password": "x"})
        assert r.status_code == 401

    def test_usuario_inactivo(self, client, db, crear_usuario):
        usuario = crear_usuario("hugo")
        usuario.activo = False
        db.commit()
        r = client.post("/auth/login", data={"username": "hugo", "password": "clave123"})
        assert r.status_code == 401

    def test_admin_inicial_en_desarrollo(self, client, admin_headers):
        r = client.get("/auth/me", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["username"] == "admin"
        assert r.json()["is_admin"] is True


class TestToken:

    def test_sin_token(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_token_invalido(self, client):
        r = client.get("/auth/me", headers={"Authorization": "Bearer no-es-un-jwt"})
        assert r.status_code == 401

    def test_me_lista_empresas(self, client, db, empresa, crear_usuario, autenticar):
        from gestora.application.services_empresas import asignar_usuario
        usuario = crear_usuario("ines")
        asignar_usuario(db, empresa.id, usuario.id)
        r = client.get("/auth/me", headers=autenticar("ines"))
        assert r.json()["empresas"] == [{"id": empresa.id, "nombre": empresa.nombre, "ruc": empresa.ruc}]


class TestUsuarios:

    def test_solo_admin_crea_usuarios(self, client, admin_headers, autenticar):
        r = client.post("/usuarios", json={"username": "jose", "password": "clave123", "nombre": "José"},
                        headers=admin_headers)
        assert r.status_code == 201
        r = client.post("/usuarios", json={"username": "kati", "password": "clave123"},
                        headers=autenticar("jose"))
        assert r.status_code == 403

    def test_usuario_repetido(self, client, admin_headers):
        datos = {"username": "luis", "password": "clave123"}
        assert client.post("/usuarios", json=datos, headers=admin_headers).status_code == 201
        assert client.post("/usuarios", json=datos, headers=admin_headers).status_code == 400

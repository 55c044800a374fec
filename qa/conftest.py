"""
Configuración global de pytest.

La base de datos de pruebas es un SQLite temporal: DATABASE_URL se fija
antes de importar gestora (engine y SessionLocal se crean al importar).
Cada test arranca con las tablas vacías y el catálogo de permisos sembrado.
"""
import os
import sys
import tempfile
from pathlib import Path

# Agregar el directorio raíz al path para imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

_tmp_dir = tempfile.mkdtemp(prefix="gestora_qa_")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/qa.db"
os.environ["ENVIRONMENT"] = "development"
os.environ["UPLOADS_DIR"] = os.path.join(_tmp_dir, "uploads")
os.environ["LOG_DIR"] = os.path.join(_tmp_dir, "logs")
os.environ["SECRET_KEY"] = "clave-de-pruebas-con-mas-de-32-caracteres"
os.environ["ADMIN_USER"] = "admin"
os.environ["ADMIN_PASS"] = "admin"

import pytest
from fastapi.testclient import TestClient

from gestora.main import app
from gestora.db import Base, SessionLocal, engine, init_db
from gestora.domain.models import Usuario
from gestora.security.auth import get_password_hash
from gestora.application.services_permisos import sembrar_permisos
from gestora.application import services_empresas

init_db()

# RUC con dígito verificador correcto
RUC_EMPRESA = "20100000009"


@pytest.fixture(autouse=True)
def limpiar_bd():
    """Vacía todas las tablas y vuelve a sembrar los permisos."""
    with engine.begin() as conn:
        for tabla in reversed(Base.metadata.sorted_tables):
            conn.execute(tabla.delete())
    with SessionLocal() as s:
        sembrar_permisos(s)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def client():
    """Cliente HTTP contra la app real."""
    return TestClient(app)


def login(client, username: str, password: str) -> dict:
    """Devuelve los headers Authorization del usuario."""
    r = client.post("/auth/login", data={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def autenticar(client):
    return lambda username, password="clave123": login(client, username, password)


@pytest.fixture
def admin_headers(client):
    """En desarrollo el primer login crea el administrador configurado."""
    return login(client, "admin", "admin")


@pytest.fixture
def crear_usuario(db):
    def _crear(username: str, password: str = "clave123", is_admin: bool = False) -> Usuario:
        usuario = Usuario(
            username=username,
            password_hash=get_password_hash(password),
            nombre=username.capitalize(),
            is_admin=is_admin,
            activo=True,
        )
        db.add(usuario)
        db.commit()
        db.refresh(usuario)
        return usuario
    return _crear


@pytest.fixture
def empresa(db):
    return services_empresas.crear_empresa(db, {
        "nombre": "Comercial Andina",
        "razon_social": "Comercial Andina S.A.C.",
        "ruc": RUC_EMPRESA,
        "tipo_empresa": "SAC",
    })

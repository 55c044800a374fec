import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .db import init_db, SessionLocal
from .api.routers import (
    health, auth, usuarios, permisos, empresas, roles_empresa, catalogo, ventas, notas,
    auditoria, archivos, valoraciones,
)
from .application.errores import ErrorDominio
from .application.services_permisos import sembrar_permisos
from .infrastructure.logging_config import setup_logging, get_logger
from .config import settings as app_settings

# Configurar logging al iniciar la aplicación
setup_logging()
logger = get_logger("main")

os.makedirs(app_settings.uploads_path, exist_ok=True)

# Inicializar BD (no fallar si conexión no está configurada - primer arranque)
try:
    init_db()
    with SessionLocal() as db:
        sembrar_permisos(db)
except Exception as e:
    logger.warning("No se pudo inicializar la base de datos: %s. Puede requerir configuración inicial.", e)

es_produccion = app_settings.environment == "production"

app = FastAPI(
    title="Gestora - Backend multi-empresa",
    version="0.1.0",
    description="Empresas, roles y permisos por empresa, documentos de venta, auditoría y archivos",
    docs_url=None if es_produccion else "/docs",
    redoc_url=None if es_produccion else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    # Solo HSTS/CSP en producción con HTTPS
    if es_produccion:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = "default-src 'self'"

    return response


@app.exception_handler(ErrorDominio)
async def error_dominio_handler(request: Request, exc: ErrorDominio):
    if exc.status_code >= 500:
        logger.error("Error en %s %s: %s", request.method, request.url.path, exc.mensaje)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.mensaje})


app.include_router(health.router)
app.include_router(auth.router)
app.include_router(usuarios.router)
app.include_router(permisos.router)
app.include_router(empresas.router)
app.include_router(roles_empresa.router)
app.include_router(catalogo.router)
app.include_router(ventas.router)
app.include_router(notas.router)
app.include_router(auditoria.router)
app.include_router(archivos.router)
app.include_router(valoraciones.router)

"""
Logging de la aplicación: consola siempre y, si LOG_DIR es escribible,
un archivo por día con rotación por tamaño.
"""
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..config import settings

FORMATO = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FORMATO_FECHA = "%Y-%m-%d %H:%M:%S"
MAX_BYTES = 10 * 1024 * 1024
RESPALDOS = 5


def _handler_archivo(nivel: int) -> RotatingFileHandler:
    carpeta = Path(settings.log_dir)
    carpeta.mkdir(parents=True, exist_ok=True)
    archivo = carpeta / f"gestora_{datetime.now():%Y-%m-%d}.log"
    handler = RotatingFileHandler(archivo, maxBytes=MAX_BYTES, backupCount=RESPALDOS, encoding="utf-8")
    handler.setLevel(nivel)
    return handler


def setup_logging():
    """Configura el logger raíz. Llamar una sola vez al arrancar la app."""
    nivel = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = logging.Formatter(FORMATO, FORMATO_FECHA)

    raiz = logging.getLogger()
    raiz.setLevel(nivel)
    raiz.handlers.clear()

    consola = logging.StreamHandler()
    consola.setLevel(nivel)
    consola.setFormatter(formatter)
    raiz.addHandler(consola)

    destino = "(solo consola)"
    try:
        archivo = _handler_archivo(nivel)
    except OSError as e:
        raiz.warning("No se pudo crear el archivo de log: %s", e)
    else:
        archivo.setFormatter(formatter)
        raiz.addHandler(archivo)
        destino = archivo.baseFilename

    logging.getLogger("gestora").setLevel(nivel)
    # Los eventos críticos de auditoría se registran en WARNING; nunca silenciar el módulo por debajo de INFO
    logging.getLogger("gestora.application.services_audit").setLevel(min(nivel, logging.INFO))
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    raiz.info("Logging configurado. Archivo: %s", destino)
    return raiz


def get_logger(name: str = None):
    """Logger bajo el espacio de nombres gestora"""
    return logging.getLogger(f"gestora.{name}" if name else "gestora")

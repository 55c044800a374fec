"""
Almacenamiento de archivos subidos por las empresas.

Las rutas son relativas a la raíz del almacenamiento y se agrupan por
empresa y mes: {empresa_id}/{año}/{mes}/{nombre}. La URL pública se arma
en el servicio de archivos con settings.files_base_url.
"""
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Optional

from ..config import settings


class FileStorageService(ABC):
    """Backend de almacenamiento; el local es el único incluido."""

    @abstractmethod
    def save(self, ruta: str, contenido: bytes) -> str:
        """Guarda el contenido y devuelve la ruta relativa normalizada"""

    @abstractmethod
    def read(self, ruta: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, ruta: str) -> bool:
        """True si había algo que borrar"""

    @abstractmethod
    def exists(self, ruta: str) -> bool:
        ...

    @staticmethod
    def ruta_para(empresa_id: int, fecha: date, nombre: str) -> str:
        return f"{empresa_id}/{fecha.year}/{fecha.month:02d}/{nombre}"


class LocalFileStorage(FileStorageService):
    """Disco local (en Docker, un volumen montado en uploads_dir)."""

    def __init__(self, raiz: str):
        self.raiz = Path(raiz).resolve()
        self.raiz.mkdir(parents=True, exist_ok=True)

    def _absoluta(self, ruta: str) -> Path:
        destino = (self.raiz / ruta).resolve()
        if self.raiz not in destino.parents:
            raise ValueError(f"Ruta fuera del almacenamiento: {ruta}")
        return destino

    def save(self, ruta: str, contenido: bytes) -> str:
        destino = self._absoluta(ruta)
        destino.parent.mkdir(parents=True, exist_ok=True)
        destino.write_bytes(contenido)
        return destino.relative_to(self.raiz).as_posix()

    def read(self, ruta: str) -> bytes:
        origen = self._absoluta(ruta)
        if not origen.is_file():
            raise FileNotFoundError(f"Archivo no encontrado: {ruta}")
        return origen.read_bytes()

    def delete(self, ruta: str) -> bool:
        destino = self._absoluta(ruta)
        if not destino.is_file():
            return False
        destino.unlink()
        return True

    def exists(self, ruta: str) -> bool:
        return self._absoluta(ruta).is_file()


def get_storage_service(storage_type: str = "local", base_path: Optional[str] = None) -> FileStorageService:
    """Por defecto, almacenamiento local en settings.uploads_path."""
    if storage_type == "local":
        return LocalFileStorage(base_path or str(settings.uploads_path))
    raise ValueError(f"Tipo de almacenamiento no soportado: {storage_type}")

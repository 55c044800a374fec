"""
Registro de archivos por empresa: metadatos, subida, versiones y métricas.
Las rutas fijas (/subir, /metricas, /entidad) se declaran antes de /{archivo_id}.
"""
from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...config import settings
from ...dependencies import get_db
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...domain.enums import TipoAccion, TipoRecurso
from ...application import services_archivos as svc
from ...application.services_audit import log_audit
from ..contexto import client_ip, user_agent

router = APIRouter(prefix="/empresas/{empresa_id}/archivos", tags=["archivos"])


class ArchivoIn(BaseModel):
    nombre_archivo: str = Field(min_length=1, max_length=255)
    tipo_archivo: str | None = Field(default=None, max_length=50)
    mime_type: str
    url_archivo: str = Field(max_length=1000)
    tamanio_bytes: int
    dimensiones: Dict[str, Any] | None = None
    metadata: Dict[str, Any] | None = None
    entidad_tipo: str | None = None
    entidad_id: int | None = None
    categoria_id: int | None = None
    producto_id: int | None = None


class ArchivoUpdate(BaseModel):
    nombre_archivo: str | None = Field(default=None, min_length=1, max_length=255)
    tipo_archivo: str | None = Field(default=None, max_length=50)
    mime_type: str | None = None
    url_archivo: str | None = Field(default=None, max_length=1000)
    tamanio_bytes: int | None = None
    dimensiones: Dict[str, Any] | None = None
    metadata: Dict[str, Any] | None = None
    entidad_tipo: str | None = None
    entidad_id: int | None = None
    categoria_id: int | None = None


class ArchivoOut(BaseModel):
    id: int
    empresa_id: int
    nombre_archivo: str
    tipo_archivo: str
    mime_type: str
    url_archivo: str
    tamanio_bytes: int
    dimensiones: Dict[str, Any] | None = None
    metadata: Dict[str, Any] | None = Field(default=None, validation_alias="metadata_")
    entidad_tipo: str | None = None
    entidad_id: int | None = None
    categoria_id: int | None = None
    producto_id: int | None = None
    usuario_id: int | None = None
    activo: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class VersionIn(BaseModel):
    url_archivo: str = Field(max_length=1000)
    cambios: str | None = Field(default=None, max_length=1000)


class VersionOut(BaseModel):
    id: int
    archivo_id: int
    numero_version: int
    url_archivo: str
    cambios: str | None = None
    usuario_id: int | None = None
    fecha_version: datetime

    class Config:
        from_attributes = True


def _auditar(request: Request, empresa_id: int, accion: TipoAccion, descripcion: str, usuario: Usuario, recurso_id):
    log_audit(empresa_id, accion.value, TipoRecurso.ARCHIVO.value, descripcion, recurso_id=recurso_id,
              usuario_id=usuario.id, ip_address=client_ip(request), user_agent=user_agent(request))


@router.post("", response_model=ArchivoOut, status_code=201)
def create_archivo(empresa_id: int, payload: ArchivoIn, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("archivo", "crear"))):
    archivo = svc.crear_archivo(db, empresa_id, payload.model_dump(), usuario.id)
    _auditar(request, empresa_id, TipoAccion.CREAR, f"Archivo {archivo.nombre_archivo} registrado", usuario, archivo.id)
    return archivo


@router.post("/subir/{entidad_tipo}/{entidad_id}", response_model=ArchivoOut, status_code=201)
async def upload_archivo(
    empresa_id: int,
    entidad_tipo: str,
    entidad_id: int,
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    usuario: Usuario = Depends(requiere_permiso("archivo", "crear")),
):
    """
    Sube un archivo al almacenamiento local y registra sus metadatos.
    Tamaño máximo: MAX_UPLOAD_SIZE_MB (por defecto 100 MB).
    """
    contenido = await file.read()
    if len(contenido) > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"El archivo excede {settings.max_upload_size_mb} MB")
    archivo = svc.subir_archivo(
        db, empresa_id, entidad_tipo, entidad_id,
        nombre_original=file.filename or "sin_nombre",
        mime_type=file.content_type or "application/octet-stream",
        contenido=contenido,
        usuario_id=usuario.id,
    )
    _auditar(request, empresa_id, TipoAccion.CREAR, f"Archivo {archivo.nombre_archivo} subido", usuario, archivo.id)
    return archivo


@router.get("")
def list_archivos(
    empresa_id: int,
    tipo_archivo: str | None = Query(None),
    nombre_archivo: str | None = Query(None, description="Contiene"),
    fecha_desde: datetime | None = Query(None),
    fecha_hasta: datetime | None = Query(None),
    tamanio_min: int | None = Query(None, ge=0),
    tamanio_max: int | None = Query(None, ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("archivo", "leer")),
):
    filtros = {
        "tipo_archivo": tipo_archivo,
        "nombre_archivo": nombre_archivo,
        "fecha_desde": fecha_desde,
        "fecha_hasta": fecha_hasta,
        "tamanio_min": tamanio_min,
        "tamanio_max": tamanio_max,
    }
    resultado = svc.listar_archivos(db, empresa_id, filtros, page, limit)
    resultado["data"] = [ArchivoOut.model_validate(a) for a in resultado["data"]]
    return resultado


@router.get("/metricas")
def get_metricas(empresa_id: int, db: Session = Depends(get_db),
                 _: Usuario = Depends(requiere_permiso("archivo", "leer"))):
    return svc.metricas(db, empresa_id)


@router.get("/entidad/{entidad_tipo}/{entidad_id}", response_model=List[ArchivoOut])
def list_archivos_entidad(empresa_id: int, entidad_tipo: str, entidad_id: int, db: Session = Depends(get_db),
                          _: Usuario = Depends(requiere_permiso("archivo", "leer"))):
    return svc.listar_por_entidad(db, empresa_id, entidad_tipo, entidad_id)


@router.get("/{archivo_id}", response_model=ArchivoOut)
def get_archivo(empresa_id: int, archivo_id: int, db: Session = Depends(get_db),
                _: Usuario = Depends(requiere_permiso("archivo", "leer"))):
    return svc.obtener_archivo(db, empresa_id, archivo_id)


@router.patch("/{archivo_id}", response_model=ArchivoOut)
def update_archivo(empresa_id: int, archivo_id: int, payload: ArchivoUpdate, request: Request,
                   db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("archivo", "actualizar"))):
    archivo = svc.actualizar_archivo(db, empresa_id, archivo_id, payload.model_dump(exclude_unset=True))
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR, f"Archivo {archivo.nombre_archivo} actualizado", usuario, archivo.id)
    return archivo


@router.delete("/{archivo_id}", status_code=204)
def delete_archivo(empresa_id: int, archivo_id: int, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("archivo", "eliminar"))):
    svc.eliminar_archivo(db, empresa_id, archivo_id)
    _auditar(request, empresa_id, TipoAccion.ELIMINAR, f"Archivo {archivo_id} desactivado", usuario, archivo_id)


@router.post("/{archivo_id}/versiones", response_model=VersionOut, status_code=201)
def create_version(empresa_id: int, archivo_id: int, payload: VersionIn, request: Request,
                   db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("archivo", "actualizar"))):
    version = svc.crear_version(db, empresa_id, archivo_id, payload.url_archivo, payload.cambios, usuario.id)
    _auditar(request, empresa_id, TipoAccion.ACTUALIZAR,
             f"Archivo {archivo_id}: versión {version.numero_version} creada", usuario, archivo_id)
    return version


@router.get("/{archivo_id}/versiones", response_model=List[VersionOut])
def list_versiones(empresa_id: int, archivo_id: int, db: Session = Depends(get_db),
                   _: Usuario = Depends(requiere_permiso("archivo", "leer"))):
    return svc.listar_versiones(db, empresa_id, archivo_id)

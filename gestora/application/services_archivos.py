"""
Registro de archivos por empresa
================================

Metadatos de archivos (URL externa o subidos al almacenamiento local),
versionado y métricas de uso.

Reglas:
- Tipos MIME permitidos: imágenes, documentos, video, audio, comprimidos
- Tamaño entre 1 byte y 100 MB; cuota de 10 GB por empresa (archivos activos)
- Máximo 50 versiones por archivo; la URL de la nueva versión pasa a ser la actual
- Eliminación lógica (activo = False)
"""
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.models_archivos import Archivo, VersionArchivo
from ..domain.models_catalogo import Cliente, Producto
from ..domain.models_ventas import Cotizacion, OrdenVenta, Factura
from ..infrastructure.storage import FileStorageService, get_storage_service
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError
from .services_empresas import obtener_empresa
from .validaciones import validar_paginacion, total_paginas, fecha_local, validar_no_nulos

logger = logging.getLogger(__name__)

MB = 1024 * 1024
TAMANIO_MAXIMO = 100 * MB
CUOTA_EMPRESA = 10 * 1024 * MB
MAX_VERSIONES = 50
NOMBRE_MAX = 255
CAMBIOS_MAX = 1000

TIPOS_MIME = {
    "imagen": [
        "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/svg+xml",
    ],
    "documento": [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
    ],
    "video": ["video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo", "video/webm"],
    "audio": ["audio/mpeg", "audio/wav", "audio/ogg", "audio/mp4"],
    "comprimido": ["application/zip", "application/x-rar-compressed", "application/x-7z-compressed"],
}
MIME_PERMITIDOS = {mime: tipo for tipo, mimes in TIPOS_MIME.items() for mime in mimes}

# Entidades a las que se puede asociar un archivo
ENTIDADES = {
    "producto": Producto,
    "cliente": Cliente,
    "cotizacion": Cotizacion,
    "orden_venta": OrdenVenta,
    "factura": Factura,
}


# ===== Validaciones =====

def validar_nombre(nombre: Optional[str]) -> None:
    if not nombre or not nombre.strip():
        raise ValidacionError("El nombre del archivo es requerido")
    if len(nombre) > NOMBRE_MAX:
        raise ValidacionError(f"El nombre del archivo no puede exceder {NOMBRE_MAX} caracteres")


def validar_mime(mime_type: Optional[str]) -> str:
    """Devuelve el tipo de archivo asociado al MIME."""
    if mime_type not in MIME_PERMITIDOS:
        raise ValidacionError(f"Tipo de archivo no permitido: {mime_type}")
    return MIME_PERMITIDOS[mime_type]


def validar_url(url: Optional[str]) -> None:
    partes = urlparse(url or "")
    if partes.scheme not in ("http", "https") or not partes.netloc:
        raise ValidacionError("La URL del archivo no es válida")


def validar_tamanio(tamanio: Optional[int]) -> None:
    if not tamanio or tamanio <= 0:
        raise ValidacionError("El tamaño del archivo debe ser mayor a 0")
    if tamanio > TAMANIO_MAXIMO:
        raise ValidacionError(f"El archivo no puede exceder {TAMANIO_MAXIMO // MB}MB")


def validar_dimensiones(dimensiones: Optional[Dict[str, Any]]) -> None:
    if not dimensiones:
        return
    for clave in ("ancho", "alto"):
        valor = dimensiones.get(clave)
        if valor is not None and (not isinstance(valor, (int, float)) or valor <= 0):
            raise ValidacionError(f"El {clave} debe ser un número positivo")


def uso_almacenamiento(db: Session, empresa_id: int, excluir_id: Optional[int] = None) -> int:
    q = db.query(func.coalesce(func.sum(Archivo.tamanio_bytes), 0)).filter(
        Archivo.empresa_id == empresa_id, Archivo.activo == True
    )
    if excluir_id:
        q = q.filter(Archivo.id != excluir_id)
    return int(q.scalar() or 0)


def validar_cuota(db: Session, empresa_id: int, tamanio: int, excluir_id: Optional[int] = None) -> None:
    if uso_almacenamiento(db, empresa_id, excluir_id) + tamanio > CUOTA_EMPRESA:
        raise ValidacionError("Se ha excedido el límite de almacenamiento de la empresa (10GB)")


def validar_entidad(db: Session, empresa_id: int, entidad_tipo: Optional[str], entidad_id: Optional[int]) -> None:
    if not entidad_tipo and not entidad_id:
        return
    modelo = ENTIDADES.get(entidad_tipo or "")
    if modelo is None:
        raise ValidacionError(f"Tipo de entidad no soportado: {entidad_tipo}. Use: {', '.join(ENTIDADES)}")
    existe = db.query(modelo.id).filter(modelo.id == entidad_id, modelo.empresa_id == empresa_id).first()
    if not existe:
        raise NoEncontradoError(f"{entidad_tipo} con ID {entidad_id} no encontrado para la empresa {empresa_id}")


# ===== CRUD =====

def obtener_archivo(db: Session, empresa_id: int, archivo_id: int) -> Archivo:
    archivo = db.query(Archivo).filter(
        Archivo.id == archivo_id, Archivo.empresa_id == empresa_id, Archivo.activo == True
    ).first()
    if not archivo:
        raise NoEncontradoError(f"Archivo con ID {archivo_id} no encontrado")
    return archivo


def crear_archivo(db: Session, empresa_id: int, datos: Dict[str, Any], usuario_id: Optional[int] = None) -> Archivo:
    obtener_empresa(db, empresa_id)
    validar_nombre(datos.get("nombre_archivo"))
    tipo = validar_mime(datos.get("mime_type"))
    validar_url(datos.get("url_archivo"))
    validar_tamanio(datos.get("tamanio_bytes"))
    validar_dimensiones(datos.get("dimensiones"))
    validar_entidad(db, empresa_id, datos.get("entidad_tipo"), datos.get("entidad_id"))
    if datos.get("producto_id"):
        validar_entidad(db, empresa_id, "producto", datos["producto_id"])
    validar_cuota(db, empresa_id, datos["tamanio_bytes"])

    with UnitOfWork(db).transaction():
        archivo = Archivo(
            empresa_id=empresa_id,
            nombre_archivo=datos["nombre_archivo"].strip(),
            tipo_archivo=datos.get("tipo_archivo") or tipo,
            mime_type=datos["mime_type"],
            url_archivo=datos["url_archivo"],
            tamanio_bytes=datos["tamanio_bytes"],
            dimensiones=datos.get("dimensiones"),
            metadata_=datos.get("metadata"),
            entidad_tipo=datos.get("entidad_tipo"),
            entidad_id=datos.get("entidad_id"),
            categoria_id=datos.get("categoria_id"),
            producto_id=datos.get("producto_id"),
            usuario_id=usuario_id,
        )
        db.add(archivo)
    db.refresh(archivo)
    logger.info("Archivo %s registrado en empresa %s (%s bytes)", archivo.id, empresa_id, archivo.tamanio_bytes)
    return archivo


def subir_archivo(
    db: Session,
    empresa_id: int,
    entidad_tipo: str,
    entidad_id: int,
    nombre_original: str,
    mime_type: str,
    contenido: bytes,
    usuario_id: Optional[int] = None,
    storage: Optional[FileStorageService] = None,
) -> Archivo:
    """Guarda el contenido en el almacenamiento y registra sus metadatos."""
    obtener_empresa(db, empresa_id)
    validar_nombre(nombre_original)
    validar_mime(mime_type)
    validar_tamanio(len(contenido))
    validar_entidad(db, empresa_id, entidad_tipo, entidad_id)
    validar_cuota(db, empresa_id, len(contenido))

    storage = storage or get_storage_service()
    ahora = datetime.now()
    nombre_guardado = f"{uuid.uuid4().hex}{Path(nombre_original).suffix.lower()}"
    ruta = storage.save(storage.ruta_para(empresa_id, ahora, nombre_guardado), contenido)
    url = f"{settings.files_base_url.rstrip('/')}/{ruta}"
    try:
        return crear_archivo(db, empresa_id, {
            "nombre_archivo": nombre_original,
            "mime_type": mime_type,
            "url_archivo": url,
            "tamanio_bytes": len(contenido),
            "entidad_tipo": entidad_tipo,
            "entidad_id": entidad_id,
            "producto_id": entidad_id if entidad_tipo == "producto" else None,
            "metadata": {"ruta_almacenamiento": ruta},
        }, usuario_id)
    except Exception:
        storage.delete(ruta)
        raise


def listar_archivos(db: Session, empresa_id: int, filtros: Optional[Dict[str, Any]] = None,
                    page: int = 1, limit: int = 10) -> Dict[str, Any]:
    validar_paginacion(page, limit)
    obtener_empresa(db, empresa_id)
    filtros = filtros or {}
    q = db.query(Archivo).filter(Archivo.empresa_id == empresa_id, Archivo.activo == True)
    if filtros.get("tipo_archivo"):
        q = q.filter(Archivo.tipo_archivo == filtros["tipo_archivo"])
    if filtros.get("nombre_archivo"):
        q = q.filter(Archivo.nombre_archivo.ilike(f"%{filtros['nombre_archivo']}%"))
    if filtros.get("fecha_desde"):
        q = q.filter(Archivo.created_at >= fecha_local(filtros["fecha_desde"]))
    if filtros.get("fecha_hasta"):
        q = q.filter(Archivo.created_at <= fecha_local(filtros["fecha_hasta"]))
    if filtros.get("tamanio_min") is not None:
        q = q.filter(Archivo.tamanio_bytes >= filtros["tamanio_min"])
    if filtros.get("tamanio_max") is not None:
        q = q.filter(Archivo.tamanio_bytes <= filtros["tamanio_max"])
    total = q.count()
    data = q.order_by(Archivo.created_at.desc(), Archivo.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {"data": data, "total": total, "page": page, "limit": limit, "totalPages": total_paginas(total, limit)}


def listar_por_entidad(db: Session, empresa_id: int, entidad_tipo: str, entidad_id: int) -> List[Archivo]:
    validar_entidad(db, empresa_id, entidad_tipo, entidad_id)
    return db.query(Archivo).filter(
        Archivo.empresa_id == empresa_id,
        Archivo.entidad_tipo == entidad_tipo,
        Archivo.entidad_id == entidad_id,
        Archivo.activo == True,
    ).order_by(Archivo.created_at.desc(), Archivo.id.desc()).all()


def actualizar_archivo(db: Session, empresa_id: int, archivo_id: int, cambios: Dict[str, Any]) -> Archivo:
    archivo = obtener_archivo(db, empresa_id, archivo_id)
    validar_no_nulos(cambios, Archivo)
    if "nombre_archivo" in cambios:
        validar_nombre(cambios["nombre_archivo"])
    if "mime_type" in cambios:
        validar_mime(cambios["mime_type"])
    if "url_archivo" in cambios:
        validar_url(cambios["url_archivo"])
    if "tamanio_bytes" in cambios:
        validar_tamanio(cambios["tamanio_bytes"])
        validar_cuota(db, empresa_id, cambios["tamanio_bytes"], excluir_id=archivo.id)
    if "dimensiones" in cambios:
        validar_dimensiones(cambios["dimensiones"])
    if "entidad_tipo" in cambios or "entidad_id" in cambios:
        validar_entidad(db, empresa_id, cambios.get("entidad_tipo", archivo.entidad_tipo),
                        cambios.get("entidad_id", archivo.entidad_id))

    with UnitOfWork(db).transaction():
        for campo, valor in cambios.items():
            setattr(archivo, "metadata_" if campo == "metadata" else campo, valor)
    db.refresh(archivo)
    return archivo


def eliminar_archivo(db: Session, empresa_id: int, archivo_id: int) -> None:
    archivo = obtener_archivo(db, empresa_id, archivo_id)
    with UnitOfWork(db).transaction():
        archivo.activo = False
    logger.info("Archivo %s desactivado en empresa %s", archivo_id, empresa_id)


# ===== Versiones =====

def crear_version(db: Session, empresa_id: int, archivo_id: int, url_archivo: str,
                  cambios: Optional[str] = None, usuario_id: Optional[int] = None) -> VersionArchivo:
    archivo = obtener_archivo(db, empresa_id, archivo_id)
    validar_url(url_archivo)
    if cambios and len(cambios) > CAMBIOS_MAX:
        raise ValidacionError(f"La descripción de cambios no puede exceder {CAMBIOS_MAX} caracteres")
    ultima = db.query(func.max(VersionArchivo.numero_version)).filter(
        VersionArchivo.archivo_id == archivo.id
    ).scalar() or 0
    if ultima >= MAX_VERSIONES:
        raise ValidacionError(f"Se ha alcanzado el límite máximo de {MAX_VERSIONES} versiones para este archivo")

    with UnitOfWork(db).transaction():
        version = VersionArchivo(
            archivo_id=archivo.id,
            numero_version=ultima + 1,
            url_archivo=url_archivo,
            cambios=cambios,
            usuario_id=usuario_id,
        )
        db.add(version)
        archivo.url_archivo = url_archivo
    db.refresh(version)
    logger.info("Archivo %s: versión %s creada", archivo.id, version.numero_version)
    return version


def listar_versiones(db: Session, empresa_id: int, archivo_id: int) -> List[VersionArchivo]:
    archivo = obtener_archivo(db, empresa_id, archivo_id)
    return db.query(VersionArchivo).filter(VersionArchivo.archivo_id == archivo.id).order_by(
        VersionArchivo.numero_version.desc()
    ).all()


# ===== Métricas =====

def metricas(db: Session, empresa_id: int) -> Dict[str, Any]:
    obtener_empresa(db, empresa_id)
    base = db.query(Archivo).filter(Archivo.empresa_id == empresa_id, Archivo.activo == True)
    total_archivos = base.count()
    total_bytes = uso_almacenamiento(db, empresa_id)
    por_tipo = db.query(Archivo.tipo_archivo, func.count(Archivo.id), func.coalesce(func.sum(Archivo.tamanio_bytes), 0)).filter(
        Archivo.empresa_id == empresa_id, Archivo.activo == True
    ).group_by(Archivo.tipo_archivo).all()

    def breve(a: Archivo) -> Dict[str, Any]:
        return {"id": a.id, "nombre_archivo": a.nombre_archivo, "tipo_archivo": a.tipo_archivo,
                "tamanio_bytes": a.tamanio_bytes, "created_at": a.created_at.isoformat() if a.created_at else None}

    return {
        "total_archivos": total_archivos,
        "total_tamanio_bytes": total_bytes,
        "total_tamanio_mb": round(total_bytes / MB, 2),
        "promedio_tamanio_bytes": round(total_bytes / total_archivos) if total_archivos else 0,
        "por_tipo": [
            {"tipo": tipo, "cantidad": cantidad, "tamanio_bytes": int(tamanio)}
            for tipo, cantidad, tamanio in por_tipo
        ],
        "recientes": [breve(a) for a in base.order_by(Archivo.created_at.desc(), Archivo.id.desc()).limit(5).all()],
        "mas_grandes": [breve(a) for a in base.order_by(Archivo.tamanio_bytes.desc()).limit(5).all()],
        "uso_almacenamiento_pct": round(total_bytes * 100 / CUOTA_EMPRESA, 4),
    }

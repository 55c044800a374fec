"""
Registro de archivos por empresa: metadatos y versiones.
El contenido vive en el almacenamiento (ver infrastructure/storage.py) o en una URL externa.
"""
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, BigInteger, ForeignKey, Boolean, DateTime, JSON, UniqueConstraint
from datetime import datetime
from typing import Any, Dict
from ..db import Base


class Archivo(Base):
    __tablename__ = "archivos"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    nombre_archivo: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tipo_archivo: Mapped[str] = mapped_column(String(50), nullable=False, index=True)  # imagen, documento, video, audio, comprimido
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    url_archivo: Mapped[str] = mapped_column(String(1000), nullable=False)
    tamanio_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    dimensiones: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)  # {"ancho": .., "alto": ..}
    metadata_: Mapped[Dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    entidad_tipo: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)  # producto, cliente, factura...
    entidad_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    categoria_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    producto_id: Mapped[int | None] = mapped_column(ForeignKey("productos.id"), nullable=True, index=True)
    usuario_id: Mapped[int | None] = mapped_column(ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True, index=True)  # Borrado lógico
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    versiones = relationship("VersionArchivo", back_populates="archivo", cascade="all, delete-orphan",
                             order_by="VersionArchivo.numero_version")


class VersionArchivo(Base):
    __tablename__ = "versiones_archivo"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    archivo_id: Mapped[int] = mapped_column(ForeignKey("archivos.id", ondelete="CASCADE"), index=True)
    numero_version: Mapped[int] = mapped_column(Integer, nullable=False)
    url_archivo: Mapped[str] = mapped_column(String(1000), nullable=False)
    cambios: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    usuario_id: Mapped[int | None] = mapped_column(ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    fecha_version: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    __table_args__ = (UniqueConstraint('archivo_id', 'numero_version', name='uq_archivo_numero_version'),)

    archivo = relationship("Archivo", back_populates="versiones")

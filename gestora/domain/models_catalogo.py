"""
Catálogo por empresa: clientes, productos/servicios y valoraciones de productos
"""
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Numeric, ForeignKey, Boolean, DateTime, Text, UniqueConstraint
from datetime import datetime
from decimal import Decimal
from ..db import Base
from .enums import EstadoModeracion


class Cliente(Base):
    __tablename__ = "clientes"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    nombre: Mapped[str] = mapped_column(String(200), nullable=False)
    tipo_documento: Mapped[str | None] = mapped_column(String(10), nullable=True)  # DNI, RUC, CE
    numero_documento: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    correo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(20), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class Producto(Base):
    __tablename__ = "productos"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    codigo: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    nombre: Mapped[str] = mapped_column(String(200), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    precio: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    es_servicio: Mapped[bool] = mapped_column(Boolean, default=False)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class Valoracion(Base):
    """Valoración de un producto por un cliente (una por par cliente/producto)"""
    __tablename__ = "valoraciones"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    calificacion: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-5
    comentario: Mapped[str | None] = mapped_column(String(500), nullable=True)
    estado_moderacion: Mapped[str] = mapped_column(String(20), default=EstadoModeracion.PENDIENTE.value)
    comentario_moderador: Mapped[str | None] = mapped_column(String(500), nullable=True)
    fecha_moderacion: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    fecha: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    __table_args__ = (UniqueConstraint('cliente_id', 'producto_id', name='uq_valoracion_cliente_producto'),)

    cliente = relationship("Cliente")
    producto = relationship("Producto")

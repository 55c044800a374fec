"""
Modelos de dominio para documentos de venta
===========================================

Cada etapa (cotización, orden de venta, factura, nota de crédito y nota
de débito) es una entidad independiente con sus propios ítems y totales.
No comparten fila base: los totales se recalculan (o copian) en cada etapa.
"""
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Numeric, ForeignKey, DateTime, Text, UniqueConstraint
from datetime import datetime
from decimal import Decimal
from ..db import Base
from .enums import (
    EstadoCotizacion, EstadoOrdenVenta, EstadoFactura,
    EstadoNotaCredito, EstadoNotaDebito,
)


class Cotizacion(Base):
    __tablename__ = "cotizaciones"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    fecha_emision: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    fecha_validez: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoCotizacion.PENDIENTE.value, index=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    descuento: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    notas: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    items = relationship("ItemCotizacion", back_populates="cotizacion", cascade="all, delete-orphan",
                         order_by="ItemCotizacion.id")
    cliente = relationship("Cliente")


class ItemCotizacion(Base):
    __tablename__ = "items_cotizacion"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cotizacion_id: Mapped[int] = mapped_column(ForeignKey("cotizaciones.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    descuento: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)  # Porcentaje 0-100
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # Neto de descuento
    cotizacion = relationship("Cotizacion", back_populates="items")


class OrdenVenta(Base):
    __tablename__ = "ordenes_venta"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    cotizacion_id: Mapped[int | None] = mapped_column(ForeignKey("cotizaciones.id"), nullable=True, index=True)
    fecha_emision: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoOrdenVenta.PENDIENTE.value, index=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    descuento: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    notas: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    items = relationship("ItemOrdenVenta", back_populates="orden", cascade="all, delete-orphan",
                         order_by="ItemOrdenVenta.id")
    cliente = relationship("Cliente")


class ItemOrdenVenta(Base):
    __tablename__ = "items_orden_venta"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    orden_id: Mapped[int] = mapped_column(ForeignKey("ordenes_venta.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    descuento: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)  # Monto fijo
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # Neto de descuento
    orden = relationship("OrdenVenta", back_populates="items")


class Factura(Base):
    __tablename__ = "facturas"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    orden_venta_id: Mapped[int] = mapped_column(ForeignKey("ordenes_venta.id"), index=True)
    numero_factura: Mapped[str] = mapped_column(String(20), nullable=False)  # F001-00000001
    fecha_emision: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    fecha_vencimiento: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoFactura.EMITIDA.value, index=True)
    moneda: Mapped[str] = mapped_column(String(3), default="PEN")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    descuento: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    notas: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('empresa_id', 'numero_factura', name='uq_empresa_numero_factura'),)
    items = relationship("ItemFactura", back_populates="factura", cascade="all, delete-orphan",
                         order_by="ItemFactura.id")
    orden = relationship("OrdenVenta")
    notas_credito = relationship("NotaCredito", back_populates="factura")
    notas_debito = relationship("NotaDebito", back_populates="factura")


class ItemFactura(Base):
    __tablename__ = "items_factura"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    factura_id: Mapped[int] = mapped_column(ForeignKey("facturas.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    descuento: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    factura = relationship("Factura", back_populates="items")


class NotaCredito(Base):
    __tablename__ = "notas_credito"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    factura_id: Mapped[int] = mapped_column(ForeignKey("facturas.id"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    numero_nota: Mapped[str] = mapped_column(String(20), nullable=False)
    tipo: Mapped[str] = mapped_column(String(20), nullable=False)  # ANULACION, DESCUENTO, DEVOLUCION
    motivo: Mapped[str] = mapped_column(String(255), nullable=False)
    fecha_emision: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoNotaCredito.EMITIDA.value, index=True)
    moneda: Mapped[str] = mapped_column(String(3), default="PEN")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    monto: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)  # subtotal + igv
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    items = relationship("ItemNotaCredito", back_populates="nota", cascade="all, delete-orphan",
                         order_by="ItemNotaCredito.id")
    factura = relationship("Factura", back_populates="notas_credito")


class ItemNotaCredito(Base):
    __tablename__ = "items_nota_credito"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nota_id: Mapped[int] = mapped_column(ForeignKey("notas_credito.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    igv_porcentaje: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=18)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    nota = relationship("NotaCredito", back_populates="items")


class NotaDebito(Base):
    __tablename__ = "notas_debito"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    factura_id: Mapped[int] = mapped_column(ForeignKey("facturas.id"), index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True)
    numero_nota: Mapped[str] = mapped_column(String(20), nullable=False)
    motivo: Mapped[str] = mapped_column(String(255), nullable=False)
    fecha_emision: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoNotaDebito.EMITIDA.value, index=True)
    moneda: Mapped[str] = mapped_column(String(3), default="PEN")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    monto: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    items = relationship("ItemNotaDebito", back_populates="nota", cascade="all, delete-orphan",
                         order_by="ItemNotaDebito.id")
    factura = relationship("Factura", back_populates="notas_debito")


class ItemNotaDebito(Base):
    __tablename__ = "items_nota_debito"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nota_id: Mapped[int] = mapped_column(ForeignKey("notas_debito.id", ondelete="CASCADE"), index=True)
    producto_id: Mapped[int] = mapped_column(ForeignKey("productos.id"), index=True)
    cantidad: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    precio_unitario: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    igv_porcentaje: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=18)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    igv: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    nota = relationship("NotaDebito", back_populates="items")

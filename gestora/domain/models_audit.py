"""
Auditoría por empresa
=====================
Registro inmutable de eventos relevantes: solo INSERT.
Los eventos críticos no se eliminan nunca al depurar por antigüedad.
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from ..db import Base
from .enums import NivelSeveridad


class EventoAuditoria(Base):
    """
    Evento de auditoría. Inmutable.
    datos_anteriores / datos_nuevos se guardan ya redactados (sin secretos).
    """
    __tablename__ = "eventos_auditoria"
    __table_args__ = {"comment": "Auditoría por empresa - inmutable"}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fecha: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    usuario_id: Mapped[int | None] = mapped_column(ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True, index=True)
    accion: Mapped[str] = mapped_column(String(30), index=True)  # TipoAccion
    recurso: Mapped[str] = mapped_column(String(30), index=True)  # TipoRecurso
    recurso_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    descripcion: Mapped[str] = mapped_column(String(500), nullable=False)
    severidad: Mapped[str] = mapped_column(String(10), default=NivelSeveridad.INFO.value, index=True)
    datos_anteriores: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    datos_nuevos: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    metadata_: Mapped[Dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True, index=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    usuario = relationship("Usuario", foreign_keys=[usuario_id])


class ContadorAuditoria(Base):
    """
    Contador compartido para el límite de eventos por minuto.
    Una fila por (clave de actor, ventana de un minuto); válido con varias instancias.
    """
    __tablename__ = "contadores_auditoria"
    __table_args__ = (UniqueConstraint('clave', 'ventana', name='uq_contador_clave_ventana'),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    clave: Mapped[str] = mapped_column(String(120), nullable=False, index=True)  # "<empresa>-<usuario|ip>"
    ventana: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # epoch // 60
    conteo: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

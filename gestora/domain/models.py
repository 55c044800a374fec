from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Float, Numeric, UniqueConstraint, Table, Text, or_
from datetime import datetime
from decimal import Decimal
from sqlalchemy.ext.hybrid import hybrid_method
from sqlalchemy.orm import relationship, Mapped, mapped_column
from ..db import Base
from .enums import EstadoEmpresa, TipoContribuyente, TipoImpuesto

# Tabla intermedia usuario <-> empresa (membresía)
usuario_empresas = Table(
    "usuario_empresas",
    Base.metadata,
    Column("usuario_id", Integer, ForeignKey("usuarios.id", ondelete="CASCADE"), primary_key=True),
    Column("empresa_id", Integer, ForeignKey("empresas.id", ondelete="CASCADE"), primary_key=True),
    Column("es_dueno", Boolean, nullable=False, default=False),
    Column("activo", Boolean, nullable=False, default=True),
    Column("created_at", DateTime, default=datetime.now),
)

class Empresa(Base):
    __tablename__ = "empresas"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    nombre: Mapped[str] = mapped_column(String(100), nullable=False)
    razon_social: Mapped[str] = mapped_column(String(200), nullable=False)
    nombre_comercial: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ruc: Mapped[str] = mapped_column(String(11), unique=True, nullable=False, index=True)
    telefono: Mapped[str | None] = mapped_column(String(20), nullable=True)  # +51XXXXXXXXX
    tipo_empresa: Mapped[str] = mapped_column(String(30), nullable=False)  # SAC, SRL, SA, EIRL, SAS, EMPRESA INDIVIDUAL
    tipo_contribuyente: Mapped[str] = mapped_column(String(20), default=TipoContribuyente.RER.value)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoEmpresa.ACTIVO.value)
    latitud: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitud: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)

    direcciones = relationship("Direccion", back_populates="empresa", cascade="all, delete-orphan")
    configuraciones_impuestos = relationship("ConfiguracionImpuestos", back_populates="empresa", cascade="all, delete-orphan")
    usuarios = relationship("Usuario", secondary=usuario_empresas, back_populates="empresas")
    roles = relationship("RolEmpresa", back_populates="empresa", cascade="all, delete-orphan")

class Direccion(Base):
    __tablename__ = "direcciones"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    tipo_direccion: Mapped[str] = mapped_column(String(30), default="principal")  # principal, sucursal, almacen, fiscal
    departamento: Mapped[str | None] = mapped_column(String(100), nullable=True)
    provincia: Mapped[str | None] = mapped_column(String(100), nullable=True)
    distrito: Mapped[str | None] = mapped_column(String(100), nullable=True)
    direccion: Mapped[str] = mapped_column(String(300), nullable=False)
    codigo_postal: Mapped[str | None] = mapped_column(String(10), nullable=True)
    referencia: Mapped[str | None] = mapped_column(String(300), nullable=True)
    latitud: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitud: Mapped[float | None] = mapped_column(Float, nullable=True)
    activa: Mapped[bool] = mapped_column(Boolean, default=True)
    empresa = relationship("Empresa", back_populates="direcciones")

class ConfiguracionImpuestos(Base):
    """Tasas de impuesto configuradas por empresa (IGV, ISC, etc.)"""
    __tablename__ = "configuraciones_impuestos"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    nombre: Mapped[str] = mapped_column(String(50), nullable=False)
    tipo: Mapped[str] = mapped_column(String(10), default=TipoImpuesto.IGV.value)
    tasa: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)  # Porcentaje 0-100
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    __table_args__ = (UniqueConstraint('empresa_id', 'nombre', name='uq_empresa_impuesto_nombre'),)
    empresa = relationship("Empresa", back_populates="configuraciones_impuestos")

class Usuario(Base):
    __tablename__ = "usuarios"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(200))
    nombre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    correo: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)  # Administrador global: no pasa por permisos de empresa
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    rol_id: Mapped[int | None] = mapped_column(ForeignKey("roles.id"), nullable=True, index=True)  # Rol del sistema
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    empresas = relationship("Empresa", secondary=usuario_empresas, back_populates="usuarios")
    rol = relationship("Rol", back_populates="usuarios")
    permisos_directos = relationship("PermisoUsuario", back_populates="usuario", cascade="all, delete-orphan")

class Rol(Base):
    """Roles del sistema (transversales a todas las empresas)"""
    __tablename__ = "roles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    nombre: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    descripcion: Mapped[str | None] = mapped_column(String(500), nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    permisos = relationship("RolPermiso", back_populates="rol", cascade="all, delete-orphan")
    usuarios = relationship("Usuario", back_populates="rol")

class Permiso(Base):
    """Catálogo global de permisos (recurso, acción)"""
    __tablename__ = "permisos"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    recurso: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    accion: Mapped[str] = mapped_column(String(50), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(String(255), nullable=True)
    __table_args__ = (UniqueConstraint('recurso', 'accion', name='uq_permiso_recurso_accion'),)

    @property
    def codigo(self) -> str:
        return f"{self.recurso}.{self.accion}"

class RolPermiso(Base):
    """Relación entre roles del sistema y permisos"""
    __tablename__ = "rol_permisos"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rol_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), index=True)
    permiso_id: Mapped[int] = mapped_column(ForeignKey("permisos.id", ondelete="CASCADE"), index=True)
    __table_args__ = (UniqueConstraint('rol_id', 'permiso_id', name='uq_rol_permiso'),)
    rol = relationship("Rol", back_populates="permisos")
    permiso = relationship("Permiso")

class PermisoUsuario(Base):
    """Permiso otorgado directamente a un usuario (primer nivel de resolución)"""
    __tablename__ = "permisos_usuario"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    usuario_id: Mapped[int] = mapped_column(ForeignKey("usuarios.id", ondelete="CASCADE"), index=True)
    permiso_id: Mapped[int] = mapped_column(ForeignKey("permisos.id", ondelete="CASCADE"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    __table_args__ = (UniqueConstraint('usuario_id', 'permiso_id', name='uq_permiso_usuario'),)
    usuario = relationship("Usuario", back_populates="permisos_directos")
    permiso = relationship("Permiso")

class RolEmpresa(Base):
    """
    Rol definido por una empresa.
    Puede restringirse a un horario diario (HH:MM) y a una ventana de vigencia.
    """
    __tablename__ = "roles_empresa"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    empresa_id: Mapped[int] = mapped_column(ForeignKey("empresas.id", ondelete="CASCADE"), index=True)
    nombre: Mapped[str] = mapped_column(String(100), nullable=False)
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    horario_inicio: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "08:00"
    horario_fin: Mapped[str | None] = mapped_column(String(5), nullable=True)  # "17:00"
    fecha_inicio: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    fecha_fin: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
    __table_args__ = (UniqueConstraint('empresa_id', 'nombre', name='uq_empresa_rol_nombre'),)

    empresa = relationship("Empresa", back_populates="roles")
    permisos = relationship("PermisoRolEmpresa", back_populates="rol", cascade="all, delete-orphan",
                            order_by="PermisoRolEmpresa.id")
    asignaciones = relationship("UsuarioRolEmpresa", back_populates="rol", cascade="all, delete-orphan",
                                order_by="UsuarioRolEmpresa.id")

class PermisoRolEmpresa(Base):
    """Permiso otorgado a un rol de empresa. Guarda recurso/acción al momento de asignar."""
    __tablename__ = "permisos_rol_empresa"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rol_id: Mapped[int] = mapped_column(ForeignKey("roles_empresa.id", ondelete="CASCADE"), index=True)
    permiso_id: Mapped[int] = mapped_column(ForeignKey("permisos.id", ondelete="CASCADE"), index=True)
    recurso: Mapped[str] = mapped_column(String(50), nullable=False)
    accion: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    __table_args__ = (UniqueConstraint('rol_id', 'permiso_id', name='uq_rol_empresa_permiso'),)
    rol = relationship("RolEmpresa", back_populates="permisos")
    permiso = relationship("Permiso")

class UsuarioRolEmpresa(Base):
    """Asignación de un rol de empresa a un usuario. Activa si no tiene fecha_fin o si es futura."""
    __tablename__ = "usuarios_roles_empresa"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    usuario_id: Mapped[int] = mapped_column(ForeignKey("usuarios.id", ondelete="CASCADE"), index=True)
    rol_id: Mapped[int] = mapped_column(ForeignKey("roles_empresa.id", ondelete="CASCADE"), index=True)
    fecha_inicio: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    fecha_fin: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    rol = relationship("RolEmpresa", back_populates="asignaciones")
    usuario = relationship("Usuario")

    @hybrid_method
    def esta_activa(self, ahora: datetime) -> bool:
        """Asignación sin fin o con fin posterior a `ahora`; también usable en filtros."""
        return self.fecha_fin is None or self.fecha_fin > ahora

    @esta_activa.expression
    def esta_activa(cls, ahora: datetime):
        return or_(cls.fecha_fin.is_(None), cls.fecha_fin > ahora)

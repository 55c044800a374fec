"""esquema inicial: empresas, permisos, roles por empresa, catálogo, ventas, auditoría y archivos

Revision ID: 20261001_01
Revises:
Create Date: 2026-10-01
"""
from alembic import op
import sqlalchemy as sa

revision = '20261001_01'
down_revision = None
branch_labels = None
depends_on = None


def _monto(nombre, default=0):
    return sa.Column(nombre, sa.Numeric(12, 2), nullable=True, server_default=str(default))


def _fechas():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade():
    # ===== Empresas y usuarios =====
    op.create_table(
        'empresas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(100), nullable=False),
        sa.Column('razon_social', sa.String(200), nullable=False),
        sa.Column('nombre_comercial', sa.String(100), nullable=True),
        sa.Column('ruc', sa.String(11), nullable=False),
        sa.Column('telefono', sa.String(20), nullable=True),
        sa.Column('tipo_empresa', sa.String(30), nullable=False),
        sa.Column('tipo_contribuyente', sa.String(20), nullable=True),
        sa.Column('estado', sa.String(20), nullable=True),
        sa.Column('latitud', sa.Float(), nullable=True),
        sa.Column('longitud', sa.Float(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_empresas_ruc', 'empresas', ['ruc'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(50), nullable=False),
        sa.Column('descripcion', sa.String(500), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_roles_nombre', 'roles', ['nombre'], unique=True)

    op.create_table(
        'usuarios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('password_hash', sa.String(200), nullable=False),
        sa.Column('nombre', sa.String(100), nullable=True),
        sa.Column('correo', sa.String(255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        sa.Column('rol_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles.id']),
    )
    op.create_index('ix_usuarios_username', 'usuarios', ['username'], unique=True)

    op.create_table(
        'usuario_empresas',
        sa.Column('usuario_id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('es_dueno', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activo', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('usuario_id', 'empresa_id'),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'direcciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('tipo_direccion', sa.String(30), nullable=True),
        sa.Column('departamento', sa.String(100), nullable=True),
        sa.Column('provincia', sa.String(100), nullable=True),
        sa.Column('distrito', sa.String(100), nullable=True),
        sa.Column('direccion', sa.String(300), nullable=False),
        sa.Column('codigo_postal', sa.String(10), nullable=True),
        sa.Column('referencia', sa.String(300), nullable=True),
        sa.Column('latitud', sa.Float(), nullable=True),
        sa.Column('longitud', sa.Float(), nullable=True),
        sa.Column('activa', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_direcciones_empresa_id', 'direcciones', ['empresa_id'])

    op.create_table(
        'configuraciones_impuestos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(50), nullable=False),
        sa.Column('tipo', sa.String(10), nullable=True),
        sa.Column('tasa', sa.Numeric(5, 2), nullable=False),
        sa.Column('activo', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('empresa_id', 'nombre', name='uq_empresa_impuesto_nombre'),
    )

    # ===== Permisos =====
    op.create_table(
        'permisos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recurso', sa.String(50), nullable=False),
        sa.Column('accion', sa.String(50), nullable=False),
        sa.Column('descripcion', sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('recurso', 'accion', name='uq_permiso_recurso_accion'),
    )
    op.create_index('ix_permisos_recurso', 'permisos', ['recurso'])

    op.create_table(
        'rol_permisos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rol_id', sa.Integer(), nullable=False),
        sa.Column('permiso_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permiso_id'], ['permisos.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('rol_id', 'permiso_id', name='uq_rol_permiso'),
    )

    op.create_table(
        'permisos_usuario',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=False),
        sa.Column('permiso_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permiso_id'], ['permisos.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('usuario_id', 'permiso_id', name='uq_permiso_usuario'),
    )

    # ===== Roles por empresa =====
    op.create_table(
        'roles_empresa',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(100), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        sa.Column('horario_inicio', sa.String(5), nullable=True),
        sa.Column('horario_fin', sa.String(5), nullable=True),
        sa.Column('fecha_inicio', sa.DateTime(), nullable=True),
        sa.Column('fecha_fin', sa.DateTime(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('empresa_id', 'nombre', name='uq_empresa_rol_nombre'),
    )

    op.create_table(
        'permisos_rol_empresa',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rol_id', sa.Integer(), nullable=False),
        sa.Column('permiso_id', sa.Integer(), nullable=False),
        sa.Column('recurso', sa.String(50), nullable=False),
        sa.Column('accion', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles_empresa.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permiso_id'], ['permisos.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('rol_id', 'permiso_id', name='uq_rol_empresa_permiso'),
    )

    op.create_table(
        'usuarios_roles_empresa',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=False),
        sa.Column('rol_id', sa.Integer(), nullable=False),
        sa.Column('fecha_inicio', sa.DateTime(), nullable=True),
        sa.Column('fecha_fin', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles_empresa.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_usuarios_roles_empresa_usuario', 'usuarios_roles_empresa', ['usuario_id', 'rol_id'])

    # ===== Catálogo =====
    op.create_table(
        'clientes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(200), nullable=False),
        sa.Column('tipo_documento', sa.String(10), nullable=True),
        sa.Column('numero_documento', sa.String(20), nullable=True),
        sa.Column('correo', sa.String(255), nullable=True),
        sa.Column('telefono', sa.String(20), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_clientes_empresa_id', 'clientes', ['empresa_id'])

    op.create_table(
        'productos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('codigo', sa.String(50), nullable=True),
        sa.Column('nombre', sa.String(200), nullable=False),
        sa.Column('descripcion', sa.Text(), nullable=True),
        _monto('precio'),
        sa.Column('es_servicio', sa.Boolean(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_productos_empresa_id', 'productos', ['empresa_id'])

    op.create_table(
        'valoraciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('cliente_id', sa.Integer(), nullable=False),
        sa.Column('producto_id', sa.Integer(), nullable=False),
        sa.Column('calificacion', sa.Integer(), nullable=False),
        sa.Column('comentario', sa.String(500), nullable=True),
        sa.Column('estado_moderacion', sa.String(20), nullable=True),
        sa.Column('comentario_moderador', sa.String(500), nullable=True),
        sa.Column('fecha_moderacion', sa.DateTime(), nullable=True),
        sa.Column('fecha', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cliente_id'], ['clientes.id']),
        sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
        sa.UniqueConstraint('cliente_id', 'producto_id', name='uq_valoracion_cliente_producto'),
    )

    # ===== Documentos de venta =====
    op.create_table(
        'cotizaciones',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('cliente_id', sa.Integer(), nullable=False),
        sa.Column('fecha_emision', sa.DateTime(), nullable=True),
        sa.Column('fecha_validez', sa.DateTime(), nullable=True),
        sa.Column('estado', sa.String(20), nullable=True),
        _monto('subtotal'), _monto('descuento'), _monto('igv'), _monto('total'),
        sa.Column('notas', sa.Text(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cliente_id'], ['clientes.id']),
    )
    op.create_table(
        'items_cotizacion',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cotizacion_id', sa.Integer(), nullable=False),
        sa.Column('producto_id', sa.Integer(), nullable=False),
        sa.Column('cantidad', sa.Numeric(12, 2), nullable=False),
        sa.Column('precio_unitario', sa.Numeric(12, 2), nullable=False),
        sa.Column('descuento', sa.Numeric(5, 2), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['cotizacion_id'], ['cotizaciones.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
    )

    op.create_table(
        'ordenes_venta',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('cliente_id', sa.Integer(), nullable=False),
        sa.Column('cotizacion_id', sa.Integer(), nullable=True),
        sa.Column('fecha_emision', sa.DateTime(), nullable=True),
        sa.Column('estado', sa.String(20), nullable=True),
        _monto('subtotal'), _monto('descuento'), _monto('igv'), _monto('total'),
        sa.Column('notas', sa.Text(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cliente_id'], ['clientes.id']),
        sa.ForeignKeyConstraint(['cotizacion_id'], ['cotizaciones.id']),
    )
    op.create_table(
        'items_orden_venta',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('orden_id', sa.Integer(), nullable=False),
        sa.Column('producto_id', sa.Integer(), nullable=False),
        sa.Column('cantidad', sa.Numeric(12, 2), nullable=False),
        sa.Column('precio_unitario', sa.Numeric(12, 2), nullable=False),
        _monto('descuento'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['orden_id'], ['ordenes_venta.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
    )

    op.create_table(
        'facturas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('cliente_id', sa.Integer(), nullable=False),
        sa.Column('orden_venta_id', sa.Integer(), nullable=False),
        sa.Column('numero_factura', sa.String(20), nullable=False),
        sa.Column('fecha_emision', sa.DateTime(), nullable=True),
        sa.Column('fecha_vencimiento', sa.DateTime(), nullable=True),
        sa.Column('estado', sa.String(20), nullable=True),
        sa.Column('moneda', sa.String(3), nullable=True),
        _monto('subtotal'), _monto('descuento'), _monto('igv'), _monto('total'),
        sa.Column('notas', sa.Text(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['cliente_id'], ['clientes.id']),
        sa.ForeignKeyConstraint(['orden_venta_id'], ['ordenes_venta.id']),
        sa.UniqueConstraint('empresa_id', 'numero_factura', name='uq_empresa_numero_factura'),
    )
    op.create_table(
        'items_factura',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('factura_id', sa.Integer(), nullable=False),
        sa.Column('producto_id', sa.Integer(), nullable=False),
        sa.Column('cantidad', sa.Numeric(12, 2), nullable=False),
        sa.Column('precio_unitario', sa.Numeric(12, 2), nullable=False),
        _monto('descuento'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['factura_id'], ['facturas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
    )

    for tabla, items, con_tipo in (
        ('notas_credito', 'items_nota_credito', True),
        ('notas_debito', 'items_nota_debito', False),
    ):
        columnas = [
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('empresa_id', sa.Integer(), nullable=False),
            sa.Column('factura_id', sa.Integer(), nullable=False),
            sa.Column('cliente_id', sa.Integer(), nullable=False),
            sa.Column('numero_nota', sa.String(20), nullable=False),
        ]
        if con_tipo:
            columnas.append(sa.Column('tipo', sa.String(20), nullable=False))
        op.create_table(
            tabla,
            *columnas,
            sa.Column('motivo', sa.String(255), nullable=False),
            sa.Column('fecha_emision', sa.DateTime(), nullable=True),
            sa.Column('estado', sa.String(20), nullable=True),
            sa.Column('moneda', sa.String(3), nullable=True),
            _monto('subtotal'), _monto('igv'), _monto('monto'),
            sa.Column('observaciones', sa.Text(), nullable=True),
            *_fechas(),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['factura_id'], ['facturas.id']),
            sa.ForeignKeyConstraint(['cliente_id'], ['clientes.id']),
        )
        op.create_table(
            items,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('nota_id', sa.Integer(), nullable=False),
            sa.Column('producto_id', sa.Integer(), nullable=False),
            sa.Column('cantidad', sa.Numeric(12, 2), nullable=False),
            sa.Column('precio_unitario', sa.Numeric(12, 2), nullable=False),
            sa.Column('igv_porcentaje', sa.Numeric(5, 2), nullable=True, server_default='18'),
            sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
            _monto('igv'),
            sa.PrimaryKeyConstraint('id'),
            sa.ForeignKeyConstraint(['nota_id'], [f'{tabla}.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
        )

    # ===== Auditoría =====
    op.create_table(
        'eventos_auditoria',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('fecha', sa.DateTime(), nullable=True),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('accion', sa.String(30), nullable=False),
        sa.Column('recurso', sa.String(30), nullable=False),
        sa.Column('recurso_id', sa.String(100), nullable=True),
        sa.Column('descripcion', sa.String(500), nullable=False),
        sa.Column('severidad', sa.String(10), nullable=True),
        sa.Column('datos_anteriores', sa.JSON(), nullable=True),
        sa.Column('datos_nuevos', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='SET NULL'),
        comment='Auditoría por empresa - inmutable',
    )
    op.create_index('idx_eventos_auditoria_empresa_fecha', 'eventos_auditoria', ['empresa_id', 'fecha'])
    op.create_index('idx_eventos_auditoria_recurso_accion', 'eventos_auditoria', ['recurso', 'accion'])
    op.create_index('idx_eventos_auditoria_severidad', 'eventos_auditoria', ['severidad'])

    op.create_table(
        'contadores_auditoria',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clave', sa.String(120), nullable=False),
        sa.Column('ventana', sa.Integer(), nullable=False),
        sa.Column('conteo', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('clave', 'ventana', name='uq_contador_clave_ventana'),
    )

    # ===== Archivos =====
    op.create_table(
        'archivos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('empresa_id', sa.Integer(), nullable=False),
        sa.Column('nombre_archivo', sa.String(255), nullable=False),
        sa.Column('tipo_archivo', sa.String(50), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('url_archivo', sa.String(1000), nullable=False),
        sa.Column('tamanio_bytes', sa.BigInteger(), nullable=False),
        sa.Column('dimensiones', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('entidad_tipo', sa.String(50), nullable=True),
        sa.Column('entidad_id', sa.Integer(), nullable=True),
        sa.Column('categoria_id', sa.Integer(), nullable=True),
        sa.Column('producto_id', sa.Integer(), nullable=True),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=True),
        *_fechas(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['empresa_id'], ['empresas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['producto_id'], ['productos.id']),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='SET NULL'),
    )
    op.create_index('idx_archivos_empresa_activo', 'archivos', ['empresa_id', 'activo'])
    op.create_index('idx_archivos_entidad', 'archivos', ['entidad_tipo', 'entidad_id'])

    op.create_table(
        'versiones_archivo',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('archivo_id', sa.Integer(), nullable=False),
        sa.Column('numero_version', sa.Integer(), nullable=False),
        sa.Column('url_archivo', sa.String(1000), nullable=False),
        sa.Column('cambios', sa.String(1000), nullable=True),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('fecha_version', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['archivo_id'], ['archivos.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['usuario_id'], ['usuarios.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('archivo_id', 'numero_version', name='uq_archivo_numero_version'),
    )


def downgrade():
    for tabla in (
        'versiones_archivo', 'archivos', 'contadores_auditoria', 'eventos_auditoria',
        'items_nota_debito', 'notas_debito', 'items_nota_credito', 'notas_credito',
        'items_factura', 'facturas', 'items_orden_venta', 'ordenes_venta',
        'items_cotizacion', 'cotizaciones', 'valoraciones', 'productos', 'clientes',
        'usuarios_roles_empresa', 'permisos_rol_empresa', 'roles_empresa',
        'permisos_usuario', 'rol_permisos', 'permisos',
        'configuraciones_impuestos', 'direcciones', 'usuario_empresas', 'usuarios', 'roles', 'empresas',
    ):
        op.drop_table(tabla)

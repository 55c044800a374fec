"""
Catálogo por empresa: clientes y productos/servicios.
Eliminación lógica (activo = False); los documentos de venta siguen
referenciando el registro.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..domain.models_catalogo import Cliente, Producto
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError, ConflictoError
from .services_empresas import obtener_empresa
from .validaciones import validar_paginacion, total_paginas, validar_no_nulos

logger = logging.getLogger(__name__)

TIPOS_DOCUMENTO = {"DNI": 8, "RUC": 11, "CE": None}


def _paginar(q, page: int, limit: int, orden) -> Dict[str, Any]:
    validar_paginacion(page, limit)
    total = q.count()
    data = q.order_by(orden).offset((page - 1) * limit).limit(limit).all()
    return {"data": data, "meta": {"total": total, "page": page, "limit": limit,
                                   "totalPages": total_paginas(total, limit)}}


# ===== Clientes =====

def validar_documento(tipo: Optional[str], numero: Optional[str]) -> None:
    if not tipo and not numero:
        return
    if tipo not in TIPOS_DOCUMENTO:
        raise ValidacionError(f"Tipo de documento inválido. Use: {', '.join(TIPOS_DOCUMENTO)}")
    if not numero or (tipo != "CE" and not numero.isdigit()):
        raise ValidacionError("Número de documento inválido")
    largo = TIPOS_DOCUMENTO[tipo]
    if largo and len(numero) != largo:
        raise ValidacionError(f"El {tipo} debe tener {largo} dígitos")


def obtener_cliente(db: Session, empresa_id: int, cliente_id: int, solo_activos: bool = True) -> Cliente:
    q = db.query(Cliente).filter(Cliente.id == cliente_id, Cliente.empresa_id == empresa_id)
    if solo_activos:
        q = q.filter(Cliente.activo == True)
    cliente = q.first()
    if not cliente:
        raise NoEncontradoError(f"Cliente con ID {cliente_id} no encontrado")
    return cliente


def crear_cliente(db: Session, empresa_id: int, datos: Dict[str, Any]) -> Cliente:
    obtener_empresa(db, empresa_id)
    validar_documento(datos.get("tipo_documento"), datos.get("numero_documento"))
    if datos.get("numero_documento"):
        existe = db.query(Cliente.id).filter(
            Cliente.empresa_id == empresa_id,
            Cliente.numero_documento == datos["numero_documento"],
            Cliente.activo == True,
        ).first()
        if existe:
            raise ConflictoError(f"Ya existe un cliente con documento {datos['numero_documento']}")
    with UnitOfWork(db).transaction():
        cliente = Cliente(empresa_id=empresa_id, **datos)
        db.add(cliente)
    db.refresh(cliente)
    return cliente


def listar_clientes(db: Session, empresa_id: int, page: int = 1, limit: int = 10,
                    search: Optional[str] = None) -> Dict[str, Any]:
    obtener_empresa(db, empresa_id)
    q = db.query(Cliente).filter(Cliente.empresa_id == empresa_id, Cliente.activo == True)
    if search:
        q = q.filter(or_(Cliente.nombre.ilike(f"%{search}%"), Cliente.numero_documento.ilike(f"%{search}%")))
    return _paginar(q, page, limit, Cliente.nombre)


def actualizar_cliente(db: Session, empresa_id: int, cliente_id: int, cambios: Dict[str, Any]) -> Cliente:
    cliente = obtener_cliente(db, empresa_id, cliente_id)
    validar_no_nulos(cambios, Cliente)
    if "tipo_documento" in cambios or "numero_documento" in cambios:
        validar_documento(
            cambios.get("tipo_documento", cliente.tipo_documento),
            cambios.get("numero_documento", cliente.numero_documento),
        )
    with UnitOfWork(db).transaction():
        for campo, valor in cambios.items():
            setattr(cliente, campo, valor)
    db.refresh(cliente)
    return cliente


def eliminar_cliente(db: Session, empresa_id: int, cliente_id: int) -> None:
    cliente = obtener_cliente(db, empresa_id, cliente_id)
    with UnitOfWork(db).transaction():
        cliente.activo = False


# ===== Productos =====

def obtener_producto(db: Session, empresa_id: int, producto_id: int, solo_activos: bool = True) -> Producto:
    q = db.query(Producto).filter(Producto.id == producto_id, Producto.empresa_id == empresa_id)
    if solo_activos:
        q = q.filter(Producto.activo == True)
    producto = q.first()
    if not producto:
        raise NoEncontradoError(f"Producto con ID {producto_id} no encontrado")
    return producto


def validar_productos(db: Session, empresa_id: int, producto_ids: List[int]) -> None:
    """Todos los productos referenciados deben existir en la empresa."""
    ids = set(producto_ids)
    encontrados = {
        pid for (pid,) in db.query(Producto.id).filter(
            Producto.empresa_id == empresa_id, Producto.id.in_(ids), Producto.activo == True
        ).all()
    } if ids else set()
    faltantes = sorted(ids - encontrados)
    if faltantes:
        raise NoEncontradoError(f"Producto con ID {faltantes[0]} no encontrado")


def crear_producto(db: Session, empresa_id: int, datos: Dict[str, Any]) -> Producto:
    obtener_empresa(db, empresa_id)
    if Decimal(str(datos.get("precio") or 0)) < 0:
        raise ValidacionError("El precio no puede ser negativo")
    if datos.get("codigo"):
        existe = db.query(Producto.id).filter(
            Producto.empresa_id == empresa_id, Producto.codigo == datos["codigo"], Producto.activo == True
        ).first()
        if existe:
            raise ConflictoError(f"Ya existe un producto con código {datos['codigo']}")
    with UnitOfWork(db).transaction():
        producto = Producto(empresa_id=empresa_id, **datos)
        db.add(producto)
    db.refresh(producto)
    return producto


def listar_productos(db: Session, empresa_id: int, page: int = 1, limit: int = 10,
                     search: Optional[str] = None) -> Dict[str, Any]:
    obtener_empresa(db, empresa_id)
    q = db.query(Producto).filter(Producto.empresa_id == empresa_id, Producto.activo == True)
    if search:
        q = q.filter(or_(Producto.nombre.ilike(f"%{search}%"), Producto.codigo.ilike(f"%{search}%")))
    return _paginar(q, page, limit, Producto.nombre)


def actualizar_producto(db: Session, empresa_id: int, producto_id: int, cambios: Dict[str, Any]) -> Producto:
    producto = obtener_producto(db, empresa_id, producto_id)
    validar_no_nulos(cambios, Producto)
    if "precio" in cambios and Decimal(str(cambios["precio"] or 0)) < 0:
        raise ValidacionError("El precio no puede ser negativo")
    with UnitOfWork(db).transaction():
        for campo, valor in cambios.items():
            setattr(producto, campo, valor)
    db.refresh(producto)
    return producto


def eliminar_producto(db: Session, empresa_id: int, producto_id: int) -> None:
    producto = obtener_producto(db, empresa_id, producto_id)
    with UnitOfWork(db).transaction():
        producto.activo = False

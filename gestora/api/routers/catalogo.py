from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...domain.enums import TipoAccion, TipoRecurso
from ...application import services_catalogo as svc
from ...application.services_audit import log_audit
from ..contexto import client_ip, user_agent

router = APIRouter(prefix="/empresas/{empresa_id}", tags=["catalogo"])


class ClienteIn(BaseModel):
    nombre: str = Field(min_length=1, max_length=200)
    tipo_documento: str | None = Field(default=None, pattern="^(DNI|RUC|CE)$")
    numero_documento: str | None = Field(default=None, max_length=20)
    correo: str | None = Field(default=None, max_length=255)
    telefono: str | None = Field(default=None, max_length=20)


class ClienteUpdate(BaseModel):
    nombre: str | None = Field(default=None, min_length=1, max_length=200)
    tipo_documento: str | None = Field(default=None, pattern="^(DNI|RUC|CE)$")
    numero_documento: str | None = Field(default=None, max_length=20)
    correo: str | None = Field(default=None, max_length=255)
    telefono: str | None = Field(default=None, max_length=20)


class ClienteOut(BaseModel):
    id: int
    empresa_id: int
    nombre: str
    tipo_documento: str | None = None
    numero_documento: str | None = None
    correo: str | None = None
    telefono: str | None = None
    activo: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProductoIn(BaseModel):
    codigo: str | None = Field(default=None, max_length=50)
    nombre: str = Field(min_length=1, max_length=200)
    descripcion: str | None = None
    precio: Decimal = Decimal("0")
    es_servicio: bool = False


class ProductoUpdate(BaseModel):
    codigo: str | None = Field(default=None, max_length=50)
    nombre: str | None = Field(default=None, min_length=1, max_length=200)
    descripcion: str | None = None
    precio: Decimal | None = None
    es_servicio: bool | None = None


class ProductoOut(BaseModel):
    id: int
    empresa_id: int
    codigo: str | None = None
    nombre: str
    descripcion: str | None = None
    precio: Decimal
    es_servicio: bool
    activo: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


def _auditar(request: Request, empresa_id: int, recurso: TipoRecurso, accion: TipoAccion, descripcion: str,
             usuario: Usuario, recurso_id):
    log_audit(empresa_id, accion.value, recurso.value, descripcion, recurso_id=recurso_id,
              usuario_id=usuario.id, ip_address=client_ip(request), user_agent=user_agent(request))


def _pagina(resultado: dict, out_model) -> dict:
    return {"data": [out_model.model_validate(x) for x in resultado["data"]], "meta": resultado["meta"]}


# ===== Clientes =====

@router.post("/clientes", response_model=ClienteOut, status_code=201)
def create_cliente(empresa_id: int, payload: ClienteIn, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("cliente", "crear"))):
    cliente = svc.crear_cliente(db, empresa_id, payload.model_dump())
    _auditar(request, empresa_id, TipoRecurso.CLIENTE, TipoAccion.CREAR, f"Cliente {cliente.nombre} creado",
             usuario, cliente.id)
    return cliente


@router.get("/clientes")
def list_clientes(
    empresa_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None, description="Buscar por nombre o documento"),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("cliente", "leer")),
):
    return _pagina(svc.listar_clientes(db, empresa_id, page, limit, search), ClienteOut)


@router.get("/clientes/{cliente_id}", response_model=ClienteOut)
def get_cliente(empresa_id: int, cliente_id: int, db: Session = Depends(get_db),
                _: Usuario = Depends(requiere_permiso("cliente", "leer"))):
    return svc.obtener_cliente(db, empresa_id, cliente_id)


@router.patch("/clientes/{cliente_id}", response_model=ClienteOut)
def update_cliente(empresa_id: int, cliente_id: int, payload: ClienteUpdate, request: Request,
                   db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("cliente", "actualizar"))):
    cliente = svc.actualizar_cliente(db, empresa_id, cliente_id, payload.model_dump(exclude_unset=True))
    _auditar(request, empresa_id, TipoRecurso.CLIENTE, TipoAccion.ACTUALIZAR, f"Cliente {cliente.nombre} actualizado",
             usuario, cliente.id)
    return cliente


@router.delete("/clientes/{cliente_id}", status_code=204)
def delete_cliente(empresa_id: int, cliente_id: int, request: Request, db: Session = Depends(get_db),
                   usuario: Usuario = Depends(requiere_permiso("cliente", "eliminar"))):
    svc.eliminar_cliente(db, empresa_id, cliente_id)
    _auditar(request, empresa_id, TipoRecurso.CLIENTE, TipoAccion.ELIMINAR, f"Cliente {cliente_id} desactivado",
             usuario, cliente_id)


# ===== Productos =====

@router.post("/productos", response_model=ProductoOut, status_code=201)
def create_producto(empresa_id: int, payload: ProductoIn, request: Request, db: Session = Depends(get_db),
                    usuario: Usuario = Depends(requiere_permiso("producto", "crear"))):
    producto = svc.crear_producto(db, empresa_id, payload.model_dump())
    _auditar(request, empresa_id, TipoRecurso.PRODUCTO, TipoAccion.CREAR, f"Producto {producto.nombre} creado",
             usuario, producto.id)
    return producto


@router.get("/productos")
def list_productos(
    empresa_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None, description="Buscar por nombre o código"),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("producto", "leer")),
):
    return _pagina(svc.listar_productos(db, empresa_id, page, limit, search), ProductoOut)


@router.get("/productos/{producto_id}", response_model=ProductoOut)
def get_producto(empresa_id: int, producto_id: int, db: Session = Depends(get_db),
                 _: Usuario = Depends(requiere_permiso("producto", "leer"))):
    return svc.obtener_producto(db, empresa_id, producto_id)


@router.patch("/productos/{producto_id}", response_model=ProductoOut)
def update_producto(empresa_id: int, producto_id: int, payload: ProductoUpdate, request: Request,
                    db: Session = Depends(get_db),
                    usuario: Usuario = Depends(requiere_permiso("producto", "actualizar"))):
    producto = svc.actualizar_producto(db, empresa_id, producto_id, payload.model_dump(exclude_unset=True))
    _auditar(request, empresa_id, TipoRecurso.PRODUCTO, TipoAccion.ACTUALIZAR,
             f"Producto {producto.nombre} actualizado", usuario, producto.id)
    return producto


@router.delete("/productos/{producto_id}", status_code=204)
def delete_producto(empresa_id: int, producto_id: int, request: Request, db: Session = Depends(get_db),
                    usuario: Usuario = Depends(requiere_permiso("producto", "eliminar"))):
    svc.eliminar_producto(db, empresa_id, producto_id)
    _auditar(request, empresa_id, TipoRecurso.PRODUCTO, TipoAccion.ELIMINAR, f"Producto {producto_id} desactivado",
             usuario, producto_id)

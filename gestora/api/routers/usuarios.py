from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.auth import get_password_hash, require_admin
from ...domain.models import Usuario
from ...application import services_permisos

router = APIRouter(prefix="/usuarios", tags=["usuarios"])


class UsuarioIn(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=4)
    nombre: str | None = None
    correo: str | None = None
    is_admin: bool = False
    rol_id: int | None = None


class UsuarioOut(BaseModel):
    id: int
    username: str
    nombre: str | None = None
    correo: str | None = None
    is_admin: bool
    activo: bool
    rol_id: int | None = None

    class Config:
        from_attributes = True


class RolSistemaIn(BaseModel):
    rol_id: int | None = None


@router.get("", response_model=List[UsuarioOut])
def list_usuarios(db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    return db.query(Usuario).order_by(Usuario.username).all()


@router.post("", response_model=UsuarioOut, status_code=201)
def create_usuario(payload: UsuarioIn, db: Session = Depends(get_db), _: Usuario = Depends(require_admin)):
    if db.query(Usuario.id).filter(Usuario.username == payload.username).first():
        raise HTTPException(400, "El usuario ya existe")
    usuario = Usuario(
        username=payload.username,
        password_hash=get_password_hash(payload.password),
        nombre=payload.nombre,
        correo=payload.correo,
        is_admin=payload.is_admin,
        activo=True,
    )
    db.add(usuario)
    db.commit()
    db.refresh(usuario)
    if payload.rol_id is not None:
        usuario = services_permisos.asignar_rol_sistema(db, usuario.id, payload.rol_id)
    return usuario


@router.put("/{usuario_id}/rol", response_model=UsuarioOut)
def set_rol_sistema(usuario_id: int, payload: RolSistemaIn, db: Session = Depends(get_db),
                    _: Usuario = Depends(require_admin)):
    return services_permisos.asignar_rol_sistema(db, usuario_id, payload.rol_id)

import logging

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.auth import create_access_token, get_password_hash, verify_password, get_current_user
from ...domain.models import Usuario
from ...config import settings
from ..contexto import client_ip

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Endpoint de autenticación.

    En desarrollo crea el administrador configurado en el primer login.
    En producción el usuario debe existir.
    """
    usuario = db.query(Usuario).filter(Usuario.username == form_data.username).first()
    if not usuario:
        if (settings.environment == "development"
                and form_data.username == settings.admin_user
                and form_data.password == settings.admin_pass):
            usuario = Usuario(
                username=settings.admin_user,
                password_hash=get_password_hash(settings.admin_pass),
                is_admin=True,
                activo=True,
            )
            db.add(usuario)
            db.commit()
            db.refresh(usuario)
            logger.info("Administrador inicial creado: %s", usuario.username)
        else:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario/clave inválidos")

    if not usuario.activo or not verify_password(form_data.password, usuario.password_hash):
        logger.info("Login fallido para %s desde %s", form_data.username, client_ip(request))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario/clave inválidos")

    token = create_access_token({"sub": usuario.username})
    logger.info("Login exitoso: %s desde %s", usuario.username, client_ip(request))
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me")
def me(current_user: Usuario = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "username": current_user.username,
        "nombre": current_user.nombre,
        "correo": current_user.correo,
        "is_admin": current_user.is_admin,
        "rol_id": current_user.rol_id,
        "empresas": [{"id": e.id, "nombre": e.nombre, "ruc": e.ruc} for e in current_user.empresas],
    }

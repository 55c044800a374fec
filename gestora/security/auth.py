"""
Autenticación por token JWT (HS256) y contraseñas con bcrypt.

El token lleva el username en "sub". Los administradores globales
(Usuario.is_admin) pasan require_admin; el resto de permisos se resuelve
por empresa en security/permisos.py.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..dependencies import get_db
from ..domain.models import Usuario

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    """Firma un token con vencimiento; por defecto access_token_expire_minutes."""
    vigencia = timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    claims = {**data, "exp": datetime.now(timezone.utc) + vigencia}
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def _no_autorizado(detalle: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detalle,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _username_del_token(token: str) -> str:
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        raise _no_autorizado("Token inválido")
    username = claims.get("sub")
    if not username:
        raise _no_autorizado("Credenciales inválidas")
    return username


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> Usuario:
    username = _username_del_token(token)
    usuario = (
        db.query(Usuario)
        .options(joinedload(Usuario.empresas))
        .filter(Usuario.username == username)
        .first()
    )
    if usuario is None:
        raise _no_autorizado("Usuario no encontrado")
    if not usuario.activo:
        raise _no_autorizado("Usuario inactivo")
    return usuario


def require_admin(usuario: Usuario = Depends(get_current_user)) -> Usuario:
    if not usuario.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Solo administradores")
    return usuario

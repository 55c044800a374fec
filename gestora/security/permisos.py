"""
Guardas de permisos por empresa para los routers.

Uso:
    @router.get("", dependencies=[Depends(requiere_permiso("cliente", "leer"))])

La empresa se toma del parámetro de ruta `empresa_id`.
Los administradores globales no pasan por el resolvedor.
"""
import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..api.contexto import client_ip, user_agent
from ..application.errores import AccesoDenegadoError
from ..application.services_audit import log_audit
from ..application.services_empresas import es_miembro_activo
from ..application.services_permisos import tiene_permiso
from ..dependencies import get_db
from ..domain.enums import TipoAccion, TipoRecurso, NivelSeveridad
from ..domain.models import Usuario
from .auth import get_current_user

logger = logging.getLogger(__name__)


def _recurso_auditoria(recurso: str) -> str:
    # rol y valoracion no son recursos de auditoría
    valores = {r.value for r in TipoRecurso}
    return recurso if recurso in valores else TipoRecurso.SISTEMA.value


def requiere_permiso(recurso: str, accion: str):
    def _guarda(
        empresa_id: int,
        request: Request,
        db: Session = Depends(get_db),
        usuario: Usuario = Depends(get_current_user),
    ) -> Usuario:
        if usuario.is_admin:
            return usuario
        if not es_miembro_activo(db, empresa_id, usuario.id):
            raise AccesoDenegadoError("No tiene acceso a esta empresa")
        if not tiene_permiso(db, usuario.id, empresa_id, recurso, accion):
            logger.info("Permiso denegado: usuario=%s empresa=%s %s.%s", usuario.username, empresa_id, recurso, accion)
            log_audit(
                empresa_id,
                TipoAccion.ACCESO_DENEGADO.value,
                _recurso_auditoria(recurso),
                f"Acceso denegado a {usuario.username}: {recurso}.{accion}",
                usuario_id=usuario.id,
                severidad=NivelSeveridad.WARNING.value,
                metadata_={"recurso": recurso, "accion": accion, "ruta": request.url.path},
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            )
            raise AccesoDenegadoError(f"No tiene permiso para {accion} {recurso}")
        return usuario

    return _guarda


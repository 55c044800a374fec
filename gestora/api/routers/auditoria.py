"""
API de Auditoría por empresa
============================
Registro de eventos, consulta paginada, estadísticas, exportación y depuración.
Los eventos no se editan: no hay PUT/PATCH.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ...dependencies import get_db
from ...security.auth import get_current_user
from ...security.permisos import requiere_permiso
from ...domain.models import Usuario
from ...application import services_audit as svc
from ..contexto import contexto_auditoria

router = APIRouter(prefix="/auditoria", tags=["auditoria"])

METADATOS = {
    "acciones": svc.acciones_disponibles,
    "recursos": svc.recursos_disponibles,
    "severidades": svc.severidades_disponibles,
}


class EventoIn(BaseModel):
    accion: str
    recurso: str
    recurso_id: str | None = Field(default=None, max_length=100)
    descripcion: str = Field(min_length=1, max_length=500)
    severidad: str | None = None
    datos_anteriores: Dict[str, Any] | None = None
    datos_nuevos: Dict[str, Any] | None = None
    metadata: Dict[str, Any] | None = None


def _filtros(
    accion: Optional[str] = Query(None),
    recurso: Optional[str] = Query(None),
    recurso_id: Optional[str] = Query(None),
    usuario_id: Optional[int] = Query(None),
    severidad: Optional[str] = Query(None),
    ip_address: Optional[str] = Query(None),
    acciones: Optional[List[str]] = Query(None),
    recursos: Optional[List[str]] = Query(None),
    solo_criticos: bool = Query(False),
    excluir_lectura: bool = Query(False),
    fecha_inicio: Optional[datetime] = Query(None),
    fecha_fin: Optional[datetime] = Query(None),
    buscar: Optional[str] = Query(None, description="Busca en descripción o recurso_id"),
) -> Dict[str, Any]:
    return {
        "accion": accion,
        "recurso": recurso,
        "recurso_id": recurso_id,
        "usuario_id": usuario_id,
        "severidad": severidad,
        "ip_address": ip_address,
        "acciones": acciones,
        "recursos": recursos,
        "solo_criticos": solo_criticos,
        "excluir_lectura": excluir_lectura,
        "fecha_inicio": fecha_inicio,
        "fecha_fin": fecha_fin,
        "buscar": buscar,
    }


@router.get("/metadata/{tipo}", summary="Valores válidos de acción, recurso o severidad")
def get_metadata(tipo: str, _: Usuario = Depends(get_current_user)):
    if tipo not in METADATOS:
        raise HTTPException(status_code=404, detail="Metadato no encontrado. Use acciones, recursos o severidades")
    return METADATOS[tipo]()


@router.post("/{empresa_id}", status_code=201)
def create_evento(empresa_id: int, payload: EventoIn, request: Request, db: Session = Depends(get_db),
                  usuario: Usuario = Depends(requiere_permiso("auditoria", "crear"))):
    datos = {**payload.model_dump(), "empresa_id": empresa_id}
    evento = svc.registrar_evento(db, datos, contexto_auditoria(request, usuario.id))
    return svc.formatear_evento(evento)


@router.get("/{empresa_id}", summary="Listar eventos de auditoría")
def list_eventos(
    empresa_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    filtros: Dict[str, Any] = Depends(_filtros),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("auditoria", "leer")),
):
    return svc.listar_eventos(db, empresa_id, filtros, page, limit)


@router.get("/{empresa_id}/evento/{evento_id}")
def get_evento(empresa_id: int, evento_id: int, db: Session = Depends(get_db),
               _: Usuario = Depends(requiere_permiso("auditoria", "leer"))):
    return svc.formatear_evento(svc.obtener_evento(db, empresa_id, evento_id))


@router.get("/{empresa_id}/estadisticas")
def get_estadisticas(
    empresa_id: int,
    fecha_inicio: Optional[datetime] = Query(None),
    fecha_fin: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("auditoria", "leer")),
):
    return svc.estadisticas(db, empresa_id, fecha_inicio, fecha_fin)


@router.get("/{empresa_id}/exportar")
def export_eventos(
    empresa_id: int,
    formato: str = Query("excel", description="excel, csv o pdf"),
    filtros: Dict[str, Any] = Depends(_filtros),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("auditoria", "exportar")),
):
    contenido, media_type, nombre = svc.exportar(db, empresa_id, formato, filtros)
    return Response(
        content=contenido,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={nombre}"},
    )


@router.delete("/{empresa_id}/limpiar")
def purge_eventos(
    empresa_id: int,
    dias_retencion: int = Query(..., description="Días a conservar (30 a 365)"),
    db: Session = Depends(get_db),
    _: Usuario = Depends(requiere_permiso("auditoria", "eliminar")),
):
    eliminados = svc.limpiar(db, empresa_id, dias_retencion)
    return {"eliminados": eliminados, "dias_retencion": dias_retencion}

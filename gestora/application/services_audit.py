"""
Auditoría por empresa
=====================
Registro inmutable de eventos relevantes (solo INSERT).

Pipeline de registro:
1. Validar (acción, recurso, descripción, empresa)
2. Enriquecer (actor, IP, user agent, fecha; severidad CRITICAL forzada)
3. Límite de eventos por minuto (contador en BD por empresa + usuario/IP)
4. Redactar datos sensibles de datos_anteriores / datos_nuevos
5. Persistir
6. Post-proceso: WARNING en log para eventos CRITICAL y ERROR

log_audit() es el punto de entrada para otros módulos: usa sesión separada
y nunca hace fallar la operación principal.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..db import SessionLocal
from ..domain.enums import TipoAccion, TipoRecurso, NivelSeveridad
from ..domain.models_audit import EventoAuditoria
from ..infrastructure import rate_limit
from ..infrastructure.exporters import to_xlsx, to_csv
from ..infrastructure.pdf_utils import create_table_pdf
from ..infrastructure.unit_of_work import UnitOfWork
from .errores import NoEncontradoError, ValidacionError, LimiteExcedidoError
from .services_empresas import obtener_empresa
from .validaciones import validar_paginacion, total_paginas, fecha_local

logger = logging.getLogger(__name__)

DESCRIPCION_MAX = 500
RANGO_MAXIMO_DIAS = 365
RETENCION_MIN_DIAS, RETENCION_MAX_DIAS = 30, 365
REDACTADO = "***REDACTED***"
CLAVES_SENSIBLES = ("password", "token", "secret", "key", "credential")

ACCIONES_CRITICAS = {
    TipoAccion.ELIMINAR.value,
    TipoAccion.ACCESO_DENEGADO.value,
    TipoAccion.LOGIN.value,
    TipoAccion.LOGOUT.value,
}
RECURSOS_CRITICOS = {
    TipoRecurso.USUARIO.value,
    TipoRecurso.EMPRESA.value,
    TipoRecurso.CONFIGURACION.value,
    TipoRecurso.SISTEMA.value,
}

FORMATOS_EXPORTACION = {
    "excel": ("xlsx", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "csv": ("csv", "text/csv"),
    "pdf": ("pdf", "application/pdf"),
}
COLUMNAS_EXPORTACION = ["ID", "Fecha", "Acción", "Recurso", "Descripción", "Severidad", "Usuario", "IP"]


# ===== Pasos del pipeline =====

def _valores(enum_cls) -> List[str]:
    return [e.value for e in enum_cls]


def validar_evento(db: Session, datos: Dict[str, Any]) -> None:
    if datos.get("accion") not in _valores(TipoAccion):
        raise ValidacionError(f"Acción de auditoría inválida: {datos.get('accion')}")
    if datos.get("recurso") not in _valores(TipoRecurso):
        raise ValidacionError(f"Recurso de auditoría inválido: {datos.get('recurso')}")
    descripcion = (datos.get("descripcion") or "").strip()
    if not descripcion:
        raise ValidacionError("La descripción es obligatoria")
    if len(descripcion) > DESCRIPCION_MAX:
        raise ValidacionError(f"La descripción no puede exceder {DESCRIPCION_MAX} caracteres")
    severidad = datos.get("severidad")
    if severidad and severidad not in _valores(NivelSeveridad):
        raise ValidacionError(f"Severidad inválida: {severidad}")
    if not datos.get("empresa_id"):
        raise ValidacionError("La empresa es obligatoria")
    obtener_empresa(db, datos["empresa_id"])


def es_evento_critico(accion: str, recurso: str) -> bool:
    return accion in ACCIONES_CRITICAS or recurso in RECURSOS_CRITICOS


def enriquecer_evento(datos: Dict[str, Any], contexto: Dict[str, Any]) -> Dict[str, Any]:
    ahora = datetime.now()
    evento = dict(datos)
    evento["descripcion"] = evento["descripcion"].strip()
    evento["usuario_id"] = contexto.get("usuario_id") or evento.get("usuario_id")
    evento["ip_address"] = contexto.get("ip_address") or evento.get("ip_address")
    evento["user_agent"] = contexto.get("user_agent") or evento.get("user_agent")
    evento["fecha"] = ahora
    evento["metadata"] = {
        **(evento.get("metadata") or {}),
        **(contexto.get("metadata") or {}),
        "timestamp": ahora.isoformat(),
        "version": "1.0.0",
    }
    if es_evento_critico(evento["accion"], evento["recurso"]):
        evento["severidad"] = NivelSeveridad.CRITICAL.value
    else:
        evento["severidad"] = evento.get("severidad") or NivelSeveridad.INFO.value
    return evento


def clave_limite(evento: Dict[str, Any]) -> str:
    actor = evento.get("usuario_id") or evento.get("ip_address") or "anonimo"
    return f"{evento['empresa_id']}-{actor}"


def aplicar_limite(db: Session, evento: Dict[str, Any]) -> None:
    clave = clave_limite(evento)
    if not rate_limit.consumir(db, clave, settings.audit_rate_limit_per_minute):
        logger.warning("Límite de eventos de auditoría excedido para %s", clave)
        raise LimiteExcedidoError("Límite de eventos por minuto excedido")


def redactar(datos: Any) -> Any:
    """Reemplaza recursivamente los valores cuyas claves parecen secretos."""
    if isinstance(datos, dict):
        return {
            k: REDACTADO if any(s in str(k).lower() for s in CLAVES_SENSIBLES) else redactar(v)
            for k, v in datos.items()
        }
    if isinstance(datos, (list, tuple)):
        return [redactar(v) for v in datos]
    # Columna JSON: Decimal y fechas se guardan como número / ISO
    if isinstance(datos, Decimal):
        return float(datos)
    if isinstance(datos, (datetime, date)):
        return datos.isoformat()
    return datos


def _post_proceso(evento: EventoAuditoria) -> None:
    if evento.severidad in (NivelSeveridad.CRITICAL.value, NivelSeveridad.ERROR.value):
        logger.warning(
            "Evento de auditoría %s: empresa=%s usuario=%s %s.%s - %s",
            evento.severidad.upper(), evento.empresa_id, evento.usuario_id,
            evento.recurso, evento.accion, evento.descripcion,
        )


def registrar_evento(db: Session, datos: Dict[str, Any], contexto: Optional[Dict[str, Any]] = None) -> EventoAuditoria:
    validar_evento(db, datos)
    evento_datos = enriquecer_evento(datos, contexto or {})

    uow = UnitOfWork(db)
    with uow.transaction():
        aplicar_limite(db, evento_datos)
        evento = EventoAuditoria(
            fecha=evento_datos["fecha"],
            empresa_id=evento_datos["empresa_id"],
            usuario_id=evento_datos.get("usuario_id"),
            accion=evento_datos["accion"],
            recurso=evento_datos["recurso"],
            recurso_id=str(evento_datos["recurso_id"]) if evento_datos.get("recurso_id") is not None else None,
            descripcion=evento_datos["descripcion"],
            severidad=evento_datos["severidad"],
            datos_anteriores=redactar(evento_datos.get("datos_anteriores")),
            datos_nuevos=redactar(evento_datos.get("datos_nuevos")),
            metadata_=redactar(evento_datos["metadata"]),
            ip_address=evento_datos.get("ip_address"),
            user_agent=evento_datos.get("user_agent"),
        )
        db.add(evento)
    db.refresh(evento)
    _post_proceso(evento)
    return evento


def log_audit(
    empresa_id: int,
    accion: str,
    recurso: str,
    descripcion: str,
    recurso_id: Optional[Any] = None,
    usuario_id: Optional[int] = None,
    severidad: Optional[str] = None,
    datos_anteriores: Optional[Dict[str, Any]] = None,
    datos_nuevos: Optional[Dict[str, Any]] = None,
    metadata_: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[EventoAuditoria]:
    """
    Registra un evento de auditoría desde otro módulo.
    Try-safe: sesión separada, llamar después del commit principal.
    """
    audit_db = SessionLocal()
    try:
        return registrar_evento(
            audit_db,
            {
                "empresa_id": empresa_id,
                "accion": accion,
                "recurso": recurso,
                "recurso_id": recurso_id,
                "descripcion": descripcion[:DESCRIPCION_MAX],
                "severidad": severidad,
                "datos_anteriores": datos_anteriores,
                "datos_nuevos": datos_nuevos,
                "metadata": metadata_,
            },
            {"usuario_id": usuario_id, "ip_address": ip_address, "user_agent": user_agent},
        )
    except LimiteExcedidoError:
        # Ya registrado como WARNING por aplicar_limite
        return None
    except Exception:
        logger.exception("No se pudo registrar evento de auditoría %s.%s (empresa %s)", recurso, accion, empresa_id)
        return None
    finally:
        audit_db.close()


# ===== Consultas =====

def formatear_evento(evento: EventoAuditoria) -> Dict[str, Any]:
    return {
        "id": evento.id,
        "fecha": evento.fecha.isoformat() if evento.fecha else None,
        "empresa_id": evento.empresa_id,
        "usuario_id": evento.usuario_id,
        "usuario_nombre": evento.usuario.nombre if evento.usuario else None,
        "accion": evento.accion,
        "recurso": evento.recurso,
        "recurso_id": evento.recurso_id,
        "descripcion": evento.descripcion,
        "severidad": evento.severidad,
        "datos_anteriores": evento.datos_anteriores,
        "datos_nuevos": evento.datos_nuevos,
        "metadata": evento.metadata_,
        "ip_address": evento.ip_address,
        "user_agent": evento.user_agent,
    }


def validar_rango_fechas(fecha_inicio: Optional[datetime], fecha_fin: Optional[datetime]) -> None:
    if fecha_inicio and fecha_fin:
        if fecha_inicio > fecha_fin:
            raise ValidacionError("La fecha de inicio debe ser anterior o igual a la fecha de fin")
        if fecha_fin - fecha_inicio > timedelta(days=RANGO_MAXIMO_DIAS):
            raise ValidacionError(f"El rango de fechas no puede superar {RANGO_MAXIMO_DIAS} días")


def _consulta_filtrada(db: Session, empresa_id: int, filtros: Dict[str, Any]):
    fecha_inicio = fecha_local(filtros.get("fecha_inicio"))
    fecha_fin = fecha_local(filtros.get("fecha_fin"))
    validar_rango_fechas(fecha_inicio, fecha_fin)

    q = db.query(EventoAuditoria).filter(EventoAuditoria.empresa_id == empresa_id)
    if filtros.get("accion"):
        q = q.filter(EventoAuditoria.accion == filtros["accion"])
    if filtros.get("recurso"):
        q = q.filter(EventoAuditoria.recurso == filtros["recurso"])
    if filtros.get("recurso_id"):
        q = q.filter(EventoAuditoria.recurso_id == str(filtros["recurso_id"]))
    if filtros.get("usuario_id"):
        q = q.filter(EventoAuditoria.usuario_id == filtros["usuario_id"])
    if filtros.get("severidad"):
        q = q.filter(EventoAuditoria.severidad == filtros["severidad"])
    if filtros.get("ip_address"):
        q = q.filter(EventoAuditoria.ip_address == filtros["ip_address"])
    if filtros.get("acciones"):
        q = q.filter(EventoAuditoria.accion.in_(filtros["acciones"]))
    if filtros.get("recursos"):
        q = q.filter(EventoAuditoria.recurso.in_(filtros["recursos"]))
    if filtros.get("solo_criticos"):
        q = q.filter(EventoAuditoria.severidad == NivelSeveridad.CRITICAL.value)
    if filtros.get("excluir_lectura"):
        q = q.filter(EventoAuditoria.accion != TipoAccion.LEER.value)
    if fecha_inicio:
        q = q.filter(EventoAuditoria.fecha >= fecha_inicio)
    if fecha_fin:
        q = q.filter(EventoAuditoria.fecha <= fecha_fin)
    if filtros.get("buscar"):
        patron = f"%{filtros['buscar']}%"
        q = q.filter(or_(EventoAuditoria.descripcion.ilike(patron), EventoAuditoria.recurso_id.ilike(patron)))
    return q


def listar_eventos(db: Session, empresa_id: int, filtros: Optional[Dict[str, Any]] = None,
                   page: int = 1, limit: int = 10) -> Dict[str, Any]:
    validar_paginacion(page, limit)
    obtener_empresa(db, empresa_id)
    q = _consulta_filtrada(db, empresa_id, filtros or {})
    total = q.count()
    eventos = (
        q.options(joinedload(EventoAuditoria.usuario))
        .order_by(EventoAuditoria.fecha.desc(), EventoAuditoria.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    paginas = total_paginas(total, limit)
    return {
        "data": [formatear_evento(e) for e in eventos],
        "meta": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": paginas,
            "hasNextPage": page < paginas,
            "hasPrevPage": page > 1,
        },
    }


def obtener_evento(db: Session, empresa_id: int, evento_id: int) -> EventoAuditoria:
    evento = db.query(EventoAuditoria).filter(
        EventoAuditoria.id == evento_id, EventoAuditoria.empresa_id == empresa_id
    ).first()
    if not evento:
        raise NoEncontradoError(f"Evento de auditoría con ID {evento_id} no encontrado")
    return evento


def estadisticas(db: Session, empresa_id: int, fecha_inicio: Optional[datetime] = None,
                 fecha_fin: Optional[datetime] = None) -> Dict[str, Any]:
    obtener_empresa(db, empresa_id)
    fecha_inicio, fecha_fin = fecha_local(fecha_inicio), fecha_local(fecha_fin)
    validar_rango_fechas(fecha_inicio, fecha_fin)

    condiciones = [EventoAuditoria.empresa_id == empresa_id]
    if fecha_inicio:
        condiciones.append(EventoAuditoria.fecha >= fecha_inicio)
    if fecha_fin:
        condiciones.append(EventoAuditoria.fecha <= fecha_fin)

    def agrupar(columna):
        filas = db.query(columna, func.count(EventoAuditoria.id)).filter(*condiciones).group_by(columna).all()
        return {valor: total for valor, total in filas}

    def top(columna, limite=10):
        return (
            db.query(columna, func.count(EventoAuditoria.id).label("total"))
            .filter(*condiciones, columna.isnot(None))
            .group_by(columna)
            .order_by(func.count(EventoAuditoria.id).desc())
            .limit(limite)
            .all()
        )

    dia = func.date(EventoAuditoria.fecha)
    por_dia = db.query(dia, func.count(EventoAuditoria.id)).filter(*condiciones).group_by(dia).order_by(dia).all()

    return {
        "total_eventos": db.query(func.count(EventoAuditoria.id)).filter(*condiciones).scalar() or 0,
        "eventos_por_accion": agrupar(EventoAuditoria.accion),
        "eventos_por_recurso": agrupar(EventoAuditoria.recurso),
        "eventos_por_severidad": agrupar(EventoAuditoria.severidad),
        "eventos_por_usuario": [
            {"usuario_id": u, "total_eventos": t} for u, t in top(EventoAuditoria.usuario_id)
        ],
        "ips_mas_activas": [
            {"ip_address": ip, "total_eventos": t} for ip, t in top(EventoAuditoria.ip_address)
        ],
        "eventos_por_dia": [{"fecha": str(d), "total": t} for d, t in por_dia],
    }


def exportar(db: Session, empresa_id: int, formato: str,
             filtros: Optional[Dict[str, Any]] = None) -> Tuple[bytes, str, str]:
    """Devuelve (contenido, media_type, nombre_archivo)."""
    if formato not in FORMATOS_EXPORTACION:
        raise ValidacionError("Formato de exportación no soportado")
    empresa = obtener_empresa(db, empresa_id)
    eventos = (
        _consulta_filtrada(db, empresa_id, filtros or {})
        .options(joinedload(EventoAuditoria.usuario))
        .order_by(EventoAuditoria.fecha.desc(), EventoAuditoria.id.desc())
        .all()
    )
    filas = [
        [
            e.id,
            e.fecha.strftime('%d/%m/%Y %H:%M:%S') if e.fecha else "",
            e.accion,
            e.recurso,
            e.descripcion,
            e.severidad,
            e.usuario.nombre if e.usuario else "",
            e.ip_address or "",
        ]
        for e in eventos
    ]

    extension, media_type = FORMATOS_EXPORTACION[formato]
    if formato == "excel":
        contenido = to_xlsx(COLUMNAS_EXPORTACION, filas, sheet_title="Auditoría",
                            title=f"Auditoría - {empresa.nombre}")
    elif formato == "csv":
        contenido = to_csv(COLUMNAS_EXPORTACION, filas)
    else:
        contenido = create_table_pdf(
            company_name=empresa.nombre,
            company_ruc=empresa.ruc,
            report_title="Registro de Auditoría",
            report_subtitle=f"{len(filas)} eventos",
            headers=COLUMNAS_EXPORTACION,
            rows=filas,
            columna_severidad=COLUMNAS_EXPORTACION.index("Severidad"),
        ).getvalue()

    logger.info("Auditoría exportada: empresa=%s formato=%s eventos=%s", empresa_id, formato, len(filas))
    return contenido, media_type, f"auditoria_{datetime.now().strftime('%Y-%m-%d')}.{extension}"


def limpiar(db: Session, empresa_id: int, dias_retencion: int) -> int:
    """Elimina eventos más antiguos que la retención. Nunca elimina eventos CRITICAL."""
    if not (RETENCION_MIN_DIAS <= dias_retencion <= RETENCION_MAX_DIAS):
        raise ValidacionError(
            f"Los días de retención deben estar entre {RETENCION_MIN_DIAS} y {RETENCION_MAX_DIAS}"
        )
    obtener_empresa(db, empresa_id)
    fecha_limite = datetime.now() - timedelta(days=dias_retencion)
    with UnitOfWork(db).transaction():
        eliminados = db.query(EventoAuditoria).filter(
            EventoAuditoria.empresa_id == empresa_id,
            EventoAuditoria.fecha < fecha_limite,
            EventoAuditoria.severidad != NivelSeveridad.CRITICAL.value,
        ).delete(synchronize_session=False)
        rate_limit.purgar_ventanas(db)
    logger.info("Auditoría empresa %s: eliminados %s eventos antiguos", empresa_id, eliminados)
    return eliminados


# ===== Metadatos =====

def acciones_disponibles() -> List[str]:
    return _valores(TipoAccion)


def recursos_disponibles() -> List[str]:
    return _valores(TipoRecurso)


def severidades_disponibles() -> List[str]:
    return _valores(NivelSeveridad)

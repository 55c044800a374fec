"""Datos del cliente HTTP que se adjuntan a los eventos de auditoría."""
from typing import Any, Dict, Optional

from fastapi import Request


def client_ip(request: Request) -> Optional[str]:
    return (
        request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or request.headers.get("X-Real-IP")
        or (request.client.host if request.client else None)
    )


def user_agent(request: Request) -> Optional[str]:
    return request.headers.get("User-Agent")


def contexto_auditoria(request: Request, usuario_id: Optional[int] = None) -> Dict[str, Any]:
    return {"usuario_id": usuario_id, "ip_address": client_ip(request), "user_agent": user_agent(request)}

"""
Validaciones reutilizables y composición explícita de pasos de validación.

Un paso es una función que lanza ValidacionError (u otra ErrorDominio) si la
regla no se cumple y opcionalmente devuelve una lista de advertencias.
Los servicios arman la lista de pasos en el punto de llamada, en el orden
en que deben ejecutarse.
"""
from typing import Any, Callable, Dict, Iterable, List, Optional
import math
from datetime import datetime

from .errores import ValidacionError

Paso = Callable[..., Optional[List[str]]]

PAGINA_LIMITE_MAXIMO = 100


def ejecutar_validaciones(pasos: Iterable[Paso], *args, **kwargs) -> List[str]:
    """Ejecuta los pasos en orden y acumula las advertencias que devuelvan."""
    advertencias: List[str] = []
    for paso in pasos:
        resultado = paso(*args, **kwargs)
        if resultado:
            advertencias.extend(resultado)
    return advertencias


def validar_paginacion(page: int, limit: int) -> None:
    if page < 1:
        raise ValidacionError("La página debe ser mayor a 0")
    if limit < 1 or limit > PAGINA_LIMITE_MAXIMO:
        raise ValidacionError(f"El límite debe estar entre 1 y {PAGINA_LIMITE_MAXIMO}")


def total_paginas(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def fecha_local(valor: Optional[datetime]) -> Optional[datetime]:
    """Normaliza a datetime naive en hora local (las columnas DateTime no guardan zona)."""
    if valor is None or valor.tzinfo is None:
        return valor
    return valor.astimezone().replace(tzinfo=None)


def validar_no_nulos(cambios: Dict[str, Any], modelo) -> None:
    """Rechaza null explícito en columnas NOT NULL del modelo (PATCH parciales)."""
    columnas = modelo.__table__.columns
    nulos = sorted(
        campo for campo, valor in cambios.items()
        if valor is None and campo in columnas and not columnas[campo].nullable
    )
    if nulos:
        raise ValidacionError(f"Los siguientes campos no pueden ser nulos: {', '.join(nulos)}")

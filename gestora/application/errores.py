"""
Excepciones de dominio compartidas por los servicios.
Cada una indica el código HTTP con el que se expone (ver main.py).
"""


class ErrorDominio(Exception):
    """Excepción base para errores de negocio"""
    status_code = 400

    def __init__(self, mensaje: str):
        super().__init__(mensaje)
        self.mensaje = mensaje


class NoEncontradoError(ErrorDominio):
    """La entidad no existe o no pertenece a la empresa"""
    status_code = 404


class ValidacionError(ErrorDominio):
    """Formato, rango o regla de negocio incumplida"""
    status_code = 400


class ConflictoError(ErrorDominio):
    """Nombre duplicado o entidad referenciada que bloquea la operación"""
    status_code = 409


class AccesoDenegadoError(ErrorDominio):
    """El usuario no es miembro de la empresa o no tiene el permiso"""
    status_code = 403


class LimiteExcedidoError(ErrorDominio):
    status_code = 429

from enum import Enum

class EstadoEmpresa(str, Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"

class TipoEmpresa(str, Enum):
    SAC = "SAC"
    SRL = "SRL"
    SA = "SA"
    EIRL = "EIRL"
    SAS = "SAS"
    EMPRESA_INDIVIDUAL = "EMPRESA INDIVIDUAL"

class TipoContribuyente(str, Enum):
    RER = "RER"
    RUS = "RUS"
    GENERAL = "GENERAL"
    MYPE = "MYPE"

class TipoImpuesto(str, Enum):
    IGV = "IGV"
    ISC = "ISC"
    OTRO = "OTRO"

class OrigenPermiso(str, Enum):
    DIRECTO = "directo"
    ROL_EMPRESA = "rol_empresa"
    ROL_SISTEMA = "rol_sistema"

# ===== Documentos de venta =====

class EstadoCotizacion(str, Enum):
    PENDIENTE = "PENDIENTE"
    ENVIADA = "ENVIADA"
    ACEPTADA = "ACEPTADA"
    RECHAZADA = "RECHAZADA"
    VENCIDA = "VENCIDA"
    CONVERTIDA = "CONVERTIDA"  # Ya generó una orden de venta

class EstadoOrdenVenta(str, Enum):
    PENDIENTE = "PENDIENTE"
    APROBADA = "APROBADA"
    CANCELADA = "CANCELADA"
    FACTURADA = "FACTURADA"

class EstadoFactura(str, Enum):
    EMITIDA = "EMITIDA"
    PAGADA = "PAGADA"
    VENCIDA = "VENCIDA"
    ANULADA = "ANULADA"

class TipoNotaCredito(str, Enum):
    ANULACION = "ANULACION"
    DESCUENTO = "DESCUENTO"
    DEVOLUCION = "DEVOLUCION"

class EstadoNotaCredito(str, Enum):
    EMITIDA = "EMITIDA"
    APLICADA = "APLICADA"
    ANULADA = "ANULADA"

class EstadoNotaDebito(str, Enum):
    EMITIDA = "EMITIDA"
    APLICADA = "APLICADA"
    CANCELADA = "CANCELADA"

# ===== Auditoría =====

class TipoAccion(str, Enum):
    CREAR = "crear"
    LEER = "leer"
    ACTUALIZAR = "actualizar"
    ELIMINAR = "eliminar"
    LOGIN = "login"
    LOGOUT = "logout"
    ACCESO_DENEGADO = "acceso_denegado"
    EXPORTAR = "exportar"
    IMPORTAR = "importar"
    CONFIGURAR = "configurar"

class TipoRecurso(str, Enum):
    USUARIO = "usuario"
    EMPRESA = "empresa"
    CLIENTE = "cliente"
    PRODUCTO = "producto"
    VENTA = "venta"
    COMPRA = "compra"
    INVENTARIO = "inventario"
    REPORTE = "reporte"
    CONFIGURACION = "configuracion"
    SISTEMA = "sistema"
    EMAIL = "email"
    WHATSAPP = "whatsapp"
    NOTIFICACION = "notificacion"
    ARCHIVO = "archivo"
    AUDITORIA = "auditoria"

class NivelSeveridad(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

# ===== Valoraciones =====

class EstadoModeracion(str, Enum):
    PENDIENTE = "pendiente"
    APROBADA = "aprobada"
    RECHAZADA = "rechazada"

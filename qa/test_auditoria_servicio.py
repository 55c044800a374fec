"""
Tests del pipeline de auditoría: validación, severidad, límite por minuto,
redacción de secretos, consultas, exportación y depuración.
"""
import io
from datetime import datetime, timedelta

import pytest
from openpyxl import load_workbook

from gestora.application import services_audit as svc
from gestora.application.errores import ValidacionError, LimiteExcedidoError, NoEncontradoError
from gestora.db import SessionLocal
from gestora.domain.models_audit import EventoAuditoria, ContadorAuditoria
from gestora.infrastructure import rate_limit


def _evento(empresa_id, **extra):
    datos = {"empresa_id": empresa_id, "accion": "crear", "recurso": "cliente", "descripcion": "Cliente creado"}
    datos.update(extra)
    return datos


class TestRedaccion:

    def test_claves_sensibles(self):
        datos = {
            "nombre": "Ana",
            "password": "x",
            "apiKey": "y",
            "anidado": {"refresh_token": "z", "valor": 1},
            "lista": [{"client_secret": "s"}],
        }
        redactado = svc.redactar(datos)
        assert redactado["nombre"] == "Ana"
        assert redactado["password"] == "***REDACTED***"
        assert redactado["apiKey"] == "***REDACTED***"
        assert redactado["anidado"] == {"refresh_token": "***REDACTED***", "valor": 1}
        assert redactado["lista"][0]["client_secret"] == "***REDACTED***"

    def test_persistido_redactado(self, db, empresa):
        evento = svc.registrar_evento(db, _evento(
            empresa.id, accion="actualizar", datos_nuevos={"password_hash": "abc", "correo": "a@b.pe"},
        ))
        assert evento.datos_nuevos == {"password_hash": "***REDACTED***", "correo": "a@b.pe"}


class TestRegistro:

    def test_enriquece_con_contexto(self, db, empresa):
        evento = svc.registrar_evento(db, _evento(empresa.id), {"ip_address": "10.0.0.1", "user_agent": "pytest"})
        assert evento.ip_address == "10.0.0.1"
        assert evento.user_agent == "pytest"
        assert evento.severidad == "info"
        assert evento.metadata_["version"] == "1.0.0"

    @pytest.mark.parametrize("extra", [
        {"accion": "eliminar"},
        {"accion": "acceso_denegado"},
        {"recurso": "empresa", "accion": "actualizar"},
        {"recurso": "configuracion", "accion": "actualizar"},
    ])
    def test_severidad_critica_forzada(self, db, empresa, extra):
        evento = svc.registrar_evento(db, _evento(empresa.id, severidad="info", **extra))
        assert evento.severidad == "critical"

    def test_severidad_explicita(self, db, empresa):
        evento = svc.registrar_evento(db, _evento(empresa.id, severidad="warning"))
        assert evento.severidad == "warning"

    @pytest.mark.parametrize("extra", [
        {"accion": "borrar"},
        {"recurso": "nave"},
        {"descripcion": "   "},
        {"descripcion": "x" * 501},
        {"severidad": "fatal"},
    ])
    def test_evento_invalido(self, db, empresa, extra):
        with pytest.raises(ValidacionError):
            svc.registrar_evento(db, _evento(empresa.id, **extra))

    def test_empresa_inexistente(self, db):
        with pytest.raises(NoEncontradoError):
            svc.registrar_evento(db, _evento(9999))

    def test_log_audit_no_propaga_errores(self, empresa):
        assert svc.log_audit(9999, "crear", "cliente", "Sin empresa") is None
        assert svc.log_audit(empresa.id, "crear", "cliente", "Cliente 1", recurso_id=1) is not None


class TestLimitePorMinuto:

    def test_consumir_por_ventana(self, db):
        t = 1_800_000_000.0
        assert rate_limit.consumir(db, "1-7", 2, ahora=t)
        assert rate_limit.consumir(db, "1-7", 2, ahora=t + 1)
        assert not rate_limit.consumir(db, "1-7", 2, ahora=t + 2)
        # Otra clave y la ventana siguiente tienen su propia cuenta
        assert rate_limit.consumir(db, "1-8", 2, ahora=t + 2)
        assert rate_limit.consumir(db, "1-7", 2, ahora=t + 60)
        db.rollback()

    def test_ventana_creada_por_otra_instancia(self, db, monkeypatch):
        """Si otra instancia inserta la ventana entre la lectura y el alta, se suma sobre su fila"""
        t = 1_800_000_000.0
        with SessionLocal() as otra:
            otra.add(ContadorAuditoria(clave="1-9", ventana=rate_limit.ventana_actual(t), conteo=3))
            otra.commit()

        buscar = rate_limit._buscar
        lecturas = []

        def buscar_sin_ver_la_fila(sesion, clave, ventana):
            lecturas.append(ventana)
            return None if len(lecturas) == 1 else buscar(sesion, clave, ventana)

        monkeypatch.setattr(rate_limit, "_buscar", buscar_sin_ver_la_fila)
        assert rate_limit.consumir(db, "1-9", 5, ahora=t)
        db.commit()
        assert len(lecturas) == 2
        assert db.query(ContadorAuditoria).filter(ContadorAuditoria.clave == "1-9").one().conteo == 4

    def test_registrar_excede_limite(self, db, empresa, monkeypatch):
        monkeypatch.setattr(svc.settings, "audit_rate_limit_per_minute", 2)
        contexto = {"ip_address": "10.0.0.9"}
        svc.registrar_evento(db, _evento(empresa.id), contexto)
        svc.registrar_evento(db, _evento(empresa.id), contexto)
        with pytest.raises(LimiteExcedidoError):
            svc.registrar_evento(db, _evento(empresa.id), contexto)
        # El rechazo no deja evento ni suma a la cuenta
        assert db.query(EventoAuditoria).count() == 2


class TestConsultas:

    def test_listar_vacio(self, db, empresa):
        resultado = svc.listar_eventos(db, empresa.id)
        assert resultado["data"] == []
        assert resultado["meta"] == {
            "total": 0, "page": 1, "limit": 10, "totalPages": 0, "hasNextPage": False, "hasPrevPage": False,
        }

    def test_filtros_y_paginacion(self, db, empresa):
        for i in range(3):
            svc.registrar_evento(db, _evento(empresa.id, descripcion=f"Cliente {i}", recurso_id=i))
        svc.registrar_evento(db, _evento(empresa.id, accion="eliminar", descripcion="Cliente borrado"))

        pagina = svc.listar_eventos(db, empresa.id, page=1, limit=3)
        assert pagina["meta"]["total"] == 4
        assert pagina["meta"]["hasNextPage"] is True
        assert pagina["data"][0]["descripcion"] == "Cliente borrado"

        assert svc.listar_eventos(db, empresa.id, {"solo_criticos": True})["meta"]["total"] == 1
        assert svc.listar_eventos(db, empresa.id, {"buscar": "Cliente 1"})["meta"]["total"] == 1

    def test_rango_de_fechas(self, db, empresa):
        ahora = datetime.now()
        with pytest.raises(ValidacionError):
            svc.listar_eventos(db, empresa.id, {"fecha_inicio": ahora, "fecha_fin": ahora - timedelta(days=1)})
        with pytest.raises(ValidacionError):
            svc.listar_eventos(db, empresa.id, {"fecha_inicio": ahora - timedelta(days=400), "fecha_fin": ahora})

    def test_estadisticas(self, db, empresa):
        svc.registrar_evento(db, _evento(empresa.id), {"ip_address": "10.0.0.1"})
        svc.registrar_evento(db, _evento(empresa.id, accion="eliminar"), {"ip_address": "10.0.0.1"})
        stats = svc.estadisticas(db, empresa.id)
        assert stats["total_eventos"] == 2
        assert stats["eventos_por_accion"] == {"crear": 1, "eliminar": 1}
        assert stats["eventos_por_severidad"] == {"info": 1, "critical": 1}
        assert stats["ips_mas_activas"] == [{"ip_address": "10.0.0.1", "total_eventos": 2}]


class TestExportacion:

    def test_excel(self, db, empresa):
        svc.registrar_evento(db, _evento(empresa.id))
        contenido, media_type, nombre = svc.exportar(db, empresa.id, "excel")
        assert nombre.endswith(".xlsx")
        assert "spreadsheetml" in media_type
        ws = load_workbook(io.BytesIO(contenido)).active
        valores = [c for fila in ws.iter_rows(values_only=True) for c in fila]
        assert "Cliente creado" in valores

    def test_csv_y_pdf(self, db, empresa):
        svc.registrar_evento(db, _evento(empresa.id))
        csv_bytes, _, _ = svc.exportar(db, empresa.id, "csv")
        assert "Cliente creado" in csv_bytes.decode("utf-8-sig")
        pdf_bytes, media_type, _ = svc.exportar(db, empresa.id, "pdf")
        assert media_type == "application/pdf"
        assert pdf_bytes.startswith(b"%PDF")

    def test_formato_no_soportado(self, db, empresa):
        with pytest.raises(ValidacionError):
            svc.exportar(db, empresa.id, "xml")


class TestDepuracion:

    @pytest.mark.parametrize("dias", [29, 366])
    def test_retencion_fuera_de_rango(self, db, empresa, dias):
        with pytest.raises(ValidacionError):
            svc.limpiar(db, empresa.id, dias)

    def test_conserva_criticos(self, db, empresa):
        svc.registrar_evento(db, _evento(empresa.id))
        svc.registrar_evento(db, _evento(empresa.id, accion="eliminar"))
        svc.registrar_evento(db, _evento(empresa.id, descripcion="Reciente"))
        antiguos = db.query(EventoAuditoria).filter(EventoAuditoria.descripcion != "Reciente")
        antiguos.update({EventoAuditoria.fecha: datetime.now() - timedelta(days=100)}, synchronize_session=False)
        db.commit()

        assert svc.limpiar(db, empresa.id, 90) == 1
        restantes = {(e.descripcion, e.severidad) for e in db.query(EventoAuditoria).all()}
        assert restantes == {("Cliente creado", "critical"), ("Reciente", "info")}

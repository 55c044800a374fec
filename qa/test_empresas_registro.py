"""
Tests del registro de empresas: RUC, teléfono y membresía
"""
import pytest

from gestora.application import services_empresas as svc
from gestora.application.errores import ValidacionError, ConflictoError, NoEncontradoError


class TestRuc:
    """Formato y dígito verificador del RUC"""

    @pytest.mark.parametrize("ruc", ["20100000009", "20123456786", "20200000006"])
    def test_digito_verificador_valido(self, ruc):
        assert svc.ruc_digito_verificador_valido(ruc)

    def test_digito_verificador_invalido(self):
        """Mismo cuerpo, último dígito distinto"""
        assert not svc.ruc_digito_verificador_valido("20123456789")
        with pytest.raises(ValidacionError, match="dígito verificador"):
            svc.validar_ruc("20123456789")

    @pytest.mark.parametrize("ruc", ["30100000009", "2010000000", "201000000091", "20A00000009", ""])
    def test_formato_invalido(self, ruc):
        with pytest.raises(ValidacionError):
            svc.validar_ruc(ruc)


class TestCrearEmpresa:

    def test_ruc_duplicado(self, db, empresa):
        with pytest.raises(ValidacionError, match="RUC"):
            svc.crear_empresa(db, {
                "nombre": "Otra", "razon_social": "Otra S.A.", "ruc": empresa.ruc, "tipo_empresa": "SA",
            })

    def test_telefono_peruano(self, db):
        with pytest.raises(ValidacionError, match="teléfono"):
            svc.crear_empresa(db, {
                "nombre": "Sur", "razon_social": "Sur SRL", "ruc": "20200000006",
                "tipo_empresa": "SRL", "telefono": "987654321",
            })

    def test_tipo_empresa_en_mayusculas(self, db):
        nueva = svc.crear_empresa(db, {
            "nombre": "Norte", "razon_social": "Norte EIRL", "ruc": "20300000003",
            "tipo_empresa": "eirl", "telefono": "+51987654321",
        })
        assert nueva.tipo_empresa == "EIRL"
        assert nueva.tipo_contribuyente == "RER"
        assert nueva.estado == "activo"

    def test_empresa_inexistente(self, db):
        with pytest.raises(NoEncontradoError):
            svc.obtener_empresa(db, 9999)


class TestMiembros:

    def test_asignar_dos_veces_es_conflicto(self, db, empresa, crear_usuario):
        usuario = crear_usuario("ana")
        svc.asignar_usuario(db, empresa.id, usuario.id)
        assert svc.es_miembro_activo(db, empresa.id, usuario.id)
        with pytest.raises(ConflictoError):
            svc.asignar_usuario(db, empresa.id, usuario.id)

    def test_remover_miembro(self, db, empresa, crear_usuario):
        usuario = crear_usuario("beto")
        svc.asignar_usuario(db, empresa.id, usuario.id)
        svc.remover_usuario(db, empresa.id, usuario.id)
        assert not svc.es_miembro_activo(db, empresa.id, usuario.id)
        with pytest.raises(NoEncontradoError):
            svc.remover_usuario(db, empresa.id, usuario.id)

"""
Tests del registro de archivos: validaciones, cuota, versiones,
eliminación lógica, subida al almacenamiento local y métricas.
"""
from pathlib import Path

import pytest

from gestora.application import services_archivos as svc
from gestora.application.services_catalogo import crear_producto
from gestora.application.errores import ValidacionError, NoEncontradoError
from gestora.infrastructure.storage import LocalFileStorage


def _datos(**extra):
    datos = {
        "nombre_archivo": "contrato.pdf",
        "mime_type": "application/pdf",
        "url_archivo": "https://cdn.example.com/contrato.pdf",
        "tamanio_bytes": 2048,
    }
    datos.update(extra)
    return datos


@pytest.fixture
def producto(db, empresa):
    return crear_producto(db, empresa.id, {"nombre": "Café molido", "precio": 25})


class TestCrearArchivo:

    def test_tipo_segun_mime(self, db, empresa):
        archivo = svc.crear_archivo(db, empresa.id, _datos())
        assert archivo.tipo_archivo == "documento"
        assert archivo.activo is True
        foto = svc.crear_archivo(db, empresa.id, _datos(nombre_archivo="foto.png", mime_type="image/png"))
        assert foto.tipo_archivo == "imagen"

    @pytest.mark.parametrize("extra", [
        {"mime_type": "application/x-msdownload"},
        {"url_archivo": "ftp://servidor/contrato.pdf"},
        {"url_archivo": "no es url"},
        {"tamanio_bytes": 0},
        {"tamanio_bytes": 100 * 1024 * 1024 + 1},
        {"nombre_archivo": "  "},
        {"dimensiones": {"ancho": -10, "alto": 20}},
    ])
    def test_datos_invalidos(self, db, empresa, extra):
        with pytest.raises(ValidacionError):
            svc.crear_archivo(db, empresa.id, _datos(**extra))

    def test_entidad_inexistente(self, db, empresa):
        with pytest.raises(NoEncontradoError):
            svc.crear_archivo(db, empresa.id, _datos(entidad_tipo="producto", entidad_id=999))
        with pytest.raises(ValidacionError, match="no soportado"):
            svc.crear_archivo(db, empresa.id, _datos(entidad_tipo="camion", entidad_id=1))

    def test_cuota_de_empresa(self, db, empresa, monkeypatch):
        monkeypatch.setattr(svc, "CUOTA_EMPRESA", 3000)
        svc.crear_archivo(db, empresa.id, _datos())
        with pytest.raises(ValidacionError, match="almacenamiento"):
            svc.crear_archivo(db, empresa.id, _datos())


class TestCicloDeVida:

    def test_versiones(self, db, empresa):
        archivo = svc.crear_archivo(db, empresa.id, _datos())
        v1 = svc.crear_version(db, empresa.id, archivo.id, "https://cdn.example.com/contrato-v1.pdf", "Firma")
        v2 = svc.crear_version(db, empresa.id, archivo.id, "https://cdn.example.com/contrato-v2.pdf")
        assert (v1.numero_version, v2.numero_version) == (1, 2)
        assert svc.obtener_archivo(db, empresa.id, archivo.id).url_archivo.endswith("contrato-v2.pdf")
        assert [v.numero_version for v in svc.listar_versiones(db, empresa.id, archivo.id)] == [2, 1]

    def test_limite_de_versiones(self, db, empresa, monkeypatch):
        monkeypatch.setattr(svc, "MAX_VERSIONES", 1)
        archivo = svc.crear_archivo(db, empresa.id, _datos())
        svc.crear_version(db, empresa.id, archivo.id, "https://cdn.example.com/v1.pdf")
        with pytest.raises(ValidacionError, match="límite máximo"):
            svc.crear_version(db, empresa.id, archivo.id, "https://cdn.example.com/v2.pdf")

    def test_eliminacion_logica(self, db, empresa):
        archivo = svc.crear_archivo(db, empresa.id, _datos())
        svc.eliminar_archivo(db, empresa.id, archivo.id)
        with pytest.raises(NoEncontradoError):
            svc.obtener_archivo(db, empresa.id, archivo.id)
        assert svc.listar_archivos(db, empresa.id)["total"] == 0

    def test_actualizar(self, db, empresa):
        archivo = svc.crear_archivo(db, empresa.id, _datos())
        actualizado = svc.actualizar_archivo(db, empresa.id, archivo.id, {
            "nombre_archivo": "contrato-firmado.pdf", "metadata": {"origen": "escaner"},
        })
        assert actualizado.nombre_archivo == "contrato-firmado.pdf"
        assert actualizado.metadata_ == {"origen": "escaner"}
        with pytest.raises(ValidacionError):
            svc.actualizar_archivo(db, empresa.id, archivo.id, {"mime_type": "application/x-sh"})


class TestSubida:

    def test_guarda_en_almacenamiento(self, db, empresa, producto, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        archivo = svc.subir_archivo(
            db, empresa.id, "producto", producto.id, "Etiqueta.PNG", "image/png", b"\x89PNG contenido",
            storage=storage,
        )
        ruta = archivo.metadata_["ruta_almacenamiento"]
        assert ruta.startswith(f"{empresa.id}/")
        assert ruta.endswith(".png")
        assert storage.read(ruta) == b"\x89PNG contenido"
        assert archivo.url_archivo.endswith(ruta)
        assert archivo.producto_id == producto.id
        assert [a.id for a in svc.listar_por_entidad(db, empresa.id, "producto", producto.id)] == [archivo.id]

    def test_entidad_inexistente(self, db, empresa, tmp_path):
        storage = LocalFileStorage(str(tmp_path))
        with pytest.raises(NoEncontradoError):
            svc.subir_archivo(db, empresa.id, "producto", 999, "a.pdf", "application/pdf", b"%PDF", storage=storage)
        assert not [p for p in Path(tmp_path).rglob("*") if p.is_file()]

    def test_no_deja_huerfanos(self, db, empresa, producto, tmp_path, monkeypatch):
        """Si el registro falla se borra el archivo ya guardado"""
        def falla(*args, **kwargs):
            raise ValidacionError("fallo de registro")
        monkeypatch.setattr(svc, "crear_archivo", falla)
        storage = LocalFileStorage(str(tmp_path))
        with pytest.raises(ValidacionError):
            svc.subir_archivo(db, empresa.id, "producto", producto.id, "a.pdf", "application/pdf", b"%PDF", storage=storage)
        assert not [p for p in Path(tmp_path).rglob("*") if p.is_file()]

    def test_ruta_fuera_del_almacenamiento(self, tmp_path):
        with pytest.raises(ValueError):
            LocalFileStorage(str(tmp_path)).save("../fuera.txt", b"x")


class TestMetricas:

    def test_metricas(self, db, empresa):
        svc.crear_archivo(db, empresa.id, _datos(tamanio_bytes=1000))
        svc.crear_archivo(db, empresa.id, _datos(nombre_archivo="logo.png", mime_type="image/png", tamanio_bytes=3000))
        borrado = svc.crear_archivo(db, empresa.id, _datos(tamanio_bytes=5000))
        svc.eliminar_archivo(db, empresa.id, borrado.id)

        resultado = svc.metricas(db, empresa.id)
        assert resultado["total_archivos"] == 2
        assert resultado["total_tamanio_bytes"] == 4000
        assert resultado["promedio_tamanio_bytes"] == 2000
        assert {t["tipo"]: t["cantidad"] for t in resultado["por_tipo"]} == {"documento": 1, "imagen": 1}
        assert resultado["mas_grandes"][0]["nombre_archivo"] == "logo.png"

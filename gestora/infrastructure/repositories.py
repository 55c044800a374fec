from sqlalchemy.orm import Session
from ..domain.models import Empresa, RolEmpresa, Permiso

class EmpresaRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id: int): return self.db.get(Empresa, id)
    def by_ruc(self, ruc: str):
        return self.db.query(Empresa).filter(Empresa.ruc == ruc).first()

class RolEmpresaRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, rol: RolEmpresa): self.db.add(rol); return rol
    def get(self, empresa_id: int, rol_id: int):
        return self.db.query(RolEmpresa).filter(RolEmpresa.id == rol_id, RolEmpresa.empresa_id == empresa_id).first()
    def count(self, empresa_id: int) -> int:
        return self.db.query(RolEmpresa).filter(RolEmpresa.empresa_id == empresa_id).count()
    def list(self, empresa_id: int):
        return self.db.query(RolEmpresa).filter(RolEmpresa.empresa_id == empresa_id).order_by(RolEmpresa.nombre).all()

class PermisoRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id: int): return self.db.get(Permiso, id)
    def by_ids(self, ids: list[int]):
        return self.db.query(Permiso).filter(Permiso.id.in_(ids)).all() if ids else []
    def by_codigo(self, recurso: str, accion: str):
        return self.db.query(Permiso).filter(Permiso.recurso == recurso, Permiso.accion == accion).first()
    def list(self):
        return self.db.query(Permiso).order_by(Permiso.recurso, Permiso.accion).all()

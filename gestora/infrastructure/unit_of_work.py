from contextlib import contextmanager
from sqlalchemy.orm import Session
from ..db import SessionLocal
from .repositories import EmpresaRepository, RolEmpresaRepository, PermisoRepository


class UnitOfWork:
    def __init__(self, db: Session = None):
        self._owns_session = db is None
        self.db: Session = db if db is not None else SessionLocal()
        self.empresas = EmpresaRepository(self.db)
        self.roles = RolEmpresaRepository(self.db)
        self.permisos = PermisoRepository(self.db)

    def commit(self): self.db.commit()
    def rollback(self): self.db.rollback()
    def close(self):
        if self._owns_session:
            self.db.close()

    @contextmanager
    def transaction(self):
        """Commit si todo el bloque termina bien; rollback ante cualquier error."""
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self.close()

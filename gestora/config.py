"""
Configuración de la aplicación, leída de variables de entorno o de .env.
"""
import secrets
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    environment: str = Field(default="development", env="ENVIRONMENT")
    debug: bool = Field(default=False, env="DEBUG")

    # Base de datos (SQLite local por defecto; PostgreSQL en despliegue)
    database_url: str = Field(default="sqlite:///./data/gestora.db", env="DATABASE_URL")

    # Tokens
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32), env="SECRET_KEY")
    access_token_expire_minutes: int = Field(default=120, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Administrador que se crea en el primer login (solo desarrollo)
    admin_user: str = Field(default="admin", env="ADMIN_USER")
    admin_pass: str = Field(default="admin", env="ADMIN_PASS")

    # Archivos subidos
    uploads_dir: str | None = Field(default=None, env="UPLOADS_DIR")
    files_base_url: str = Field(default="http://localhost:8000/files", env="FILES_BASE_URL")
    max_upload_size_mb: int = Field(default=100, env="MAX_UPLOAD_SIZE_MB")

    allowed_origins: str = Field(default="http://localhost:5173,http://localhost:3000", env="ALLOWED_ORIGINS")

    # Eventos de auditoría por minuto y actor
    audit_rate_limit_per_minute: int = Field(default=100, env="AUDIT_RATE_LIMIT_PER_MINUTE")

    log_dir: str = Field(default="logs", env="LOG_DIR")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @field_validator("admin_user", "admin_pass", mode="after")
    @classmethod
    def _vacio_a_admin(cls, valor: str) -> str:
        valor = (valor or "").strip()
        return valor or "admin"

    @model_validator(mode="after")
    def _clave_segura_en_produccion(self):
        if self.environment == "production" and len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY debe tener al menos 32 caracteres en producción.")
        return self

    @property
    def allowed_origins_list(self) -> list[str]:
        return [origen.strip() for origen in self.allowed_origins.split(",") if origen.strip()]

    @property
    def uploads_path(self) -> Path:
        """UPLOADS_DIR si está definido; si no, /app/data/uploads en producción o data/uploads del proyecto."""
        if self.uploads_dir:
            return Path(self.uploads_dir)
        if self.environment == "production":
            return Path("/app/data/uploads")
        return BASE_DIR / "data" / "uploads"


settings = Settings()

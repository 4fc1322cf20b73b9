# esocial_auditor/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Identificação do Ambiente ---
    APP_NAME: str = "Auditor eSocial - Rubricas e Remunerações"

    # --- Persistência ---
    # "memory" mantém tudo no processo (dev/testes); "sqlserver" usa o banco abaixo.
    STORE_BACKEND: str = "memory"

    # Se DB_DRIVER for 'FreeTDS', usa pymssql (Mac/Linux)
    # Se DB_DRIVER for '{ODBC Driver 17...}', usa pyodbc (Windows)
    DB_DRIVER: str = "FreeTDS"
    DB_HOST: Optional[str] = None
    DB_PORT: int = 1433
    DB_DATABASE: str = "ESOCIAL_AUDITOR"
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_TIMEOUT: int = 30

    # --- Importação ---
    MAX_ZIP_SIZE_MB: int = 500

    # --- Auditoria ---
    AUDIT_LOOKBACK_MONTHS: int = 60

    # --- Caches (None = vale pela vida do processo) ---
    ROUTER_CACHE_TTL_SECONDS: Optional[float] = None
    PARAMETROS_CACHE_TTL_SECONDS: Optional[float] = None

    # --- Logs ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()


# Instância global
settings = get_settings()

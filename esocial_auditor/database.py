# esocial_auditor/database.py
import contextlib

from esocial_auditor.config import settings
from esocial_auditor.logging_config import log

# Imports condicionais: cada ambiente instala apenas o driver que usa.
pymssql = None
pyodbc = None

try:
    import pymssql
except ImportError:
    pass

try:
    import pyodbc
except ImportError:
    pass


def usa_pymssql() -> bool:
    driver_type = settings.DB_DRIVER.lower()
    return "freetds" in driver_type or "pymssql" in driver_type


class DatabaseFactory:
    @staticmethod
    def get_connection():
        # --- ESTRATÉGIA 1: FreeTDS / Pymssql (Mac/Linux) ---
        if usa_pymssql():
            if not pymssql:
                raise ImportError("Driver 'pymssql' não instalado.")

            return pymssql.connect(
                server=settings.DB_HOST,
                port=settings.DB_PORT,
                user=settings.DB_USER,
                password=settings.DB_PASSWORD,
                database=settings.DB_DATABASE,
                timeout=settings.DB_TIMEOUT,
            )

        # --- ESTRATÉGIA 2: ODBC / Pyodbc (Windows) ---
        if not pyodbc:
            raise ImportError("Driver 'pyodbc' não instalado.")

        conn_str = (
            f"DRIVER={settings.DB_DRIVER};"
            f"SERVER={settings.DB_HOST},{settings.DB_PORT};"
            f"DATABASE={settings.DB_DATABASE};"
            f"UID={settings.DB_USER};"
            f"PWD={settings.DB_PASSWORD};"
            "TrustServerCertificate=yes;"
        )
        return pyodbc.connect(conn_str, timeout=settings.DB_TIMEOUT)


def placeholder() -> str:
    """Marcador de parâmetro do driver ativo (pymssql usa %s, pyodbc usa ?)."""
    return "%s" if usa_pymssql() else "?"


@contextlib.contextmanager
def get_connection():
    conn = None
    try:
        conn = DatabaseFactory.get_connection()
        yield conn
    except Exception as e:
        log.error(f"❌ Erro Crítico de Banco de Dados: {str(e)}")
        raise
    finally:
        if conn:
            conn.close()


def ping() -> bool:
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            return True
    except Exception:
        return False

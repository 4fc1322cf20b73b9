from esocial_auditor.persistence.store import (
    Filtro,
    Ordem,
    Store,
    eq,
    gte,
    in_,
    is_null,
    lte,
    neq,
)
from esocial_auditor.persistence.memory import MemoryStore

__all__ = [
    "Filtro",
    "Ordem",
    "Store",
    "MemoryStore",
    "eq",
    "neq",
    "gte",
    "lte",
    "in_",
    "is_null",
    "get_store",
]


def get_store(backend: str = None) -> Store:
    """Instancia o store configurado (``settings.STORE_BACKEND``)."""
    from esocial_auditor.config import settings

    backend = (backend or settings.STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlserver":
        from esocial_auditor.persistence.sqlserver import SqlServerStore

        return SqlServerStore()
    raise ValueError(f"STORE_BACKEND desconhecido: {backend}")

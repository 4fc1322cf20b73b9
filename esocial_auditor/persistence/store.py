# esocial_auditor/persistence/store.py
"""
Contrato do colaborador de persistência.

O núcleo só precisa de operações simples sobre coleções nomeadas:
select com filtros/ordenação/limite, insert, update, delete e upsert
por chave de conflito. Todas são assíncronas: são os únicos pontos
em que o processamento cede o controle ao event loop.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

OPERADORES = ("eq", "neq", "gte", "lte", "gt", "lt", "in", "is_null")


@dataclass(frozen=True)
class Filtro:
    coluna: str
    operador: str
    valor: Any = None

    def __post_init__(self):
        if self.operador not in OPERADORES:
            raise ValueError(f"Operador de filtro inválido: {self.operador}")


@dataclass(frozen=True)
class Ordem:
    coluna: str
    desc: bool = False


def eq(coluna: str, valor: Any) -> Filtro:
    return Filtro(coluna, "eq", valor)


def neq(coluna: str, valor: Any) -> Filtro:
    return Filtro(coluna, "neq", valor)


def gte(coluna: str, valor: Any) -> Filtro:
    return Filtro(coluna, "gte", valor)


def lte(coluna: str, valor: Any) -> Filtro:
    return Filtro(coluna, "lte", valor)


def in_(coluna: str, valores: Iterable[Any]) -> Filtro:
    return Filtro(coluna, "in", tuple(valores))


def is_null(coluna: str, nulo: bool = True) -> Filtro:
    return Filtro(coluna, "is_null", nulo)


Row = Dict[str, Any]


class Store(Protocol):
    async def select(
        self,
        tabela: str,
        filtros: Sequence[Filtro] = (),
        ordem: Sequence[Ordem] = (),
        limite: Optional[int] = None,
        colunas: Optional[Sequence[str]] = None,
    ) -> List[Row]: ...

    async def insert(self, tabela: str, rows: List[Row]) -> List[Row]: ...

    async def update(
        self, tabela: str, valores: Row, filtros: Sequence[Filtro]
    ) -> int: ...

    async def delete(self, tabela: str, filtros: Sequence[Filtro]) -> int: ...

    async def upsert(
        self, tabela: str, row: Row, on_conflict: Tuple[str, ...]
    ) -> Row: ...

    async def ping(self) -> bool: ...

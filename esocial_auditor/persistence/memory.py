# esocial_auditor/persistence/memory.py
import copy
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from esocial_auditor.persistence.store import Filtro, Ordem, Row


def _comparar(valor: Any, filtro: Filtro) -> bool:
    alvo = filtro.valor
    op = filtro.operador
    if op == "is_null":
        return (valor is None) == bool(alvo)
    if op == "eq":
        return valor == alvo
    if op == "neq":
        return valor != alvo
    if op == "in":
        return valor in alvo
    # Comparações de ordem ignoram nulos, como no SQL.
    if valor is None or alvo is None:
        return False
    if op == "gte":
        return valor >= alvo
    if op == "lte":
        return valor <= alvo
    if op == "gt":
        return valor > alvo
    if op == "lt":
        return valor < alvo
    return False


def _atende(row: Row, filtros: Sequence[Filtro]) -> bool:
    return all(_comparar(row.get(f.coluna), f) for f in filtros)


def _chave_ordem(valor: Any):
    # Nulos por último na ordem crescente.
    return (valor is None, valor if valor is not None else 0)


class MemoryStore:
    """Store em memória: coleções como listas de dicionários."""

    def __init__(self, dados: Optional[Dict[str, List[Row]]] = None):
        self.tabelas: Dict[str, List[Row]] = {}
        for tabela, rows in (dados or {}).items():
            self.tabelas[tabela] = [self._com_metadados(r) for r in rows]

    @staticmethod
    def _com_metadados(row: Row) -> Row:
        novo = dict(row)
        novo.setdefault("id", str(uuid.uuid4()))
        novo.setdefault("created_at", datetime.now().isoformat())
        return novo

    def _tabela(self, tabela: str) -> List[Row]:
        return self.tabelas.setdefault(tabela, [])

    async def select(
        self,
        tabela: str,
        filtros: Sequence[Filtro] = (),
        ordem: Sequence[Ordem] = (),
        limite: Optional[int] = None,
        colunas: Optional[Sequence[str]] = None,
    ) -> List[Row]:
        rows = [r for r in self._tabela(tabela) if _atende(r, filtros)]
        # Ordenação estável aplicada da última chave para a primeira.
        for o in reversed(list(ordem)):
            rows.sort(key=lambda r: _chave_ordem(r.get(o.coluna)), reverse=o.desc)
        if limite is not None:
            rows = rows[:limite]
        if colunas:
            return [{c: r.get(c) for c in colunas} for r in rows]
        return copy.deepcopy(rows)

    async def insert(self, tabela: str, rows: List[Row]) -> List[Row]:
        inseridos = [self._com_metadados(r) for r in rows]
        self._tabela(tabela).extend(inseridos)
        return copy.deepcopy(inseridos)

    async def update(self, tabela: str, valores: Row, filtros: Sequence[Filtro]) -> int:
        count = 0
        for row in self._tabela(tabela):
            if _atende(row, filtros):
                row.update(valores)
                count += 1
        return count

    async def delete(self, tabela: str, filtros: Sequence[Filtro]) -> int:
        rows = self._tabela(tabela)
        restantes = [r for r in rows if not _atende(r, filtros)]
        self.tabelas[tabela] = restantes
        return len(rows) - len(restantes)

    async def upsert(self, tabela: str, row: Row, on_conflict: Tuple[str, ...]) -> Row:
        for existente in self._tabela(tabela):
            if all(existente.get(c) == row.get(c) for c in on_conflict):
                existente.update(row)
                return copy.deepcopy(existente)
        (inserido,) = await self.insert(tabela, [row])
        return inserido

    async def ping(self) -> bool:
        return True

# esocial_auditor/persistence/sqlserver.py
"""
Store sobre SQL Server, usando a mesma fábrica de conexões (pymssql/pyodbc).

As chamadas ao driver são bloqueantes; cada operação roda numa thread
(``asyncio.to_thread``) para que o event loop só fique suspenso na fronteira
de persistência.
"""

import asyncio
import json
import re
import uuid
from typing import Any, List, Optional, Sequence, Tuple

from esocial_auditor import database
from esocial_auditor.exceptions import PersistenceError
from esocial_auditor.persistence.store import Filtro, Ordem, Row

_IDENTIFICADOR_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_OPERADORES_SQL = {
    "eq": "=",
    "neq": "<>",
    "gte": ">=",
    "lte": "<=",
    "gt": ">",
    "lt": "<",
}

# Colunas gravadas como JSON (listas/dicionários).
COLUNAS_JSON = {"erros", "avisos"}


def _ident(nome: str) -> str:
    if not _IDENTIFICADOR_RE.match(nome):
        raise ValueError(f"Identificador SQL inválido: {nome!r}")
    return f"[{nome}]"


def _valor_sql(coluna: str, valor: Any) -> Any:
    if coluna in COLUNAS_JSON and valor is not None and not isinstance(valor, str):
        return json.dumps(valor, ensure_ascii=False)
    return valor


def build_where(filtros: Sequence[Filtro], ph: str) -> Tuple[str, list]:
    partes: List[str] = []
    params: list = []
    for f in filtros:
        col = _ident(f.coluna)
        if f.operador == "is_null":
            partes.append(f"{col} IS NULL" if f.valor else f"{col} IS NOT NULL")
        elif f.operador == "in":
            if not f.valor:
                # IN () vazio nunca casa.
                partes.append("1 = 0")
                continue
            partes.append(f"{col} IN ({', '.join([ph] * len(f.valor))})")
            params.extend(f.valor)
        elif f.operador == "eq" and f.valor is None:
            partes.append(f"{col} IS NULL")
        else:
            partes.append(f"{col} {_OPERADORES_SQL[f.operador]} {ph}")
            params.append(f.valor)
    if not partes:
        return "", params
    return " WHERE " + " AND ".join(partes), params


def build_select(
    tabela: str,
    filtros: Sequence[Filtro],
    ordem: Sequence[Ordem],
    limite: Optional[int],
    colunas: Optional[Sequence[str]],
    ph: str,
) -> Tuple[str, list]:
    cols = ", ".join(_ident(c) for c in colunas) if colunas else "*"
    top = f"TOP {int(limite)} " if limite is not None else ""
    where, params = build_where(filtros, ph)
    sql = f"SELECT {top}{cols} FROM {_ident(tabela)} WITH (NOLOCK){where}"
    if ordem:
        sql += " ORDER BY " + ", ".join(
            f"{_ident(o.coluna)} {'DESC' if o.desc else 'ASC'}" for o in ordem
        )
    return sql, params


def build_insert(tabela: str, row: Row, ph: str) -> Tuple[str, list]:
    colunas = list(row.keys())
    sql = (
        f"INSERT INTO {_ident(tabela)} ({', '.join(_ident(c) for c in colunas)}) "
        f"OUTPUT INSERTED.* VALUES ({', '.join([ph] * len(colunas))})"
    )
    return sql, [_valor_sql(c, row[c]) for c in colunas]


def build_update(tabela: str, valores: Row, filtros: Sequence[Filtro], ph: str) -> Tuple[str, list]:
    sets = ", ".join(f"{_ident(c)} = {ph}" for c in valores)
    where, params = build_where(filtros, ph)
    return (
        f"UPDATE {_ident(tabela)} SET {sets}{where}",
        [_valor_sql(c, v) for c, v in valores.items()] + params,
    )


def build_delete(tabela: str, filtros: Sequence[Filtro], ph: str) -> Tuple[str, list]:
    where, params = build_where(filtros, ph)
    return f"DELETE FROM {_ident(tabela)}{where}", params


def build_merge(tabela: str, row: Row, on_conflict: Tuple[str, ...], ph: str) -> Tuple[str, list]:
    colunas = list(row.keys())
    origem = ", ".join(f"{ph} AS {_ident(c)}" for c in colunas)
    cond = " AND ".join(f"alvo.{_ident(c)} = origem.{_ident(c)}" for c in on_conflict)
    atualizar = [c for c in colunas if c not in on_conflict and c != "id"]
    sets = ", ".join(f"alvo.{_ident(c)} = origem.{_ident(c)}" for c in atualizar)
    cols = ", ".join(_ident(c) for c in colunas)
    vals = ", ".join(f"origem.{_ident(c)}" for c in colunas)
    sql = f"MERGE {_ident(tabela)} AS alvo USING (SELECT {origem}) AS origem ON {cond}"
    if sets:
        sql += f" WHEN MATCHED THEN UPDATE SET {sets}"
    sql += f" WHEN NOT MATCHED THEN INSERT ({cols}) VALUES ({vals}) OUTPUT INSERTED.*;"
    return sql, [_valor_sql(c, row[c]) for c in colunas]


def _rows_to_dicts(cursor) -> List[Row]:
    if not cursor.description:
        return []
    nomes = [d[0] for d in cursor.description]
    rows = []
    for valores in cursor.fetchall():
        row = dict(zip(nomes, valores))
        for coluna in COLUNAS_JSON & row.keys():
            if isinstance(row[coluna], str):
                row[coluna] = json.loads(row[coluna])
        rows.append(row)
    return rows


class SqlServerStore:
    """Implementação do ``Store`` sobre SQL Server."""

    def _executar(self, tabela: str, sql: str, params: list, retorna: bool) -> Any:
        try:
            with database.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(sql, tuple(params))
                resultado = _rows_to_dicts(cursor) if retorna else cursor.rowcount
                conn.commit()
                return resultado
        except Exception as e:
            raise PersistenceError(str(e), tabela=tabela) from e

    async def _run(self, tabela: str, sql: str, params: list, retorna: bool = True):
        return await asyncio.to_thread(self._executar, tabela, sql, params, retorna)

    async def select(
        self,
        tabela: str,
        filtros: Sequence[Filtro] = (),
        ordem: Sequence[Ordem] = (),
        limite: Optional[int] = None,
        colunas: Optional[Sequence[str]] = None,
    ) -> List[Row]:
        sql, params = build_select(
            tabela, filtros, ordem, limite, colunas, database.placeholder()
        )
        return await self._run(tabela, sql, params)

    async def insert(self, tabela: str, rows: List[Row]) -> List[Row]:
        inseridos: List[Row] = []
        for row in rows:
            row = {"id": str(uuid.uuid4()), **row}
            sql, params = build_insert(tabela, row, database.placeholder())
            inseridos.extend(await self._run(tabela, sql, params))
        return inseridos

    async def update(self, tabela: str, valores: Row, filtros: Sequence[Filtro]) -> int:
        sql, params = build_update(tabela, valores, filtros, database.placeholder())
        return await self._run(tabela, sql, params, retorna=False)

    async def delete(self, tabela: str, filtros: Sequence[Filtro]) -> int:
        sql, params = build_delete(tabela, filtros, database.placeholder())
        return await self._run(tabela, sql, params, retorna=False)

    async def upsert(self, tabela: str, row: Row, on_conflict: Tuple[str, ...]) -> Row:
        row = {"id": str(uuid.uuid4()), **row}
        sql, params = build_merge(tabela, row, on_conflict, database.placeholder())
        rows = await self._run(tabela, sql, params)
        return rows[0] if rows else row

    async def ping(self) -> bool:
        return await asyncio.to_thread(database.ping)

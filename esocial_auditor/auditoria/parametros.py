# esocial_auditor/auditoria/parametros.py
"""
Resolvedor de parâmetros tributários vigentes.

Busca o snapshot mais recente com ``vigencia_ano <= ano alvo`` e as faixas de
INSS/IRRF do mesmo (ano, mês). Nunca falha para o chamador: sem snapshot ou
em qualquer erro de leitura devolve os valores padrão compilados.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

from esocial_auditor.auditoria.calculations import (
    DEFAULT_PARAMETROS,
    INSS_FAIXAS_2024,
    IRRF_FAIXAS_2024,
    FaixaINSS,
    FaixaIRRF,
)
from esocial_auditor.logging_config import log
from esocial_auditor.persistence import Ordem, Store, eq, is_null, lte
from esocial_auditor.shared.cache import TtlCache
from esocial_auditor.shared.utils import safe_float


@dataclass
class ParametrosAuditoria:
    parametros: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PARAMETROS))
    faixas_inss: List[FaixaINSS] = field(default_factory=lambda: list(INSS_FAIXAS_2024))
    faixas_irrf: List[FaixaIRRF] = field(default_factory=lambda: list(IRRF_FAIXAS_2024))
    vigencia: Optional[str] = None  # None = padrão compilado


def parametros_padrao() -> ParametrosAuditoria:
    return ParametrosAuditoria()


def _ano_alvo(competencia: Optional[str], hoje: Optional[date] = None) -> int:
    if competencia:
        try:
            ano, mes = (int(p) for p in competencia[:7].split("-"))
            if ano and mes:
                return ano
        except ValueError:
            pass
    return (hoje or date.today()).year


class ParametrosResolver:
    """Uma instância por processo; injetada no motor de auditoria."""

    def __init__(self, store: Store, cache: Optional[TtlCache] = None):
        self.store = store
        self.cache = cache if cache is not None else TtlCache()

    def invalidate(self) -> None:
        self.cache.invalidate()
        log.info("Cache de parâmetros tributários limpo.")

    async def get_parametros_vigentes(
        self, competencia: Optional[str] = None, hoje: Optional[date] = None
    ) -> ParametrosAuditoria:
        ano = _ano_alvo(competencia, hoje)

        cached = self.cache.get(ano)
        if cached is not None:
            return cached

        try:
            resolvidos = await self._carregar(ano)
        except Exception as e:
            log.warning(f"⚠️ Falha ao carregar parâmetros tributários ({ano}); usando padrão: {e}")
            return parametros_padrao()

        if resolvidos is None:
            log.warning(f"Nenhum snapshot de parâmetros até {ano}; usando tabela padrão 2024.")
            return parametros_padrao()

        self.cache.set(ano, resolvidos)
        return resolvidos

    async def _carregar(self, ano: int) -> Optional[ParametrosAuditoria]:
        snapshots = await self.store.select(
            "parametros_sistema",
            filtros=[is_null("empresa_id"), lte("vigencia_ano", ano)],
            ordem=[Ordem("vigencia_ano", desc=True), Ordem("vigencia_mes", desc=True)],
            limite=1,
        )
        if not snapshots:
            return None
        snap = snapshots[0]

        filtros_faixa = [
            is_null("empresa_id"),
            eq("vigencia_ano", snap["vigencia_ano"]),
            eq("vigencia_mes", snap["vigencia_mes"]),
        ]
        inss_rows = await self.store.select("faixas_inss", filtros_faixa, [Ordem("ordem")])
        irrf_rows = await self.store.select("faixas_irrf", filtros_faixa, [Ordem("ordem")])

        faixas_inss = [
            FaixaINSS(safe_float(f["valor_limite"]), safe_float(f["aliquota"]))
            for f in inss_rows
        ]
        # Teto vazio na última faixa de IRRF significa "sem limite".
        faixas_irrf = [
            FaixaIRRF(
                safe_float(f["valor_limite"]) if f.get("valor_limite") else float("inf"),
                safe_float(f["aliquota"]),
                safe_float(f.get("valor_deducao")),
            )
            for f in irrf_rows
        ]

        parametros = dict(DEFAULT_PARAMETROS)
        for chave in DEFAULT_PARAMETROS:
            if snap.get(chave) is not None:
                parametros[chave] = safe_float(snap[chave])

        return ParametrosAuditoria(
            parametros=parametros,
            faixas_inss=faixas_inss or list(INSS_FAIXAS_2024),
            faixas_irrf=faixas_irrf or list(IRRF_FAIXAS_2024),
            vigencia=f"{snap['vigencia_ano']}-{int(snap['vigencia_mes']):02d}",
        )

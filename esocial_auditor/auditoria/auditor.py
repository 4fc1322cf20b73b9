# esocial_auditor/auditoria/auditor.py

"""
Motor de auditoria de rubricas.

Modo principal (por rubrica): compara as incidências declaradas no S-1010
(INSS, FGTS, IRRF) com a base de conhecimento legal da natureza da rubrica,
respeita suspensões judiciais e estima o impacto financeiro a partir dos
proventos pagos no período.

Modo legado (por remuneração): recalcula as bases de cada remuneração a partir
dos itens e compara com as bases gravadas, com tolerância de 1%.
"""

import asyncio
import weakref
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

import pandas as pd

from esocial_auditor.auditoria.models import (
    AuditResult,
    Classificacao,
    Divergencia,
    Severidade,
    StatusRubrica,
    TipoImpacto,
    Tributo,
    TributoAfetado,
)
from esocial_auditor.auditoria.parametros import ParametrosResolver
from esocial_auditor.config import settings
from esocial_auditor.esocial.importer import agrupar_por_codigo, rubrica_vigente
from esocial_auditor.logging_config import log
from esocial_auditor.persistence import Ordem, Store, eq, gte, in_, lte
from esocial_auditor.shared.competencia import (
    compare_competencias,
    competencia_atual,
    competencia_meses_atras,
    validate_competencia,
)
from esocial_auditor.shared.utils import arredondar_centavos, incidencia_ativa, safe_float

# Valores de suspensão que cobrem os três tributos.
SUSPENSAO_TOTAL = {"TODOS", "ALL"}

ALIQUOTA_INSS_SEGURADO = 0.14
ALIQUOTA_IRRF_ESTIMADA = 0.275  # teto da tabela progressiva

TOLERANCIA_LEGADO = 0.01

# tributo -> (campo da rubrica, campo da base de conhecimento, tributo afetado)
CAMPOS_TRIBUTO: Dict[Tributo, Tuple[str, str, TributoAfetado]] = {
    Tributo.INSS: ("incid_inss", "incid_inss_padrao", TributoAfetado.INSS_PATRONAL),
    Tributo.FGTS: ("incid_fgts", "incid_fgts_padrao", TributoAfetado.FGTS),
    Tributo.IRRF: ("incid_irrf", "incid_irrf_padrao", TributoAfetado.IRRF),
}

# Citação usada quando a base de conhecimento não traz fundamentação.
FUNDAMENTO_PADRAO: Dict[Tributo, Dict[TipoImpacto, str]] = {
    Tributo.INSS: {
        TipoImpacto.RISCO: "Art. 28, Lei 8.212/91",
        TipoImpacto.OPORTUNIDADE: "Art. 28, §9, Lei 8.212/91",
    },
    Tributo.FGTS: {
        TipoImpacto.RISCO: "Art. 15, Lei 8.036/90",
        TipoImpacto.OPORTUNIDADE: "Art. 28, §9, Lei 8.212/91",
    },
    Tributo.IRRF: {
        TipoImpacto.RISCO: "Art. 7, Lei 7.713/88",
        TipoImpacto.OPORTUNIDADE: "Art. 6, Lei 7.713/88",
    },
}


# --- REGRAS PURAS ---


def determine_impact_type(
    cliente_incide: bool, legal_incide: bool, tem_processo: bool = False
) -> Classificacao:
    if cliente_incide == legal_incide:
        return Classificacao(TipoImpacto.INFORMATIVO, justificado=True)
    # Processo judicial legitima o tratamento divergente.
    if tem_processo:
        return Classificacao(TipoImpacto.INFORMATIVO, justificado=True)
    if cliente_incide and not legal_incide:
        return Classificacao(TipoImpacto.OPORTUNIDADE, justificado=False)
    return Classificacao(TipoImpacto.RISCO, justificado=False)


def classificar_severidade(impacto: float) -> Severidade:
    if impacto > 10000:
        return Severidade.HIGH
    if impacto > 1000:
        return Severidade.MEDIUM
    return Severidade.LOW


def aliquota_tributo(tributo: TributoAfetado, parametros: Dict[str, float]) -> float:
    """Alíquota (fração) usada para estimar o impacto de cada tributo."""
    if tributo == TributoAfetado.INSS_PATRONAL:
        return parametros["aliquota_inss_patronal"] / 100
    if tributo == TributoAfetado.INSS_SEGURADO:
        return ALIQUOTA_INSS_SEGURADO
    if tributo == TributoAfetado.INSS_RAT:
        return parametros["aliquota_rat"] / 100
    if tributo == TributoAfetado.FGTS:
        return parametros["aliquota_fgts"] / 100
    if tributo == TributoAfetado.IRRF:
        return ALIQUOTA_IRRF_ESTIMADA
    if tributo == TributoAfetado.MULTIPLO:
        return (parametros["aliquota_inss_patronal"] + parametros["aliquota_fgts"]) / 100
    return 0.0


def calcular_impacto(
    total_base: float, tributo: TributoAfetado, parametros: Dict[str, float]
) -> float:
    return arredondar_centavos(total_base * aliquota_tributo(tributo, parametros))


def tem_suspensao(tributos_suspensos: Iterable[str], tributo: Tributo) -> bool:
    suspensos = set(tributos_suspensos)
    return tributo.value in suspensos or bool(suspensos & SUSPENSAO_TOTAL)


def suspensoes_por_rubrica(
    vinculos: Iterable[dict],
    processos: Iterable[dict],
    competencia_inicio: Optional[str] = None,
) -> Dict[str, Set[str]]:
    """
    rubrica_id -> tributos suspensos. Vínculos cujo processo encerrou a
    vigência antes do início da auditoria são ignorados.
    """
    fim_por_processo = {p["id"]: p.get("fim_valid") for p in processos}
    resultado: Dict[str, Set[str]] = {}
    for v in vinculos:
        fim = fim_por_processo.get(v.get("processo_id"))
        fim = str(fim) if fim else None
        if (
            fim
            and competencia_inicio
            and validate_competencia(fim[:7])
            and compare_competencias(fim[:7], competencia_inicio) < 0
        ):
            continue
        tributo = (v.get("tributo_suspenso") or "").strip().upper()
        if tributo:
            resultado.setdefault(v["rubrica_id"], set()).add(tributo)
    return resultado


def status_rubrica(cliente_incide: bool, legal_incide: Optional[bool], suspenso: bool) -> StatusRubrica:
    """Status de um tributo na visão de análise (None = natureza não mapeada)."""
    if legal_incide is None:
        return StatusRubrica.NAO_MAPEADO
    if suspenso or cliente_incide == legal_incide:
        return StatusRubrica.CONFORME
    if cliente_incide and not legal_incide:
        return StatusRubrica.OPORTUNIDADE
    return StatusRubrica.RISCO


def status_geral(status: Iterable[StatusRubrica]) -> StatusRubrica:
    """Risco > oportunidade > não mapeado > conforme."""
    status = set(status)
    for candidato in (StatusRubrica.RISCO, StatusRubrica.OPORTUNIDADE, StatusRubrica.NAO_MAPEADO):
        if candidato in status:
            return candidato
    return StatusRubrica.CONFORME


def _descricao(tributo: Tributo, tipo: TipoImpacto, codigo: str, fundamento: str) -> str:
    if tipo == TipoImpacto.RISCO:
        return f"Rubrica {codigo} não tributa {tributo.value} mas deveria. Base legal: {fundamento}"
    credito = "Possível restituição" if tributo == Tributo.IRRF else "Possível crédito"
    return f"Rubrica {codigo} tributa {tributo.value} indevidamente. {credito}. Base legal: {fundamento}"


# --- MOTOR ---


class AuditoriaEngine:
    """
    Uma instância por processo. Auditorias da mesma empresa são serializadas
    por um lock por empresa (a troca delete+insert de divergências não é atômica).
    """

    def __init__(
        self,
        store: Store,
        resolver: ParametrosResolver,
        lookback_meses: Optional[int] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.lookback_meses = (
            lookback_meses if lookback_meses is not None else settings.AUDIT_LOOKBACK_MONTHS
        )
        # Some da tabela quando nenhuma auditoria da empresa segura mais o lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock(self, empresa_id: str) -> asyncio.Lock:
        lock = self._locks.get(empresa_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[empresa_id] = lock
        return lock

    # --- Carregamentos ---

    async def _load_base_conhecimento(self) -> Dict[str, dict]:
        try:
            rows = await self.store.select("base_conhecimento_rubricas")
        except Exception as e:
            log.error(f"❌ Erro ao carregar base de conhecimento: {e}")
            return {}
        return {row["natureza_rubrica"]: row for row in rows if row.get("natureza_rubrica")}

    async def _load_suspensoes(
        self, empresa_id: str, competencia_inicio: Optional[str]
    ) -> Dict[str, Set[str]]:
        try:
            processos, vinculos = await asyncio.gather(
                self.store.select("processos_judiciais", [eq("empresa_id", empresa_id)]),
                self.store.select("rubrica_processo_vinculo", [eq("empresa_id", empresa_id)]),
            )
        except Exception as e:
            log.error(f"❌ Erro ao carregar processos judiciais da empresa {empresa_id}: {e}")
            return {}
        return suspensoes_por_rubrica(vinculos, processos, competencia_inicio)

    async def _totais_proventos(
        self, empresa_id: str, competencia_inicio: str, competencia_fim: str
    ) -> Dict[str, float]:
        """Soma dos itens de natureza provento por código de rubrica, no período."""
        remuneracoes = await self.store.select(
            "remuneracoes",
            [
                eq("empresa_id", empresa_id),
                gte("competencia", competencia_inicio),
                lte("competencia", competencia_fim),
            ],
            colunas=["id"],
        )
        if not remuneracoes:
            return {}

        itens = await self.store.select(
            "itens_remuneracao",
            [in_("remuneracao_id", [r["id"] for r in remuneracoes]), eq("natureza", "provento")],
            colunas=["codigo_rubrica", "valor"],
        )
        if not itens:
            return {}

        df = pd.DataFrame(itens)
        df["valor"] = df["valor"].map(safe_float)
        return df.groupby("codigo_rubrica")["valor"].sum().to_dict()

    # --- Modo por rubrica ---

    def periodo_padrao(self, hoje: Optional[date] = None) -> Tuple[str, str]:
        return competencia_meses_atras(self.lookback_meses, hoje), competencia_atual(hoje)

    async def run_audit(
        self,
        empresa_id: str,
        competencia_inicio: Optional[str] = None,
        competencia_fim: Optional[str] = None,
        hoje: Optional[date] = None,
    ) -> AuditResult:
        inicio_padrao, fim_padrao = self.periodo_padrao(hoje)
        inicio = competencia_inicio or inicio_padrao
        fim = competencia_fim or fim_padrao

        async with self._lock(empresa_id):
            return await self._run_audit(empresa_id, inicio, fim)

    async def _run_audit(self, empresa_id: str, inicio: str, fim: str) -> AuditResult:
        result = AuditResult(competencia_inicio=inicio, competencia_fim=fim)
        log.info(f"Auditoria de rubricas: empresa {empresa_id}, {inicio} a {fim}")

        base_conhecimento, suspensoes, parametros = await asyncio.gather(
            self._load_base_conhecimento(),
            self._load_suspensoes(empresa_id, inicio),
            self.resolver.get_parametros_vigentes(fim),
        )

        try:
            rubricas = await self.store.select(
                "rubricas", [eq("empresa_id", empresa_id)], [Ordem("codigo")]
            )
            totais = await self._totais_proventos(empresa_id, inicio, fim)
        except Exception as e:
            log.error(f"❌ Erro ao carregar rubricas/remunerações da empresa {empresa_id}: {e}")
            result.erros.append(str(e))
            return result

        result.rubricas_analisadas = len(rubricas)
        com_divergencia: Set[str] = set()

        for rubrica in rubricas:
            natureza = rubrica.get("natureza_rubrica")
            padrao = base_conhecimento.get(natureza) if natureza else None
            if not padrao:
                result.rubricas_nao_mapeadas += 1
                continue

            suspensos = suspensoes.get(rubrica["id"], set())
            total_base = totais.get(rubrica["codigo"], 0.0)

            for tributo, (campo, campo_padrao, afetado) in CAMPOS_TRIBUTO.items():
                cliente = incidencia_ativa(rubrica.get(campo))
                legal = incidencia_ativa(padrao.get(campo_padrao))
                analise = determine_impact_type(cliente, legal, tem_suspensao(suspensos, tributo))
                if analise.justificado:
                    continue

                impacto = calcular_impacto(total_base, afetado, parametros.parametros)
                if impacto <= 0:
                    continue

                fundamento = padrao.get("fundamentacao_legal")
                result.divergencias.append(
                    Divergencia(
                        empresa_id=empresa_id,
                        tipo=tributo.value,
                        tipo_impacto=analise.tipo,
                        tributo_afetado=afetado,
                        natureza_rubrica=natureza,
                        descricao=_descricao(
                            tributo,
                            analise.tipo,
                            rubrica["codigo"],
                            fundamento or FUNDAMENTO_PADRAO[tributo][analise.tipo],
                        ),
                        valor_original=impacto if cliente else 0.0,
                        valor_recalculado=impacto if legal else 0.0,
                        diferenca=impacto,
                        severidade=classificar_severidade(impacto),
                        fundamento_legal=fundamento,
                        competencia_inicio=inicio,
                        competencia_fim=fim,
                    )
                )
                com_divergencia.add(rubrica["id"])
                if analise.tipo == TipoImpacto.RISCO:
                    result.total_risco += impacto
                else:
                    result.total_oportunidade += impacto

        result.rubricas_com_divergencia = len(com_divergencia)
        result.total_risco = arredondar_centavos(result.total_risco)
        result.total_oportunidade = arredondar_centavos(result.total_oportunidade)
        result.total_divergencias = len(result.divergencias)
        result.impacto_financeiro = arredondar_centavos(
            result.total_risco + result.total_oportunidade
        )

        await self._substituir_divergencias(empresa_id, inicio, fim, result)

        log.success(
            f"Auditoria concluída ({empresa_id}): {result.total_divergencias} divergência(s), "
            f"risco R$ {result.total_risco:.2f}, oportunidade R$ {result.total_oportunidade:.2f}, "
            f"{result.rubricas_nao_mapeadas} rubrica(s) não mapeada(s)"
        )
        return result

    async def _substituir_divergencias(
        self, empresa_id: str, inicio: str, fim: str, result: AuditResult
    ) -> None:
        """Remove as divergências cujo período se sobrepõe ao auditado e grava as novas."""
        try:
            await self.store.delete(
                "divergencias",
                [
                    eq("empresa_id", empresa_id),
                    lte("competencia_inicio", fim),
                    gte("competencia_fim", inicio),
                ],
            )
            if result.divergencias:
                await self.store.insert(
                    "divergencias", [d.to_row() for d in result.divergencias]
                )
        except Exception as e:
            log.error(f"❌ Erro ao gravar divergências da empresa {empresa_id}: {e}")
            result.erros.append(str(e))

    # --- Modo legado (bases por remuneração) ---

    async def run_audit_legacy(
        self, empresa_id: str, competencia: Optional[str] = None
    ) -> AuditResult:
        async with self._lock(empresa_id):
            return await self._run_audit_legacy(empresa_id, competencia)

    async def _run_audit_legacy(self, empresa_id: str, competencia: Optional[str]) -> AuditResult:
        result = AuditResult(competencia_inicio=competencia, competencia_fim=competencia)

        filtros = [eq("empresa_id", empresa_id)]
        if competencia:
            filtros.append(eq("competencia", competencia))
        try:
            remuneracoes = await self.store.select(
                "remuneracoes", filtros, [Ordem("competencia")]
            )
            if not remuneracoes:
                return result

            rubricas = agrupar_por_codigo(
                await self.store.select(
                    "rubricas", [eq("empresa_id", empresa_id)], [Ordem("ini_valid", desc=True)]
                )
            )
        except Exception as e:
            log.error(f"❌ Erro ao carregar remunerações/rubricas da empresa {empresa_id}: {e}")
            result.erros.append(str(e))
            return result
        result.rubricas_analisadas = len(rubricas)

        for rem in remuneracoes:
            try:
                await self._auditar_remuneracao(empresa_id, rem, rubricas, result)
            except Exception as e:
                log.error(f"❌ Erro na auditoria da remuneração {rem['id']}: {e}")
                result.erros.append(f"Remuneração {rem['id']}: {e}")

        if result.divergencias:
            try:
                await self.store.insert(
                    "divergencias", [d.to_row() for d in result.divergencias]
                )
            except Exception as e:
                log.error(f"❌ Erro ao gravar divergências da empresa {empresa_id}: {e}")
                result.erros.append(str(e))

        result.total_risco = arredondar_centavos(result.total_risco)
        result.total_oportunidade = arredondar_centavos(result.total_oportunidade)
        result.total_divergencias = len(result.divergencias)
        result.impacto_financeiro = arredondar_centavos(
            result.total_risco + result.total_oportunidade
        )

        for comp in sorted({r["competencia"] for r in remuneracoes}):
            try:
                await self._atualizar_contagem_apuracao(empresa_id, comp)
            except Exception as e:
                log.error(f"❌ Erro ao atualizar apuração {comp} da empresa {empresa_id}: {e}")
                result.erros.append(f"Apuração {comp}: {e}")

        log.success(
            f"Auditoria legada concluída ({empresa_id}): {result.total_divergencias} divergência(s)"
        )
        return result

    async def _auditar_remuneracao(
        self, empresa_id: str, rem: dict, rubricas: Dict[str, List[dict]], result: AuditResult
    ) -> None:
        competencia = rem["competencia"]
        itens = await self.store.select(
            "itens_remuneracao", [eq("remuneracao_id", rem["id"])], [Ordem("ordem")]
        )
        await self.store.delete("divergencias", [eq("remuneracao_id", rem["id"])])

        bases = {Tributo.INSS: 0.0, Tributo.IRRF: 0.0, Tributo.FGTS: 0.0}

        for item in itens:
            valor = safe_float(item.get("valor"))
            registros = rubricas.get(item["codigo_rubrica"])

            if not registros:
                result.divergencias.append(
                    Divergencia(
                        empresa_id=empresa_id,
                        remuneracao_id=rem["id"],
                        item_remuneracao_id=item["id"],
                        tipo="Rubrica",
                        tipo_impacto=TipoImpacto.RISCO,
                        tributo_afetado=TributoAfetado.MULTIPLO,
                        descricao=f"Rubrica {item['codigo_rubrica']} não cadastrada na tabela S-1010",
                        valor_original=valor,
                        valor_recalculado=0.0,
                        diferenca=valor,
                        severidade=Severidade.HIGH,
                        competencia_inicio=competencia,
                        competencia_fim=competencia,
                    )
                )
                result.total_risco += valor
                continue

            # Fora da janela de validade vale o registro mais recente do código
            rubrica = rubrica_vigente(rubricas, item["codigo_rubrica"], competencia) or registros[0]
            if item.get("natureza") == "provento":
                for tributo, (campo, _, _) in CAMPOS_TRIBUTO.items():
                    if incidencia_ativa(rubrica.get(campo)):
                        bases[tributo] += valor

        comparacoes = [
            (Tributo.INSS, "base_inss", TributoAfetado.INSS_SEGURADO),
            (Tributo.IRRF, "base_irrf", TributoAfetado.IRRF),
            (Tributo.FGTS, "base_fgts", TributoAfetado.FGTS),
        ]
        for tributo, campo_base, afetado in comparacoes:
            declarada = safe_float(rem.get(campo_base))
            recalculada = arredondar_centavos(bases[tributo])
            diferenca = arredondar_centavos(recalculada - declarada)
            if abs(diferenca) <= TOLERANCIA_LEGADO * declarada:
                continue

            tipo = TipoImpacto.RISCO if diferenca > 0 else TipoImpacto.OPORTUNIDADE
            result.divergencias.append(
                Divergencia(
                    empresa_id=empresa_id,
                    remuneracao_id=rem["id"],
                    tipo=tributo.value,
                    tipo_impacto=tipo,
                    tributo_afetado=afetado,
                    descricao=f"Base de cálculo do {tributo.value} divergente",
                    valor_original=declarada,
                    valor_recalculado=recalculada,
                    diferenca=diferenca,
                    severidade=Severidade.MEDIUM,
                    competencia_inicio=competencia,
                    competencia_fim=competencia,
                )
            )
            if tipo == TipoImpacto.RISCO:
                result.total_risco += abs(diferenca)
            else:
                result.total_oportunidade += abs(diferenca)

    async def _atualizar_contagem_apuracao(self, empresa_id: str, competencia: str) -> None:
        remuneracoes = await self.store.select(
            "remuneracoes",
            [eq("empresa_id", empresa_id), eq("competencia", competencia)],
            colunas=["id"],
        )
        divergencias = await self.store.select(
            "divergencias",
            [eq("empresa_id", empresa_id), in_("remuneracao_id", [r["id"] for r in remuneracoes])],
            colunas=["id"],
        )
        await self.store.update(
            "apuracoes",
            {"total_divergencias": len(divergencias)},
            [eq("empresa_id", empresa_id), eq("competencia", competencia)],
        )

    # --- Consultas ---

    async def analisar_rubricas(self, empresa_id: str) -> dict:
        """Status por rubrica e por tributo (conforme/risco/oportunidade/não mapeado)."""
        rubricas, base_conhecimento, suspensoes = await asyncio.gather(
            self.store.select("rubricas", [eq("empresa_id", empresa_id)], [Ordem("codigo")]),
            self._load_base_conhecimento(),
            self._load_suspensoes(empresa_id, None),
        )

        analisadas = []
        totais = {s.value: 0 for s in StatusRubrica}
        for r in rubricas:
            padrao = base_conhecimento.get(r.get("natureza_rubrica") or "")
            suspensos = suspensoes.get(r["id"], set())

            por_tributo = {}
            for tributo, (campo, campo_padrao, _) in CAMPOS_TRIBUTO.items():
                legal = incidencia_ativa(padrao.get(campo_padrao)) if padrao else None
                por_tributo[tributo] = status_rubrica(
                    incidencia_ativa(r.get(campo)), legal, tem_suspensao(suspensos, tributo)
                )

            geral = status_geral(por_tributo.values())
            totais[geral.value] += 1
            analisadas.append(
                {
                    "id": r["id"],
                    "codigo": r["codigo"],
                    "descricao": r.get("descricao"),
                    "natureza_rubrica": r.get("natureza_rubrica"),
                    "incid_inss": r.get("incid_inss") or "00",
                    "incid_irrf": r.get("incid_irrf") or "00",
                    "incid_fgts": r.get("incid_fgts") or "00",
                    "padrao_inss": padrao.get("incid_inss_padrao") if padrao else None,
                    "padrao_irrf": padrao.get("incid_irrf_padrao") if padrao else None,
                    "padrao_fgts": padrao.get("incid_fgts_padrao") if padrao else None,
                    "fundamentacao": padrao.get("fundamentacao_legal") if padrao else None,
                    "divergencia_inss": por_tributo[Tributo.INSS].value,
                    "divergencia_irrf": por_tributo[Tributo.IRRF].value,
                    "divergencia_fgts": por_tributo[Tributo.FGTS].value,
                    "status": geral.value,
                    "tem_processo": bool(suspensos),
                }
            )

        return {"total": len(analisadas), "totais": totais, "rubricas": analisadas}

    async def get_audit_summary(self, empresa_id: str) -> dict:
        vazio = {"total_risco": 0.0, "total_oportunidade": 0.0, "total_divergencias": 0, "por_tributo": {}}
        try:
            divergencias = await self.store.select(
                "divergencias",
                [eq("empresa_id", empresa_id)],
                colunas=["tipo_impacto", "tributo_afetado", "diferenca"],
            )
        except Exception as e:
            log.error(f"❌ Erro ao carregar divergências da empresa {empresa_id}: {e}")
            return vazio
        if not divergencias:
            return vazio

        df = pd.DataFrame(divergencias)
        df["tributo_afetado"] = df["tributo_afetado"].fillna("OUTROS")
        df["impacto"] = df["diferenca"].map(safe_float).abs()
        df["risco"] = df["impacto"].where(df["tipo_impacto"] == TipoImpacto.RISCO.value, 0.0)
        df["oportunidade"] = df["impacto"].where(
            df["tipo_impacto"] == TipoImpacto.OPORTUNIDADE.value, 0.0
        )

        agrupado = df.groupby("tributo_afetado").agg(
            risco=("risco", "sum"),
            oportunidade=("oportunidade", "sum"),
            count=("impacto", "size"),
        )
        por_tributo = {
            tributo: {
                "risco": arredondar_centavos(linha["risco"]),
                "oportunidade": arredondar_centavos(linha["oportunidade"]),
                "count": int(linha["count"]),
            }
            for tributo, linha in agrupado.iterrows()
        }

        return {
            "total_risco": arredondar_centavos(df["risco"].sum()),
            "total_oportunidade": arredondar_centavos(df["oportunidade"].sum()),
            "total_divergencias": int(len(df)),
            "por_tributo": por_tributo,
        }

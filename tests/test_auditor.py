# tests/test_auditor.py

import asyncio
from datetime import date
import itertools

import pytest

from esocial_auditor.auditoria.auditor import (
    AuditoriaEngine,
    aliquota_tributo,
    calcular_impacto,
    classificar_severidade,
    determine_impact_type,
    status_geral,
    suspensoes_por_rubrica,
    tem_suspensao,
)
from esocial_auditor.auditoria.calculations import DEFAULT_PARAMETROS
from esocial_auditor.auditoria.models import (
    Severidade,
    StatusRubrica,
    TipoImpacto,
    Tributo,
    TributoAfetado,
)
from esocial_auditor.auditoria.parametros import ParametrosResolver
from esocial_auditor.persistence import MemoryStore
from tests.conftest import BASE_CONHECIMENTO, EMPRESA, run


def rubrica(id_, codigo, natureza_rubrica, inss, irrf, fgts, natureza="provento"):
    return {
        "id": id_,
        "empresa_id": EMPRESA,
        "codigo": codigo,
        "descricao": f"Rubrica {codigo}",
        "natureza": natureza,
        "natureza_rubrica": natureza_rubrica,
        "incid_inss": inss,
        "incid_irrf": irrf,
        "incid_fgts": fgts,
        "ini_valid": "2024-01",
        "fim_valid": None,
    }


def item(rem_id, codigo, valor, ordem, natureza="provento"):
    return {
        "remuneracao_id": rem_id,
        "codigo_rubrica": codigo,
        "valor": valor,
        "natureza": natureza,
        "ordem": ordem,
    }


def montar_store(**extras) -> MemoryStore:
    """
    001 (salário, 1000): não declara INSS -> risco de 10000 * 20%
    002 (alimentação, 1801): declara INSS -> oportunidade de 1000 * 20%
    003 / 004: naturezas fora da base de conhecimento
    005 (salário): sem pagamentos no período
    """
    dados = {
        "base_conhecimento_rubricas": [dict(b) for b in BASE_CONHECIMENTO],
        "rubricas": [
            rubrica("r1", "001", "1000", "00", "11", "11"),
            rubrica("r2", "002", "1801", "11", "00", "00"),
            rubrica("r3", "003", "9999", "11", "11", "11"),
            rubrica("r4", "004", None, "11", "11", "11"),
            rubrica("r5", "005", "1000", "00", "00", "00"),
        ],
        "remuneracoes": [
            {"id": "rem1", "empresa_id": EMPRESA, "colaborador_id": "c1", "competencia": "2024-03"},
            {"id": "rem-antiga", "empresa_id": EMPRESA, "colaborador_id": "c1", "competencia": "2019-01"},
        ],
        "itens_remuneracao": [
            item("rem1", "001", 10000.0, 1),
            item("rem1", "002", 1000.0, 2),
            item("rem1", "003", 500.0, 3),
            item("rem1", "002", 300.0, 4, natureza="desconto"),
            item("rem-antiga", "001", 99999.0, 1),
        ],
    }
    dados.update(extras)
    return MemoryStore(dados)


def engine_para(store) -> AuditoriaEngine:
    return AuditoriaEngine(store, ParametrosResolver(store))


def auditar(engine, inicio="2024-01", fim="2024-12"):
    return run(engine.run_audit(EMPRESA, inicio, fim))


# --- Regras puras ---


def test_classificacao_cobre_todas_as_combinacoes():
    for cliente, legal, processo in itertools.product([True, False], repeat=3):
        analise = determine_impact_type(cliente, legal, processo)

        if cliente == legal or processo:
            assert analise.tipo == TipoImpacto.INFORMATIVO
            assert analise.justificado
        elif cliente:
            assert analise.tipo == TipoImpacto.OPORTUNIDADE
            assert not analise.justificado
        else:
            assert analise.tipo == TipoImpacto.RISCO
            assert not analise.justificado


@pytest.mark.parametrize(
    "impacto, esperado",
    [
        (10000.01, Severidade.HIGH),
        (10000.0, Severidade.MEDIUM),
        (1000.01, Severidade.MEDIUM),
        (1000.0, Severidade.LOW),
        (0.01, Severidade.LOW),
    ],
)
def test_severidade_por_faixa_de_impacto(impacto, esperado):
    assert classificar_severidade(impacto) == esperado


def test_aliquotas_por_tributo():
    p = dict(DEFAULT_PARAMETROS)

    assert aliquota_tributo(TributoAfetado.INSS_PATRONAL, p) == pytest.approx(0.20)
    assert aliquota_tributo(TributoAfetado.INSS_SEGURADO, p) == pytest.approx(0.14)
    assert aliquota_tributo(TributoAfetado.INSS_RAT, p) == pytest.approx(0.02)
    assert aliquota_tributo(TributoAfetado.FGTS, p) == pytest.approx(0.08)
    assert aliquota_tributo(TributoAfetado.IRRF, p) == pytest.approx(0.275)
    assert aliquota_tributo(TributoAfetado.MULTIPLO, p) == pytest.approx(0.28)
    assert calcular_impacto(1000, TributoAfetado.FGTS, p) == pytest.approx(80.0)


def test_suspensao_total_e_por_tributo():
    assert tem_suspensao({"ALL"}, Tributo.FGTS)
    assert tem_suspensao({"TODOS"}, Tributo.IRRF)
    assert tem_suspensao({"INSS"}, Tributo.INSS)
    assert not tem_suspensao({"INSS"}, Tributo.FGTS)
    assert not tem_suspensao(set(), Tributo.INSS)


def test_vinculo_de_processo_encerrado_e_ignorado():
    processos = [{"id": "p1", "fim_valid": "2023-12"}, {"id": "p2", "fim_valid": None}]
    vinculos = [
        {"rubrica_id": "r1", "processo_id": "p1", "tributo_suspenso": "INSS"},
        {"rubrica_id": "r2", "processo_id": "p2", "tributo_suspenso": " fgts "},
    ]

    suspensoes = suspensoes_por_rubrica(vinculos, processos, "2024-01")

    assert "r1" not in suspensoes
    assert suspensoes["r2"] == {"FGTS"}
    assert suspensoes_por_rubrica(vinculos, processos, None)["r1"] == {"INSS"}


def test_status_geral_por_prioridade():
    assert status_geral([StatusRubrica.CONFORME, StatusRubrica.OPORTUNIDADE, StatusRubrica.RISCO]) == StatusRubrica.RISCO
    assert status_geral([StatusRubrica.NAO_MAPEADO, StatusRubrica.OPORTUNIDADE]) == StatusRubrica.OPORTUNIDADE
    assert status_geral([StatusRubrica.CONFORME] * 3) == StatusRubrica.CONFORME


# --- Modo por rubrica ---


def test_auditoria_por_rubrica():
    # Arrange
    store = montar_store()

    # Act
    result = auditar(engine_para(store))

    # Assert
    assert result.total_divergencias == 2
    assert result.total_risco == pytest.approx(2000.0)
    assert result.total_oportunidade == pytest.approx(200.0)
    assert result.impacto_financeiro == pytest.approx(2200.0)
    assert result.rubricas_analisadas == 5
    assert result.rubricas_com_divergencia == 2
    assert result.rubricas_nao_mapeadas == 2

    risco, oportunidade = sorted(result.divergencias, key=lambda d: d.tipo_impacto.value, reverse=True)
    assert risco.tipo_impacto == TipoImpacto.RISCO
    assert risco.tributo_afetado == TributoAfetado.INSS_PATRONAL
    assert risco.severidade == Severidade.MEDIUM
    assert risco.fundamento_legal == "Art. 28, I, Lei 8.212/91"
    assert "não tributa INSS mas deveria" in risco.descricao
    assert (risco.valor_original, risco.valor_recalculado) == (0.0, 2000.0)

    assert oportunidade.severidade == Severidade.LOW
    assert oportunidade.fundamento_legal is None
    assert "Art. 28, §9, Lei 8.212/91" in oportunidade.descricao
    assert "Possível crédito" in oportunidade.descricao

    gravadas = store.tabelas["divergencias"]
    assert len(gravadas) == 2
    assert {d["tipo_impacto"] for d in gravadas} == {"risco", "oportunidade"}
    assert all(d["status_analise"] == "pendente" for d in gravadas)


def test_auditoria_e_idempotente():
    store = montar_store()
    engine = engine_para(store)

    primeira = auditar(engine)
    segunda = auditar(engine)

    assert len(store.tabelas["divergencias"]) == 2
    assert segunda.total_risco == primeira.total_risco
    assert segunda.total_oportunidade == primeira.total_oportunidade


def test_auditorias_concorrentes_da_mesma_empresa_nao_duplicam():
    store = montar_store()
    engine = engine_para(store)

    async def duas_execucoes():
        return await asyncio.gather(
            engine.run_audit(EMPRESA, "2024-01", "2024-12"),
            engine.run_audit(EMPRESA, "2024-01", "2024-12"),
        )

    run(duas_execucoes())

    assert len(store.tabelas["divergencias"]) == 2
    assert EMPRESA not in engine._locks


def test_suspensao_ALL_justifica_todos_os_tributos():
    store = montar_store(
        processos_judiciais=[{"id": "p1", "empresa_id": EMPRESA, "numero": "0001", "fim_valid": None}],
        rubrica_processo_vinculo=[
            {"empresa_id": EMPRESA, "rubrica_id": "r1", "processo_id": "p1", "tributo_suspenso": "ALL"},
            {"empresa_id": EMPRESA, "rubrica_id": "r2", "processo_id": "p1", "tributo_suspenso": "FGTS"},
        ],
    )

    result = auditar(engine_para(store))

    # 001 suspensa por completo; 002 suspensa só no FGTS, o INSS continua
    assert result.total_divergencias == 1
    assert result.divergencias[0].tipo_impacto == TipoImpacto.OPORTUNIDADE
    assert result.total_risco == 0.0


def test_processo_encerrado_antes_do_periodo_nao_suspende():
    store = montar_store(
        processos_judiciais=[{"id": "p1", "empresa_id": EMPRESA, "fim_valid": "2023-06"}],
        rubrica_processo_vinculo=[
            {"empresa_id": EMPRESA, "rubrica_id": "r1", "processo_id": "p1", "tributo_suspenso": "ALL"},
        ],
    )

    result = auditar(engine_para(store))

    assert result.total_risco == pytest.approx(2000.0)


def test_impacto_zero_nao_gera_divergencia():
    # 005 diverge da base legal, mas não tem pagamentos no período
    store = montar_store()

    result = auditar(engine_para(store))

    assert all("005" not in d.descricao for d in result.divergencias)


def test_periodo_sem_pagamentos():
    store = montar_store()

    result = auditar(engine_para(store), "2025-01", "2025-12")

    assert result.total_divergencias == 0
    assert result.rubricas_nao_mapeadas == 2


def test_substitui_apenas_divergencias_sobrepostas():
    # Arrange
    anteriores = [
        {"empresa_id": EMPRESA, "competencia_inicio": "2023-06", "competencia_fim": "2024-02", "tipo_impacto": "risco"},
        {"empresa_id": EMPRESA, "competencia_inicio": "2022-01", "competencia_fim": "2022-12", "tipo_impacto": "risco"},
        {"empresa_id": "outra", "competencia_inicio": "2024-01", "competencia_fim": "2024-12", "tipo_impacto": "risco"},
    ]
    store = montar_store(divergencias=anteriores)

    # Act
    auditar(engine_para(store))

    # Assert
    periodos = sorted((d["empresa_id"], d["competencia_inicio"]) for d in store.tabelas["divergencias"])
    assert periodos == [
        (EMPRESA, "2022-01"),
        (EMPRESA, "2024-01"),
        (EMPRESA, "2024-01"),
        ("outra", "2024-01"),
    ]


def test_periodo_padrao_usa_janela_retroativa():
    engine = AuditoriaEngine(MemoryStore(), ParametrosResolver(MemoryStore()), lookback_meses=60)

    assert engine.periodo_padrao(date(2024, 3, 10)) == ("2019-03", "2024-03")


def test_aliquota_patronal_vem_dos_parametros_vigentes():
    store = montar_store(
        parametros_sistema=[
            {"empresa_id": None, "vigencia_ano": 2024, "vigencia_mes": 1, "aliquota_inss_patronal": 22.0}
        ]
    )

    result = auditar(engine_para(store))

    assert result.total_risco == pytest.approx(2200.0)
    assert result.total_oportunidade == pytest.approx(220.0)


# --- Consultas ---


def test_resumo_por_tributo():
    store = montar_store()
    engine = engine_para(store)
    auditar(engine)

    resumo = run(engine.get_audit_summary(EMPRESA))

    assert resumo["total_risco"] == pytest.approx(2000.0)
    assert resumo["total_oportunidade"] == pytest.approx(200.0)
    assert resumo["total_divergencias"] == 2
    assert resumo["por_tributo"]["INSS_PATRONAL"] == {"risco": 2000.0, "oportunidade": 200.0, "count": 2}


def test_resumo_sem_divergencias():
    resumo = run(engine_para(montar_store()).get_audit_summary(EMPRESA))

    assert resumo == {"total_risco": 0.0, "total_oportunidade": 0.0, "total_divergencias": 0, "por_tributo": {}}


def test_analise_de_rubricas():
    store = montar_store(
        processos_judiciais=[{"id": "p1", "empresa_id": EMPRESA, "fim_valid": None}],
        rubrica_processo_vinculo=[
            {"empresa_id": EMPRESA, "rubrica_id": "r5", "processo_id": "p1", "tributo_suspenso": "TODOS"},
        ],
    )

    analise = run(engine_para(store).analisar_rubricas(EMPRESA))

    por_codigo = {r["codigo"]: r for r in analise["rubricas"]}
    assert analise["total"] == 5
    assert por_codigo["001"]["status"] == "risco"
    assert por_codigo["001"]["divergencia_inss"] == "risco"
    assert por_codigo["001"]["divergencia_fgts"] == "conforme"
    assert por_codigo["002"]["status"] == "oportunidade"
    assert por_codigo["003"]["status"] == "nao_mapeado"
    assert por_codigo["004"]["padrao_inss"] is None
    assert por_codigo["005"]["status"] == "conforme"
    assert por_codigo["005"]["tem_processo"]
    assert analise["totais"] == {"conforme": 1, "risco": 1, "oportunidade": 1, "nao_mapeado": 2}


# --- Modo legado ---


def montar_store_legado() -> MemoryStore:
    return MemoryStore(
        {
            "rubricas": [rubrica("r1", "001", "1000", "11", "11", "11")],
            "remuneracoes": [
                {
                    "id": "rem1",
                    "empresa_id": EMPRESA,
                    "colaborador_id": "c1",
                    "competencia": "2024-03",
                    "base_inss": 3000.0,
                    "base_irrf": 2000.0,
                    "base_fgts": 3010.0,
                }
            ],
            "itens_remuneracao": [
                item("rem1", "001", 3000.0, 1),
                item("rem1", "777", 100.0, 2),
            ],
            "apuracoes": [{"empresa_id": EMPRESA, "competencia": "2024-03", "total_divergencias": 0}],
        }
    )


def test_auditoria_legada_por_remuneracao():
    # Arrange
    store = montar_store_legado()

    # Act
    result = run(engine_para(store).run_audit_legacy(EMPRESA, "2024-03"))

    # Assert
    assert result.total_divergencias == 2
    rubrica_faltante, base_irrf = result.divergencias
    assert rubrica_faltante.tributo_afetado == TributoAfetado.MULTIPLO
    assert rubrica_faltante.severidade == Severidade.HIGH
    assert rubrica_faltante.diferenca == 100.0
    assert base_irrf.tipo == "IRRF"
    assert base_irrf.tipo_impacto == TipoImpacto.RISCO
    assert base_irrf.diferenca == pytest.approx(1000.0)
    assert base_irrf.severidade == Severidade.MEDIUM
    # FGTS dentro da tolerância de 1%
    assert all(d.tipo != "FGTS" for d in result.divergencias)
    assert result.total_risco == pytest.approx(1100.0)
    assert store.tabelas["apuracoes"][0]["total_divergencias"] == 2


def test_auditoria_legada_reexecutada_substitui_divergencias():
    store = montar_store_legado()
    engine = engine_para(store)

    run(engine.run_audit_legacy(EMPRESA, "2024-03"))
    run(engine.run_audit_legacy(EMPRESA))

    assert len(store.tabelas["divergencias"]) == 2


def test_auditoria_legada_base_menor_e_oportunidade():
    store = montar_store_legado()
    store.tabelas["remuneracoes"][0]["base_inss"] = 5000.0

    result = run(engine_para(store).run_audit_legacy(EMPRESA, "2024-03"))

    inss = [d for d in result.divergencias if d.tipo == "INSS"][0]
    assert inss.tipo_impacto == TipoImpacto.OPORTUNIDADE
    assert inss.tributo_afetado == TributoAfetado.INSS_SEGURADO
    assert result.total_oportunidade == pytest.approx(2000.0)


def test_auditoria_legada_sem_remuneracoes():
    result = run(engine_para(MemoryStore()).run_audit_legacy(EMPRESA, "2024-03"))

    assert result.total_divergencias == 0
    assert result.divergencias == []


def test_auditoria_legada_rubrica_fora_da_validade_usa_registro_mais_recente():
    # Arrange
    store = montar_store_legado()
    store.tabelas["rubricas"][0]["ini_valid"] = "2024-05"
    store.tabelas["itens_remuneracao"] = [item("rem1", "001", 3000.0, 1)]
    store.tabelas["remuneracoes"][0].update(base_irrf=3000.0, base_fgts=3000.0)

    # Act
    result = run(engine_para(store).run_audit_legacy(EMPRESA, "2024-03"))

    # Assert
    assert result.divergencias == []
    assert result.total_risco == pytest.approx(0.0)
    assert result.erros == []


class _StoreFora(MemoryStore):
    async def select(self, tabela, *args, **kwargs):
        if tabela == "remuneracoes":
            raise RuntimeError("db down")
        return await super().select(tabela, *args, **kwargs)


def test_auditoria_legada_com_falha_de_leitura_devolve_erros():
    engine = engine_para(_StoreFora())

    result = run(engine.run_audit_legacy(EMPRESA, "2024-03"))

    assert result.erros == ["db down"]
    assert result.divergencias == []
    assert EMPRESA not in engine._locks

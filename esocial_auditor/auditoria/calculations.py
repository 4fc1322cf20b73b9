# esocial_auditor/auditoria/calculations.py

"""
Ferramentas de cálculo: INSS progressivo, IRRF progressivo e FGTS.

Funções puras. Quando a tabela/alíquota não é informada, usam a tabela de
referência de 2024 (a mesma que o resolvedor de parâmetros devolve em modo
degradado).
"""

from typing import List, NamedTuple, Optional, Sequence

from esocial_auditor.shared.utils import arredondar_centavos


class FaixaINSS(NamedTuple):
    limite: float
    aliquota: float  # percentual


class FaixaIRRF(NamedTuple):
    limite: float
    aliquota: float  # percentual
    deducao: float


# --- CONSTANTES DE INSS (2024) ---
INSS_FAIXAS_2024: List[FaixaINSS] = [
    FaixaINSS(1412.00, 7.5),
    FaixaINSS(2666.68, 9.0),
    FaixaINSS(4000.03, 12.0),
    FaixaINSS(7786.02, 14.0),
]

# --- CONSTANTES DE IRRF (2024) ---
# A última faixa não tem teto.
IRRF_FAIXAS_2024: List[FaixaIRRF] = [
    FaixaIRRF(2259.20, 0.0, 0.0),
    FaixaIRRF(2826.65, 7.5, 169.44),
    FaixaIRRF(3751.05, 15.0, 381.44),
    FaixaIRRF(4664.68, 22.5, 662.77),
    FaixaIRRF(float("inf"), 27.5, 896.00),
]

IRRF_DEDUCAO_DEPENDENTE_2024 = 189.59
ALIQUOTA_FGTS_PADRAO = 8.0

DEFAULT_PARAMETROS = {
    "salario_minimo": 1412.00,
    "teto_inss": 7786.02,
    "aliquota_fgts": 8.00,
    "deducao_dependente_irrf": IRRF_DEDUCAO_DEPENDENTE_2024,
    "aliquota_inss_patronal": 20.00,
    "aliquota_rat": 2.00,
    "aliquota_terceiros": 5.80,
}


# --- FUNÇÕES DE CÁLCULO ---


def calc_inss(
    salario: float, faixas: Optional[Sequence[FaixaINSS]] = None
) -> float:
    """
    INSS progressivo: cada faixa tributa apenas a parcela do salário entre o
    teto da faixa anterior e o seu próprio teto.
    """
    faixas = faixas or INSS_FAIXAS_2024

    inss = 0.0
    restante = salario
    faixa_anterior = 0.0

    for limite, aliquota in faixas:
        if restante <= 0:
            break
        base_faixa = min(restante, limite - faixa_anterior)
        inss += base_faixa * (aliquota / 100)
        restante -= base_faixa
        faixa_anterior = limite

    return arredondar_centavos(inss)


def calc_irrf(
    salario: float,
    inss: float,
    dependentes: int = 0,
    faixas: Optional[Sequence[FaixaIRRF]] = None,
    deducao_por_dependente: float = IRRF_DEDUCAO_DEPENDENTE_2024,
) -> float:
    """
    IRRF: base = bruto - INSS - dependentes * dedução.
    Aplica (base * alíquota) - parcela a deduzir da primeira faixa cujo teto
    comporta a base.
    """
    faixas = faixas or IRRF_FAIXAS_2024

    base_calculo = salario - inss - (dependentes * deducao_por_dependente)
    if base_calculo <= 0:
        return 0.0

    for limite, aliquota, deducao in faixas:
        if base_calculo <= limite:
            irrf = (base_calculo * (aliquota / 100)) - deducao
            return max(0.0, arredondar_centavos(irrf))

    return 0.0


def calc_fgts(salario: float, aliquota: Optional[float] = None) -> float:
    if aliquota is None:
        aliquota = ALIQUOTA_FGTS_PADRAO
    return arredondar_centavos(salario * (aliquota / 100))

# esocial_auditor/shared/competencia.py
"""Utilitários para competências no formato ``YYYY-MM``."""

import re
from datetime import date
from typing import Optional

_COMPETENCIA_RE = re.compile(r"^\d{4}-\d{2}$")


def _split(competencia: str):
    ano, mes = competencia[:7].split("-")
    return int(ano), int(mes)


def get_previous_month(competencia: str) -> str:
    ano, mes = _split(competencia)
    if mes == 1:
        return f"{ano - 1}-12"
    return f"{ano}-{mes - 1:02d}"


def compare_competencias(comp1: str, comp2: str) -> int:
    """Negativo se comp1 < comp2, zero se iguais, positivo se comp1 > comp2."""
    ano1, mes1 = _split(comp1)
    ano2, mes2 = _split(comp2)
    if ano1 != ano2:
        return ano1 - ano2
    return mes1 - mes2


def validate_competencia(competencia: Optional[str]) -> bool:
    if not competencia or not _COMPETENCIA_RE.match(competencia):
        return False
    ano, mes = _split(competencia)
    if ano < 1900 or ano > 2100:
        return False
    return 1 <= mes <= 12


def competencia_atual(hoje: Optional[date] = None) -> str:
    hoje = hoje or date.today()
    return f"{hoje.year}-{hoje.month:02d}"


def competencia_meses_atras(meses: int, hoje: Optional[date] = None) -> str:
    hoje = hoje or date.today()
    total = hoje.year * 12 + (hoje.month - 1) - meses
    return f"{total // 12}-{total % 12 + 1:02d}"


def competencia_contida(competencia: str, inicio: Optional[str], fim: Optional[str]) -> bool:
    """True se ``competencia`` estiver na janela [inicio, fim]; fim vazio = em aberto."""
    if inicio and compare_competencias(competencia, inicio) < 0:
        return False
    if fim and compare_competencias(competencia, fim) > 0:
        return False
    return True

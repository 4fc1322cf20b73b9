# esocial_auditor/esocial/models.py
"""Registros estruturados produzidos pela leitura dos eventos eSocial."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ParsedRubrica:
    """Uma ocorrência de rubrica em um evento S-1010."""

    codigo: str
    descricao: str = ""
    natureza: str = "provento"  # provento / desconto / informativo / informativo_dedutora
    natureza_rubrica: str = ""  # natRubr (chave da base de conhecimento)
    incid_inss: str = "00"
    incid_irrf: str = "00"
    incid_fgts: str = "00"
    operacao: str = "inclusao"  # inclusao / alteracao / exclusao
    ide_tab_rubr: str = ""
    ini_valid: Optional[str] = None
    fim_valid: Optional[str] = None
    # novaValidade (somente em alteracao)
    nova_ini_valid: Optional[str] = None
    nova_fim_valid: Optional[str] = None


@dataclass
class CabecalhoEvento:
    """Cabeçalho comum (ideEvento / ideEmpregador) e recibo de processamento."""

    xml_id: Optional[str] = None
    tp_amb: Optional[str] = None
    proc_emi: Optional[str] = None
    ver_proc: Optional[str] = None
    emp_tp_insc: Optional[str] = None
    emp_nr_insc: Optional[str] = None
    nr_recibo: Optional[str] = None
    dh_processamento: Optional[str] = None


@dataclass
class EventoS1010:
    cabecalho: CabecalhoEvento
    rubricas: List[ParsedRubrica] = field(default_factory=list)


@dataclass
class ParsedColaborador:
    cpf: str = ""
    nome: str = ""
    matricula: str = ""


@dataclass
class ParsedItemRemuneracao:
    codigo_rubrica: str
    natureza: Optional[str] = None  # None = herda da rubrica cadastrada
    natureza_rubrica: str = ""
    ide_tab_rubr: str = ""
    referencia: float = 0.0
    valor: float = 0.0
    descricao: str = ""


@dataclass
class ParsedRemuneracao:
    colaborador: ParsedColaborador
    competencia: str
    itens: List[ParsedItemRemuneracao] = field(default_factory=list)

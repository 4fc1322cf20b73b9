# esocial_auditor/auditoria/models.py
"""
Tipos do motor de auditoria: classificação do impacto, tributo afetado,
divergência e resultado consolidado de uma execução.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TipoImpacto(str, Enum):
    """Direção da divergência."""

    RISCO = "risco"  # empresa deixou de recolher
    OPORTUNIDADE = "oportunidade"  # empresa recolheu indevidamente
    INFORMATIVO = "informativo"  # sem ação (igual à regra legal ou justificado)


class TributoAfetado(str, Enum):
    INSS_PATRONAL = "INSS_PATRONAL"
    INSS_SEGURADO = "INSS_SEGURADO"
    INSS_RAT = "INSS_RAT"
    FGTS = "FGTS"
    IRRF = "IRRF"
    MULTIPLO = "MULTIPLO"


class Tributo(str, Enum):
    """Os três tributos cujas incidências a rubrica declara."""

    INSS = "INSS"
    FGTS = "FGTS"
    IRRF = "IRRF"


class StatusRubrica(str, Enum):
    CONFORME = "conforme"
    RISCO = "risco"
    OPORTUNIDADE = "oportunidade"
    NAO_MAPEADO = "nao_mapeado"


class Severidade(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Classificacao:
    tipo: TipoImpacto
    justificado: bool


@dataclass
class Divergencia:
    empresa_id: str
    tipo: str
    tipo_impacto: TipoImpacto
    tributo_afetado: TributoAfetado
    descricao: str
    valor_original: float
    valor_recalculado: float
    diferenca: float
    severidade: Severidade
    competencia_inicio: str
    competencia_fim: str
    natureza_rubrica: Optional[str] = None
    fundamento_legal: Optional[str] = None
    remuneracao_id: Optional[str] = None
    item_remuneracao_id: Optional[str] = None
    processo_vinculado: Optional[str] = None
    status_analise: str = "pendente"

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["tipo_impacto"] = self.tipo_impacto.value
        row["tributo_afetado"] = self.tributo_afetado.value
        row["severidade"] = self.severidade.value
        return row


@dataclass
class AuditResult:
    """Resultado de uma execução do motor (modo por rubrica ou legado)."""

    divergencias: List[Divergencia] = field(default_factory=list)
    total_divergencias: int = 0
    impacto_financeiro: float = 0.0
    total_risco: float = 0.0
    total_oportunidade: float = 0.0
    rubricas_analisadas: int = 0
    rubricas_com_divergencia: int = 0
    rubricas_nao_mapeadas: int = 0
    competencia_inicio: Optional[str] = None
    competencia_fim: Optional[str] = None
    erros: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        dados = asdict(self)
        dados["divergencias"] = [d.to_row() for d in self.divergencias]
        return dados

# esocial_auditor/esocial/event_catalog.py
"""
Detector textual de eventos eSocial.

Usado apenas para diagnóstico (arquivos não suportados): testa o XML bruto
contra padrões de nome de evento, na ordem abaixo; o primeiro que casar vence.
A decisão de onde gravar os dados é do roteador estrutural (``xml_router``).
"""

import re
from typing import Dict, List, Tuple

EVENTO_DESCONHECIDO = "unknown"

SUPPORTED_EVENTS: Tuple[str, ...] = ("S-1010", "S-1200")

# (padrão, código do evento)
EVENT_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"evtTabRubrica|S-1010", re.IGNORECASE), "S-1010"),
    (re.compile(r"evtRemun|S-1200", re.IGNORECASE), "S-1200"),
    (re.compile(r"evtInfoEmpregador|S-1000", re.IGNORECASE), "S-1000"),
    (re.compile(r"evtTabEstab|S-1005", re.IGNORECASE), "S-1005"),
    (re.compile(r"evtTabLotacao|S-1020", re.IGNORECASE), "S-1020"),
    (re.compile(r"evtTabCargo|S-1030", re.IGNORECASE), "S-1030"),
    (re.compile(r"evtTabCarreira|S-1035", re.IGNORECASE), "S-1035"),
    (re.compile(r"evtTabFuncao|S-1040", re.IGNORECASE), "S-1040"),
    (re.compile(r"evtTabHorTur|S-1050", re.IGNORECASE), "S-1050"),
    (re.compile(r"evtTabAmbiente|S-1060", re.IGNORECASE), "S-1060"),
    (re.compile(r"evtTabProcesso|S-1070", re.IGNORECASE), "S-1070"),
    (re.compile(r"evtTabOperPort|S-1080", re.IGNORECASE), "S-1080"),
    (re.compile(r"evtAdmissao|S-2200", re.IGNORECASE), "S-2200"),
    (re.compile(r"evtAltCadastral|S-2205", re.IGNORECASE), "S-2205"),
    (re.compile(r"evtAltContratual|S-2206", re.IGNORECASE), "S-2206"),
    (re.compile(r"evtCAT|S-2210", re.IGNORECASE), "S-2210"),
    (re.compile(r"evtMonit|S-2220", re.IGNORECASE), "S-2220"),
    (re.compile(r"evtAfastTemp|S-2230", re.IGNORECASE), "S-2230"),
    (re.compile(r"evtExpRisco|S-2240", re.IGNORECASE), "S-2240"),
    (re.compile(r"evtDeslig|S-2299", re.IGNORECASE), "S-2299"),
    (re.compile(r"evtTSVInicio|S-2300", re.IGNORECASE), "S-2300"),
    (re.compile(r"evtTSVAltContr|S-2306", re.IGNORECASE), "S-2306"),
    (re.compile(r"evtTSVTermino|S-2399", re.IGNORECASE), "S-2399"),
    (re.compile(r"evtCdBenPrRP|S-2400", re.IGNORECASE), "S-2400"),
    (re.compile(r"evtCdBenIn|S-2405", re.IGNORECASE), "S-2405"),
    (re.compile(r"evtCdBenAlt|S-2410", re.IGNORECASE), "S-2410"),
    (re.compile(r"evtBenPrRP|S-2416", re.IGNORECASE), "S-2416"),
    (re.compile(r"evtCdBenTerm|S-2418", re.IGNORECASE), "S-2418"),
    (re.compile(r"evtReabreEvPer|S-2420", re.IGNORECASE), "S-2420"),
    (re.compile(r"evtPgtos|S-1210", re.IGNORECASE), "S-1210"),
    (re.compile(r"evtContratAvNP|S-1250", re.IGNORECASE), "S-1250"),
    (re.compile(r"evtAqProd|S-1260", re.IGNORECASE), "S-1260"),
    (re.compile(r"evtComProd|S-1270", re.IGNORECASE), "S-1270"),
    (re.compile(r"evtInfoComplPer|S-1280", re.IGNORECASE), "S-1280"),
    (re.compile(r"evtFechaEvPer|S-1299", re.IGNORECASE), "S-1299"),
    (re.compile(r"evtExclusao|S-3000", re.IGNORECASE), "S-3000"),
    (re.compile(r"evtBasesTrab|S-5001", re.IGNORECASE), "S-5001"),
    (re.compile(r"evtIrrfBenef|S-5002", re.IGNORECASE), "S-5002"),
    (re.compile(r"evtBasesFGTS|S-5003", re.IGNORECASE), "S-5003"),
    (re.compile(r"evtCS|S-5011", re.IGNORECASE), "S-5011"),
    (re.compile(r"evtTotConting|S-5012", re.IGNORECASE), "S-5012"),
    (re.compile(r"evtFGTS|S-5013", re.IGNORECASE), "S-5013"),
]

EVENT_DESCRIPTIONS: Dict[str, str] = {
    "S-1000": "Informações do Empregador",
    "S-1005": "Tabela de Estabelecimentos",
    "S-1010": "Tabela de Rubricas",
    "S-1020": "Tabela de Lotações",
    "S-1030": "Tabela de Cargos",
    "S-1035": "Tabela de Carreiras",
    "S-1040": "Tabela de Funções",
    "S-1050": "Tabela de Horários",
    "S-1060": "Tabela de Ambientes",
    "S-1070": "Tabela de Processos Administrativos/Judiciais",
    "S-1080": "Tabela de Operadores Portuários",
    "S-1200": "Remuneração do Trabalhador",
    "S-1210": "Pagamentos de Rendimentos",
    "S-1250": "Aquisição de Produção Rural",
    "S-1260": "Comercialização da Produção Rural",
    "S-1270": "Contratação de Trabalhadores Avulsos",
    "S-1280": "Informações Complementares",
    "S-1299": "Fechamento dos Eventos Periódicos",
    "S-2200": "Cadastramento Inicial / Admissão",
    "S-2205": "Alteração de Dados Cadastrais",
    "S-2206": "Alteração de Contrato de Trabalho",
    "S-2210": "CAT",
    "S-2220": "Monitoramento da Saúde",
    "S-2230": "Afastamento Temporário",
    "S-2240": "Condições Ambientais",
    "S-2299": "Desligamento",
    "S-2300": "TSV - Início",
    "S-2306": "TSV - Alteração",
    "S-2399": "TSV - Término",
    "S-2400": "Benefício - RP",
    "S-2405": "Benefício - Início",
    "S-2410": "Benefício - Alteração",
    "S-2416": "Benefício - RP",
    "S-2418": "Benefício - Término",
    "S-2420": "Reabertura de Eventos",
    "S-3000": "Exclusão de Eventos",
    "S-5001": "Bases do Trabalhador",
    "S-5002": "IRRF Beneficiário",
    "S-5003": "Bases de FGTS",
    "S-5011": "Totalizador de Contribuições",
    "S-5012": "Totalizador de Contingência",
    "S-5013": "Totalizador de FGTS",
    EVENTO_DESCONHECIDO: "Evento não identificado",
}


def detect_event_type(conteudo_xml: str) -> str:
    for pattern, codigo in EVENT_PATTERNS:
        if pattern.search(conteudo_xml):
            return codigo
    return EVENTO_DESCONHECIDO


def is_event_supported(codigo: str) -> bool:
    return codigo in SUPPORTED_EVENTS


def get_event_description(codigo: str) -> str:
    return EVENT_DESCRIPTIONS.get(codigo, "Evento desconhecido")

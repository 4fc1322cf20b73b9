# esocial_auditor/esocial/parsers.py
"""
Leitores dos eventos S-1010 (Tabela de Rubricas) e S-1200 (Remuneração).

Os dois leiautes convivem nos arquivos recebidos:
- "envelopado": ideRubrica/dadosRubrica dentro de um container repetido
  (infoRubrica > inclusao/alteracao/exclusao);
- "plano": ideRubrica/dadosRubrica repetidos direto sob o evento.
Os blocos são agrupados pelo elemento pai e pareados pela posição, o que
cobre as duas formas.
"""

from typing import Dict, List, Optional

from esocial_auditor.esocial import xml_query as q
from esocial_auditor.esocial.models import (
    CabecalhoEvento,
    EventoS1010,
    ParsedColaborador,
    ParsedItemRemuneracao,
    ParsedRemuneracao,
    ParsedRubrica,
)
from esocial_auditor.exceptions import XmlParsingError
from esocial_auditor.shared.utils import safe_float

NATUREZAS = {
    "1": "provento",
    "2": "desconto",
    "3": "informativo",
    "4": "informativo_dedutora",
}

OPERACOES = ("inclusao", "alteracao", "exclusao")

INCIDENCIA_NAO_INCIDE = "00"


def get_natureza_descricao(codigo: Optional[str]) -> str:
    """tpRubr -> natureza; códigos desconhecidos contam como provento."""
    return NATUREZAS.get((codigo or "").strip(), "provento")


# --- IDENTIFICADOR DO EVENTO ---


def _xml_id_da_raiz(raiz: q.Element) -> Optional[str]:
    for filho in q.child_elements(raiz):
        if q.local_name(filho) == "Signature":
            continue
        if filho.get("Id"):
            return filho.get("Id")
        for neto in q.child_elements(filho):
            if neto.get("Id"):
                return neto.get("Id")
    return None


def extract_xml_id(conteudo_xml: str) -> Optional[str]:
    """Atributo ``Id`` do evento (filhos da raiz e um nível abaixo, exceto Signature)."""
    try:
        raiz = q.parse_document(conteudo_xml)
    except XmlParsingError:
        return None
    return _xml_id_da_raiz(raiz)


def _cabecalho(raiz: q.Element) -> CabecalhoEvento:
    ide_evento = q.first(raiz, "ideEvento")
    ide_empregador = q.first(raiz, "ideEmpregador")
    recibo = q.first(raiz, ["recibo", "Recibo"])
    retorno = q.first(raiz, "retornoEvento")
    return CabecalhoEvento(
        xml_id=_xml_id_da_raiz(raiz),
        tp_amb=q.optional_text(ide_evento, "tpAmb"),
        proc_emi=q.optional_text(ide_evento, "procEmi"),
        ver_proc=q.optional_text(ide_evento, "verProc"),
        emp_tp_insc=q.optional_text(ide_empregador, "tpInsc"),
        emp_nr_insc=q.optional_text(ide_empregador, "nrInsc"),
        nr_recibo=q.optional_text(recibo, "nrRecibo"),
        dh_processamento=q.optional_text(retorno, "dhProcessamento"),
    )


# --- S-1010 ---


def _operacao(ide_rubrica: q.Element) -> str:
    for nome in q.ancestor_names(ide_rubrica):
        if nome in OPERACOES:
            return nome
    return "inclusao"


def _pares_rubrica(raiz: q.Element):
    """(ideRubrica, dadosRubrica | None) agrupados pelo pai e pareados por posição."""
    por_pai: Dict[int, tuple] = {}
    ordem: List[int] = []
    for ide in q.descendants(raiz, "ideRubrica"):
        pai = ide.getparent()
        chave = id(pai)
        if chave not in por_pai:
            por_pai[chave] = (pai, [])
            ordem.append(chave)
        por_pai[chave][1].append(ide)

    for chave in ordem:
        pai, ides = por_pai[chave]
        dados_list = q.children(pai, "dadosRubrica")
        for i, ide in enumerate(ides):
            yield ide, dados_list[i] if i < len(dados_list) else None


def parse_s1010(conteudo_xml: str) -> EventoS1010:
    raiz = q.parse_document(conteudo_xml)
    evento = EventoS1010(cabecalho=_cabecalho(raiz))

    for ide, dados in _pares_rubrica(raiz):
        codigo = q.text(ide, "codRubr")
        if not codigo:
            continue

        nova_validade = None
        operacao = _operacao(ide)
        if operacao == "alteracao":
            nova_validade = q.first(ide.getparent(), "novaValidade")

        evento.rubricas.append(
            ParsedRubrica(
                codigo=codigo,
                descricao=q.text(dados, "dscRubr"),
                natureza=get_natureza_descricao(q.text(dados, "tpRubr", default="1")),
                natureza_rubrica=q.text(dados, "natRubr"),
                incid_inss=q.text(dados, "codIncCP", default=INCIDENCIA_NAO_INCIDE),
                incid_irrf=q.text(dados, "codIncIRRF", default=INCIDENCIA_NAO_INCIDE),
                incid_fgts=q.text(dados, "codIncFGTS", default=INCIDENCIA_NAO_INCIDE),
                operacao=operacao,
                ide_tab_rubr=q.text(ide, "ideTabRubr"),
                ini_valid=q.optional_text(ide, "iniValid"),
                fim_valid=q.optional_text(ide, "fimValid"),
                nova_ini_valid=q.optional_text(nova_validade, "iniValid"),
                nova_fim_valid=q.optional_text(nova_validade, "fimValid"),
            )
        )

    return evento


# --- S-1200 ---


def _competencia(raiz: q.Element) -> str:
    competencia = q.text(q.first(raiz, "ideEvento"), "perApur")
    if not competencia:
        competencia = q.text(q.first(raiz, "evtRemun"), "perApur")
    return competencia


def _colaborador(ide_trabalhador: Optional[q.Element]) -> ParsedColaborador:
    if ide_trabalhador is None:
        return ParsedColaborador()
    return ParsedColaborador(
        cpf=q.text(ide_trabalhador, "cpfTrab"),
        nome=q.text(ide_trabalhador, ["nmTrab", "nome"], default="Colaborador"),
    )


def _ide_trabalhador_proximo(demonstrativo: q.Element) -> Optional[q.Element]:
    pai = demonstrativo.getparent()
    while pai is not None:
        encontrados = q.children(pai, "ideTrabalhador")
        if encontrados:
            return encontrados[0]
        pai = pai.getparent()
    return None


def _itens(demonstrativo: q.Element) -> List[ParsedItemRemuneracao]:
    itens = []
    blocos = q.descendants(demonstrativo, "itensRemun") + q.descendants(demonstrativo, "detVerbas")
    for bloco in blocos:
        codigo = q.text(bloco, "codRubr")
        if not codigo:
            continue
        tp_rubr = q.text(bloco, "tpRubr")
        itens.append(
            ParsedItemRemuneracao(
                codigo_rubrica=codigo,
                natureza=get_natureza_descricao(tp_rubr) if tp_rubr else None,
                natureza_rubrica=q.text(bloco, "natRubr"),
                ide_tab_rubr=q.text(bloco, "ideTabRubr"),
                referencia=safe_float(q.text(bloco, "qtdRubr")),
                valor=safe_float(q.text(bloco, "vrRubr")),
            )
        )
    return itens


def parse_s1200(conteudo_xml: str) -> List[ParsedRemuneracao]:
    """
    Uma remuneração por demonstrativo (dmDev) com CPF e ao menos um item.
    Sem dmDev, cada infoPerApur é tratado como demonstrativo.
    """
    raiz = q.parse_document(conteudo_xml)
    competencia = _competencia(raiz)
    primeiro_trabalhador = q.first(raiz, "ideTrabalhador")

    demonstrativos = q.descendants(raiz, "dmDev") or q.descendants(raiz, "infoPerApur")

    remuneracoes: List[ParsedRemuneracao] = []
    for dm_dev in demonstrativos:
        colaborador = _colaborador(_ide_trabalhador_proximo(dm_dev))
        if not colaborador.cpf:
            colaborador = _colaborador(primeiro_trabalhador)
        colaborador.matricula = q.text(dm_dev, ["matricula", "ideDmDev"])

        itens = _itens(dm_dev)
        if colaborador.cpf and itens:
            remuneracoes.append(
                ParsedRemuneracao(colaborador=colaborador, competencia=competencia, itens=itens)
            )

    return remuneracoes

# esocial_auditor/esocial/xml_query.py
"""
Consultas tipadas sobre o DOM dos XMLs eSocial (lxml).

Todas as buscas comparam o *local-name* das tags, então prefixos e namespaces
(que mudam a cada versão do leiaute) são ignorados. Campos com mais de um
nome possível recebem a lista de candidatos em ordem de preferência.
"""

import re
from typing import List, Optional, Sequence, Union

from lxml import etree

from esocial_auditor.exceptions import XmlParsingError

Element = etree._Element
Nomes = Union[str, Sequence[str]]

_DECLARACAO_RE = re.compile(r"^\s*<\?xml[^>]*\?>")

# Sem entidades externas e sem rede; sem modo de recuperação.
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, recover=False, huge_tree=True)


def parse_document(conteudo_xml: str) -> Element:
    """Devolve o elemento raiz ou levanta ``XmlParsingError`` se o XML for malformado."""
    # lxml recusa str com declaração de encoding; o texto já está decodificado.
    texto = _DECLARACAO_RE.sub("", conteudo_xml, count=1)
    try:
        raiz = etree.fromstring(texto, parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise XmlParsingError() from e
    if raiz is None:
        raise XmlParsingError()
    return raiz


def _como_lista(nomes: Nomes) -> List[str]:
    return [nomes] if isinstance(nomes, str) else list(nomes)


def local_name(el: Element) -> str:
    """Nome da tag sem namespace (``{uri}evtRemun`` ou ``ns:evtRemun`` -> ``evtRemun``)."""
    if not isinstance(el.tag, str):
        return ""
    nome = etree.QName(el).localname
    return nome.split(":")[-1]


def child_elements(el: Element) -> List[Element]:
    """Filhos imediatos que são elementos (ignora comentários e PIs)."""
    return [c for c in el if isinstance(c.tag, str)]


def children(el: Element, nome: str) -> List[Element]:
    return [c for c in child_elements(el) if local_name(c) == nome]


def descendants(el: Element, nome: str) -> List[Element]:
    return el.xpath(".//*[local-name()=$nome]", nome=nome)


def first(el: Optional[Element], nomes: Nomes) -> Optional[Element]:
    """Primeiro descendente com o primeiro nome candidato que existir."""
    if el is None:
        return None
    for nome in _como_lista(nomes):
        achados = descendants(el, nome)
        if achados:
            return achados[0]
    return None


def text(el: Optional[Element], nomes: Nomes, default: str = "") -> str:
    """Texto do primeiro candidato não vazio (strip aplicado)."""
    if el is None:
        return default
    for nome in _como_lista(nomes):
        for achado in descendants(el, nome):
            valor = (achado.text or "").strip()
            if valor:
                return valor
            break
    return default


def optional_text(el: Optional[Element], nomes: Nomes) -> Optional[str]:
    valor = text(el, nomes)
    return valor or None


def ancestor(el: Element, nome: str) -> Optional[Element]:
    """Ancestral mais próximo com o nome informado."""
    pai = el.getparent()
    while pai is not None:
        if local_name(pai) == nome:
            return pai
        pai = pai.getparent()
    return None


def ancestor_names(el: Element) -> List[str]:
    nomes = []
    pai = el.getparent()
    while pai is not None:
        nomes.append(local_name(pai))
        pai = pai.getparent()
    return nomes

# esocial_auditor/esocial/xml_router.py
"""
Roteador estrutural: decide, a partir da tag do evento, qual código eSocial
o arquivo representa e em que tabela os dados devem ser gravados.

O mapa tag -> (evento, tabela) vem da coleção ``xml_router_config`` e fica em
cache até ``clear_cache()``/TTL.
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional

from esocial_auditor.esocial import xml_query as q
from esocial_auditor.exceptions import XmlParsingError
from esocial_auditor.logging_config import log
from esocial_auditor.persistence import Ordem, Store, eq
from esocial_auditor.shared.cache import TtlCache

TABELA_CONFIG = "xml_router_config"
_CHAVE_CACHE = "config"

# Configuração inicial (ambientes novos e testes)
DEFAULT_ROUTER_CONFIG = [
    {
        "tag_xml": "evtTabRubrica",
        "codigo_evento": "S-1010",
        "tabela_destino": "rubricas",
        "ativo": True,
        "ordem_prioridade": 10,
    },
    {
        "tag_xml": "evtRemun",
        "codigo_evento": "S-1200",
        "tabela_destino": "remuneracoes",
        "ativo": True,
        "ordem_prioridade": 10,
    },
]


@dataclass
class RouterResult:
    sucesso: bool
    tag_encontrada: Optional[str] = None
    evento_esocial: Optional[str] = None
    destino_sql: Optional[str] = None
    erro: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


async def seed_router_config(store: Store) -> int:
    """Grava a configuração padrão se a coleção estiver vazia."""
    existentes = await store.select(TABELA_CONFIG, limite=1)
    if existentes:
        return 0
    await store.insert(TABELA_CONFIG, [dict(c) for c in DEFAULT_ROUTER_CONFIG])
    log.info(f"Configuração padrão do roteador gravada ({len(DEFAULT_ROUTER_CONFIG)} tags).")
    return len(DEFAULT_ROUTER_CONFIG)


class XmlRouter:
    def __init__(self, store: Store, cache: Optional[TtlCache] = None):
        self.store = store
        self.cache = cache if cache is not None else TtlCache()

    def clear_cache(self) -> None:
        self.cache.invalidate()
        log.info("Cache do roteador XML limpo.")

    async def load_config(self) -> Dict[str, dict]:
        cached = self.cache.get(_CHAVE_CACHE)
        if cached is not None:
            return cached

        try:
            rows = await self.store.select(
                TABELA_CONFIG,
                filtros=[eq("ativo", True)],
                ordem=[Ordem("ordem_prioridade", desc=True)],
            )
        except Exception as e:
            # Sem cache: a próxima chamada tenta de novo.
            log.error(f"❌ Erro ao carregar configuração do roteador: {e}")
            return {}

        config: Dict[str, dict] = {}
        for row in rows:
            # Em tags repetidas vale a de maior prioridade (primeira na ordem).
            config.setdefault(row["tag_xml"], row)

        self.cache.set(_CHAVE_CACHE, config)
        return config

    async def route(self, conteudo_xml: str) -> RouterResult:
        try:
            try:
                raiz = q.parse_document(conteudo_xml)
            except XmlParsingError:
                return RouterResult(sucesso=False, erro="XML inválido: Erro de parsing")

            if "eSocial" not in q.local_name(raiz):
                return RouterResult(sucesso=False, erro="XML inválido: Tag raiz não é eSocial")

            config = await self.load_config()

            tag_evento = None
            for filho in q.child_elements(raiz):
                nome = q.local_name(filho)
                if nome == "Signature":
                    continue
                tag_evento = nome
                break

            if not tag_evento:
                return RouterResult(sucesso=False, erro="Nenhuma tag de evento encontrada no XML")

            destino = config.get(tag_evento)
            if not destino:
                return RouterResult(
                    sucesso=False,
                    tag_encontrada=tag_evento,
                    erro=f"Evento desconhecido ou não mapeado: {tag_evento}",
                )

            return RouterResult(
                sucesso=True,
                tag_encontrada=tag_evento,
                evento_esocial=destino["codigo_evento"],
                destino_sql=destino["tabela_destino"],
            )
        except Exception as e:
            return RouterResult(sucesso=False, erro=f"Erro de leitura: {e}")

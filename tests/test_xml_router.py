# tests/test_xml_router.py

from esocial_auditor.esocial.xml_router import (
    DEFAULT_ROUTER_CONFIG,
    TABELA_CONFIG,
    XmlRouter,
    seed_router_config,
)
from esocial_auditor.persistence import MemoryStore
from tests.conftest import run, xml_admissao, xml_s1010, xml_s1200


def test_roteia_s1010_e_s1200(xml_router):
    r1010 = run(xml_router.route(xml_s1010()))
    r1200 = run(xml_router.route(xml_s1200()))

    assert r1010.sucesso
    assert r1010.tag_encontrada == "evtTabRubrica"
    assert r1010.evento_esocial == "S-1010"
    assert r1010.destino_sql == "rubricas"
    assert r1200.evento_esocial == "S-1200"
    assert r1200.destino_sql == "remuneracoes"


def test_roteia_com_prefixo_de_namespace(xml_router):
    # Arrange
    xml = (
        '<esocial:eSocial xmlns:esocial="http://www.esocial.gov.br/schema/evt/evtRemun/v_S_01_02_00">'
        '<esocial:evtRemun Id="X"/></esocial:eSocial>'
    )

    # Act
    resultado = run(xml_router.route(xml))

    # Assert
    assert resultado.sucesso
    assert resultado.tag_encontrada == "evtRemun"


def test_assinatura_antes_do_evento_e_ignorada(xml_router):
    xml = (
        '<eSocial><Signature xmlns="http://www.w3.org/2000/09/xmldsig#"/>'
        "<evtTabRubrica Id='A'/></eSocial>"
    )

    resultado = run(xml_router.route(xml))

    assert resultado.sucesso
    assert resultado.evento_esocial == "S-1010"


def test_erros_de_roteamento(xml_router):
    malformado = run(xml_router.route("<eSocial><evtRemun></eSocial>"))
    raiz_errada = run(xml_router.route("<envio><evtRemun/></envio>"))
    sem_evento = run(xml_router.route("<eSocial><Signature/></eSocial>"))
    nao_mapeado = run(xml_router.route(xml_admissao()))

    assert not malformado.sucesso
    assert malformado.erro == "XML inválido: Erro de parsing"
    assert raiz_errada.erro == "XML inválido: Tag raiz não é eSocial"
    assert sem_evento.erro == "Nenhuma tag de evento encontrada no XML"
    assert nao_mapeado.erro == "Evento desconhecido ou não mapeado: evtAdmissao"
    assert nao_mapeado.tag_encontrada == "evtAdmissao"


def test_tag_repetida_vale_maior_prioridade():
    # Arrange
    store = MemoryStore(
        {
            TABELA_CONFIG: [
                {"tag_xml": "evtRemun", "codigo_evento": "S-1200", "tabela_destino": "baixa", "ativo": True, "ordem_prioridade": 1},
                {"tag_xml": "evtRemun", "codigo_evento": "S-1200", "tabela_destino": "alta", "ativo": True, "ordem_prioridade": 50},
                {"tag_xml": "evtTabRubrica", "codigo_evento": "S-1010", "tabela_destino": "rubricas", "ativo": False, "ordem_prioridade": 99},
            ]
        }
    )
    router = XmlRouter(store)

    # Act
    config = run(router.load_config())

    # Assert
    assert config["evtRemun"]["tabela_destino"] == "alta"
    assert "evtTabRubrica" not in config


def test_config_fica_em_cache_ate_limpar(store, xml_router):
    assert run(xml_router.route(xml_s1200())).destino_sql == "remuneracoes"

    for row in store.tabelas[TABELA_CONFIG]:
        if row["tag_xml"] == "evtRemun":
            row["tabela_destino"] = "remuneracoes_v2"

    assert run(xml_router.route(xml_s1200())).destino_sql == "remuneracoes"

    xml_router.clear_cache()
    assert run(xml_router.route(xml_s1200())).destino_sql == "remuneracoes_v2"


class _StoreIndisponivel(MemoryStore):
    def __init__(self):
        super().__init__()
        self.falhar = True

    async def select(self, tabela, *args, **kwargs):
        if self.falhar:
            raise ConnectionError("banco fora do ar")
        return await super().select(tabela, *args, **kwargs)


def test_falha_ao_carregar_config_nao_e_cacheada():
    # Arrange
    store = _StoreIndisponivel()
    router = XmlRouter(store)

    # Act
    durante_falha = run(router.route(xml_s1010()))
    store.falhar = False
    run(seed_router_config(store))
    depois = run(router.route(xml_s1010()))

    # Assert
    assert not durante_falha.sucesso
    assert durante_falha.erro == "Evento desconhecido ou não mapeado: evtTabRubrica"
    assert depois.sucesso


def test_seed_so_grava_em_colecao_vazia():
    store = MemoryStore()

    assert run(seed_router_config(store)) == len(DEFAULT_ROUTER_CONFIG)
    assert run(seed_router_config(store)) == 0
    assert len(store.tabelas[TABELA_CONFIG]) == len(DEFAULT_ROUTER_CONFIG)

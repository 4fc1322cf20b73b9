# tests/conftest.py

import asyncio
import io
import zipfile
from typing import List, Optional, Sequence, Tuple

import pytest

from esocial_auditor.esocial.importer import ImportPipeline
from esocial_auditor.esocial.xml_router import DEFAULT_ROUTER_CONFIG, XmlRouter
from esocial_auditor.persistence import MemoryStore

EMPRESA = "empresa-1"

NS_RUBRICA = "http://www.esocial.gov.br/schema/evt/evtTabRubrica/v_S_01_02_00"
NS_REMUN = "http://www.esocial.gov.br/schema/evt/evtRemun/v_S_01_02_00"
SIGNATURE = '<Signature xmlns="http://www.w3.org/2000/09/xmldsig#"><SignedInfo/></Signature>'


def run(coro):
    """Executa uma coroutine nos testes síncronos."""
    return asyncio.run(coro)


# --- Construtores de XML ---


def dados_rubrica_xml(
    descricao: str = "Salário Base",
    tp_rubr: Optional[str] = "1",
    nat_rubr: str = "1000",
    cp: Optional[str] = "11",
    irrf: Optional[str] = "11",
    fgts: Optional[str] = "11",
) -> str:
    partes = [f"<dscRubr>{descricao}</dscRubr>", f"<natRubr>{nat_rubr}</natRubr>"]
    if tp_rubr is not None:
        partes.append(f"<tpRubr>{tp_rubr}</tpRubr>")
    if cp is not None:
        partes.append(f"<codIncCP>{cp}</codIncCP>")
    if irrf is not None:
        partes.append(f"<codIncIRRF>{irrf}</codIncIRRF>")
    if fgts is not None:
        partes.append(f"<codIncFGTS>{fgts}</codIncFGTS>")
    return f"<dadosRubrica>{''.join(partes)}</dadosRubrica>"


def xml_s1010(
    codigo: str = "001",
    ini_valid: str = "2024-01",
    fim_valid: Optional[str] = None,
    operacao: str = "inclusao",
    dados: Optional[str] = None,
    nova_validade: Optional[Tuple[str, Optional[str]]] = None,
    event_id: str = "ID1000000000000002024010100000000000001",
    **kwargs,
) -> str:
    """S-1010 no leiaute envelopado (infoRubrica > operação > ide/dados)."""
    fim = f"<fimValid>{fim_valid}</fimValid>" if fim_valid else ""
    if dados is None and operacao != "exclusao":
        dados = dados_rubrica_xml(**kwargs)
    nova = ""
    if nova_validade:
        ini_n, fim_n = nova_validade
        nova = f"<novaValidade><iniValid>{ini_n}</iniValid>{f'<fimValid>{fim_n}</fimValid>' if fim_n else ''}</novaValidade>"
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<eSocial xmlns="{NS_RUBRICA}">
  <evtTabRubrica Id="{event_id}">
    <ideEvento><tpAmb>1</tpAmb><procEmi>1</procEmi><verProc>1.0</verProc></ideEvento>
    <ideEmpregador><tpInsc>1</tpInsc><nrInsc>12345678</nrInsc></ideEmpregador>
    <infoRubrica>
      <{operacao}>
        <ideRubrica>
          <codRubr>{codigo}</codRubr><ideTabRubr>TAB01</ideTabRubr>
          <iniValid>{ini_valid}</iniValid>{fim}
        </ideRubrica>
        {dados or ""}
        {nova}
      </{operacao}>
    </infoRubrica>
  </evtTabRubrica>
  {SIGNATURE}
</eSocial>"""


def item_remun_xml(codigo: str, valor: float, tp_rubr: Optional[str] = None, qtd: float = 0) -> str:
    tp = f"<tpRubr>{tp_rubr}</tpRubr>" if tp_rubr else ""
    return (
        f"<itensRemun><codRubr>{codigo}</codRubr><ideTabRubr>TAB01</ideTabRubr>{tp}"
        f"<qtdRubr>{qtd}</qtdRubr><vrRubr>{valor:.2f}</vrRubr></itensRemun>"
    )


def dm_dev_xml(itens: Sequence[str], ide_dm_dev: str = "DM1", matricula: str = "MAT01") -> str:
    return f"""<dmDev>
      <ideDmDev>{ide_dm_dev}</ideDmDev><codCateg>101</codCateg>
      <infoPerApur><ideEstabLot>
        <tpInsc>1</tpInsc><nrInsc>12345678000190</nrInsc><codLotacao>LOT01</codLotacao>
        <remunPerApur><matricula>{matricula}</matricula>{''.join(itens)}</remunPerApur>
      </ideEstabLot></infoPerApur>
    </dmDev>"""


def xml_s1200(
    itens: Sequence[Tuple] = (("001", 3000.0),),
    cpf: str = "11122233344",
    nome: str = "Maria da Silva",
    per_apur: str = "2024-03",
    event_id: str = "ID1000000000000002024030100000000000009",
) -> str:
    itens_xml = [item_remun_xml(*i) for i in itens]
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<eSocial xmlns="{NS_REMUN}">
  <evtRemun Id="{event_id}">
    <ideEvento><indRetif>1</indRetif><perApur>{per_apur}</perApur><tpAmb>1</tpAmb></ideEvento>
    <ideEmpregador><tpInsc>1</tpInsc><nrInsc>12345678</nrInsc></ideEmpregador>
    <ideTrabalhador><cpfTrab>{cpf}</cpfTrab><nmTrab>{nome}</nmTrab></ideTrabalhador>
    {dm_dev_xml(itens_xml)}
  </evtRemun>
</eSocial>"""


def xml_s1200_varios(trabalhadores: Sequence[Tuple[str, str, Sequence[Tuple]]], per_apur: str = "2024-03") -> str:
    """Vários trabalhadores no mesmo arquivo, cada um com seu bloco."""
    blocos = []
    for cpf, nome, itens in trabalhadores:
        blocos.append(
            f"<remunTrabalhador><ideTrabalhador><cpfTrab>{cpf}</cpfTrab><nmTrab>{nome}</nmTrab></ideTrabalhador>"
            f"{dm_dev_xml([item_remun_xml(*i) for i in itens])}</remunTrabalhador>"
        )
    return f"""<eSocial xmlns="{NS_REMUN}">
  <evtRemun Id="ID-LOTE">
    <ideEvento><perApur>{per_apur}</perApur></ideEvento>
    {''.join(blocos)}
  </evtRemun>
</eSocial>"""


def xml_admissao() -> str:
    return """<eSocial xmlns="http://www.esocial.gov.br/schema/evt/evtAdmissao/v_S_01_02_00">
  <evtAdmissao Id="ID-ADM"><trabalhador><cpfTrab>11122233344</cpfTrab></trabalhador></evtAdmissao>
</eSocial>"""


def montar_zip(entradas: Sequence[Tuple[str, str]], diretorios: Sequence[str] = ()) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for diretorio in diretorios:
            zf.writestr(zipfile.ZipInfo(diretorio), b"")
        for caminho, conteudo in entradas:
            zf.writestr(caminho, conteudo.encode("utf-8"))
    return buffer.getvalue()


# --- Dados de referência ---


BASE_CONHECIMENTO: List[dict] = [
    {
        "natureza_rubrica": "1000",
        "descricao_padrao": "Salário, vencimento, soldo",
        "incid_inss_padrao": "11",
        "incid_irrf_padrao": "11",
        "incid_fgts_padrao": "11",
        "fundamentacao_legal": "Art. 28, I, Lei 8.212/91",
    },
    {
        "natureza_rubrica": "1801",
        "descricao_padrao": "Alimentação (PAT)",
        "incid_inss_padrao": "00",
        "incid_irrf_padrao": "00",
        "incid_fgts_padrao": "00",
        "fundamentacao_legal": None,
    },
]


# --- Fixtures ---


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore(
        {
            "xml_router_config": [dict(c) for c in DEFAULT_ROUTER_CONFIG],
            "base_conhecimento_rubricas": [dict(b) for b in BASE_CONHECIMENTO],
        }
    )


@pytest.fixture
def xml_router(store) -> XmlRouter:
    return XmlRouter(store)


@pytest.fixture
def pipeline(store, xml_router) -> ImportPipeline:
    return ImportPipeline(store, xml_router)

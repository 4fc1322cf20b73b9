# esocial_auditor/esocial/importer.py
"""
Pipeline de importação: ZIP -> roteador -> leitor -> persistência.

Arquivos são processados um a um, em ordem: o que um arquivo grava precisa
estar visível para o seguinte (ex.: rubricas do S-1010 usadas para montar as
bases do S-1200 do mesmo lote). A falha de um arquivo nunca interrompe o lote.
"""

from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

import pandas as pd

from esocial_auditor.esocial.event_catalog import (
    detect_event_type,
    get_event_description,
    is_event_supported,
)
from esocial_auditor.esocial.models import ParsedRemuneracao, ParsedRubrica
from esocial_auditor.esocial.parsers import extract_xml_id, parse_s1010, parse_s1200
from esocial_auditor.esocial.xml_router import RouterResult, XmlRouter
from esocial_auditor.esocial.zip_extractor import (
    ExtractedFile,
    decode_xml_bytes,
    extract_xmls_from_zip,
    is_zip_file,
)
from esocial_auditor.exceptions import AuditorError, RubricaOrdemError
from esocial_auditor.logging_config import log
from esocial_auditor.persistence import Ordem, Store, eq, in_, is_null
from esocial_auditor.shared.competencia import (
    compare_competencias,
    competencia_contida,
    get_previous_month,
    validate_competencia,
)
from esocial_auditor.shared.utils import arredondar_centavos, incidencia_ativa

AVISO_ENCERRAMENTO = (
    "Importação realizou o encerramento de vigência de rubrica com código já existente"
)

STATUS_SUCESSO = "success"
STATUS_PARCIAL = "partial"
STATUS_ERRO = "error"
STATUS_PROCESSANDO = "processing"

ProgressCallback = Callable[[str, int, int], None]
Upload = Tuple[str, Union[bytes, str]]


@dataclass
class ImportResult:
    success: bool
    message: str
    records: int = 0
    status: str = STATUS_ERRO
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    event_type: Optional[str] = None
    destino_sql: Optional[str] = None
    xml_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class UnsupportedFile:
    file_name: str
    event_type: str
    event_description: str
    file_path: Optional[str] = None


@dataclass
class BatchResult:
    results: List[ImportResult] = field(default_factory=list)
    unsupported: List[UnsupportedFile] = field(default_factory=list)
    competencias: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _ArquivoXml:
    file_name: str
    content: str
    zip_name: Optional[str] = None
    file_path: Optional[str] = None


def agrupar_por_codigo(rubricas: Sequence[dict]) -> Dict[str, List[dict]]:
    por_codigo: Dict[str, List[dict]] = {}
    for row in rubricas:
        por_codigo.setdefault(row["codigo"], []).append(row)
    return por_codigo


def rubrica_vigente(
    rubricas: Dict[str, List[dict]], codigo: str, competencia: Optional[str]
) -> Optional[dict]:
    """Registro da rubrica cuja vigência contém a competência (mais recente primeiro)."""
    for row in rubricas.get(codigo, []):
        if not validate_competencia(competencia):
            return row
        if competencia_contida(competencia, row.get("ini_valid"), row.get("fim_valid")):
            return row
    return None


def _status_final(processados: int, erros: Sequence[str]) -> str:
    if not erros:
        return STATUS_SUCESSO
    return STATUS_PARCIAL if processados > 0 else STATUS_ERRO


class ImportPipeline:
    def __init__(self, store: Store, router: XmlRouter, max_zip_size_mb: Optional[float] = None):
        self.store = store
        self.router = router
        self.max_zip_size_mb = max_zip_size_mb

    # --- LOTE ---

    async def process_files(
        self,
        empresa_id: str,
        arquivos: Sequence[Upload],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Processa uploads (.xml ou .zip) e devolve o resultado por arquivo."""
        lote = BatchResult()
        xmls: List[_ArquivoXml] = []

        # 1. Expansão dos ZIPs
        for nome, conteudo in arquivos:
            if is_zip_file(nome):
                try:
                    extracao = extract_xmls_from_zip(
                        conteudo if isinstance(conteudo, bytes) else conteudo.encode(),
                        max_size_mb=self.max_zip_size_mb,
                    )
                except AuditorError as e:
                    log.warning(f"ZIP rejeitado ({nome}): {e.message}")
                    rejeitado = _ArquivoXml(file_name=nome, content="", zip_name=nome)
                    await self._registrar_falha_roteamento(empresa_id, rejeitado, "ZIP", e.message)
                    lote.results.append(
                        ImportResult(
                            success=False,
                            message=f"{nome}: {e.message}",
                            file_name=nome,
                            errors=[e.message],
                        )
                    )
                    continue
                xmls.extend(self._de_zip(nome, extracao.xml_files))
            else:
                texto = decode_xml_bytes(conteudo) if isinstance(conteudo, bytes) else conteudo
                xmls.append(_ArquivoXml(file_name=nome, content=texto))

        # 2. Arquivo a arquivo, sequencial
        competencias: Set[str] = set()
        for i, arquivo in enumerate(xmls, start=1):
            if on_progress:
                on_progress(arquivo.file_name, i, len(xmls))
            try:
                await self._process_xml(empresa_id, arquivo, lote, competencias)
            except Exception as e:
                log.exception(f"Erro inesperado ao processar {arquivo.file_name}: {e}")
                lote.results.append(
                    ImportResult(
                        success=False,
                        message=f"{arquivo.file_name}: {e}",
                        file_name=arquivo.file_name,
                        file_path=arquivo.file_path,
                        errors=[str(e)],
                    )
                )

        # 3. Apuração mensal das competências tocadas
        for competencia in sorted(competencias):
            try:
                await self.update_apuracao(empresa_id, competencia)
            except Exception as e:
                log.error(f"❌ Falha ao atualizar apuração {competencia}: {e}")

        lote.competencias = sorted(competencias)
        sucesso = sum(1 for r in lote.results if r.success)
        log.info(
            f"Lote da empresa {empresa_id}: {len(xmls)} XML(s), {sucesso} com sucesso, "
            f"{len(lote.unsupported)} não suportado(s)"
        )
        return lote

    @staticmethod
    def _de_zip(nome_zip: str, extraidos: List[ExtractedFile]) -> List[_ArquivoXml]:
        return [
            _ArquivoXml(
                file_name=e.file_name, content=e.content, zip_name=nome_zip, file_path=e.file_path
            )
            for e in extraidos
        ]

    async def _process_xml(
        self, empresa_id: str, arquivo: _ArquivoXml, lote: BatchResult, competencias: Set[str]
    ) -> None:
        rota = await self.router.route(arquivo.content)

        if not rota.sucesso:
            evento = detect_event_type(arquivo.content)
            if not is_event_supported(evento):
                lote.unsupported.append(
                    UnsupportedFile(
                        file_name=arquivo.file_name,
                        file_path=arquivo.file_path,
                        event_type=evento,
                        event_description=get_event_description(evento),
                    )
                )
                return
            mensagem = rota.erro or "Erro no roteamento"
            await self._registrar_falha_roteamento(empresa_id, arquivo, evento, mensagem)
            lote.results.append(
                ImportResult(
                    success=False,
                    message=f"{arquivo.file_name}: {mensagem}",
                    file_name=arquivo.file_name,
                    file_path=arquivo.file_path,
                    event_type=evento,
                    errors=[mensagem],
                )
            )
            return

        log.info(f"📄 {arquivo.file_name} -> {rota.evento_esocial} ({rota.destino_sql})")

        if rota.evento_esocial == "S-1010":
            resultado = await self.process_s1010(empresa_id, arquivo, rota)
        elif rota.evento_esocial == "S-1200":
            resultado = await self.process_s1200(empresa_id, arquivo, rota, competencias)
        else:
            lote.unsupported.append(
                UnsupportedFile(
                    file_name=arquivo.file_name,
                    file_path=arquivo.file_path,
                    event_type=rota.evento_esocial or "UNKNOWN",
                    event_description=f"Evento {rota.evento_esocial} não implementado",
                )
            )
            return

        lote.results.append(resultado)

    # --- LOG DE IMPORTAÇÃO ---

    async def _abrir_importacao(
        self,
        empresa_id: str,
        arquivo: _ArquivoXml,
        tipo_evento: str,
        tabela_destino: Optional[str],
        competencia: Optional[str] = None,
        xml_id: Optional[str] = None,
    ) -> Optional[str]:
        try:
            (row,) = await self.store.insert(
                "importacoes",
                [
                    {
                        "empresa_id": empresa_id,
                        "tipo_evento": tipo_evento,
                        "nome_arquivo": arquivo.file_name,
                        "arquivo_origem_zip": arquivo.zip_name,
                        "caminho_no_zip": arquivo.file_path,
                        "tabela_destino": tabela_destino,
                        "competencia": competencia,
                        "xml_id": xml_id,
                        "status": STATUS_PROCESSANDO,
                        "registros_processados": 0,
                        "erros": [],
                    }
                ],
            )
            return row["id"]
        except Exception as e:
            log.error(f"❌ Falha ao registrar importação de {arquivo.file_name}: {e}")
            return None

    async def _fechar_importacao(
        self, importacao_id: Optional[str], status: str, registros: int, erros: List[str]
    ) -> None:
        if not importacao_id:
            return
        try:
            await self.store.update(
                "importacoes",
                {"status": status, "registros_processados": registros, "erros": list(erros)},
                [eq("id", importacao_id)],
            )
        except Exception as e:
            log.error(f"❌ Falha ao atualizar importação {importacao_id}: {e}")

    async def _registrar_falha_roteamento(
        self, empresa_id: str, arquivo: _ArquivoXml, evento: str, mensagem: str
    ) -> None:
        importacao_id = await self._abrir_importacao(empresa_id, arquivo, evento, None)
        await self._fechar_importacao(importacao_id, STATUS_ERRO, 0, [mensagem])

    # --- S-1010 ---

    async def process_s1010(
        self, empresa_id: str, arquivo: _ArquivoXml, rota: RouterResult
    ) -> ImportResult:
        tabela = rota.destino_sql or "rubricas"
        importacao_id = await self._abrir_importacao(
            empresa_id, arquivo, "S-1010", tabela, xml_id=extract_xml_id(arquivo.content)
        )

        resultado = ImportResult(
            success=False,
            message="",
            file_name=arquivo.file_name,
            file_path=arquivo.file_path,
            event_type="S-1010",
            destino_sql=tabela,
        )

        try:
            evento = parse_s1010(arquivo.content)
        except AuditorError as e:
            resultado.errors.append(e.message)
        else:
            resultado.xml_id = evento.cabecalho.xml_id
            if not evento.rubricas:
                resultado.errors.append("Nenhuma rubrica encontrada")
            for rubrica in evento.rubricas:
                try:
                    await self._aplicar_rubrica(
                        empresa_id, tabela, rubrica, evento.cabecalho.xml_id,
                        importacao_id, resultado.warnings,
                    )
                    resultado.records += 1
                except AuditorError as e:
                    resultado.errors.append(e.message)
                except Exception as e:
                    log.error(f"❌ Rubrica {rubrica.codigo} ({arquivo.file_name}): {e}")
                    resultado.errors.append(f"Rubrica {rubrica.codigo}: {e}")

        resultado.status = _status_final(resultado.records, resultado.errors)
        resultado.success = resultado.status == STATUS_SUCESSO
        if resultado.errors:
            resultado.message = f"{arquivo.file_name}: {'; '.join(resultado.errors)}"
        else:
            resultado.message = f"{arquivo.file_name}: {resultado.records} rubrica(s) importada(s)"
        for aviso in resultado.warnings:
            log.warning(f"⚠️ {arquivo.file_name}: {aviso}")

        await self._fechar_importacao(
            importacao_id, resultado.status, resultado.records, resultado.errors
        )
        return resultado

    @staticmethod
    def _row_rubrica(
        empresa_id: str, rubrica: ParsedRubrica, xml_id: Optional[str], importacao_id: Optional[str]
    ) -> dict:
        return {
            "empresa_id": empresa_id,
            "codigo": rubrica.codigo,
            "descricao": rubrica.descricao,
            "natureza": rubrica.natureza,
            "natureza_rubrica": rubrica.natureza_rubrica or None,
            "incid_inss": rubrica.incid_inss,
            "incid_irrf": rubrica.incid_irrf,
            "incid_fgts": rubrica.incid_fgts,
            "ide_tab_rubr": rubrica.ide_tab_rubr or None,
            "ini_valid": rubrica.ini_valid,
            "fim_valid": rubrica.fim_valid,
            "xml_id": xml_id,
            "importacao_id": importacao_id,
        }

    async def _aplicar_rubrica(
        self,
        empresa_id: str,
        tabela: str,
        rubrica: ParsedRubrica,
        xml_id: Optional[str],
        importacao_id: Optional[str],
        avisos: List[str],
    ) -> None:
        row = self._row_rubrica(empresa_id, rubrica, xml_id, importacao_id)
        chave = [eq("empresa_id", empresa_id), eq("codigo", rubrica.codigo), eq("ini_valid", rubrica.ini_valid)]

        if rubrica.operacao == "exclusao":
            removidas = await self.store.delete(tabela, chave)
            if not removidas:
                avisos.append(
                    f"Exclusão da rubrica {rubrica.codigo} ({rubrica.ini_valid}) sem registro correspondente"
                )
            return

        if rubrica.operacao == "alteracao":
            valores = {k: v for k, v in row.items() if k not in ("empresa_id", "codigo", "ini_valid")}
            if rubrica.nova_ini_valid:
                valores["ini_valid"] = rubrica.nova_ini_valid
                valores["fim_valid"] = rubrica.nova_fim_valid
            alteradas = await self.store.update(tabela, valores, chave)
            if not alteradas:
                avisos.append(
                    f"Alteração da rubrica {rubrica.codigo} ({rubrica.ini_valid}) sem registro anterior; rubrica incluída"
                )
                await self.store.insert(tabela, [{**row, **valores}])
            return

        # inclusao
        abertas = await self.store.select(
            tabela,
            filtros=[eq("empresa_id", empresa_id), eq("codigo", rubrica.codigo), is_null("fim_valid")],
            ordem=[Ordem("ini_valid", desc=True)],
            limite=1,
        )
        if abertas:
            existente = abertas[0]
            ini_existente = existente.get("ini_valid")
            if validate_competencia(rubrica.ini_valid) and validate_competencia(ini_existente):
                if compare_competencias(rubrica.ini_valid, ini_existente) <= 0:
                    raise RubricaOrdemError(rubrica.codigo, rubrica.ini_valid, ini_existente)
                await self.store.update(
                    tabela,
                    {"fim_valid": get_previous_month(rubrica.ini_valid)},
                    [eq("id", existente["id"])],
                )
                avisos.append(AVISO_ENCERRAMENTO)
            else:
                raise RubricaOrdemError(rubrica.codigo, str(rubrica.ini_valid), str(ini_existente))

        await self.store.insert(tabela, [row])

    # --- S-1200 ---

    async def _rubricas_empresa(self, empresa_id: str) -> Dict[str, List[dict]]:
        rows = await self.store.select(
            "rubricas", [eq("empresa_id", empresa_id)], [Ordem("ini_valid", desc=True)]
        )
        return agrupar_por_codigo(rows)

    async def _colaborador_id(self, empresa_id: str, rem: ParsedRemuneracao) -> str:
        existentes = await self.store.select(
            "colaboradores",
            [eq("empresa_id", empresa_id), eq("cpf", rem.colaborador.cpf)],
            limite=1,
        )
        if existentes:
            return existentes[0]["id"]
        (novo,) = await self.store.insert(
            "colaboradores",
            [
                {
                    "empresa_id": empresa_id,
                    "cpf": rem.colaborador.cpf,
                    "nome": rem.colaborador.nome,
                    "matricula": rem.colaborador.matricula,
                }
            ],
        )
        return novo["id"]

    async def process_s1200(
        self,
        empresa_id: str,
        arquivo: _ArquivoXml,
        rota: RouterResult,
        competencias: Set[str],
    ) -> ImportResult:
        resultado = ImportResult(
            success=False,
            message="",
            file_name=arquivo.file_name,
            file_path=arquivo.file_path,
            event_type="S-1200",
            destino_sql=rota.destino_sql,
        )

        try:
            remuneracoes = parse_s1200(arquivo.content)
        except AuditorError as e:
            remuneracoes = []
            resultado.errors.append(e.message)
        else:
            if not remuneracoes:
                resultado.errors.append("Nenhuma remuneração encontrada")

        competencia = remuneracoes[0].competencia if remuneracoes else None
        importacao_id = await self._abrir_importacao(
            empresa_id,
            arquivo,
            "S-1200",
            rota.destino_sql,
            competencia=competencia,
            xml_id=extract_xml_id(arquivo.content),
        )

        rubricas: Optional[Dict[str, List[dict]]] = None
        if remuneracoes:
            try:
                rubricas = await self._rubricas_empresa(empresa_id)
            except Exception as e:
                log.error(f"❌ Rubricas da empresa {empresa_id} ({arquivo.file_name}): {e}")
                resultado.errors.append(f"Erro ao carregar rubricas: {e}")

        if rubricas is not None:
            for rem in remuneracoes:
                try:
                    await self._gravar_remuneracao(empresa_id, rem, rubricas, importacao_id)
                    resultado.records += 1
                    if rem.competencia:
                        competencias.add(rem.competencia)
                except Exception as e:
                    log.error(f"❌ Remuneração {rem.colaborador.cpf} ({arquivo.file_name}): {e}")
                    resultado.errors.append(f"{rem.colaborador.cpf}: {e}")

        resultado.status = _status_final(resultado.records, resultado.errors)
        resultado.success = resultado.status == STATUS_SUCESSO
        if resultado.records:
            resultado.message = f"{arquivo.file_name}: {resultado.records} remuneração(ões) importada(s)"
        else:
            resultado.message = f"{arquivo.file_name}: {'; '.join(resultado.errors)}"

        await self._fechar_importacao(
            importacao_id, resultado.status, resultado.records, resultado.errors
        )
        return resultado

    async def _gravar_remuneracao(
        self,
        empresa_id: str,
        rem: ParsedRemuneracao,
        rubricas: Dict[str, List[dict]],
        importacao_id: Optional[str],
    ) -> str:
        colaborador_id = await self._colaborador_id(empresa_id, rem)

        valor_bruto = valor_descontos = 0.0
        base_inss = base_irrf = base_fgts = 0.0
        itens_rows = []

        for ordem, item in enumerate(rem.itens, start=1):
            rubrica = rubrica_vigente(rubricas, item.codigo_rubrica, rem.competencia)
            natureza = item.natureza or (rubrica or {}).get("natureza") or "provento"

            if natureza == "provento":
                valor_bruto += item.valor
            elif natureza == "desconto":
                valor_descontos += item.valor

            # Rubrica não cadastrada entra só nos totais brutos.
            if rubrica and natureza == "provento":
                if incidencia_ativa(rubrica.get("incid_inss")):
                    base_inss += item.valor
                if incidencia_ativa(rubrica.get("incid_irrf")):
                    base_irrf += item.valor
                if incidencia_ativa(rubrica.get("incid_fgts")):
                    base_fgts += item.valor

            itens_rows.append(
                {
                    "rubrica_id": rubrica["id"] if rubrica else None,
                    "codigo_rubrica": item.codigo_rubrica,
                    "descricao": item.descricao or (rubrica or {}).get("descricao") or "",
                    "natureza": natureza,
                    "referencia": item.referencia,
                    "valor": item.valor,
                    "ordem": ordem,
                }
            )

        existentes = await self.store.select(
            "remuneracoes",
            [eq("colaborador_id", colaborador_id), eq("competencia", rem.competencia)],
            limite=1,
        )
        if existentes:
            await self.store.delete(
                "itens_remuneracao", [eq("remuneracao_id", existentes[0]["id"])]
            )

        remuneracao = await self.store.upsert(
            "remuneracoes",
            {
                "empresa_id": empresa_id,
                "colaborador_id": colaborador_id,
                "importacao_id": importacao_id,
                "competencia": rem.competencia,
                "valor_bruto": arredondar_centavos(valor_bruto),
                "valor_descontos": arredondar_centavos(valor_descontos),
                "valor_liquido": arredondar_centavos(valor_bruto - valor_descontos),
                "base_inss": arredondar_centavos(base_inss),
                "base_irrf": arredondar_centavos(base_irrf),
                "base_fgts": arredondar_centavos(base_fgts),
            },
            on_conflict=("colaborador_id", "competencia"),
        )

        for row in itens_rows:
            row["remuneracao_id"] = remuneracao["id"]
        await self.store.insert("itens_remuneracao", itens_rows)
        return remuneracao["id"]

    # --- APURAÇÃO MENSAL ---

    async def update_apuracao(self, empresa_id: str, competencia: str) -> Optional[dict]:
        remuneracoes = await self.store.select(
            "remuneracoes", [eq("empresa_id", empresa_id), eq("competencia", competencia)]
        )
        if not remuneracoes:
            return None

        df = pd.DataFrame(remuneracoes)
        totais = {
            col: arredondar_centavos(df[col].fillna(0).sum())
            for col in ("valor_bruto", "base_inss", "base_irrf", "base_fgts")
        }

        divergencias = await self.store.select(
            "divergencias",
            [eq("empresa_id", empresa_id), in_("remuneracao_id", df["id"].tolist())],
            colunas=["id"],
        )

        return await self.store.upsert(
            "apuracoes",
            {
                "empresa_id": empresa_id,
                "competencia": competencia,
                "total_bruto_original": totais["valor_bruto"],
                "total_bruto_recalculado": totais["valor_bruto"],
                "total_inss_original": totais["base_inss"],
                "total_inss_recalculado": totais["base_inss"],
                "total_irrf_original": totais["base_irrf"],
                "total_irrf_recalculado": totais["base_irrf"],
                "total_fgts_original": totais["base_fgts"],
                "total_fgts_recalculado": totais["base_fgts"],
                "total_divergencias": len(divergencias),
                "status": "processado",
            },
            on_conflict=("empresa_id", "competencia"),
        )

    # --- HISTÓRICO E LIMPEZA ---

    async def list_importacoes(self, empresa_id: str, limite: int = 20) -> List[dict]:
        return await self.store.select(
            "importacoes",
            [eq("empresa_id", empresa_id)],
            [Ordem("created_at", desc=True)],
            limite=limite,
        )

    async def clear_company_data(self, empresa_id: str) -> Dict[str, int]:
        """Remove tudo que foi importado para a empresa (dependentes primeiro)."""
        removidos: Dict[str, int] = {}
        por_empresa = [eq("empresa_id", empresa_id)]

        removidos["divergencias"] = await self.store.delete("divergencias", por_empresa)

        remuneracoes = await self.store.select("remuneracoes", por_empresa, colunas=["id"])
        removidos["itens_remuneracao"] = await self.store.delete(
            "itens_remuneracao", [in_("remuneracao_id", [r["id"] for r in remuneracoes])]
        )

        for tabela in ("remuneracoes", "apuracoes", "colaboradores", "rubricas", "importacoes"):
            removidos[tabela] = await self.store.delete(tabela, por_empresa)

        log.warning(f"Dados importados da empresa {empresa_id} removidos: {removidos}")
        return removidos

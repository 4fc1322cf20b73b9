# esocial_auditor/esocial/router.py

from typing import List

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from esocial_auditor.esocial.event_catalog import EVENT_DESCRIPTIONS, SUPPORTED_EVENTS
from esocial_auditor.esocial.importer import ImportPipeline
from esocial_auditor.esocial.zip_extractor import is_xml_file, is_zip_file
from esocial_auditor.logging_config import log

router = APIRouter(prefix="/api/v1/esocial", tags=["eSocial - Importação"])


def _pipeline(request: Request) -> ImportPipeline:
    return request.app.state.pipeline


# --- ENDPOINTS ---


@router.post("/importar")
async def importar_arquivos(
    request: Request,
    empresa_id: str = Form(...),
    files: List[UploadFile] = File(...),
):
    """Recebe XMLs e/ou ZIPs; arquivos de outras extensões são ignorados."""
    arquivos = []
    for upload in files:
        nome = upload.filename or "arquivo.xml"
        if not (is_xml_file(nome) or is_zip_file(nome)):
            log.info(f"[Router] Ignorando arquivo não suportado: {nome}")
            continue
        arquivos.append((nome, await upload.read()))

    if not arquivos:
        raise HTTPException(status_code=400, detail="Nenhum arquivo .xml ou .zip enviado.")

    lote = await _pipeline(request).process_files(empresa_id, arquivos)
    return lote.to_dict()


@router.get("/importacoes/{empresa_id}")
async def listar_importacoes(request: Request, empresa_id: str, limite: int = 20):
    return await _pipeline(request).list_importacoes(empresa_id, limite)


@router.delete("/empresas/{empresa_id}/dados")
async def limpar_dados_empresa(request: Request, empresa_id: str):
    removidos = await _pipeline(request).clear_company_data(empresa_id)
    return {"empresa_id": empresa_id, "removidos": removidos}


@router.post("/router/cache/limpar")
async def limpar_cache_roteador(request: Request):
    request.app.state.xml_router.clear_cache()
    return {"message": "Cache do roteador limpo."}


@router.get("/catalogo/eventos")
async def catalogo_eventos():
    return {"suportados": list(SUPPORTED_EVENTS), "eventos": EVENT_DESCRIPTIONS}

# esocial_auditor/auditoria/router.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from esocial_auditor.auditoria.auditor import AuditoriaEngine
from esocial_auditor.shared.competencia import compare_competencias, validate_competencia

router = APIRouter(prefix="/api/v1/auditoria", tags=["Auditoria - Rubricas"])

# --- MODELOS ---


class AuditoriaRequest(BaseModel):
    empresa_id: str
    competencia_inicio: Optional[str] = None  # Ex: "2020-01"
    competencia_fim: Optional[str] = None  # Ex: "2024-12"


class AuditoriaLegadoRequest(BaseModel):
    empresa_id: str
    competencia: Optional[str] = None


def _engine(request: Request) -> AuditoriaEngine:
    return request.app.state.engine


def _validar(*competencias: Optional[str]) -> None:
    for comp in competencias:
        if comp is not None and not validate_competencia(comp):
            raise HTTPException(
                status_code=400, detail=f"Competência inválida: '{comp}' (formato AAAA-MM)."
            )


# --- ENDPOINTS ---


@router.post("/executar")
async def executar_auditoria(request: Request, body: AuditoriaRequest):
    _validar(body.competencia_inicio, body.competencia_fim)
    if (
        body.competencia_inicio
        and body.competencia_fim
        and compare_competencias(body.competencia_inicio, body.competencia_fim) > 0
    ):
        raise HTTPException(
            status_code=400, detail="Competência inicial posterior à competência final."
        )

    resultado = await _engine(request).run_audit(
        body.empresa_id, body.competencia_inicio, body.competencia_fim
    )
    return resultado.to_dict()


@router.post("/legado")
async def executar_auditoria_legado(request: Request, body: AuditoriaLegadoRequest):
    _validar(body.competencia)
    resultado = await _engine(request).run_audit_legacy(body.empresa_id, body.competencia)
    return resultado.to_dict()


@router.get("/resumo/{empresa_id}")
async def resumo_auditoria(request: Request, empresa_id: str):
    return await _engine(request).get_audit_summary(empresa_id)


@router.get("/rubricas/{empresa_id}")
async def analise_rubricas(request: Request, empresa_id: str, status: Optional[str] = None):
    analise = await _engine(request).analisar_rubricas(empresa_id)
    if status:
        if status not in analise["totais"]:
            raise HTTPException(status_code=400, detail=f"Status desconhecido: '{status}'.")
        analise["rubricas"] = [r for r in analise["rubricas"] if r["status"] == status]
    return analise


@router.post("/parametros/cache/limpar")
async def limpar_cache_parametros(request: Request):
    _engine(request).resolver.invalidate()
    return {"message": "Cache de parâmetros limpo."}

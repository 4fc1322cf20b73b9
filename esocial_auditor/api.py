# esocial_auditor/api.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from esocial_auditor import __version__
from esocial_auditor.auditoria.auditor import AuditoriaEngine
from esocial_auditor.auditoria.parametros import ParametrosResolver
from esocial_auditor.auditoria.router import router as auditoria_router
from esocial_auditor.config import settings
from esocial_auditor.esocial.importer import ImportPipeline
from esocial_auditor.esocial.router import router as esocial_router
from esocial_auditor.esocial.xml_router import XmlRouter, seed_router_config
from esocial_auditor.logging_config import log
from esocial_auditor.persistence import Store, get_store
from esocial_auditor.shared.cache import TtlCache


def montar_servicos(app: FastAPI, store: Store) -> None:
    """Instancia os serviços (um por processo) e pendura em ``app.state``."""
    app.state.store = store
    app.state.xml_router = XmlRouter(store, TtlCache(settings.ROUTER_CACHE_TTL_SECONDS))
    app.state.resolver = ParametrosResolver(
        store, TtlCache(settings.PARAMETROS_CACHE_TTL_SECONDS)
    )
    app.state.engine = AuditoriaEngine(store, app.state.resolver)
    app.state.pipeline = ImportPipeline(
        store, app.state.xml_router, max_zip_size_mb=settings.MAX_ZIP_SIZE_MB
    )


def create_app(store: Store = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend = store or get_store()
        montar_servicos(app, backend)
        try:
            await seed_router_config(backend)
        except Exception as e:
            log.error(f"❌ Não foi possível gravar a configuração padrão do roteador: {e}")
        log.info(f"🚀 {settings.APP_NAME} v{__version__} iniciado ({settings.STORE_BACKEND}).")
        yield
        log.info("API encerrada.")

    app = FastAPI(title=settings.APP_NAME, version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(esocial_router)
    app.include_router(auditoria_router)

    @app.get("/health")
    async def health():
        ok = await app.state.store.ping()
        return {"status": "ok" if ok else "degraded", "store": ok}

    return app


app = create_app()

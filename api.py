# api.py
import logging
import time
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import rotas_auth
import rotas_cadastro
from config import Settings, configurar_logging, get_settings
from db import Base, criar_engine, criar_sessionmaker
from rotas_auth import agora_iso
from seguranca import LimitadorTaxa, ip_cliente, resolver_segredo_jwt

logger = logging.getLogger(__name__)

CABECALHOS_SEGURANCA = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'",
    "Referrer-Policy": "no-referrer",
}


def _erro(status_code, mensagem, headers=None, **extra):
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": mensagem, "timestamp": agora_iso(), **extra},
        headers=headers,
    )


def create_app(settings: Settings | None = None, engine=None) -> FastAPI:
    """
    Monta a API. Engine, sessões, segredo JWT e limitadores ficam em
    app.state; os testes passam settings/engine próprios.
    """
    settings = settings or get_settings()
    configurar_logging(settings)

    app = FastAPI(
        title="Login Legado API",
        version="1.0.0",
        description="Login e cadastro sobre as tabelas LoginUsers/Pessoa do sistema legado",
    )

    app.state.settings = settings
    app.state.jwt_secret = resolver_segredo_jwt(settings)
    app.state.engine = engine if engine is not None else criar_engine(settings)
    app.state.SessionLocal = criar_sessionmaker(app.state.engine)
    app.state.limitador_login = LimitadorTaxa(settings.login_rate_limit, settings.login_rate_window_seconds)
    app.state.limitador_api = LimitadorTaxa(settings.api_rate_limit, settings.api_rate_window_seconds)

    # ======================================================
    #  MIDDLEWARES
    # ======================================================
    def erro_interno(request: Request, exc: Exception):
        logger.error("Erro não tratado em %s %s", request.method, request.url.path, exc_info=exc)
        if settings.is_production:
            return _erro(500, "Erro interno do servidor")
        return _erro(
            500,
            "Erro interno do servidor",
            message=f"{type(exc).__name__}: {exc}",
            stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )

    # o primeiro registrado fica por dentro: os 500 ainda passam por
    # cabeçalhos de segurança e CORS
    @app.middleware("http")
    async def erros_inesperados(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return erro_interno(request, exc)

    @app.middleware("http")
    async def limite_global(request: Request, call_next):
        ip = ip_cliente(request)
        if request.method != "OPTIONS" and not app.state.limitador_api.tentar(ip):
            logger.warning("Rate limit global atingido - IP %s - %s", ip, request.url.path)
            return _erro(429, "Muitas requisições deste IP. Tente novamente em 15 minutos.")
        return await call_next(request)

    @app.middleware("http")
    async def log_requisicoes(request: Request, call_next):
        inicio = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - inicio) * 1000,
        )
        return response

    @app.middleware("http")
    async def cabecalhos_seguranca(request: Request, call_next):
        response = await call_next(request)
        for nome, valor in CABECALHOS_SEGURANCA.items():
            response.headers.setdefault(nome, valor)
        return response

    # por último: fica por fora e responde o preflight antes do rate limit
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.lista_cors,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # ======================================================
    #  ERROS
    # ======================================================
    @app.exception_handler(StarletteHTTPException)
    async def erro_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _erro(404, "Rota não encontrada", path=request.url.path)
        return _erro(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def erro_validacao(request: Request, exc: RequestValidationError):
        campos = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in exc.errors()]
        logger.info("Requisição inválida em %s: %s", request.url.path, campos)
        return _erro(400, "Dados da requisição inválidos", campos=campos)

    # ======================================================
    #  ROTAS
    # ======================================================
    app.include_router(rotas_auth.router)
    app.include_router(rotas_cadastro.router)
    if not settings.is_production:
        app.include_router(rotas_auth.dev_router)
        app.include_router(rotas_cadastro.dev_router)

    @app.get("/")
    def raiz():
        return {
            "message": "API de Login Legado",
            "version": app.version,
            "ambiente": settings.app_env,
            "endpoints": {
                "login": "POST /api/login",
                "health": "GET /api/health",
                "verify": "GET /api/verify",
                "profile": "GET /api/profile",
                "logout": "POST /api/logout",
                "cadastro": "GET /api/cadastro/teste",
            },
            "timestamp": agora_iso(),
        }

    @app.on_event("startup")
    def on_startup():
        if settings.db_create_tables:
            Base.metadata.create_all(bind=app.state.engine)
        logger.info("API iniciada (%s) - banco %s", settings.app_env, app.state.engine.url.render_as_string())

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.engine.dispose()
        logger.info("Pool de conexões encerrado")

    return app


app = create_app()

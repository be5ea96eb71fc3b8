# config.py
import logging
import os
import re
from functools import lru_cache
from logging.handlers import RotatingFileHandler

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuração da API, lida das variáveis de ambiente (e do .env).
    Nunca coloque credenciais diretamente no código.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", description="development | production | test")

    # Banco legado (SQL Server em produção: mssql+pyodbc://...)
    database_url: str = "sqlite:///./login_legado.db"
    db_echo: bool = False
    db_pool_size: int = Field(default=10, ge=1)
    db_pool_timeout: int = Field(default=30, ge=1)
    db_create_tables: bool = True

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expires_in: str = "24h"

    # CORS: origens separadas por vírgula
    cors_origins: str = "http://localhost:3000,http://localhost:8080"

    # Rate limiting por IP
    login_rate_limit: int = 5
    login_rate_window_seconds: int = 900
    api_rate_limit: int = 100
    api_rate_window_seconds: int = 900

    log_level: str = "INFO"
    log_dir: str | None = None

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in ("production", "prod")

    @property
    def lista_cors(self) -> list[str]:
        itens = [x.strip() for x in self.cors_origins.replace(";", ",").split(",")]
        return [x for x in itens if x]


@lru_cache
def get_settings() -> Settings:
    return Settings()


_DURACAO_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNIDADES = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def duracao_em_segundos(texto):
    """
    Converte uma duração no estilo "24h", "15m", "7d" ou "3600" para segundos.
    """
    m = _DURACAO_RE.match(str(texto).lower())
    if not m:
        raise ValueError(f"Duração inválida: {texto!r}")
    return int(m.group(1)) * _UNIDADES[m.group(2)]


# ======================================================
#  LOGGING
# ======================================================
_FORMATO_LOG = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_FORMATO_DATA = "%Y-%m-%d %H:%M:%S"


def configurar_logging(settings: Settings):
    """
    Console no nível configurado; se LOG_DIR estiver definido,
    all.log recebe tudo (DEBUG) e error.log apenas os erros.
    """
    root = logging.getLogger()
    if getattr(root, "_login_legado_configurado", False):
        return

    formatter = logging.Formatter(_FORMATO_LOG, datefmt=_FORMATO_DATA)
    nivel = getattr(logging, settings.log_level.upper(), logging.INFO)

    console = logging.StreamHandler()
    console.setLevel(nivel)
    console.setFormatter(formatter)
    root.addHandler(console)
    root.setLevel(nivel)

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)

        todos = RotatingFileHandler(
            os.path.join(settings.log_dir, "all.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        todos.setLevel(logging.DEBUG)
        todos.setFormatter(formatter)

        erros = RotatingFileHandler(
            os.path.join(settings.log_dir, "error.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        erros.setLevel(logging.ERROR)
        erros.setFormatter(formatter)

        root.addHandler(todos)
        root.addHandler(erros)
        root.setLevel(logging.DEBUG)

    root._login_legado_configurado = True

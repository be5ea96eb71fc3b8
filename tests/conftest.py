"""Configuração do pytest e fixtures compartilhadas pelos testes."""

import os
from datetime import datetime

import pytest

# Before importing api: the module-level app must not touch a real database
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "segredo-de-teste-com-pelo-menos-32-caracteres")

from fastapi.testclient import TestClient  # noqa: E402

from api import create_app  # noqa: E402
from config import Settings  # noqa: E402
from core_auth import STATUS_ATIVO, crc32_hex, formatar_documento, somente_digitos  # noqa: E402
from db import criar_engine  # noqa: E402
from models import LoginUsers, Pessoa  # noqa: E402

SEGREDO_TESTE = "segredo-de-teste-com-pelo-menos-32-caracteres"

# CPFs/CNPJ com dígitos verificadores válidos
CPF_JDOE = "111.444.777-35"
CPF_MARIA = "529.982.247-25"
CPF_JOSE = "123.456.789-09"
CNPJ_EMPRESA = "11.222.333/0001-81"


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        app_env="test",
        database_url="sqlite://",
        jwt_secret=SEGREDO_TESTE,
        cors_origins="http://localhost:3000",
    )


@pytest.fixture
def app(settings):
    return create_app(settings=settings, engine=criar_engine(settings))


@pytest.fixture
def client(app):
    """TestClient dentro do contexto: dispara startup (create_all) e shutdown."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    sessao = app.state.SessionLocal()
    yield sessao
    sessao.close()


def criar_usuario(db, id, cpf, senha="pass123", status=STATUS_ATIVO, username=None, created_on=None):
    """Grava um LoginUsers direto no banco, como o sistema legado faria."""
    usuario = LoginUsers(
        id=id,
        user_id=formatar_documento(cpf),
        user_name=username or f"user{id}",
        password=crc32_hex(senha),
        is_active=status,
        pass_never_expires=1,
        created_by="1",
        created_on=created_on or datetime(2024, 1, 1, 12, 0, 0),
    )
    db.add(usuario)
    db.commit()
    return usuario


def criar_pessoa(db, id, cpf, nome="Fulano", created_on=None):
    pessoa = Pessoa(
        id=id,
        nome=nome,
        tipo_pessoa="F",
        cpf_cnpj=somente_digitos(cpf),
        sexo="N",
        created_by="1",
        created_on=created_on,
        ativo="S",
    )
    db.add(pessoa)
    db.commit()
    return pessoa


def cadastro_payload(**extra):
    dados = {
        "nome": "John Doe",
        "cpf": CPF_JDOE,
        "username": "jdoe",
        "password": "pass123",
    }
    dados.update(extra)
    return dados


def login(client, cpf=CPF_JDOE, senha="pass123"):
    return client.post("/api/login", json={"cpfCnpj": cpf, "password": senha})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}

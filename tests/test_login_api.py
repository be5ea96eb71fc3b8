"""Testes ponta a ponta do login, dos tokens e das rotas utilitárias de /api."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import autenticacao
import rotas_auth
from api import create_app
from autenticacao import CREDENCIAIS_INVALIDAS, USUARIO_INATIVO
from config import Settings
from conftest import (
    CNPJ_EMPRESA,
    CPF_JDOE,
    CPF_MARIA,
    SEGREDO_TESTE,
    bearer,
    cadastro_payload,
    criar_usuario,
    login,
)
from db import criar_engine
from models import LoginUsers


def _token(**claims):
    agora = datetime.now(timezone.utc)
    payload = {"userId": "1", "cpf": CPF_JDOE, "nome": "jdoe", "iat": agora, "exp": agora + timedelta(hours=1)}
    payload.update(claims)
    return jwt.encode({k: v for k, v in payload.items() if v is not None}, SEGREDO_TESTE, algorithm="HS256")


class TestLogin:
    def test_cadastro_e_login_devolvem_token_com_id_calculado(self, client):
        resp = client.post("/api/cadastro/simples", json=cadastro_payload())
        assert resp.status_code == 200, resp.text
        login_id = resp.json()["dados"]["loginUsersId"]

        resp = login(client)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] is True
        assert body["expiresIn"] == "24h"
        assert body["usuario"]["id"] == login_id
        assert body["usuario"]["cpf"] == CPF_JDOE

        claims = jwt.decode(body["token"], SEGREDO_TESTE, algorithms=["HS256"])
        assert claims["userId"] == login_id
        assert claims["cpf"] == CPF_JDOE
        assert claims["exp"] - claims["iat"] == 24 * 3600

    def test_login_aceita_so_digitos(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        assert login(client, cpf="11144477735").status_code == 200

    def test_login_acha_usuario_gravado_sem_pontuacao(self, client, db):
        usuario = criar_usuario(db, "1", CPF_JDOE)
        usuario.user_id = "11144477735"
        db.commit()
        assert login(client).status_code == 200

    def test_login_com_cnpj(self, client, db):
        criar_usuario(db, "7", CNPJ_EMPRESA, senha="empresa")
        resp = login(client, cpf="11222333000181", senha="empresa")
        assert resp.status_code == 200
        assert resp.json()["usuario"]["cpf"] == CNPJ_EMPRESA

    def test_atualiza_ultimo_login(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        assert login(client).status_code == 200
        db.expire_all()
        assert db.get(LoginUsers, "1").last_login is not None

    def test_falha_no_ultimo_login_nao_derruba_login(self, client, db, monkeypatch):
        criar_usuario(db, "1", CPF_JDOE)

        def falha(*args, **kwargs):
            raise OperationalError("UPDATE ...", {}, Exception("tabela bloqueada"))

        monkeypatch.setattr(autenticacao, "update", falha)
        resp = login(client)
        assert resp.status_code == 200
        assert resp.json()["token"]

    def test_senha_errada_e_generica(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        resp = login(client, senha="errada")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": CREDENCIAIS_INVALIDAS, "timestamp": resp.json()["timestamp"]}

    def test_usuario_inexistente_e_generico(self, client):
        resp = login(client, cpf=CPF_MARIA)
        assert resp.status_code == 401
        assert resp.json()["error"] == CREDENCIAIS_INVALIDAS

    def test_usuario_inativo_tem_mensagem_propria(self, client, db):
        criar_usuario(db, "1", CPF_JDOE, status=".")
        resp = login(client)
        assert resp.status_code == 401
        assert resp.json()["error"] == USUARIO_INATIVO

    def test_status_desconhecido_e_generico(self, client, db):
        criar_usuario(db, "1", CPF_JDOE, status="Z")
        resp = login(client)
        assert resp.status_code == 401
        assert resp.json()["error"] == CREDENCIAIS_INVALIDAS

    def test_senha_armazenada_vazia_nunca_confere(self, client, db):
        usuario = criar_usuario(db, "1", CPF_JDOE)
        usuario.password = "   "
        db.commit()
        assert login(client, senha="").status_code == 400
        assert login(client, senha=" ").status_code == 401

    def test_campos_faltando(self, client):
        resp = client.post("/api/login", json={"cpfCnpj": CPF_JDOE})
        assert resp.status_code == 400
        assert resp.json()["error"] == "CPF e senha são obrigatórios"

        resp = client.post("/api/login", json={})
        assert resp.status_code == 400

    def test_cpf_invalido(self, client):
        resp = login(client, cpf="111.444.777-00")
        assert resp.status_code == 400
        assert resp.json()["error"] == "CPF inválido"

    def test_json_malformado_e_400(self, client):
        resp = client.post("/api/login", content="{não é json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestLimiteDeLogin:
    def test_bloqueia_apos_cinco_falhas(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        for _ in range(5):
            assert login(client, senha="errada").status_code == 401

        resp = login(client)
        assert resp.status_code == 429
        assert resp.json()["success"] is False
        assert int(resp.headers["Retry-After"]) > 0

    def test_logins_com_sucesso_nao_contam(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        for _ in range(4):
            assert login(client, senha="errada").status_code == 401
        for _ in range(3):
            assert login(client).status_code == 200

        assert login(client, senha="errada").status_code == 401
        assert login(client).status_code == 429

    def test_erros_de_validacao_contam_como_falha(self, client):
        for _ in range(5):
            assert login(client, cpf="123").status_code == 400
        assert login(client, cpf="123").status_code == 429


class TestRotasComToken:
    def _login(self, client, db):
        criar_usuario(db, "1", CPF_JDOE, username="jdoe")
        return login(client).json()["token"]

    def test_verificar(self, client, db):
        token = self._login(client, db)
        resp = client.get("/api/verify", headers=bearer(token))
        assert resp.status_code == 200
        usuario = resp.json()["usuario"]
        assert usuario["id"] == "1"
        assert usuario["cpf"] == CPF_JDOE
        assert usuario["nome"] == "jdoe"
        assert set(usuario) == {"id", "userId", "cpf", "nome", "ativo"}

    def test_sem_token(self, client):
        resp = client.get("/api/verify")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token de autenticação necessário"

    def test_esquema_errado(self, client):
        resp = client.get("/api/verify", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Formato de token inválido. Use: Bearer <token>"

    def test_token_malformado(self, client):
        resp = client.get("/api/verify", headers=bearer("nao.e.jwt"))
        assert resp.json()["error"] == "Token malformado"

    def test_token_assinado_com_outro_segredo(self, client):
        token = jwt.encode({"userId": "1", "cpf": CPF_JDOE}, "outro-segredo-qualquer-com-32-caracteres", algorithm="HS256")
        resp = client.get("/api/verify", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token malformado"

    def test_token_expirado(self, client):
        agora = datetime.now(timezone.utc)
        token = _token(iat=agora - timedelta(hours=2), exp=agora - timedelta(hours=1))
        resp = client.get("/api/verify", headers=bearer(token))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token expirado"

    def test_token_incompleto(self, client):
        resp = client.get("/api/verify", headers=bearer(_token(cpf=None)))
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token com informações incompletas"

    def test_perfil(self, client, db):
        token = self._login(client, db)
        resp = client.get("/api/profile", headers=bearer(token))
        assert resp.status_code == 200
        usuario = resp.json()["usuario"]
        assert usuario["id"] == "1"
        assert usuario["ativo"] is True
        assert usuario["ultimoLogin"] is not None

    def test_perfil_de_usuario_removido(self, client):
        resp = client.get("/api/profile", headers=bearer(_token(userId="999")))
        assert resp.status_code == 404
        assert resp.json()["error"] == "Usuário não encontrado"

    def test_logout(self, client, db):
        token = self._login(client, db)
        resp = client.post("/api/logout", headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    def test_rota_com_autenticacao_opcional(self, client, db):
        assert client.get("/api/teste").json()["autenticado"] is False
        assert client.get("/api/teste", headers=bearer("lixo")).json()["autenticado"] is False

        token = self._login(client, db)
        body = client.get("/api/teste", headers=bearer(token)).json()
        assert body["autenticado"] is True
        assert body["usuario"]["userId"] == "1"


class TestAplicacao:
    def test_raiz(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "login" in resp.json()["endpoints"]

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "online"

    def test_rota_inexistente(self, client):
        resp = client.get("/api/nao-existe")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Rota não encontrada"
        assert resp.json()["path"] == "/api/nao-existe"

    def test_cabecalhos_de_seguranca(self, client):
        resp = client.get("/api/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_preflight_cors(self, client):
        resp = client.options(
            "/api/login",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_busca_de_usuario_em_desenvolvimento(self, client, db):
        criar_usuario(db, "1", CPF_JDOE)
        assert client.get("/api/usuario/11144477735").json()["encontrado"] is True
        assert client.get(f"/api/usuario/{CPF_MARIA}").json()["encontrado"] is False

    def test_erro_inesperado_mostra_stack_fora_de_producao(self, app, monkeypatch):
        def quebra(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(rotas_auth, "autenticar", quebra)
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = login(client)
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Erro interno do servidor"
        assert "RuntimeError: boom" in body["message"]
        assert "stack" in body

    def test_erro_inesperado_tem_cors_e_cabecalhos_de_seguranca(self, client, monkeypatch):
        def quebra(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(rotas_auth, "autenticar", quebra)
        resp = client.post(
            "/api/login",
            json={"cpfCnpj": CPF_JDOE, "password": "pass123"},
            headers={"Origin": "http://localhost:3000"},
        )
        assert resp.status_code == 500
        assert resp.json()["success"] is False
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_limite_global(self, settings):
        settings = settings.model_copy(update={"api_rate_limit": 2})
        app = create_app(settings=settings, engine=criar_engine(settings))
        with TestClient(app) as client:
            assert client.get("/api/cadastro/sexo").status_code == 200
            assert client.get("/api/cadastro/sexo").status_code == 200
            resp = client.get("/api/cadastro/sexo")
        assert resp.status_code == 429
        assert resp.json()["error"] == "Muitas requisições deste IP. Tente novamente em 15 minutos."


class TestProducao:
    def _settings(self, **extra):
        dados = {"app_env": "production", "database_url": "sqlite://", "jwt_secret": SEGREDO_TESTE}
        dados.update(extra)
        return Settings(_env_file=None, **dados)

    def test_exige_segredo_forte(self):
        with pytest.raises(RuntimeError):
            create_app(settings=self._settings(jwt_secret="curto"))

    def test_rotas_de_desenvolvimento_ocultas(self):
        settings = self._settings()
        with TestClient(create_app(settings=settings, engine=criar_engine(settings))) as client:
            assert client.get("/api/usuario/11144477735").status_code == 404
            assert client.get("/api/cadastro/testar-calculo-id").status_code == 404

    def test_sem_stack_em_producao(self, monkeypatch):
        def quebra(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(rotas_auth, "autenticar", quebra)
        settings = self._settings()
        app = create_app(settings=settings, engine=criar_engine(settings))
        with TestClient(app, raise_server_exceptions=False) as client:
            body = login(client).json()
        assert body["error"] == "Erro interno do servidor"
        assert "stack" not in body

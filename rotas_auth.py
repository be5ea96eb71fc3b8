# rotas_auth.py
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from autenticacao import autenticar, buscar_usuario_por_documento, registrar_ultimo_login
from core_auth import STATUS_ATIVO, formatar_documento, mascarar_documento, somente_digitos
from db import get_db
from models import LoginUsers
from schemas import LoginEntrada
from seguranca import criar_token, ip_cliente, usuario_autenticado, usuario_opcional

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def agora_iso():
    return datetime.now(timezone.utc).isoformat()


def _usuario_publico(usuario):
    return {
        "id": usuario.id,
        "cpf": usuario.user_id,
        "nome": usuario.user_name,
        "ativo": usuario.is_active == STATUS_ATIVO,
    }


# ======================================================
#  ENDPOINT: LOGIN
# ======================================================
@router.post("/login")
def login(entrada: LoginEntrada, request: Request, db: Session = Depends(get_db)):
    """
    Login por CPF/CNPJ e senha (CRC32 legado).
    Limitado por IP: só as tentativas que falham contam.
    """
    inicio = time.perf_counter()
    ip = ip_cliente(request)
    limitador = request.app.state.limitador_login

    if limitador.bloqueado(ip):
        logger.warning("Login bloqueado por excesso de tentativas - IP %s", ip)
        raise HTTPException(
            status_code=429,
            detail="Muitas tentativas de login. Tente novamente em 15 minutos.",
            headers={"Retry-After": str(limitador.segundos_para_liberar(ip))},
        )

    logger.info(
        "Login iniciado - IP %s - cpf=%s senha_presente=%s",
        ip, mascarar_documento(somente_digitos(entrada.cpf_cnpj)), bool(entrada.password),
    )

    try:
        usuario = autenticar(db, entrada.cpf_cnpj, entrada.password)
    except Exception:
        limitador.registrar(ip)
        raise

    # dados copiados antes do UPDATE: se ele falhar, o rollback expira o objeto
    dados_usuario = _usuario_publico(usuario)
    dados_usuario["ultimoLogin"] = usuario.last_login
    token, expires_in = criar_token(usuario, request.app.state.settings, request.app.state.jwt_secret)

    registrar_ultimo_login(db, usuario)

    tempo_ms = int((time.perf_counter() - inicio) * 1000)
    logger.info("Login concluído em %sms para usuário %s", tempo_ms, dados_usuario["id"])

    return {
        "success": True,
        "message": "Login realizado com sucesso!",
        "usuario": dados_usuario,
        "token": token,
        "expiresIn": expires_in,
        "timestamp": agora_iso(),
        "performance": f"{tempo_ms}ms",
    }


# ======================================================
#  ENDPOINTS PROTEGIDOS
# ======================================================
@router.get("/verify")
def verificar_token(usuario: dict = Depends(usuario_autenticado)):
    return {
        "success": True,
        "message": "Token válido",
        "usuario": {"id": usuario["userId"], **usuario},
        "timestamp": agora_iso(),
    }


@router.get("/profile")
def perfil(usuario: dict = Depends(usuario_autenticado), db: Session = Depends(get_db)):
    registro: LoginUsers | None = db.get(LoginUsers, str(usuario["userId"]))

    if registro is None:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")

    return {
        "success": True,
        "usuario": {
            **_usuario_publico(registro),
            "ultimoLogin": registro.last_login,
            "dataCadastro": registro.created_on,
        },
        "timestamp": agora_iso(),
    }


@router.post("/logout")
def logout(usuario: dict = Depends(usuario_autenticado)):
    # JWT é stateless: o frontend descarta o token
    logger.info("Logout do usuário %s", usuario["userId"])
    return {
        "success": True,
        "message": "Logout realizado com sucesso",
        "timestamp": agora_iso(),
    }


# ======================================================
#  ENDPOINTS PÚBLICOS
# ======================================================
@router.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "success": True,
        "status": "online",
        "banco": request.app.state.engine.url.database,
        "timestamp": agora_iso(),
    }


@router.get("/teste")
def teste(usuario: dict | None = Depends(usuario_opcional)):
    return {
        "message": "Rota de teste funcionando!",
        "autenticado": usuario is not None,
        "usuario": usuario,
        "timestamp": agora_iso(),
    }


# Só em desenvolvimento (registrada por api.create_app)
dev_router = APIRouter(prefix="/api")


@dev_router.get("/usuario/{cpf}")
def buscar_usuario(cpf: str, db: Session = Depends(get_db)):
    numeros = somente_digitos(cpf)
    logger.info("Busca de usuário: %s", mascarar_documento(formatar_documento(numeros)))

    usuario = buscar_usuario_por_documento(db, numeros)
    if usuario is None:
        return {
            "success": True,
            "encontrado": False,
            "mensagem": "Usuário não encontrado",
        }

    return {
        "success": True,
        "encontrado": True,
        "usuario": _usuario_publico(usuario),
    }

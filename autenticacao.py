# autenticacao.py
import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from core_auth import (
    STATUS_ATIVO,
    STATUS_INATIVO,
    comparar_senhas,
    formatar_documento,
    mascarar_documento,
    somente_digitos,
    validar_documento,
)
from models import LoginUsers

logger = logging.getLogger(__name__)

CREDENCIAIS_INVALIDAS = "Credenciais inválidas"
USUARIO_INATIVO = "Usuário inativo. Entre em contato com o administrador."


def buscar_usuario_por_documento(db, documento):
    """
    Procura o usuário pelo CPF/CNPJ formatado ou só pelos dígitos
    (o legado grava UserID com pontuação, mas nem sempre a mesma).
    """
    numeros = somente_digitos(documento)
    formatado = formatar_documento(numeros)
    sem_pontuacao = func.replace(
        func.replace(func.replace(LoginUsers.user_id, ".", ""), "-", ""), "/", ""
    )
    stmt = (
        select(LoginUsers)
        .where(or_(LoginUsers.user_id == formatado, sem_pontuacao == numeros))
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def autenticar(db, cpf_cnpj, senha):
    """
    Valida CPF/CNPJ e senha contra LoginUsers.
    Devolve o usuário ou lança HTTPException (400/401).

    Usuário inexistente, senha errada ou status desconhecido respondem todos
    "Credenciais inválidas"; só o usuário inativo recebe mensagem própria.
    """
    if not cpf_cnpj or not senha:
        raise HTTPException(status_code=400, detail="CPF e senha são obrigatórios")

    numeros = somente_digitos(cpf_cnpj)
    if not validar_documento(numeros):
        logger.info("Login com CPF/CNPJ inválido: %s", mascarar_documento(numeros))
        raise HTTPException(status_code=400, detail="CPF inválido")

    usuario = buscar_usuario_por_documento(db, numeros)
    if usuario is None:
        logger.info("Usuário não encontrado: %s", mascarar_documento(numeros))
        raise HTTPException(status_code=401, detail=CREDENCIAIS_INVALIDAS)

    if usuario.is_active == STATUS_INATIVO:
        logger.info("Usuário inativo: %s", usuario.id)
        raise HTTPException(status_code=401, detail=USUARIO_INATIVO)

    if usuario.is_active != STATUS_ATIVO:
        logger.warning("Status de usuário inválido (%r) para usuário %s", usuario.is_active, usuario.id)
        raise HTTPException(status_code=401, detail=CREDENCIAIS_INVALIDAS)

    if not comparar_senhas(senha, usuario.password):
        logger.info("Senha inválida para usuário %s", usuario.id)
        raise HTTPException(status_code=401, detail=CREDENCIAIS_INVALIDAS)

    return usuario


def registrar_ultimo_login(db, usuario):
    """
    Atualiza LastLogin. Efeito colateral de melhor esforço:
    se falhar, registra o aviso e o login segue normalmente.
    """
    usuario_id = usuario.id
    try:
        db.execute(
            update(LoginUsers)
            .where(LoginUsers.id == usuario_id)
            .values(last_login=datetime.now())
        )
        db.commit()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Não foi possível atualizar último login de %s: %s", usuario_id, e)
        return False

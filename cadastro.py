# cadastro.py
#
# Cadastro de novos usuários: Pessoa + LoginUsers, ligados entre si.
import logging
from datetime import date, datetime

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from core_auth import (
    STATUS_ATIVO,
    crc32_hex,
    formatar_documento,
    mascarar_documento,
    somente_digitos,
    validar_cnpj,
    validar_cpf,
)
from id_legado import proximo_id
from models import LoginUsers, Pessoa

logger = logging.getLogger(__name__)

CAMPOS_OBRIGATORIOS = ("nome", "cpf", "username", "password")


# ======================================================
#  VERIFICAÇÕES DE DUPLICIDADE
# ======================================================
def cpf_cadastrado(db, cpf):
    numeros = somente_digitos(cpf)
    stmt = select(Pessoa).where(Pessoa.cpf_cnpj == numeros).limit(1)
    return db.execute(stmt).scalars().first()


def username_em_uso(db, username):
    stmt = select(LoginUsers.id).where(LoginUsers.user_name == username).limit(1)
    return db.execute(stmt).first() is not None


def _id_existe(db, modelo, valor):
    stmt = select(modelo.id).where(modelo.id == valor).limit(1)
    return db.execute(stmt).first() is not None


# ======================================================
#  VALIDAÇÃO
# ======================================================
def _validar(dados):
    faltando = [c for c in CAMPOS_OBRIGATORIOS if not getattr(dados, c, None)]
    if faltando:
        raise HTTPException(
            status_code=400,
            detail=f"Campos obrigatórios faltando: {', '.join(faltando)}",
        )

    numeros = somente_digitos(dados.cpf)
    tipo = (dados.tipo_pessoa or "F").upper()
    if tipo == "J":
        valido = validar_cnpj(numeros)
    else:
        valido = validar_cpf(numeros)
    if not valido:
        raise HTTPException(
            status_code=400,
            detail="CNPJ inválido." if tipo == "J" else "CPF inválido. Deve conter 11 dígitos válidos.",
        )

    try:
        dados.password.encode("utf-8")
    except UnicodeEncodeError:
        raise HTTPException(status_code=400, detail="Senha inválida")
    return numeros, tipo


def _so_digitos_ou_none(valor):
    numeros = somente_digitos(valor)
    return numeros or None


def _cep_int(valor):
    numeros = somente_digitos(valor)
    return int(numeros) if numeros else None


def _data(valor):
    if not valor:
        return None
    try:
        return date.fromisoformat(valor[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail="Data de nascimento inválida. Use AAAA-MM-DD.")


def dados_pessoa_completos(dados):
    """
    Colunas de Pessoa a partir do cadastro completo, com os padrões do legado:
    estado civil 8 (não informado), país 1 (Brasil), correspondência no
    endereço residencial.
    """
    return {
        "nome_social": dados.nome_social,
        "estado_civil": dados.estado_civil or 8,
        "data_nascimento": _data(dados.data_nascimento),
        "nome_mae": dados.nome_mae,
        "nome_pai": dados.nome_pai,
        "municipio": dados.municipio,

        "cep_residencial": _cep_int(dados.cep_residencial),
        "pais_residencial": dados.pais_residencial or 1,
        "estado_residencial": dados.estado_residencial,
        "municipio_residencial": dados.municipio_residencial,
        "bairro_residencial": dados.bairro_residencial,
        "numero_residencial": dados.numero_residencial,
        "logradouro_residencial": dados.logradouro_residencial,
        "complemento_residencial": dados.complemento_residencial,
        "email_residencial": dados.email_residencial,
        "telefone_celular": _so_digitos_ou_none(dados.telefone_celular),
        "telefone_residencial": _so_digitos_ou_none(dados.telefone_residencial),
        "correspondencia_residencial": dados.correspondencia_residencial or "S",

        "cep_comercial": _cep_int(dados.cep_comercial),
        "pais_comercial": dados.pais_comercial or 1,
        "estado_comercial": dados.estado_comercial,
        "municipio_comercial": dados.municipio_comercial,
        "bairro_comercial": dados.bairro_comercial,
        "numero_comercial": dados.numero_comercial,
        "logradouro_comercial": dados.logradouro_comercial,
        "complemento_comercial": dados.complemento_comercial,
        "email_comercial": dados.email_comercial,
        "telefone2_comercial": _so_digitos_ou_none(dados.telefone2_comercial),
        "telefone_comercial": _so_digitos_ou_none(dados.telefone_comercial),
        "correspondencia_comercial": dados.correspondencia_comercial or "N",
    }


# ======================================================
#  CADASTRO
# ======================================================
def cadastrar(db, dados, montar_extras=None, criado_por=None, login_id=None, pessoa_id=None):
    """
    Cria LoginUsers e Pessoa numa única transação.

    - 400: campos obrigatórios faltando ou CPF/CNPJ inválido;
    - 409: CPF ou username já cadastrados (verificação prévia);
    - 409: ID em uso no momento da gravação (outro cadastro simultâneo
      calculou o mesmo ID; ver id_legado).

    login_id / pessoa_id vêm do cadastro com ID manual; se não vierem,
    são calculados por id_legado.proximo_id.

    montar_extras(dados) devolve colunas adicionais de Pessoa; só roda
    depois da validação dos campos obrigatórios.
    """
    numeros, tipo = _validar(dados)
    extras = montar_extras(dados) if montar_extras else {}
    formatado = formatar_documento(numeros)

    logger.info(
        "Iniciando cadastro: cpf=%s username=%s",
        mascarar_documento(numeros), dados.username,
    )

    if cpf_cadastrado(db, numeros) is not None:
        logger.warning("CPF já cadastrado: %s", mascarar_documento(numeros))
        raise HTTPException(status_code=409, detail="CPF já cadastrado no sistema")

    if username_em_uso(db, dados.username):
        logger.warning("Username já existe: %s", dados.username)
        raise HTTPException(status_code=409, detail="Username já está em uso. Escolha outro.")

    if login_id:
        if _id_existe(db, LoginUsers, login_id):
            raise HTTPException(status_code=409, detail=f"ID {login_id} já existe na tabela LoginUsers")
    else:
        login_id = proximo_id(db, LoginUsers)

    if pessoa_id:
        if _id_existe(db, Pessoa, pessoa_id):
            raise HTTPException(status_code=409, detail=f"ID {pessoa_id} já existe na tabela Pessoa")
    else:
        pessoa_id = proximo_id(db, Pessoa)

    agora = datetime.now()
    usuario = LoginUsers(
        id=login_id,
        user_id=formatado,
        user_name=dados.username,
        password=crc32_hex(dados.password),
        is_active=STATUS_ATIVO,
        pass_never_expires=1,
        created_by=str(criado_por or "1"),
        created_on=agora,
        password_updated_on=agora,
        pessoa=pessoa_id,
    )
    pessoa = Pessoa(
        id=pessoa_id,
        nome=dados.nome,
        tipo_pessoa=tipo,
        cpf_cnpj=numeros,
        sexo=(dados.sexo or "N").upper()[:1],
        created_by=str(criado_por or login_id),
        created_on=agora,
        ativo="S",
        login_users=login_id,
        **extras,
    )

    db.add(usuario)
    db.add(pessoa)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(
            "Conflito ao gravar cadastro (LoginUsers=%s, Pessoa=%s): %s",
            login_id, pessoa_id, e.orig,
        )
        raise HTTPException(
            status_code=409,
            detail="Conflito de ID ao gravar o cadastro. Tente novamente.",
        )

    logger.info("Cadastro concluído: LoginUsers=%s, Pessoa=%s", login_id, pessoa_id)
    return {
        "pessoaId": pessoa_id,
        "loginUsersId": login_id,
        "userID": formatado,
        "username": dados.username,
        "nome": dados.nome,
    }

# id_legado.py
#
# Próximo ID para as tabelas legadas cujo ID é texto mas é usado como
# inteiro crescente (sem IDENTITY no banco).
#
# ATENÇÃO: leitura e inserção não são atômicas. Duas requisições de cadastro
# simultâneas podem calcular o mesmo ID antes de qualquer uma gravar; a
# segunda inserção falha na chave primária e o cadastro responde 409.
# A correção definitiva é migrar o esquema para IDENTITY/SEQUENCE.
import logging

from sqlalchemy import Integer, func, literal, select
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement

from models import LoginUsers, Pessoa

logger = logging.getLogger(__name__)


# ============================================================
#  CAST SEGURO PARA INTEIRO (por dialeto)
# ============================================================
class inteiro_seguro(FunctionElement):
    """
    inteiro_seguro(coluna): valor da coluna como inteiro, ou NULL quando o
    texto não é numérico. Equivale ao TRY_CAST(coluna AS INT) do SQL Server.
    """

    type = Integer()
    inherit_cache = True
    name = "inteiro_seguro"


@compiles(inteiro_seguro)  # SQL Server e demais
def _inteiro_seguro_padrao(element, compiler, **kw):
    coluna = compiler.process(element.clauses, **kw)
    return f"TRY_CAST({coluna} AS INT)"


@compiles(inteiro_seguro, "postgresql")
def _inteiro_seguro_postgresql(element, compiler, **kw):
    coluna = compiler.process(element.clauses, **kw)
    return f"(CASE WHEN {coluna} ~ '^[0-9]+$' THEN CAST({coluna} AS INTEGER) END)"


@compiles(inteiro_seguro, "sqlite")
def _inteiro_seguro_sqlite(element, compiler, **kw):
    coluna = compiler.process(element.clauses, **kw)
    return (
        f"(CASE WHEN {coluna} GLOB '[0-9]*' AND {coluna} NOT GLOB '*[^0-9]*' "
        f"THEN CAST({coluna} AS INTEGER) END)"
    )


def _para_int(valor):
    # parseInt(valor) || 0
    try:
        return int(str(valor).strip())
    except (TypeError, ValueError):
        return 0


# ============================================================
#  CONSULTAS
# ============================================================
def _ultimo_por_data(db, col_id, col_data):
    stmt = (
        select(col_id, col_data)
        .where(inteiro_seguro(col_id).is_not(None), col_data.is_not(None))
        .order_by(col_data.desc())
        .limit(1)
    )
    return db.execute(stmt).first()


def _maior_id(db, col_id, exceto=None):
    stmt = select(func.max(inteiro_seguro(col_id))).where(inteiro_seguro(col_id).is_not(None))
    if exceto is not None:
        stmt = stmt.where(col_id != exceto)
    return db.execute(stmt).scalar()


def _id_existe(db, col_id, valor):
    stmt = select(literal(1)).where(col_id == valor).limit(1)
    return db.execute(stmt).first() is not None


# ============================================================
#  ALGORITMO
# ============================================================
def _calcular(db, tabela, col_id, col_data):
    ultimo = _ultimo_por_data(db, col_id, col_data)

    if ultimo is not None:
        ultimo_id = _para_int(ultimo[0])
        proximo = ultimo_id + 1
        logger.info(
            "%s: último cadastro por data - ID %s em %s; próximo = %s",
            tabela, ultimo_id, ultimo[1], proximo,
        )

        # registros com ID maior e data mais antiga tornam a data enganosa
        if _id_existe(db, col_id, str(proximo)):
            maior = _maior_id(db, col_id) or ultimo_id
            proximo = maior + 1
            logger.warning("%s: ID %s já existe; maior ID = %s, novo próximo = %s",
                           tabela, ultimo_id + 1, maior, proximo)
    else:
        maior = _maior_id(db, col_id) or 0
        proximo = maior + 1
        logger.info("%s: nenhum registro com data; maior ID = %s, próximo = %s",
                    tabela, maior, proximo)

    # ID 1 é o usuário/registro de sistema
    if proximo == 1 and _id_existe(db, col_id, "1"):
        maior = _maior_id(db, col_id, exceto="1") or 1
        proximo = maior + 1
        logger.warning("%s: ID 1 já existe; ajustado para %s", tabela, proximo)

    return str(proximo)


def _fallback(db, tabela, col_id):
    try:
        db.rollback()
        numerico = inteiro_seguro(col_id)
        stmt = select(col_id).where(numerico.is_not(None)).order_by(numerico.desc()).limit(1)
        valor = db.execute(stmt).scalar()
        if valor is None:
            return "1"
        return str(_para_int(valor) + 1)
    except Exception as e:
        logger.error("%s: fallback do próximo ID falhou: %s", tabela, e)
        return "1"


def proximo_id(db, modelo, coluna_id="id", coluna_data="created_on"):
    """
    Devolve o próximo ID livre (texto) de `modelo`.

    1. pega o último registro por data (coluna_data) com ID numérico: próximo = ID + 1;
       se esse valor já existir, usa MAX(ID numérico) + 1;
    2. sem registros datados: MAX(ID numérico) + 1 (ou 1 com a tabela vazia);
    3. nunca devolve "1" se o ID 1 já existir;
    4. se alguma consulta falhar: maior ID numérico + 1, e em último caso "1".

    Nunca lança exceção. Não reserva o ID: veja o aviso no topo do módulo.
    """
    tabela = modelo.__tablename__
    col_id = getattr(modelo, coluna_id)
    col_data = getattr(modelo, coluna_data)

    try:
        proximo = _calcular(db, tabela, col_id, col_data)
    except Exception as e:
        logger.error("%s: erro ao buscar próximo ID: %s", tabela, e)
        proximo = _fallback(db, tabela, col_id)

    logger.info("%s: próximo ID final = %s", tabela, proximo)
    return proximo


def proximos_ids(db):
    """IDs para um cadastro novo: (LoginUsers, Pessoa)."""
    login_id = proximo_id(db, LoginUsers)
    pessoa_id = proximo_id(db, Pessoa)
    logger.info("IDs calculados: LoginUsers=%s, Pessoa=%s", login_id, pessoa_id)
    return login_id, pessoa_id

# rotas_cadastro.py
import logging
import time

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from cadastro import cadastrar, cpf_cadastrado, dados_pessoa_completos, username_em_uso
from core_auth import mascarar_documento, somente_digitos
from db import get_db
from id_legado import proximos_ids
from models import Cep, Estado, Municipio
from rotas_auth import agora_iso
from schemas import CadastroCompleto, CadastroIdManual, CadastroSimples
from seguranca import usuario_autenticado

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cadastro")

ESTADO_CIVIL = [
    {"valor": 1, "label": "Casado(a)"},
    {"valor": 2, "label": "Divorciado"},
    {"valor": 3, "label": "Solteiro(a)"},
    {"valor": 4, "label": "Viúvo(a)"},
    {"valor": 5, "label": "União Estável"},
    {"valor": 6, "label": "Outros"},
    {"valor": 7, "label": "Separado Judicialmente"},
    {"valor": 8, "label": "Não Informado"},
]

SEXO = [
    {"valor": "M", "label": "Masculino"},
    {"valor": "F", "label": "Feminino"},
    {"valor": "N", "label": "Não Informado"},
]

TIPO_PESSOA = [
    {"valor": "F", "label": "Pessoa Física"},
    {"valor": "J", "label": "Pessoa Jurídica"},
]


def _resposta_cadastro(mensagem, dados, inicio):
    return {
        "success": True,
        "message": mensagem,
        "dados": dados,
        "tempoExecucao": f"{int((time.perf_counter() - inicio) * 1000)}ms",
        "timestamp": agora_iso(),
    }


@router.get("/teste")
def teste_cadastro():
    return {
        "success": True,
        "message": "Sistema de cadastro funcionando!",
        "timestamp": agora_iso(),
        "rotasDisponiveis": {
            "cep": "GET /api/cadastro/cep/:cep",
            "municipios": "GET /api/cadastro/municipios?estado=SIGLA",
            "verificarCpf": "GET /api/cadastro/verificar/cpf/:cpf",
            "verificarUsername": "GET /api/cadastro/verificar/username/:username",
            "cadastroCompleto": "POST /api/cadastro/completo (JWT required)",
            "cadastroSimples": "POST /api/cadastro/simples",
            "cadastroComIdManual": "POST /api/cadastro/com-id-manual",
            "estadoCivil": "GET /api/cadastro/estado-civil",
            "sexo": "GET /api/cadastro/sexo",
            "tipoPessoa": "GET /api/cadastro/tipo-pessoa",
        },
    }


# ======================================================
#  CONSULTAS DE APOIO AO FORMULÁRIO
# ======================================================
@router.get("/cep/{cep}")
def buscar_cep(cep: str, db: Session = Depends(get_db)):
    numeros = somente_digitos(cep)
    stmt = (
        select(Cep)
        .where(or_(Cep.cepp == numeros, func.replace(Cep.cep, "-", "") == numeros, Cep.cep == numeros))
        .limit(1)
    )
    dados_cep: Cep | None = db.execute(stmt).scalars().first()

    if dados_cep is None:
        logger.info("CEP não encontrado: %s", cep)
        return {"success": True, "encontrado": False, "message": "CEP não encontrado"}

    nome_municipio = dados_cep.cidade
    if dados_cep.municipio_lookup:
        municipio = db.get(Municipio, dados_cep.municipio_lookup)
        if municipio is not None:
            nome_municipio = municipio.descricao

    return {
        "success": True,
        "encontrado": True,
        "endereco": {
            "id": dados_cep.id,
            "cep": dados_cep.cep or dados_cep.cepp,
            "cepFormatado": dados_cep.cep,
            "cepNumerico": dados_cep.cepp,
            "logradouro": dados_cep.logradouro,
            "bairro": dados_cep.bairro,
            "municipio": nome_municipio,
            "municipioId": dados_cep.municipio_lookup,
            "estado": dados_cep.estado,
            "estadoId": dados_cep.estado_lookup,
            "paisId": dados_cep.pais,
            "pais": "Brasil",
        },
    }


def _municipio_json(municipio, estado):
    return {
        "id": municipio.id,
        "nome": municipio.descricao,
        "estadoId": municipio.estado,
        "estado": estado.sigla if estado is not None else None,
        "estadoNome": estado.descricao if estado is not None else None,
        "codigoIBGE": municipio.codigo_ibge,
    }


@router.get("/municipios")
def listar_municipios(estado: str | None = None, db: Session = Depends(get_db)):
    """
    Lista municípios. `estado` pode ser a sigla (MS) ou o ID do estado;
    sem filtro, devolve todos com estatística por estado.
    """
    stmt = select(Municipio, Estado).outerjoin(Estado, Municipio.estado == Estado.id)

    if estado:
        estado_id = None
        if len(estado) == 2 and estado.isalpha():
            sigla = estado.upper()
            encontrado = db.execute(select(Estado).where(Estado.sigla == sigla).limit(1)).scalars().first()
            if encontrado is None:
                logger.warning("Estado não encontrado com sigla: %s", sigla)
                return {
                    "success": True,
                    "municipios": [],
                    "total": 0,
                    "mensagem": f"Estado {sigla} não encontrado",
                }
            estado_id = encontrado.id
        elif estado.isdigit():
            estado_id = int(estado)

        if estado_id is not None:
            linhas = db.execute(stmt.where(Municipio.estado == estado_id).order_by(Municipio.descricao)).all()
            municipios = [_municipio_json(m, e) for m, e in linhas]
            logger.info("%s municípios para estado %s", len(municipios), estado_id)
            return {
                "success": True,
                "municipios": municipios,
                "total": len(municipios),
                "filtro": {"tipo": "estado", "valor": estado, "estadoId": estado_id},
            }

    linhas = db.execute(stmt.order_by(Estado.descricao, Municipio.descricao)).all()
    municipios = [_municipio_json(m, e) for m, e in linhas]

    por_estado = {}
    for mun in municipios:
        if mun["estado"]:
            item = por_estado.setdefault(mun["estado"], {"nome": mun["estadoNome"], "quantidade": 0})
            item["quantidade"] += 1

    return {
        "success": True,
        "municipios": municipios,
        "total": len(municipios),
        "estatisticas": {"porEstado": por_estado, "totalEstados": len(por_estado)},
    }


@router.get("/verificar/cpf/{cpf}")
def verificar_cpf(cpf: str, db: Session = Depends(get_db)):
    pessoa = cpf_cadastrado(db, cpf)
    if pessoa is not None:
        logger.warning("CPF já cadastrado: %s", mascarar_documento(somente_digitos(cpf)))

    return {
        "success": True,
        "cpf": cpf,
        "existe": pessoa is not None,
        "pessoa": {"id": pessoa.id, "nome": pessoa.nome} if pessoa is not None else None,
    }


@router.get("/verificar/username/{username}")
def verificar_username(username: str, db: Session = Depends(get_db)):
    existe = username_em_uso(db, username)
    return {"success": True, "username": username, "existe": existe}


# ======================================================
#  CADASTROS
# ======================================================
@router.post("/simples")
def cadastro_simples(dados: CadastroSimples, db: Session = Depends(get_db)):
    inicio = time.perf_counter()
    resultado = cadastrar(db, dados)
    return _resposta_cadastro("Cadastro realizado com sucesso!", resultado, inicio)


@router.post("/com-id-manual")
def cadastro_com_id_manual(dados: CadastroIdManual, db: Session = Depends(get_db)):
    inicio = time.perf_counter()
    resultado = cadastrar(db, dados, login_id=dados.login_id, pessoa_id=dados.pessoa_id)
    return _resposta_cadastro("Cadastro com ID manual realizado com sucesso!", resultado, inicio)


@router.post("/completo")
def cadastro_completo(
    dados: CadastroCompleto,
    usuario: dict = Depends(usuario_autenticado),
    db: Session = Depends(get_db),
):
    inicio = time.perf_counter()
    resultado = cadastrar(
        db,
        dados,
        montar_extras=dados_pessoa_completos,
        criado_por=usuario["userId"],
    )
    return _resposta_cadastro("Cadastro completo realizado com sucesso!", resultado, inicio)


# ======================================================
#  OPÇÕES DOS CAMPOS
# ======================================================
@router.get("/estado-civil")
def opcoes_estado_civil():
    return {"success": True, "opcoes": ESTADO_CIVIL}


@router.get("/sexo")
def opcoes_sexo():
    return {"success": True, "opcoes": SEXO}


@router.get("/tipo-pessoa")
def opcoes_tipo_pessoa():
    return {"success": True, "opcoes": TIPO_PESSOA}


# Só em desenvolvimento (registrada por api.create_app)
dev_router = APIRouter(prefix="/api/cadastro")


@dev_router.get("/testar-calculo-id")
def testar_calculo_id(db: Session = Depends(get_db)):
    """Mostra os próximos IDs sem gravar nada (não reserva)."""
    login_id, pessoa_id = proximos_ids(db)
    return {
        "success": True,
        "proximosIds": {"LoginUsers": login_id, "Pessoa": pessoa_id},
        "timestamp": agora_iso(),
    }

# schemas.py
#
# Corpos das requisições. Os campos obrigatórios ficam opcionais aqui para
# que as rotas respondam com as mensagens 400 do sistema legado em vez do
# 422 padrão do FastAPI.
from pydantic import BaseModel, ConfigDict, Field


class _Entrada(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LoginEntrada(_Entrada):
    cpf_cnpj: str | None = Field(default=None, alias="cpfCnpj")
    password: str | None = None


class CadastroSimples(_Entrada):
    nome: str | None = None
    cpf: str | None = None
    username: str | None = None
    password: str | None = None
    sexo: str | None = None
    tipo_pessoa: str | None = Field(default=None, alias="tipoPessoa")


class CadastroIdManual(CadastroSimples):
    # IDs escolhidos pelo chamador; o que faltar é calculado
    pessoa_id: str | None = Field(default=None, alias="pessoaId")
    login_id: str | None = Field(default=None, alias="loginId")


class CadastroCompleto(CadastroSimples):
    nome_social: str | None = Field(default=None, alias="nomeSocial")
    estado_civil: int | None = Field(default=None, alias="estadoCivil")
    data_nascimento: str | None = Field(default=None, alias="dataNascimento")  # AAAA-MM-DD
    nome_mae: str | None = Field(default=None, alias="nomeMae")
    nome_pai: str | None = Field(default=None, alias="nomePai")
    municipio: int | None = None

    # Endereço residencial
    cep_residencial: str | None = Field(default=None, alias="cepResidencial")
    pais_residencial: int | None = Field(default=None, alias="paisResidencial")
    estado_residencial: int | None = Field(default=None, alias="estadoResidencial")
    municipio_residencial: int | None = Field(default=None, alias="municipioResidencial")
    bairro_residencial: str | None = Field(default=None, alias="bairroResidencial")
    numero_residencial: str | None = Field(default=None, alias="numeroResidencial")
    logradouro_residencial: str | None = Field(default=None, alias="logradouroResidencial")
    complemento_residencial: str | None = Field(default=None, alias="complementoResidencial")
    email_residencial: str | None = Field(default=None, alias="emailResidencial")
    telefone_celular: str | None = Field(default=None, alias="telefoneCelular")
    telefone_residencial: str | None = Field(default=None, alias="telefoneResidencial")
    correspondencia_residencial: str | None = Field(default=None, alias="correspondenciaResidencial")

    # Endereço comercial (opcional)
    cep_comercial: str | None = Field(default=None, alias="cepComercial")
    pais_comercial: int | None = Field(default=None, alias="paisComercial")
    estado_comercial: int | None = Field(default=None, alias="estadoComercial")
    municipio_comercial: int | None = Field(default=None, alias="municipioComercial")
    bairro_comercial: str | None = Field(default=None, alias="bairroComercial")
    numero_comercial: str | None = Field(default=None, alias="numeroComercial")
    logradouro_comercial: str | None = Field(default=None, alias="logradouroComercial")
    complemento_comercial: str | None = Field(default=None, alias="complementoComercial")
    email_comercial: str | None = Field(default=None, alias="emailComercial")
    telefone2_comercial: str | None = Field(default=None, alias="telefone2Comercial")
    telefone_comercial: str | None = Field(default=None, alias="telefoneComercial")
    correspondencia_comercial: str | None = Field(default=None, alias="correspondenciaComercial")

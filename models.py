# models.py
#
# Mapeamento das tabelas do sistema legado (SQL Server).
# Os IDs de LoginUsers e Pessoa são texto sem auto-incremento:
# quem gera o próximo valor é id_legado.proximo_id.
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey

from db import Base


class LoginUsers(Base):
    __tablename__ = "LoginUsers"

    id = Column("ID", String(20), primary_key=True)
    # CPF/CNPJ formatado: XXX.XXX.XXX-XX
    user_id = Column("UserID", String(20), index=True)
    user_name = Column("UserName", String(100), index=True)
    # CRC32 da senha em hexadecimal maiúsculo (compatibilidade com o legado)
    password = Column("Password", String(20))
    # 'X' = ativo, '.' = inativo
    is_active = Column("IsActive", String(1))
    pass_never_expires = Column("PassNeverExpires", Integer)
    created_by = Column("CreatedBy", String(20))
    created_on = Column("CreatedOn", DateTime)
    password_updated_on = Column("PasswordUpdatedOn", DateTime)
    last_login = Column("LastLogin", DateTime)
    # referência inversa para Pessoa.ID
    pessoa = Column("Pessoa", String(20))


class Pessoa(Base):
    __tablename__ = "Pessoa"

    id = Column("ID", String(20), primary_key=True)
    nome = Column("Nome", String(150), nullable=False)
    tipo_pessoa = Column("TipoPessoa", String(1))  # F / J
    nome_social = Column("NomeSocial", String(150))
    # somente dígitos
    cpf_cnpj = Column("CPFCNPJ", String(14), index=True)
    sexo = Column("Sexo", String(1))  # M / F / N
    estado_civil = Column("EstadoCivil", Integer)
    data_nascimento = Column("DataNascimentoFundacao", Date)
    nome_mae = Column("NomeMae", String(150))
    nome_pai = Column("NomePai", String(150))
    municipio = Column("Municipio", Integer)

    # Endereço residencial
    cep_residencial = Column("CEPResidencial", Integer)
    pais_residencial = Column("PaisResidencial", Integer)
    estado_residencial = Column("EstadoResidencial", Integer)
    municipio_residencial = Column("MunicipioResidencial", Integer)
    bairro_residencial = Column("BairroResidencial", String(100))
    numero_residencial = Column("NumeroResidencial", String(20))
    logradouro_residencial = Column("LogradouroResidencial", String(150))
    complemento_residencial = Column("ComplementoResidencial", String(100))
    email_residencial = Column("EmailResidencial", String(150))
    telefone_celular = Column("TelefoneCelular", String(20))
    telefone_residencial = Column("TelefoneResidencial", String(20))
    correspondencia_residencial = Column("CorrespondenciaResidencial", String(1))

    # Endereço comercial
    cep_comercial = Column("CEPComercial", Integer)
    pais_comercial = Column("PaisComercial", Integer)
    estado_comercial = Column("EstadoComercial", Integer)
    municipio_comercial = Column("MunicipioComercial", Integer)
    bairro_comercial = Column("BairroComercial", String(100))
    numero_comercial = Column("NumeroComercial", String(20))
    logradouro_comercial = Column("LogradouroComercial", String(150))
    complemento_comercial = Column("ComplementoComercial", String(100))
    email_comercial = Column("EmailComercial", String(150))
    telefone2_comercial = Column("Telefone2Comercial", String(20))
    telefone_comercial = Column("TelefoneComercial", String(20))
    correspondencia_comercial = Column("CorrespondenciaComercial", String(1))

    created_by = Column("CreatedBy", String(20))
    created_on = Column("CreatedOn", DateTime)
    ativo = Column("Ativo", String(1))
    login_users = Column("LoginUsers", String(20), ForeignKey("LoginUsers.ID"))


# ===== TABELAS DE APOIO (consulta) =====
class Cep(Base):
    __tablename__ = "CEP"

    id = Column("ID", Integer, primary_key=True)
    cep = Column("CEP", String(9))  # com hífen
    cepp = Column("CEPP", String(8), index=True)  # só dígitos
    logradouro = Column("Logradouro", String(150))
    bairro = Column("Bairro", String(100))
    cidade = Column("Cidade", String(100))
    estado = Column("Estado", String(2))
    pais = Column("Pais", Integer)
    municipio_lookup = Column("MunicipioLookup", Integer)
    estado_lookup = Column("EstadoLookup", Integer)


class Estado(Base):
    __tablename__ = "Estado"

    id = Column("ID", Integer, primary_key=True)
    sigla = Column("Sigla", String(2), index=True)
    descricao = Column("Descricao", String(100))


class Municipio(Base):
    __tablename__ = "Municipio"

    id = Column("ID", Integer, primary_key=True)
    descricao = Column("Descricao", String(100))
    estado = Column("Estado", Integer, index=True)
    codigo_ibge = Column("CodigoIBGE", String(10))

# -*- coding: utf-8 -*-
# core_auth.py
import logging
import re
from zlib import crc32

logger = logging.getLogger(__name__)

# Sistema legado: 'X' = ativo, '.' = inativo, qualquer outro valor é inválido
STATUS_ATIVO = "X"
STATUS_INATIVO = "."


# ============================================================
#  CPF / CNPJ
# ============================================================
def somente_digitos(valor):
    if valor is None:
        return ""
    return re.sub(r"\D", "", str(valor))


def formatar_cpf(cpf):
    """
    Formata CPF no padrão XXX.XXX.XXX-XX.
    Se não tiver 11 dígitos, devolve o valor original.
    """
    numeros = somente_digitos(cpf)
    if len(numeros) != 11:
        return cpf
    return f"{numeros[:3]}.{numeros[3:6]}.{numeros[6:9]}-{numeros[9:]}"


def formatar_cnpj(cnpj):
    """Formata CNPJ no padrão XX.XXX.XXX/XXXX-XX."""
    numeros = somente_digitos(cnpj)
    if len(numeros) != 14:
        return cnpj
    return f"{numeros[:2]}.{numeros[2:5]}.{numeros[5:8]}/{numeros[8:12]}-{numeros[12:]}"


def formatar_documento(documento):
    numeros = somente_digitos(documento)
    if len(numeros) == 14:
        return formatar_cnpj(numeros)
    return formatar_cpf(numeros)


def validar_cpf(cpf):
    """
    Algoritmo oficial de validação de CPF (dois dígitos verificadores).
    Rejeita sequências repetidas como 111.111.111-11.
    """
    numeros = somente_digitos(cpf)
    if len(numeros) != 11 or numeros == numeros[0] * 11:
        return False

    digitos = [int(d) for d in numeros]

    soma = sum(digitos[i] * (10 - i) for i in range(9))
    resto = (soma * 10) % 11
    if resto == 10:
        resto = 0
    if resto != digitos[9]:
        return False

    soma = sum(digitos[i] * (11 - i) for i in range(10))
    resto = (soma * 10) % 11
    if resto == 10:
        resto = 0
    return resto == digitos[10]


_PESOS_CNPJ_1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
_PESOS_CNPJ_2 = [6] + _PESOS_CNPJ_1


def _digito_cnpj(digitos, pesos):
    resto = sum(d * p for d, p in zip(digitos, pesos)) % 11
    return 0 if resto < 2 else 11 - resto


def validar_cnpj(cnpj):
    numeros = somente_digitos(cnpj)
    if len(numeros) != 14 or numeros == numeros[0] * 14:
        return False

    digitos = [int(d) for d in numeros]
    if _digito_cnpj(digitos[:12], _PESOS_CNPJ_1) != digitos[12]:
        return False
    return _digito_cnpj(digitos[:13], _PESOS_CNPJ_2) == digitos[13]


def validar_documento(documento):
    """CPF (11 dígitos) ou CNPJ (14 dígitos)."""
    numeros = somente_digitos(documento)
    if len(numeros) == 14:
        return validar_cnpj(numeros)
    return validar_cpf(numeros)


def mascarar_documento(documento):
    """Mantém só os 4 últimos dígitos visíveis, para os logs."""
    if not documento:
        return "vazio"
    return re.sub(r"\d(?=\d{4})", "*", str(documento))


# ============================================================
#  SENHA LEGADA (CRC32)
# ============================================================
# O sistema legado nunca usou hash de senha de verdade: guarda o CRC32
# (ISO-HDLC, polinômio 0xEDB88320) em hexadecimal maiúsculo, sem zeros
# à esquerda. Não é seguro (sem salt, força bruta trivial); só existe
# para ler as credenciais já gravadas.
def crc32_hex(texto):
    """
    CRC32 dos bytes UTF-8 do texto, em hexadecimal maiúsculo.
    Ex.: crc32_hex("123456") == "972D361"
    """
    valor = crc32(texto.encode("utf-8")) & 0xFFFFFFFF
    return format(valor, "X")


def comparar_senhas(senha, armazenada):
    """
    Compara a senha digitada com o CRC32 armazenado no banco.
    Nunca lança exceção: entrada vazia ou inválida simplesmente não confere.
    """
    if not isinstance(senha, str) or not isinstance(armazenada, str):
        logger.warning("Senha vazia fornecida ou armazenada")
        return False
    if not senha:
        logger.warning("Senha vazia fornecida ou armazenada")
        return False

    armazenada = armazenada.strip()
    if not armazenada:
        logger.warning("Hash de senha vazio no banco")
        return False

    try:
        calculada = crc32_hex(senha)
    except UnicodeEncodeError:
        logger.warning("Senha com caracteres não codificáveis em UTF-8")
        return False

    confere = calculada == armazenada
    logger.debug(
        "Comparação de senha: tamanho_entrada=%s tamanho_armazenado=%s confere=%s",
        len(senha), len(armazenada), confere,
    )
    return confere

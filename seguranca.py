# seguranca.py
import logging
import secrets
import threading
import time
from collections import deque
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException, Request

from config import duracao_em_segundos
from core_auth import STATUS_ATIVO

logger = logging.getLogger(__name__)


# ======================================================
#  SEGREDO JWT
# ======================================================
def resolver_segredo_jwt(settings):
    """
    Em produção JWT_SECRET é obrigatório (mínimo 32 caracteres).
    Em desenvolvimento, sem segredo, gera um aleatório por processo.
    """
    segredo = settings.jwt_secret
    if settings.is_production:
        if not segredo or len(segredo) < 32:
            raise RuntimeError("JWT_SECRET ausente ou com menos de 32 caracteres em produção")
        return segredo

    if not segredo:
        logger.warning("JWT_SECRET não configurado - usando segredo gerado só para desenvolvimento")
        return f"DEV-ONLY-{secrets.token_hex(32)}"
    if len(segredo) < 32:
        logger.warning("JWT_SECRET muito curto; use pelo menos 32 caracteres")
    return segredo


# ======================================================
#  TOKENS
# ======================================================
def criar_token(usuario, settings, segredo):
    """
    Gera o JWT do usuário autenticado.
    Devolve (token, expires_in) onde expires_in é o texto configurado ("24h").
    """
    agora = datetime.now(timezone.utc)
    payload = {
        "userId": usuario.id,
        "cpf": usuario.user_id,
        "nome": usuario.user_name,
        "ativo": usuario.is_active == STATUS_ATIVO,
        "iat": agora,
        "exp": agora + timedelta(seconds=duracao_em_segundos(settings.jwt_expires_in)),
    }
    token = jwt.encode(payload, segredo, algorithm=settings.jwt_algorithm)
    return token, settings.jwt_expires_in


def decodificar_token(token, settings, segredo):
    return jwt.decode(token, segredo, algorithms=[settings.jwt_algorithm])


def _extrair_token(authorization):
    if not authorization:
        raise HTTPException(status_code=401, detail="Token de autenticação necessário")

    partes = authorization.split(" ")
    if len(partes) != 2 or partes[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Formato de token inválido. Use: Bearer <token>")
    return partes[1]


def _usuario_do_payload(payload):
    return {
        "userId": payload["userId"],
        "cpf": payload["cpf"],
        "nome": payload.get("nome"),
        "ativo": payload.get("ativo"),
    }


# Dependência: autenticação obrigatória
def usuario_autenticado(request: Request):
    inicio = time.perf_counter()
    app_state = request.app.state
    token = _extrair_token(request.headers.get("Authorization"))

    try:
        payload = decodificar_token(token, app_state.settings, app_state.jwt_secret)
    except jwt.ExpiredSignatureError:
        logger.info("Token expirado - rota %s", request.url.path)
        raise HTTPException(status_code=401, detail="Token expirado")
    except jwt.InvalidTokenError as e:
        logger.info("Token malformado - rota %s: %s", request.url.path, e)
        raise HTTPException(status_code=401, detail="Token malformado")

    if not payload.get("userId") or not payload.get("cpf"):
        raise HTTPException(status_code=401, detail="Token com informações incompletas")

    usuario = _usuario_do_payload(payload)
    logger.info(
        "Acesso autorizado - usuário %s - %s %s - %.1fms",
        usuario["userId"], request.method, request.url.path,
        (time.perf_counter() - inicio) * 1000,
    )
    return usuario


# Dependência: autenticação opcional (nunca falha)
def usuario_opcional(request: Request):
    authorization = request.headers.get("Authorization")
    if not authorization:
        return None

    partes = authorization.split(" ")
    if len(partes) != 2 or partes[0].lower() != "bearer":
        return None

    app_state = request.app.state
    try:
        payload = decodificar_token(partes[1], app_state.settings, app_state.jwt_secret)
    except jwt.InvalidTokenError as e:
        logger.debug("Token opcional inválido ignorado: %s", e)
        return None

    if not payload.get("userId") or not payload.get("cpf"):
        return None
    return _usuario_do_payload(payload)


# ======================================================
#  RATE LIMITING (em memória, por IP)
# ======================================================
class LimitadorTaxa:
    """
    Janela deslizante por chave (IP do cliente).
    Uma instância por regra, guardada em app.state.

    Chaves sem eventos dentro da janela são removidas; uma varredura
    completa roda no máximo uma vez por janela.
    """

    def __init__(self, limite, janela_segundos, relogio=time.monotonic):
        self.limite = limite
        self.janela = janela_segundos
        self._relogio = relogio
        self._eventos = {}
        self._lock = threading.Lock()
        self._ultima_varredura = relogio()

    def _limpar(self, fila, agora):
        while fila and agora - fila[0] >= self.janela:
            fila.popleft()

    def _varrer(self, agora):
        if agora - self._ultima_varredura < self.janela:
            return
        for chave in list(self._eventos):
            fila = self._eventos[chave]
            self._limpar(fila, agora)
            if not fila:
                del self._eventos[chave]
        self._ultima_varredura = agora

    def _fila_atual(self, chave, agora):
        """Fila da chave já sem eventos vencidos; None (e chave removida) se vazia."""
        self._varrer(agora)
        fila = self._eventos.get(chave)
        if fila is None:
            return None
        self._limpar(fila, agora)
        if not fila:
            del self._eventos[chave]
            return None
        return fila

    def bloqueado(self, chave):
        agora = self._relogio()
        with self._lock:
            fila = self._fila_atual(chave, agora)
            return fila is not None and len(fila) >= self.limite

    def registrar(self, chave):
        agora = self._relogio()
        with self._lock:
            fila = self._fila_atual(chave, agora)
            if fila is None:
                fila = self._eventos[chave] = deque()
            fila.append(agora)

    def tentar(self, chave):
        """Registra o evento se ainda houver cota; devolve False quando estourou."""
        agora = self._relogio()
        with self._lock:
            fila = self._fila_atual(chave, agora)
            if fila is None:
                fila = self._eventos[chave] = deque()
            if len(fila) >= self.limite:
                return False
            fila.append(agora)
            return True

    def segundos_para_liberar(self, chave):
        agora = self._relogio()
        with self._lock:
            fila = self._fila_atual(chave, agora)
            if fila is None:
                return 0
            return max(0, int(self.janela - (agora - fila[0])) + 1)

    def total_chaves(self):
        with self._lock:
            return len(self._eventos)


def ip_cliente(request: Request):
    if request.client is None:
        return "desconhecido"
    return request.client.host

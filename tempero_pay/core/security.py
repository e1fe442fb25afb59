# tempero_pay/core/security.py
from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone

import jwt  # PyJWT
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from tempero_pay.core.config import settings

# -------------------- Password hashing --------------------
# pbkdf2 para hashes novos; bcrypt continua aceito para contas antigas
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

# -------------------- JWT helpers --------------------
def _now() -> datetime:
    return datetime.now(timezone.utc)

def create_access_token(*, sub: str, extra: dict | None = None, minutes: int | None = None) -> str:
    """Gera Access Token (type=access). `minutes` sobrescreve o default se passado."""
    now = _now()
    exp_min = minutes if minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {
        "sub": sub,
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_min)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_token(token: str) -> dict:
    data = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    if data.get("type") != "access":
        raise jwt.InvalidTokenError("wrong token type")
    return data

# -------------------- Segredos compartilhados --------------------
def secrets_match(received: str | None, configured: str | None) -> bool:
    """Comparação em tempo constante; segredo vazio nunca autentica."""
    if not configured or not received:
        return False
    return hmac.compare_digest(received.encode(), configured.encode())

# -------------------- Dependência de admin --------------------
_bearer = HTTPBearer(auto_error=False)

def admin_claims(creds: HTTPAuthorizationCredentials | None) -> tuple[dict | None, str | None]:
    """Retorna (claims, None) para admin válido ou (None, mensagem de erro)."""
    if creds is None or not creds.credentials:
        return None, "Token de autenticação não fornecido"
    try:
        data = decode_token(creds.credentials)
    except jwt.PyJWTError:
        return None, "Usuário não autenticado"
    if data.get("role") != "admin":
        return None, "Acesso não autorizado"
    return data, None

def optional_bearer(creds: HTTPAuthorizationCredentials | None = Depends(_bearer)):
    return creds

def require_admin(creds: HTTPAuthorizationCredentials | None = Depends(_bearer)) -> dict:
    data, err = admin_claims(creds)
    if data is None:
        code = status.HTTP_403_FORBIDDEN if err == "Acesso não autorizado" else status.HTTP_401_UNAUTHORIZED
        raise HTTPException(code, err)
    return data

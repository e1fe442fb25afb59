# tempero_pay/api/v1/routes/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from tempero_pay.core.config import settings
from tempero_pay.core.security import create_access_token, verify_password
from tempero_pay.database.session import get_db
from tempero_pay.models.user import User
from tempero_pay.schemas.auth import LoginIn, TokenOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == str(payload.email).lower()))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário não encontrado")
    if not verify_password(payload.password, user.password_hash):
        logger.warning("login recusado para %s", user.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciais inválidas")

    tok = create_access_token(sub=str(user.id), extra={"user": user.email, "role": user.role})
    logger.info("login de %s (%s)", user.email, user.role)
    return TokenOut(access_token=tok, expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, role=user.role)

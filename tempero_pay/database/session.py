from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from tempero_pay.core.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

_connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    _connect_args = {"check_same_thread": False}  # necessário pro SQLite com threadpool do FastAPI

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

"""Cria ou atualiza a conta admin do painel: python scripts/seed_admin.py"""
import os

from sqlalchemy import select

from tempero_pay.core.security import hash_password
from tempero_pay.database.init_db import init_db
from tempero_pay.database.session import SessionLocal
from tempero_pay.models.user import User


def main():
    init_db()

    admin_name = os.getenv("SEED_ADMIN_NAME", "admin")
    admin_email = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com").lower()
    admin_pass = os.getenv("SEED_ADMIN_PASS", "123456")

    with SessionLocal() as db:
        user = db.scalar(select(User).where(User.email == admin_email))
        if user:
            user.name = admin_name
            user.password_hash = hash_password(admin_pass)
            user.role = "admin"
            print(f"[seed] Atualizado usuário existente (id={user.id}).")
        else:
            db.add(User(name=admin_name, email=admin_email, password_hash=hash_password(admin_pass), role="admin"))
            print("[seed] Inserido usuário admin.")
        db.commit()
    print("[seed] OK.")


if __name__ == "__main__":
    main()

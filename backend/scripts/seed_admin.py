import os

from lnedu.core.security import hash_password
from lnedu.database.init_db import init_db
from lnedu.database.session import SessionLocal
from lnedu.models.enums import UserRole
from lnedu.models.user import User


def main():
    init_db()

    # dados do admin
    ADMIN_NAME  = os.getenv("SEED_ADMIN_NAME", "Administrador")
    ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@example.com").lower()
    ADMIN_PASS  = os.getenv("SEED_ADMIN_PASS", "123456")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == ADMIN_EMAIL).first()
        if user:
            user.name = ADMIN_NAME
            user.password_hash = hash_password(ADMIN_PASS)
            user.role = UserRole.ADMIN
            db.commit()
            print(f"[seed] Atualizado usuário existente (id={user.id}).")
        else:
            user = User(name=ADMIN_NAME, email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASS), role=UserRole.ADMIN)
            db.add(user)
            db.commit()
            print(f"[seed] Inserido usuário admin (id={user.id}).")
    finally:
        db.close()
    print("[seed] OK.")

if __name__ == "__main__":
    main()

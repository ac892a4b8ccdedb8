"""Drena a fila de e-mails. Uso em cron: python backend/scripts/send_outbox.py [limite]"""
import sys

from lnedu.database.session import SessionLocal
from lnedu.services.outbox import deliver_pending


def main():
    limit = int(sys.argv[1]) if len(sys.argv) > 1 else 100
    db = SessionLocal()
    try:
        sent = deliver_pending(db, limit)
    finally:
        db.close()
    print(f"[outbox] {sent} e-mail(s) enviados.")

if __name__ == "__main__":
    main()

# lnedu/database/init_db.py
from sqlalchemy.engine import Engine

from lnedu.database.base import Base
from lnedu.database.session import engine as default_engine

def init_db(engine: Engine | None = None) -> None:
    # Importa as models para registrar no metadata antes do create_all
    from lnedu.models.user import User                            # noqa: F401
    from lnedu.models.catalog import Paper, Course, Ebook         # noqa: F401
    from lnedu.models.order import Order, OrderItem               # noqa: F401
    from lnedu.models.entitlement import CourseEnrollment, LibraryItem  # noqa: F401
    from lnedu.models.custom_paper import CustomPaper, CustomPaperMessage  # noqa: F401
    from lnedu.models.collaborator import CollaboratorApplication, Evaluation  # noqa: F401
    from lnedu.models.message import Message                      # noqa: F401
    from lnedu.models.outbox import EmailOutbox                   # noqa: F401
    from lnedu.models.webhook_event import WebhookEvent           # noqa: F401
    from lnedu.models.blog import BlogPost, BlogComment, BlogLike, PostAnalytics  # noqa: F401
    from lnedu.models.newsletter import NewsletterSubscriber, NewsletterIssue  # noqa: F401

    Base.metadata.create_all(bind=engine or default_engine)

# devispro/db.py
from sqlmodel import SQLModel, Session, create_engine
from devispro.config import settings

# Un seul backend, choisi par DATABASE_URL
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    connect_args=connect_args,
    pool_pre_ping=True,
)


def init_db() -> None:
    """
    Crée toutes les tables définies par SQLModel.metadata.
    À appeler une fois au boot de l'application.
    """
    import devispro.models  # noqa: F401  (enregistre les tables)
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)

from sqlmodel import Session, create_engine

from app.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'check_same_thread': False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)


def get_session():
    with Session(engine) as session:
        yield session

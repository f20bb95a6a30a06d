# shop/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shop.utils.logging import get_logger
from shop.utils.settings import DATABASE_URL

logger = get_logger(__name__)


def make_engine(url: str):
    if url.startswith("sqlite"):
        #sqlite + TestClient = rozne watki
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Tworzy brakujace tabele (bez migracji)."""
    # import modeli rejestruje je w Base.metadata
    import shop.data.models  # noqa: F401

    target = bind or engine
    logger.info(f"Creating tables: {sorted(Base.metadata.tables.keys())}")
    Base.metadata.create_all(bind=target)

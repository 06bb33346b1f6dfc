import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from tradeledger.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


database_url = make_url(settings.database_url)
is_sqlite = database_url.get_backend_name() == "sqlite"

connect_args = (
    {"check_same_thread": False}
    if is_sqlite
    else {"sslmode": settings.database_sslmode}
)

engine = create_engine(
    database_url,
    connect_args=connect_args,
    pool_pre_ping=not is_sqlite,
    pool_recycle=1800 if not is_sqlite else -1,
)
logger.debug("Transaction store engine configured for %s", database_url.render_as_string(hide_password=True))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from whatsapp_relay.config import Settings
from whatsapp_relay.errors import StorageError
from whatsapp_relay.logging_config import get_logger

logger = get_logger("database")

Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    """Create the pooled engine. SQLite URLs skip the pool sizing options."""
    url = settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, echo=settings.database_echo, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=settings.database_echo,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    import whatsapp_relay.models  # noqa: F401 - register models

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """One session per unit of work: commit on success, rollback on error, always close."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Storage operation failed", extra={"context": {"error": str(e)}})
        raise StorageError("Database error occurred", original_error=e) from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

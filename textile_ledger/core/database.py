from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from textile_ledger.core.config import settings


def build_engine(url: str, echo: bool = False, **kwargs):
    """Create an engine; SQLite connections are shared across request threads."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(url, echo=echo, connect_args=connect_args, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True, **kwargs)


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

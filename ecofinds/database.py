import warnings

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from ecofinds.config import settings

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

if settings.TESTING and not IS_SQLITE:
    warnings.warn(
        f"TESTING is set but DATABASE_URL is not SQLite: {settings.DATABASE_URL[:50]}... "
        "Set DATABASE_URL=sqlite:///:memory: before importing ecofinds.",
        RuntimeWarning,
        stacklevel=2,
    )

if IS_SQLITE:
    # no pool tuning on SQLite; sessions may cross threads (audit executor, websocket)
    engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": NullPool,
    }
else:
    engine_kwargs = {
        "connect_args": {"connect_timeout": 10},
        "pool_size": 20,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": 30,
    }

engine = create_engine(settings.DATABASE_URL, echo=False, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from backoffice.core.config import DATABASE_URL

# ---------------------
# SQLAlchemy engine / session / Base
# ---------------------
engine_kwargs = {
    "echo": False,
    "pool_pre_ping": True,  # drops dead connections automatically
    "future": True,
}

if DATABASE_URL.startswith("sqlite"):
    # sessions hop between threadpool workers
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    engine_kwargs["pool_size"] = 5
    engine_kwargs["max_overflow"] = 10

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

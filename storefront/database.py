from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.engine.url import make_url

from storefront.core.config import DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW

# Pool flags only apply to server databases
url = make_url(DATABASE_URL)
connect_args = {}
pool_args = {}

if url.get_backend_name() == "sqlite":
    connect_args = {"check_same_thread": False}
else:
    pool_args = {
        "pool_pre_ping": True,   # helps recycle stale connections
        "pool_size": DB_POOL_SIZE,
        "max_overflow": DB_MAX_OVERFLOW,
    }

engine = create_engine(DATABASE_URL, connect_args=connect_args, **pool_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

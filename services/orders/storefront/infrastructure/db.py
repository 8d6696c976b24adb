from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from storefront.core_settings import Settings
from storefront.domain.models import Base

def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection so every session sees the same in-memory database
        return create_engine(
            url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)

def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def init_models(engine: Engine):
    Base.metadata.create_all(engine)

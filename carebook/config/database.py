from contextlib import contextmanager
from sqlalchemy import create_engine, pool
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str = "sqlite:///./carebook.db"

    api_version: str = "1.0.0"
    api_title: str = "CareBook Booking & Payments API"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"
    frontend_url: str = "http://localhost:3000"
    debug: bool = True
    log_level: str = "info"

    # Periodic sweep of PENDING payments past their expiry_time; 0 disables it
    payment_expiry_sweep_seconds: int = 300
    slot_cache_enabled: bool = False
    slot_cache_ttl_seconds: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra='ignore'
    )

settings = Settings()


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
            echo=False
        )

    return create_engine(
        database_url,
        poolclass=pool.QueuePool,
        pool_size=20,
        max_overflow=40,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transactional(db: Session):
    """Commit the unit of work on success, roll it back on any error"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise

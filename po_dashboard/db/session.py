"""Engine and session factory."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from po_dashboard.core.config import get_settings
from po_dashboard.db.sqlite_functions import install_sqlite_functions

settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True, future=True)
if engine.dialect.name == "sqlite":
    install_sqlite_functions(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

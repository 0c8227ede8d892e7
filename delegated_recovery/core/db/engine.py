import os
from pathlib import Path
from sqlalchemy import create_engine

database_url = os.getenv("RECOVERY_DB_URL") or "sqlite:///.data/recovery.db"

if database_url.startswith("sqlite:///.data/"):
    Path(".data").mkdir(exist_ok=True)

engine = create_engine(
    database_url,
    echo=False,
    pool_pre_ping=True,
    pool_recycle=3600,
)

# Create tables on import
from delegated_recovery.core.db.tables.base import Base
from delegated_recovery.core.db.tables.recoverytoken import RecoveryTokenRecord

Base.metadata.create_all(engine)

from typing import Generator
from sqlalchemy.orm import sessionmaker, Session
from delegated_recovery.core.db.engine import engine

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

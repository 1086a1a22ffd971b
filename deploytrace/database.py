"""
Database schema and connection management.

Uses SQLite with SQLAlchemy as the keyed entity store for deployment entries.
"""

from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class DeploymentRecord(Base):
    """Deployment entry row."""

    __tablename__ = "deployments"
    __table_args__ = (UniqueConstraint("partition_key", "row_key", name="uq_deployment_key"),)

    # Surrogate key keeps insertion order stable for queries
    id = Column(Integer, primary_key=True, autoincrement=True)
    partition_key = Column(String, nullable=False, index=True)
    row_key = Column(String, nullable=False)

    p1 = Column(String)
    image_tag = Column(String, index=True)
    commit_id = Column(String)
    service = Column(String)
    source_repo = Column(String)

    p2 = Column(String)
    env = Column(String)
    hld_commit_id = Column(String, index=True)
    hld_repo = Column(String)
    pr = Column(String)

    p3 = Column(String, index=True)
    manifest_commit_id = Column(String)
    manifest_repo = Column(String)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def database_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(database_url(db_path))
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = create_engine(database_url(db_path))
    Session = sessionmaker(bind=engine)
    return Session()

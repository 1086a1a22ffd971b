"""
Entity store adapter.

The correlator only needs equality-filter queries inside one partition,
insert of a new row and replace of an existing one. Any backend offering
that contract can implement EntityStore; SqlEntityStore is the SQLAlchemy
implementation used by default.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Tuple, Type

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import Base, DeploymentRecord, database_url
from .logger import get_logger
from .models import KEY_FIELDS, LINEAGE_FIELDS, DeploymentEntry

QUERYABLE_FIELDS = set(LINEAGE_FIELDS)


class EntityStore(ABC):
    """Abstract base class for keyed entity stores."""

    # Exception types that signal a storage failure for this backend
    errors: Tuple[Type[Exception], ...] = ()

    @abstractmethod
    def query(self, partition_key: str, field_name: str, field_value: str) -> List[DeploymentEntry]:
        """
        Find entries in a partition whose field equals a value.

        Args:
            partition_key: Partition to search
            field_name: Lineage field to filter on (e.g., "image_tag")
            field_value: Exact value to match

        Returns:
            Matching entries, in store-defined order
        """
        ...

    @abstractmethod
    def insert(self, entry: DeploymentEntry) -> None:
        """Insert a new entry. Fails if the row key already exists."""
        ...

    @abstractmethod
    def replace(self, entry: DeploymentEntry) -> None:
        """Replace an existing entry. Fails if it no longer exists."""
        ...

    @abstractmethod
    def delete(self, entry: DeploymentEntry) -> None:
        """Delete an existing entry. Fails if it no longer exists."""
        ...


def _record_to_entry(record: DeploymentRecord) -> DeploymentEntry:
    data = {name: getattr(record, name) for name in KEY_FIELDS + LINEAGE_FIELDS}
    data["sequence"] = record.id
    data["created_at"] = record.created_at
    data["updated_at"] = record.updated_at
    return DeploymentEntry(**data)


class SqlEntityStore(EntityStore):
    """
    SQLAlchemy-backed entity store.

    Query results come back in insertion order. Each operation runs in its
    own session and commits before returning.
    """

    errors = (SQLAlchemyError,)

    def __init__(self, db_path: Path, create: bool = True):
        """
        Args:
            db_path: Path to SQLite database file
            create: Create the deployments table if it is missing
        """
        self.db_path = Path(db_path)
        if create:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(database_url(self.db_path))
        if create:
            Base.metadata.create_all(self.engine)
        self._Session = sessionmaker(bind=self.engine)

    def _find(self, session, entry: DeploymentEntry) -> DeploymentRecord:
        record = (
            session.query(DeploymentRecord)
            .filter_by(partition_key=entry.partition_key, row_key=entry.row_key)
            .one_or_none()
        )
        if record is None:
            raise NoResultFound(
                f"No row for partition_key={entry.partition_key!r} row_key={entry.row_key!r}"
            )
        return record

    def query(self, partition_key: str, field_name: str, field_value: str) -> List[DeploymentEntry]:
        if field_name not in QUERYABLE_FIELDS:
            raise ValueError(f"Cannot filter on unknown field: {field_name}")

        with self._Session() as session:
            records = (
                session.query(DeploymentRecord)
                .filter(DeploymentRecord.partition_key == partition_key)
                .filter(getattr(DeploymentRecord, field_name) == field_value)
                .order_by(DeploymentRecord.id)
                .all()
            )
            entries = [_record_to_entry(r) for r in records]

        get_logger().debug(
            "Queried deployments",
            partition_key=partition_key,
            field=field_name,
            value=field_value,
            results=len(entries),
        )
        return entries

    def insert(self, entry: DeploymentEntry) -> None:
        now = datetime.now()
        record = DeploymentRecord(
            partition_key=entry.partition_key,
            row_key=entry.row_key,
            created_at=now,
            updated_at=now,
            **{name: getattr(entry, name) for name in LINEAGE_FIELDS},
        )
        with self._Session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            entry.sequence = record.id
        entry.created_at = now
        entry.updated_at = now

    def replace(self, entry: DeploymentEntry) -> None:
        now = datetime.now()
        with self._Session() as session:
            record = self._find(session, entry)
            for name in LINEAGE_FIELDS:
                setattr(record, name, getattr(entry, name))
            record.updated_at = now
            session.commit()
            created_at = record.created_at
        entry.created_at = created_at
        entry.updated_at = now

    def delete(self, entry: DeploymentEntry) -> None:
        with self._Session() as session:
            session.delete(self._find(session, entry))
            session.commit()

    def count(self, partition_key: str) -> int:
        """Number of entries in a partition."""
        with self._Session() as session:
            return session.query(DeploymentRecord).filter_by(partition_key=partition_key).count()

    def close(self) -> None:
        self.engine.dispose()

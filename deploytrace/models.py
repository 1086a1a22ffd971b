"""
Deployment entry model.

One entry holds the lineage of a single logical deployment. Fields are
optional and accumulate as the three pipeline stages report in; an entry
is addressed by an opaque row key inside a fixed partition.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

# Stage-1 facts
SOURCE_FIELDS = ["p1", "image_tag", "commit_id", "service", "source_repo"]
# Stage-2 facts
HLD_FIELDS = ["p2", "env", "hld_commit_id", "hld_repo", "pr"]
# Stage-3 facts
MANIFEST_FIELDS = ["p3", "manifest_commit_id", "manifest_repo"]

LINEAGE_FIELDS = SOURCE_FIELDS + HLD_FIELDS + MANIFEST_FIELDS
KEY_FIELDS = ["partition_key", "row_key"]


@dataclass
class DeploymentEntry:
    """Lineage record for one deployment."""

    partition_key: str
    row_key: str

    p1: Optional[str] = None
    image_tag: Optional[str] = None
    commit_id: Optional[str] = None
    service: Optional[str] = None
    source_repo: Optional[str] = None

    p2: Optional[str] = None
    env: Optional[str] = None
    hld_commit_id: Optional[str] = None
    hld_repo: Optional[str] = None
    pr: Optional[str] = None

    p3: Optional[str] = None
    manifest_commit_id: Optional[str] = None
    manifest_repo: Optional[str] = None

    # Managed by the store; sequence increases with every insert
    sequence: Optional[int] = field(default=None, compare=False)
    created_at: Optional[datetime] = field(default=None, compare=False)
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def has(self, name: str) -> bool:
        """A field is present when it holds a non-empty value."""
        value = getattr(self, name)
        return value is not None and value != ""

    def set_if_given(self, name: str, value: Optional[str]) -> None:
        """Set a lineage field, ignoring None so nothing is ever cleared."""
        if value is not None:
            setattr(self, name, value)

    def copy_fields(self, donor: "DeploymentEntry", names: Iterable[str]) -> None:
        """Carry the donor's set fields forward onto this entry."""
        for name in names:
            if donor.has(name):
                setattr(self, name, getattr(donor, name))

    def stages(self) -> List[str]:
        return [p for p in ("p1", "p2", "p3") if self.has(p)]

    def to_dict(self) -> Dict[str, Any]:
        """Keys plus every lineage field that is set."""
        data = {"partition_key": self.partition_key, "row_key": self.row_key}
        for name in LINEAGE_FIELDS:
            if self.has(name):
                data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentEntry":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

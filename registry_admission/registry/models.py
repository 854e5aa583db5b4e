"""Registry record types."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class PublishMode(Enum):
    """Whether a write creates a new record or updates an existing one."""

    CREATE = "create"
    UPDATE = "update"


@dataclass
class ServerRecord:
    """A published server entry."""

    name: str
    version: str
    id: str = ""
    description: str = ""
    repository_url: str = ""
    status: str = "active"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

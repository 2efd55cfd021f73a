"""Watch configuration model."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

# Fields whose change requires restarting the observer
OBSERVER_FIELDS = ("path", "recursive", "patterns")
EDITABLE_FIELDS = frozenset({"path", "folder_id", "recursive", "patterns", "enabled"})


def new_config_id() -> str:
    """Generate a unique watch configuration identifier."""
    return f"watch-{uuid.uuid4().hex[:12]}"


@dataclass
class WatchConfig:
    """A watched directory and the rules for reporting its new files.

    Attributes:
        path: Directory to watch.
        folder_id: Target folder on the server for detected files.
        recursive: Whether subdirectories are watched too.
        patterns: Glob patterns a file must match (empty = all files).
        enabled: Whether an observer should run for this config.
        id: Unique identifier.
    """

    path: str
    folder_id: str | None = None
    recursive: bool = True
    patterns: list[str] = field(default_factory=list)
    enabled: bool = True
    id: str = field(default_factory=new_config_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatchConfig:
        """Create from a stored dictionary."""
        return cls(
            id=data["id"],
            path=data["path"],
            folder_id=data.get("folder_id"),
            recursive=bool(data.get("recursive", True)),
            patterns=list(data.get("patterns") or []),
            enabled=bool(data.get("enabled", True)),
        )

    def observer_settings_differ(self, other: WatchConfig) -> bool:
        """Whether switching to `other` requires a new observer."""
        return any(getattr(self, name) != getattr(other, name) for name in OBSERVER_FIELDS)

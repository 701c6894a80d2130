"""Typed events published when profile state changes."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ProfileEvent(str, Enum):
    """Names of in-process profile events."""

    PROFILE_PICTURE_UPDATED = "profilePictureUpdated"


@dataclass(frozen=True)
class UpdateEvent:
    """Payload of `PROFILE_PICTURE_UPDATED`."""

    owner_id: str
    new_image_reference: Optional[str]
    migration_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True, slots=True)
class VideoLocator:
    """Where an uploaded video lives in the object store."""

    bucket: str
    key: str


@dataclass(slots=True)
class VideoRecord:
    """A video as owned by the metadata store.

    ``locator`` is ``None`` until media has been uploaded for the record.
    """

    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    locator: Optional[VideoLocator] = None
    created_at: Optional[datetime] = field(default=None, compare=False)
    updated_at: Optional[datetime] = field(default=None, compare=False)

    def is_owned_by(self, principal_id: str) -> bool:
        return self.owner_id == principal_id

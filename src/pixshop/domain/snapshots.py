"""Models for persisted edit-session snapshots."""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

EditMode = Literal["retouch", "adjust", "filters", "crop"]

EDIT_MODES: tuple[str, ...] = ("retouch", "adjust", "filters", "crop")


class Hotspot(BaseModel):
    """Point in original-image pixel coordinates."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)


class LegacyEditSnapshot(BaseModel):
    """Snapshot written before sessions were partitioned by owner.

    Field aliases keep the camelCase names the web client stores, so snapshots
    written by either client decode the same way.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    current_image: str = Field(alias="currentImage")
    original_image: str = Field(alias="originalImage")
    history: list[str] = Field(min_length=1)
    history_index: int = Field(alias="historyIndex", ge=0)
    edit_hotspot: Hotspot | None = Field(default=None, alias="editHotspot")
    active_tab: EditMode = Field(alias="activeTab")
    prompt: str = ""
    saved_at_ms: int = Field(alias="timestamp")

    @model_validator(mode="after")
    def _cursor_in_range(self) -> "LegacyEditSnapshot":
        if self.history_index >= len(self.history):
            raise ValueError("historyIndex must point into history")
        return self

    @property
    def edit_count(self) -> int:
        return len(self.history) - 1


class EditSnapshot(LegacyEditSnapshot):
    """Snapshot keyed by (owner, session)."""

    session_id: str = Field(alias="sessionId", min_length=1)
    owner_id: str = Field(alias="userId", min_length=1)


AnySnapshot = EditSnapshot | LegacyEditSnapshot


@dataclass(frozen=True)
class SnapshotInput:
    """Raw editor state handed to the codec for persistence."""

    history: list[str]
    history_index: int
    active_tab: str = "retouch"
    prompt: str = ""
    edit_hotspot: Hotspot | None = None
    session_id: str | None = None
    owner_id: str | None = None

"""Pydantic models for the HTTP API."""

from pydantic import BaseModel, Field

from pixshop.domain.editor import EditorImage, EditorState
from pixshop.domain.snapshots import AnySnapshot, EditMode, Hotspot, SnapshotInput


class SnapshotRequest(BaseModel):
    """Editor state submitted for persistence."""

    history: list[str] = Field(min_length=1)
    history_index: int = Field(ge=0)
    active_tab: EditMode = "retouch"
    prompt: str = ""
    edit_hotspot: Hotspot | None = None

    def to_snapshot_input(self) -> SnapshotInput:
        return SnapshotInput(
            history=list(self.history),
            history_index=self.history_index,
            active_tab=self.active_tab,
            prompt=self.prompt,
            edit_hotspot=self.edit_hotspot,
        )

    def to_editor(self) -> EditorState:
        """Materialize the editor, raising ValueError on a bad image."""
        return EditorState(
            history=[EditorImage.from_data_url(image) for image in self.history],
            history_index=min(self.history_index, len(self.history) - 1),
            active_tab=self.active_tab,
            prompt=self.prompt,
            edit_hotspot=self.edit_hotspot,
        )


class CheckoutRequest(BaseModel):
    """Purchase request carrying the editor state to preserve."""

    snapshot: SnapshotRequest | None = None
    credits: int | None = Field(default=None, gt=0)


class SessionSummary(BaseModel):
    """Entry in the recent sessions list."""

    session_id: str | None
    saved_at_ms: int
    edit_count: int
    active_tab: str
    preview: str

    @classmethod
    def from_snapshot(cls, snapshot: AnySnapshot) -> "SessionSummary":
        return cls(
            session_id=getattr(snapshot, "session_id", None),
            saved_at_ms=snapshot.saved_at_ms,
            edit_count=snapshot.edit_count,
            active_tab=snapshot.active_tab,
            preview=snapshot.current_image,
        )


class EditCheckRequest(BaseModel):
    """Prompt and selected point submitted before a remote edit."""

    prompt: str = ""
    hotspot: Hotspot | None = None

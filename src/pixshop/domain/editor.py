"""In-memory editor state: image history with undo/redo."""

from dataclasses import dataclass, field

from pixshop.domain.images import build_encoded_image, parse_encoded_image
from pixshop.domain.snapshots import AnySnapshot, Hotspot, SnapshotInput


@dataclass(frozen=True)
class EditorImage:
    """Image held by the editor in its native (decoded bytes) form."""

    content: bytes
    mime_type: str
    name: str = "image"

    @classmethod
    def from_data_url(cls, data_url: str, name: str = "image") -> "EditorImage":
        mime_type, content = parse_encoded_image(data_url)
        return cls(content=content, mime_type=mime_type, name=name)

    def to_data_url(self) -> str:
        return build_encoded_image(self.mime_type, self.content)


@dataclass
class EditorState:
    """Mutable edit history driven by UI actions."""

    history: list[EditorImage] = field(default_factory=list)
    history_index: int = -1
    active_tab: str = "retouch"
    prompt: str = ""
    edit_hotspot: Hotspot | None = None

    @classmethod
    def from_upload(cls, image: EditorImage) -> "EditorState":
        return cls(history=[image], history_index=0)

    @property
    def current(self) -> EditorImage | None:
        if 0 <= self.history_index < len(self.history):
            return self.history[self.history_index]
        return None

    @property
    def original(self) -> EditorImage | None:
        return self.history[0] if self.history else None

    @property
    def can_undo(self) -> bool:
        return self.history_index > 0

    @property
    def can_redo(self) -> bool:
        return self.history_index < len(self.history) - 1

    def add_image(self, image: EditorImage) -> None:
        """Append an edit result, dropping any redo tail."""
        self.history = [*self.history[: self.history_index + 1], image]
        self.history_index = len(self.history) - 1

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self.history_index -= 1
        self.edit_hotspot = None
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self.history_index += 1
        self.edit_hotspot = None
        return True

    def reset(self) -> None:
        """Jump back to the original upload, keeping the history."""
        if self.history:
            self.history_index = 0
            self.edit_hotspot = None

    def to_snapshot_input(
        self, owner_id: str | None = None, session_id: str | None = None
    ) -> SnapshotInput:
        return SnapshotInput(
            history=[image.to_data_url() for image in self.history],
            history_index=self.history_index,
            active_tab=self.active_tab,
            prompt=self.prompt,
            edit_hotspot=self.edit_hotspot,
            session_id=session_id,
            owner_id=owner_id,
        )

    def replace_from_snapshot(self, snapshot: AnySnapshot) -> None:
        """Replace the whole history with a restored snapshot.

        Images are decoded before any field is assigned, so a ValueError
        leaves the editor untouched.
        """
        restored = [
            EditorImage.from_data_url(data_url, name=f"restored-{index}")
            for index, data_url in enumerate(snapshot.history)
        ]
        self.history = restored
        self.history_index = snapshot.history_index
        self.active_tab = snapshot.active_tab
        self.prompt = snapshot.prompt
        self.edit_hotspot = snapshot.edit_hotspot

"""Wire messages exchanged over Socket.IO.

Client events are validated here before they reach the realtime core.
Field names follow the camelCase the browser client sends; Python code
uses the snake_case attribute names.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedPayload

# Client -> server
JOIN_ROOM = "join-room"
LEAVE_ROOM = "leave-room"
DIAGRAM_CHANGE = "diagram-change"
CURSOR_MOVE = "cursor-move"
ELEMENT_SELECT = "element-select"

# Server -> client
JOINED_ROOM = "joined-room"
USER_JOINED = "user-joined"
USER_LEFT = "user-left"
DIAGRAM_UPDATED = "diagram-updated"
CURSOR_MOVED = "cursor-moved"
ELEMENT_SELECTED = "element-selected"
ERROR = "error"

# Change types that are broadcast but never persisted or audited
TRANSIENT_CHANGE_TYPES = frozenset({"move", "cursor"})

M = TypeVar("M", bound="ClientEvent")


class ClientEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RoomRequest(ClientEvent):
    project_id: int = Field(alias="projectId")

    @classmethod
    def coerce(cls, data: Any) -> Any:
        # The client sends the bare project id for room events
        if isinstance(data, (int, str)) and not isinstance(data, bool):
            return {"projectId": data}
        return data


class JoinRoomRequest(RoomRequest):
    pass


class LeaveRoomRequest(RoomRequest):
    pass


class DiagramChangeRequest(ClientEvent):
    project_id: int = Field(alias="projectId")
    diagram_data: Any = Field(default=None, alias="diagramData")
    change_type: str = Field(alias="changeType")
    element_id: Optional[Union[str, int]] = Field(default=None, alias="elementId")

    @property
    def is_transient(self) -> bool:
        return self.change_type in TRANSIENT_CHANGE_TYPES


class CursorMoveRequest(ClientEvent):
    project_id: int = Field(alias="projectId")
    x: float
    y: float


class ElementSelectRequest(ClientEvent):
    project_id: int = Field(alias="projectId")
    element_id: Optional[Union[str, int]] = Field(default=None, alias="elementId")
    element_type: Optional[str] = Field(default=None, alias="elementType")


def parse_event(model: Type[M], event: str, data: Any) -> M:
    """Validate ``data`` against ``model`` or raise MalformedPayload."""
    if issubclass(model, RoomRequest):
        data = model.coerce(data)
    if not isinstance(data, dict):
        raise MalformedPayload(event, "expected an object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise MalformedPayload(event, f"invalid fields: {fields}") from exc

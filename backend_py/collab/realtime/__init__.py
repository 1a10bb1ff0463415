"""Realtime collaborative editing core.

Supported client events:
- join-room / leave-room - project room membership
- diagram-change - structural or transient diagram edits
- cursor-move / element-select - ephemeral presence
"""

from .access import AccessAuthority  # noqa: F401
from .connections import Connection, ConnectionManager, ConnectionState  # noqa: F401
from .hub import CollabHub  # noqa: F401
from .pipeline import ChangeOutcome, DiagramChangePipeline  # noqa: F401
from .presence import PresenceRelay  # noqa: F401
from .registry import RoomRegistry  # noqa: F401

"""Backend package for the realtime diagram collaboration server.

The ASGI application lives at ``collab.main.asgi_app`` and combines a
FastAPI instance with a Socket.IO server. Run it with
``uvicorn collab.main:asgi_app``. The ``collab.realtime`` package holds
the room registry, connection lifecycle, diagram change pipeline and
presence relay; ``collab.services`` holds the persistence they use.
"""

from __future__ import annotations

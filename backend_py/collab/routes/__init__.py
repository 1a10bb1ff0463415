"""Expose API routers for FastAPI.

Each module defines a ``router`` object which is registered in
``collab.main`` under the ``/api`` prefix.
"""

from . import projects  # noqa: F401

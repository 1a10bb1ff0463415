"""Persistence services consumed by the realtime core and the REST routes."""

from .repository import AccessRecord, ProjectRepository, UserProfile  # noqa: F401

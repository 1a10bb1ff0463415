from __future__ import annotations

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(150))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    memberships = relationship("ProjectMember", back_populates="user")


class Permission(Base):
    """Role catalogue, e.g. ``creator`` or ``collaborator``."""

    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True)
    description = Column(String(50), unique=True, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    status = Column(String(50), default="active")
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    # Serialized diagram snapshot, overwritten wholesale on structural changes
    diagram_json = Column(Text, nullable=True)

    members = relationship("ProjectMember", back_populates="project")


class ProjectMember(Base):
    """Access record: a user holding a role on a project."""

    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("user_id", "project_id", name="uq_project_member"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=False)

    user = relationship("User", back_populates="memberships")
    project = relationship("Project", back_populates="members")
    permission = relationship("Permission")
    actions = relationship("ProjectAction", back_populates="member")


class ProjectAction(Base):
    """Append-only audit row for a structural change."""

    __tablename__ = "project_actions"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("project_members.id"), nullable=False)
    action = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    member = relationship("ProjectMember", back_populates="actions")

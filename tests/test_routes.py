import json

import pytest
from fastapi.testclient import TestClient

from collab.main import app
from collab.models import Project, ProjectAction, ProjectMember
from collab.routes.projects import get_repository
from conftest import ALICE, CAROL, SHARED_PROJECT, token_for


@pytest.fixture
def client(repository):
    app.dependency_overrides[get_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id):
    return {"Authorization": f"Bearer {token_for(user_id)}"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_diagram_requires_token(client):
    assert client.get(f"/api/projects/{SHARED_PROJECT}/diagram").status_code == 401
    bad = client.get(f"/api/projects/{SHARED_PROJECT}/diagram", headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 403


def test_diagram_requires_access(client):
    response = client.get(f"/api/projects/{SHARED_PROJECT}/diagram", headers=_auth(CAROL))

    assert response.status_code == 403


def test_diagram_returns_parsed_snapshot(client, session_factory):
    with session_factory() as db:
        db.get(Project, SHARED_PROJECT).diagram_json = json.dumps({"shape": "rect"})
        db.commit()

    response = client.get(f"/api/projects/{SHARED_PROJECT}/diagram", headers=_auth(ALICE))

    assert response.status_code == 200
    assert response.json() == {"projectId": SHARED_PROJECT, "diagramData": {"shape": "rect"}, "role": "creator"}


def test_empty_snapshot_is_null(client):
    response = client.get(f"/api/projects/{SHARED_PROJECT}/diagram", headers=_auth(ALICE))

    assert response.json()["diagramData"] is None


def test_actions_are_listed_oldest_first(client, session_factory):
    with session_factory() as db:
        member = db.query(ProjectMember).filter_by(user_id=ALICE, project_id=SHARED_PROJECT).one()
        db.add_all([ProjectAction(member_id=member.id, action="update_element_add"),
                    ProjectAction(member_id=member.id, action="update_element_delete")])
        db.commit()

    response = client.get(f"/api/projects/{SHARED_PROJECT}/actions", headers=_auth(ALICE))

    assert response.status_code == 200
    assert response.json()["actions"] == ["update_element_add", "update_element_delete"]

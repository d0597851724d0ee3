"""
Tests for session export.
"""

import json
from datetime import datetime, timezone

import pytest

from export.session_export import SessionExporter, render_csv, render_json
from models.errors import NotFoundError
from models.session import ImageCount, Session


@pytest.fixture
def fixed_session():
    ts = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    return Session(
        id="session_abc",
        name="Shelf",
        created_at=ts,
        object_type="cans",
        images=[
            ImageCount(id="img_1", path="/p/1.jpg", count=5, timestamp=ts, corrections=0),
            ImageCount(id="img_2", path="/p/2.jpg", count=3, timestamp=ts, corrections=1),
        ],
        total_count=8,
    )


def test_csv_layout(fixed_session):
    assert render_csv(fixed_session) == (
        "Image ID,Count,Timestamp,Corrections\n"
        "img_1,5,2024-05-01T09:30:00+00:00,0\n"
        "img_2,3,2024-05-01T09:30:00+00:00,1\n"
        "\n"
        "Total Count:,8\n"
    )


def test_csv_empty_session():
    s = Session(id="s", name="Empty", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
    assert render_csv(s) == "Image ID,Count,Timestamp,Corrections\n\nTotal Count:,0\n"


def test_json_is_persisted_form(fixed_session):
    data = json.loads(render_json(fixed_session))
    assert data == fixed_session.to_dict()
    assert data["totalCount"] == 8
    assert Session.from_dict(data) == fixed_session


def test_exporter_uses_repository(repo, session):
    repo.add_image_to_session(session.id, "/p/a.jpg", 4, [])
    exporter = SessionExporter(repo)
    csv_text = exporter.export_csv(session.id)
    assert csv_text.splitlines()[-1] == "Total Count:,4"
    assert json.loads(exporter.export_json(session.id))["id"] == session.id


def test_exporter_unknown_session(repo):
    with pytest.raises(NotFoundError):
        SessionExporter(repo).export_csv("session_missing")

import logging

from app.rsm import activity
from app.rsm.db import session_scope
from app.rsm.models import ActivityLog
from app.rsm.modules.schools.models import School


def test_failed_activity_insert_keeps_the_mutation(app, make_school, monkeypatch, caplog):
    def broken_row(**kwargs):
        # action is NOT NULL, so the INSERT itself fails
        return ActivityLog(**{**kwargs, "action": None})

    monkeypatch.setattr(activity, "ActivityLog", broken_row)
    with caplog.at_level(logging.WARNING, logger="app.rsm.activity"):
        school_id = make_school(name="Maple Grove")

    assert "Failed to record activity CREATE_SCHOOL" in caplog.text
    with session_scope(app) as s:
        assert s.get(School, school_id).name == "Maple Grove"
        actions = [a.action for a in s.query(ActivityLog).all()]
    assert "CREATE_SCHOOL" not in actions


def test_activity_row_commits_with_the_mutation(app, make_school):
    school_id = make_school()

    with session_scope(app) as s:
        row = s.query(ActivityLog).filter(ActivityLog.action == "CREATE_SCHOOL").one()
        assert row.subject_id == school_id

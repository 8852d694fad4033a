import pytest

from airport_ops.alerts import acknowledge_alert, create_alert, delete_alert, list_alerts, update_alert
from airport_ops.errors import Conflict, Forbidden, NotFound, ValidationError
from airport_ops.models import Alert
from airport_ops.runways import create_runway, delete_runway


@pytest.fixture
def alert_id(session_factory, actors):
    with session_factory() as session:
        alert = create_alert(
            session, actors["staff"], {"title": "Bird strike", "message": "Report from R1", "severity": "warning"}
        )
        session.commit()
    return alert.id


def test_any_role_raises_alerts(session_factory, actors, alert_id):
    with session_factory() as session:
        (alert,) = list_alerts(session, active_only=True)
    assert alert.id == alert_id
    assert alert.created_by == "staff-1"
    assert alert.is_active and not alert.is_acknowledged


def test_alert_validation(session_factory, actors):
    with session_factory() as session:
        with pytest.raises(ValidationError):
            create_alert(session, actors["atc"], {"title": "x", "message": "y", "severity": "panic"})
        with pytest.raises(ValidationError):
            create_alert(session, actors["atc"], {"title": "  ", "message": "y"})
        with pytest.raises(NotFound):
            create_alert(session, actors["atc"], {"title": "x", "message": "y", "flight_id": 404})


def test_staff_cannot_edit_or_acknowledge(session_factory, actors, alert_id):
    with session_factory() as session:
        with pytest.raises(Forbidden):
            update_alert(session, actors["staff"], alert_id, {"severity": "info"})
        with pytest.raises(Forbidden):
            acknowledge_alert(session, actors["staff"], alert_id)
        with pytest.raises(Forbidden):
            delete_alert(session, actors["staff"], alert_id)


def test_acknowledge_once(session_factory, actors, alert_id):
    with session_factory() as session:
        alert = acknowledge_alert(session, actors["atc"], alert_id)
        session.commit()
    assert alert.is_acknowledged and not alert.is_active
    assert alert.acknowledged_by == "atc-1"
    acknowledged_at = alert.acknowledged_at

    with session_factory() as session:
        with pytest.raises(Conflict, match="atc-1"):
            acknowledge_alert(session, actors["admin"], alert_id)
        session.rollback()
        stored = session.get(Alert, alert_id)
        assert (stored.acknowledged_by, stored.acknowledged_at) == ("atc-1", acknowledged_at)
        assert list_alerts(session, active_only=True) == []
        with pytest.raises(Conflict):
            update_alert(session, actors["admin"], alert_id, {"is_active": True})


def test_alert_survives_runway_removal(session_factory, actors):
    with session_factory() as session:
        runway = create_runway(session, actors["atc"], {"name": "R9"})
        alert = create_alert(session, actors["atc"], {"title": "FOD", "message": "Debris", "runway_id": runway.id})
        delete_runway(session, actors["atc"], runway.id)
        session.commit()
    with session_factory() as session:
        assert session.get(Alert, alert.id).runway_id is None


def test_list_alerts_filters(session_factory, actors, alert_id):
    with session_factory() as session:
        create_alert(session, actors["atc"], {"title": "Info", "message": "Gate change"})
        session.commit()
        assert [a.title for a in list_alerts(session, severity="warning")] == ["Bird strike"]
        assert len(list_alerts(session, limit=1)) == 1
        delete_alert(session, actors["admin"], alert_id)
        session.commit()
        assert [a.title for a in list_alerts(session)] == ["Info"]


@pytest.mark.parametrize("patch", [{"title": None}, {"message": "   "}, {"severity": None}, {"is_active": None}])
def test_null_or_blank_alert_patch_is_rejected(session_factory, actors, alert_id, patch):
    with session_factory() as session:
        with pytest.raises(ValidationError):
            update_alert(session, actors["atc"], alert_id, patch)
        stored = session.get(Alert, alert_id)
        assert (stored.title, stored.message, stored.severity) == ("Bird strike", "Report from R1", "warning")

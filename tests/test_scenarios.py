import pytest

from portal.assessment import NotFoundOrExpired, ValidationError
from portal.extensions import db
from portal.models.text_response import TextResponse
from portal.services import scenarios


def _orders():
    return [(s.title, s.display_order) for s in scenarios.list_scenarios()]


def test_created_scenarios_append_to_the_end(app):
    for title in ("A", "B", "C"):
        scenarios.create_scenario(title, "desc", "text")
    assert _orders() == [("A", 10), ("B", 20), ("C", 30)]


def test_create_requires_title_and_type(app):
    with pytest.raises(ValidationError):
        scenarios.create_scenario("  ", "desc", "text")
    with pytest.raises(ValidationError):
        scenarios.create_scenario("Title", "desc", "video")


def test_move_swaps_with_neighbour(app):
    a, b, c = (scenarios.create_scenario(t, "desc", "audio") for t in "ABC")
    scenarios.move_scenario(c.id, "up")
    assert [t for t, _ in _orders()] == ["A", "C", "B"]
    scenarios.move_scenario(a.id, "down")
    assert [t for t, _ in _orders()] == ["C", "A", "B"]
    # already at the edge
    scenarios.move_scenario(b.id, "down")
    assert [t for t, _ in _orders()] == ["C", "A", "B"]


def test_move_with_equal_orders(app, make_scenario):
    make_scenario("A", display_order=5)
    b = make_scenario("B", display_order=5)
    scenarios.move_scenario(b.id, "up")
    assert _orders() == [("B", 10), ("A", 20)]


def test_reorder_assigns_spaced_orders(app):
    a, b, c = (scenarios.create_scenario(t, "desc", "text") for t in "ABC")
    scenarios.reorder([c.id, a.id])
    assert _orders() == [("C", 10), ("A", 20), ("B", 30)]

    with pytest.raises(ValidationError):
        scenarios.reorder([a.id, a.id])
    with pytest.raises(NotFoundOrExpired):
        scenarios.reorder([a.id, 999])


def test_delete_blocked_while_answered(app, make_user):
    scenario = scenarios.create_scenario("Answered", "desc", "text")
    user = make_user()
    db.session.add(TextResponse(user_id=user.id, scenario_id=scenario.id, response_text="x"))
    db.session.commit()

    with pytest.raises(ValidationError) as exc:
        scenarios.delete_scenario(scenario.id)
    assert "1 response(s)" in exc.value.user_message
    assert scenarios.list_scenarios()


def test_delete_unanswered(app):
    scenario = scenarios.create_scenario("Fresh", "desc", "text")
    scenarios.delete_scenario(scenario.id)
    assert scenarios.list_scenarios() == []
    with pytest.raises(NotFoundOrExpired):
        scenarios.delete_scenario(scenario.id)


def test_toggle_and_update(app):
    scenario = scenarios.create_scenario("Old", "desc", "text")
    assert scenarios.toggle_active(scenario.id).active is False
    assert scenarios.toggle_active(scenario.id).active is True

    updated = scenarios.update_scenario(scenario.id, "New", "other", "audio", active=False)
    assert (updated.title, updated.response_type, updated.active) == ("New", "audio", False)

import pytest

from portal.assessment import NetworkFailure, NotFoundOrExpired, ValidationError
from portal.models.rating import ResponseRating
from portal.services.gateway import SqlGateway


@pytest.fixture
def gateway(app):
    return SqlGateway()


def _recording(gateway, user, scenario, key="1/recording-1.webm"):
    gateway.upload_binary(key, b"audio-bytes", "audio/webm")
    return gateway.create_response(
        "audio", user_id=user.id, scenario_id=scenario.id,
        storage_key=key, file_format="webm", response_time=12,
    )


def test_active_scenarios_in_display_order(gateway, make_scenario):
    third = make_scenario("Third", display_order=30)
    first = make_scenario("First", display_order=10)
    make_scenario("Hidden", display_order=20, active=False)

    assert [s.id for s in gateway.get_scenarios()] == [first.id, third.id]
    assert len(gateway.get_scenarios(active_only=False)) == 3


def test_rating_is_created_then_overwritten(gateway, make_user, make_scenario, admin):
    user = make_user()
    rec = _recording(gateway, user, make_scenario(response_type="audio"))

    first = gateway.upsert_rating(rec.id, "audio", 7, "ok", admin.id)
    assert (first.rating, first.feedback) == (7, "ok")

    second = gateway.upsert_rating(rec.id, "audio", "3", "  ", admin.id)
    assert second.id == first.id
    assert second.rating == 3
    assert second.feedback is None
    assert ResponseRating.query.filter_by(recording_id=rec.id).count() == 1


def test_text_responses_are_rated_separately(gateway, make_user, make_scenario, admin):
    user = make_user()
    scenario = make_scenario()
    text = gateway.create_response("text", user_id=user.id, scenario_id=scenario.id,
                                   response_text="I would listen first.", response_time=40)

    gateway.upsert_rating(text.id, "text", 9, "clear", admin.id)

    ratings = gateway.ratings_for("text", [text.id])
    assert ratings[text.id].rating == 9
    assert gateway.ratings_for("audio", [text.id]) == {}


@pytest.mark.parametrize("score", [0, 11, "great", None])
def test_rating_out_of_range_rejected(gateway, make_user, make_scenario, admin, score):
    rec = _recording(gateway, make_user(), make_scenario(response_type="audio"))
    with pytest.raises(ValidationError) as exc:
        gateway.upsert_rating(rec.id, "audio", score, None, admin.id)
    assert exc.value.user_message == "Rating must be a number between 1 and 10."
    assert ResponseRating.query.count() == 0


def test_rating_missing_response(gateway, admin):
    with pytest.raises(NotFoundOrExpired):
        gateway.upsert_rating(404, "audio", 5, None, admin.id)


def test_profile_updates(gateway, make_user):
    user = make_user()
    gateway.update_profile(user.id, position_type="voice", current_scenario_index=2)
    profile = gateway.get_profile(user.id)
    assert (profile.position_type, profile.current_scenario_index) == ("voice", 2)

    with pytest.raises(ValueError):
        gateway.update_profile(user.id, role="admin")
    with pytest.raises(NotFoundOrExpired):
        gateway.get_profile(9999)


def test_failed_insert_becomes_network_failure(gateway, make_user, make_scenario):
    user = make_user()
    scenario = make_scenario()
    with pytest.raises(NetworkFailure):
        gateway.create_response("text", user_id=user.id, scenario_id=scenario.id, response_text=None)
    # the session is usable again after the rollback
    assert gateway.list_text_responses(user_id=user.id) == []


def test_response_and_progress_commit_together(gateway, make_user, make_scenario):
    user = make_user()
    scenario = make_scenario()
    row = gateway.create_response(
        "text", profile_updates={"current_scenario_index": 1},
        user_id=user.id, scenario_id=scenario.id, response_text="hi", response_time=4,
    )
    assert row.id is not None
    assert gateway.get_profile(user.id).current_scenario_index == 1

    with pytest.raises(ValueError):
        gateway.create_response("text", profile_updates={"role": "admin"},
                                user_id=user.id, scenario_id=scenario.id, response_text="x")


def test_failed_insert_leaves_progress_untouched(gateway, make_user, make_scenario):
    user = make_user()
    scenario = make_scenario()
    with pytest.raises(NetworkFailure):
        gateway.create_response("text", profile_updates={"current_scenario_index": 1},
                                user_id=user.id, scenario_id=scenario.id, response_text=None)
    assert gateway.get_profile(user.id).current_scenario_index == 0


@pytest.mark.parametrize("kind", ["text", "audio"])
def test_second_answer_to_a_scenario_rejected(gateway, make_user, make_scenario, kind):
    user = make_user()
    scenario = make_scenario(response_type=kind)
    payload = (
        {"response_text": "first"} if kind == "text"
        else {"storage_key": f"{user.id}/recording-1.webm", "file_format": "webm"}
    )
    gateway.create_response(kind, profile_updates={"current_scenario_index": 1},
                            user_id=user.id, scenario_id=scenario.id, response_time=5, **payload)

    with pytest.raises(ValidationError) as exc:
        gateway.create_response(kind, profile_updates={"current_scenario_index": 5},
                                user_id=user.id, scenario_id=scenario.id, response_time=6, **payload)
    assert exc.value.user_message == "You have already answered this question."
    assert gateway.get_profile(user.id).current_scenario_index == 1
    listed = gateway.list_text_responses if kind == "text" else gateway.list_recordings
    assert len(listed(user_id=user.id)) == 1


def test_responses_filtered_by_user_and_scenario(gateway, make_user, make_scenario):
    a, b = make_user("a@example.com"), make_user("b@example.com")
    s1, s2 = make_scenario(), make_scenario()
    for user in (a, b):
        for s in (s1, s2):
            gateway.create_response("text", user_id=user.id, scenario_id=s.id, response_text="x")

    assert len(gateway.list_text_responses(user_id=a.id)) == 2
    assert len(gateway.list_text_responses(scenario_id=s2.id)) == 2
    assert len(gateway.list_text_responses(user_id=b.id, scenario_id=s1.id)) == 1
    assert gateway.count_responses(s1.id) == 2


def test_signed_url_for_missing_object(gateway):
    with pytest.raises(NotFoundOrExpired):
        gateway.get_signed_read_url("1/recording-0.webm", 60)


def test_signed_url_for_stored_object(gateway):
    gateway.upload_binary("5/recording-9.webm", b"abc", "audio/webm")
    url = gateway.get_signed_read_url("5/recording-9.webm", 60)
    assert url.startswith("/media/")


def test_applicants_exclude_staff(gateway, make_user, admin):
    make_user("one@example.com")
    make_user("two@example.com")
    emails = {p.email for p in gateway.list_applicants()}
    assert emails == {"one@example.com", "two@example.com"}

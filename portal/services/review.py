"""Staff review views: responses joined with ratings, titles and playback links.

Everything here produces plain dicts for the admin templates. Signed URL
resolution is best effort per record: a missing or expired object marks that
record ``exists = False`` and the rest of the batch is unaffected.
"""
import logging
from datetime import timedelta

from ..assessment.errors import NetworkFailure, NotFoundOrExpired
from ..models.scenario import RESPONSE_AUDIO, RESPONSE_TEXT
from ..utils.timeutil import utcnow

logger = logging.getLogger(__name__)

SORT_ORDERS = ("newest", "oldest", "fastest", "slowest", "highest", "lowest")


def scenario_title(titles, scenario_id):
    return titles.get(scenario_id) or f"Scenario {scenario_id}"


def response_view(row, titles=None):
    view = {
        "id": row.id,
        "kind": row.kind,
        "user_id": row.user_id,
        "scenario_id": row.scenario_id,
        "title": scenario_title(titles or {}, row.scenario_id),
        "response_time": row.response_time,
        "created_at": row.created_at,
        "rating": None,
    }
    if row.kind == RESPONSE_AUDIO:
        view.update(storage_key=row.storage_key, file_format=row.file_format, url=None, exists=None)
    else:
        view["response_text"] = row.response_text
    return view


def rating_view(rating):
    return {
        "id": rating.id,
        "rating": rating.rating,
        "feedback": rating.feedback,
        "rated_by": rating.rated_by,
        "updated_at": rating.updated_at,
    }


def attach_ratings(records, ratings):
    """Give every record its rating (or ``None``); ``ratings`` maps response id -> rating."""
    for record in records:
        rating = ratings.get(record["id"])
        if rating is None:
            record["rating"] = None
        elif isinstance(rating, dict):
            record["rating"] = rating
        else:
            record["rating"] = rating_view(rating)
    return records


def resolve_playback(records, gateway, ttl):
    for record in records:
        if record["kind"] != RESPONSE_AUDIO:
            continue
        try:
            record["url"] = gateway.get_signed_read_url(record["storage_key"], ttl)
            record["exists"] = True
        except (NotFoundOrExpired, NetworkFailure) as e:
            logger.warning("no playback for recording %s (%s): %s",
                           record["id"], record["storage_key"], e.detail or e.user_message)
            record["url"] = None
            record["exists"] = False
    return records


def _with_ratings(gateway, kind, records):
    ratings = gateway.ratings_for(kind, [r["id"] for r in records])
    return attach_ratings(records, ratings)


def average_response_time(records):
    times = [r["response_time"] for r in records if (r.get("response_time") or 0) > 0]
    if not times:
        return 0
    return sum(times) / len(times)


def build_applicant_views(gateway, ttl):
    """One entry per applicant, newest sign-up first."""
    titles = {s.id: s.title for s in gateway.get_scenarios(active_only=False)}
    views = []
    for profile in gateway.list_applicants():
        recordings = [response_view(r, titles) for r in gateway.list_recordings(user_id=profile.id)]
        texts = [response_view(t, titles) for t in gateway.list_text_responses(user_id=profile.id)]
        _with_ratings(gateway, RESPONSE_AUDIO, recordings)
        _with_ratings(gateway, RESPONSE_TEXT, texts)
        resolve_playback(recordings, gateway, ttl)
        views.append({
            "profile": profile,
            "recordings": recordings,
            "text_responses": texts,
            "attempts": profile.attempts or 1,
            "average_response_time": average_response_time(recordings + texts),
        })
    return views


def _sort_key(order):
    if order == "newest" or order == "oldest":
        return lambda r: r["created_at"].timestamp() if r.get("created_at") else 0
    if order == "fastest":
        return lambda r: r.get("response_time") or 9999
    if order == "slowest":
        return lambda r: r.get("response_time") or 0
    if order == "highest":
        return lambda r: (r.get("rating") or {}).get("rating") or 0
    if order == "lowest":
        return lambda r: (r.get("rating") or {}).get("rating") or 10
    raise ValueError(f"unknown sort order: {order}")


def sort_responses(records, order="newest"):
    """Stable sort; records that compare equal keep their input order."""
    reverse = order in ("newest", "slowest", "highest")
    return sorted(records, key=_sort_key(order), reverse=reverse)


def build_scenario_responses(gateway, scenario_id, order="newest", ttl=3600):
    scenarios = {s.id: s for s in gateway.get_scenarios(active_only=False)}
    titles = {sid: s.title for sid, s in scenarios.items()}
    emails = {p.id: p.email for p in gateway.list_applicants()}

    recordings = [response_view(r, titles) for r in gateway.list_recordings(scenario_id=scenario_id)]
    texts = [response_view(t, titles) for t in gateway.list_text_responses(scenario_id=scenario_id)]
    _with_ratings(gateway, RESPONSE_AUDIO, recordings)
    _with_ratings(gateway, RESPONSE_TEXT, texts)

    responses = sort_responses(recordings + texts, order)
    resolve_playback(responses, gateway, ttl)
    for r in responses:
        r["email"] = emails.get(r["user_id"], "Unknown applicant")
    return {"scenario": scenarios.get(scenario_id), "responses": responses}


def applicants_per_day(gateway, days=14, today=None):
    today = today or utcnow().date()
    start = today - timedelta(days=days)
    counts = {}
    for profile in gateway.list_applicants():
        if profile.created_at is None:
            continue
        d = profile.created_at.date()
        if start <= d <= today:
            counts[d] = counts.get(d, 0) + 1

    series = []
    cur = start
    while cur <= today:
        series.append({"date": cur.isoformat(), "label": f"{cur:%b} {cur.day}", "count": counts.get(cur, 0)})
        cur = cur + timedelta(days=1)
    return series

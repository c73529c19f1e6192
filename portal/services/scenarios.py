"""Staff-side scenario management: CRUD plus display ordering."""
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..assessment.errors import NetworkFailure, NotFoundOrExpired, ValidationError
from ..extensions import db
from ..models.recording import Recording
from ..models.scenario import RESPONSE_TYPES, Scenario
from ..models.text_response import TextResponse

ORDER_STEP = 10


def _commit(what):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception('Scenario %s failed', what)
        raise NetworkFailure("The change could not be saved. Please try again.", detail=str(e)) from e


def _get(scenario_id):
    scenario = db.session.get(Scenario, scenario_id)
    if scenario is None:
        raise NotFoundOrExpired("That scenario no longer exists.")
    return scenario


def _clean(title, description, response_type):
    title = (title or '').strip()
    description = (description or '').strip()
    if not title or not description:
        raise ValidationError("Title and description are required.")
    if response_type not in RESPONSE_TYPES:
        raise ValidationError("Response type must be audio or text.")
    return title, description


def list_scenarios():
    return Scenario.query.order_by(Scenario.display_order.asc(), Scenario.id.asc()).all()


def create_scenario(title, description, response_type, active=True):
    title, description = _clean(title, description, response_type)
    top = db.session.query(func.max(Scenario.display_order)).scalar()
    scenario = Scenario(
        title=title,
        description=description,
        response_type=response_type,
        active=bool(active),
        display_order=(top or 0) + ORDER_STEP,
    )
    db.session.add(scenario)
    _commit('create')
    current_app.logger.info('Created scenario %s at order %s', scenario.id, scenario.display_order)
    return scenario


def update_scenario(scenario_id, title, description, response_type, active=None):
    scenario = _get(scenario_id)
    scenario.title, scenario.description = _clean(title, description, response_type)
    scenario.response_type = response_type
    if active is not None:
        scenario.active = bool(active)
    _commit('update')
    return scenario


def toggle_active(scenario_id):
    scenario = _get(scenario_id)
    scenario.active = not scenario.active
    _commit('toggle')
    return scenario


def response_count(scenario_id):
    return (
        Recording.query.filter_by(scenario_id=scenario_id).count()
        + TextResponse.query.filter_by(scenario_id=scenario_id).count()
    )


def delete_scenario(scenario_id):
    """Delete a scenario nobody has answered yet.

    Answered scenarios stay so their responses keep a title; staff can
    deactivate them instead.
    """
    scenario = _get(scenario_id)
    n = response_count(scenario_id)
    if n:
        raise ValidationError(
            f"This scenario has {n} response(s) and cannot be deleted. Deactivate it instead."
        )
    db.session.delete(scenario)
    _commit('delete')
    current_app.logger.info('Deleted scenario %s', scenario_id)


def move_scenario(scenario_id, direction):
    """Swap display order with the neighbour above ('up') or below ('down')."""
    if direction not in ('up', 'down'):
        raise ValidationError("Direction must be up or down.")
    ordered = list_scenarios()
    ids = [s.id for s in ordered]
    if scenario_id not in ids:
        raise NotFoundOrExpired("That scenario no longer exists.")
    i = ids.index(scenario_id)
    j = i - 1 if direction == 'up' else i + 1
    if j < 0 or j >= len(ordered):
        return ordered[i]
    a, b = ordered[i], ordered[j]
    if a.display_order == b.display_order:
        # equal orders would make the swap a no-op; renumber first
        for n, s in enumerate(ordered):
            s.display_order = (n + 1) * ORDER_STEP
    a.display_order, b.display_order = b.display_order, a.display_order
    _commit('move')
    return a


def reorder(scenario_ids):
    """Assign display orders from an explicit id sequence."""
    ids = [int(x) for x in scenario_ids]
    if len(set(ids)) != len(ids):
        raise ValidationError("Each scenario may appear only once.")
    by_id = {s.id: s for s in list_scenarios()}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundOrExpired(f"Unknown scenario id(s): {', '.join(map(str, missing))}")
    for n, sid in enumerate(ids):
        by_id[sid].display_order = (n + 1) * ORDER_STEP
    # scenarios left out keep their relative order after the listed ones
    rest = [s for sid, s in by_id.items() if sid not in set(ids)]
    for n, s in enumerate(rest, start=len(ids)):
        s.display_order = (n + 1) * ORDER_STEP
    _commit('reorder')
    return list_scenarios()

from flask import current_app, render_template, request, redirect, url_for, flash, jsonify
from flask_login import current_user
from . import bp
from .forms import ScenarioForm, RatingForm
from ...assessment.errors import AssessmentError, ValidationError
from ...extensions import db
from ...models.scenario import Scenario
from ...services import review, scenarios as scenario_service
from ...services.gateway import SqlGateway
from ...utils.decorators import admin_required


def _ttl():
    return current_app.config.get('SIGNED_URL_TTL', 3600)


@bp.get("")
@admin_required
def dashboard():
    gateway = SqlGateway()
    try:
        applicants = gateway.list_applicants()
        series = review.applicants_per_day(gateway, days=14)
    except AssessmentError as e:
        flash(e.user_message, "danger")
        applicants, series = [], []
    stats = {
        'applicants': len(applicants),
        'started': sum(1 for a in applicants if a.interview_started_at),
        'completed': sum(1 for a in applicants if a.completed_at),
    }
    return render_template("admin/dashboard.html", stats=stats, series=series,
                           scenarios=scenario_service.list_scenarios())


@bp.get("/applicants")
@admin_required
def applicants():
    try:
        views = review.build_applicant_views(SqlGateway(), _ttl())
    except AssessmentError as e:
        flash(e.user_message, "danger")
        views = []
    return render_template("admin/applicants.html", applicants=views)


@bp.get("/scenarios")
@admin_required
def scenarios():
    items = scenario_service.list_scenarios()
    counts = {s.id: scenario_service.response_count(s.id) for s in items}
    return render_template("admin/scenarios.html", scenarios=items, counts=counts)


@bp.route("/scenarios/new", methods=["GET", "POST"])
@admin_required
def create_scenario():
    form = ScenarioForm()
    if form.validate_on_submit():
        try:
            s = scenario_service.create_scenario(form.title.data, form.description.data,
                                                 form.response_type.data, form.active.data)
        except AssessmentError as e:
            flash(e.user_message, "danger")
        else:
            flash(f"Scenario \"{s.title}\" created.", "success")
            return redirect(url_for("admin.scenarios"))
    return render_template("admin/scenario_form.html", form=form, scenario=None)


@bp.route("/scenarios/<int:scenario_id>/edit", methods=["GET", "POST"])
@admin_required
def edit_scenario(scenario_id):
    s = db.get_or_404(Scenario, scenario_id)
    form = ScenarioForm(obj=s)
    if form.validate_on_submit():
        try:
            scenario_service.update_scenario(scenario_id, form.title.data, form.description.data,
                                             form.response_type.data, form.active.data)
        except AssessmentError as e:
            flash(e.user_message, "danger")
        else:
            flash("Scenario updated.", "success")
            return redirect(url_for("admin.scenarios"))
    return render_template("admin/scenario_form.html", form=form, scenario=s)


def _scenario_action(fn, *args, success=None):
    try:
        fn(*args)
    except AssessmentError as e:
        flash(e.user_message, "danger")
    else:
        if success:
            flash(success, "success")
    return redirect(url_for("admin.scenarios"))


@bp.post("/scenarios/<int:scenario_id>/toggle")
@admin_required
def toggle_scenario(scenario_id):
    return _scenario_action(scenario_service.toggle_active, scenario_id)


@bp.post("/scenarios/<int:scenario_id>/delete")
@admin_required
def delete_scenario(scenario_id):
    return _scenario_action(scenario_service.delete_scenario, scenario_id, success="Scenario deleted.")


@bp.post("/scenarios/<int:scenario_id>/move/<direction>")
@admin_required
def move_scenario(scenario_id, direction):
    return _scenario_action(scenario_service.move_scenario, scenario_id, direction)


@bp.post("/scenarios/reorder")
@admin_required
def reorder_scenarios():
    payload = request.get_json(silent=True)
    if payload is not None:
        ids = payload.get("ids", []) if isinstance(payload, dict) else payload
    else:
        ids = [x for x in (request.form.get("ids") or "").replace(" ", "").split(",") if x]
    try:
        items = scenario_service.reorder(ids)
    except (AssessmentError, ValueError) as e:
        message = getattr(e, "user_message", "Scenario ids must be numbers.")
        if request.is_json:
            return jsonify({"ok": False, "error": message}), 400
        flash(message, "danger")
        return redirect(url_for("admin.scenarios"))
    if request.is_json:
        return jsonify({"ok": True, "order": [{"id": s.id, "display_order": s.display_order} for s in items]})
    flash("Order saved.", "success")
    return redirect(url_for("admin.scenarios"))


@bp.get("/scenarios/<int:scenario_id>/responses")
@admin_required
def scenario_responses(scenario_id):
    order = request.args.get("sort", "newest")
    if order not in review.SORT_ORDERS:
        order = "newest"
    try:
        data = review.build_scenario_responses(SqlGateway(), scenario_id, order=order, ttl=_ttl())
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return redirect(url_for("admin.scenarios"))
    return render_template("admin/responses.html", scenario_id=scenario_id, order=order,
                           sort_orders=review.SORT_ORDERS,
                           all_scenarios=scenario_service.list_scenarios(), **data)


@bp.post("/ratings")
@admin_required
def save_rating():
    form = RatingForm()
    try:
        if not form.validate_on_submit():
            if form.rating.errors:
                raise ValidationError("Rating must be a number between 1 and 10.")
            raise ValidationError("Invalid rating request.")
        try:
            response_id = int(form.response_id.data)
        except (TypeError, ValueError):
            raise ValidationError("Invalid rating request.")
        rating = SqlGateway().upsert_rating(
            response_id,
            form.kind.data,
            form.rating.data,
            form.feedback.data,
            current_user.id,
        )
    except AssessmentError as e:
        if request.is_json:
            return jsonify({"ok": False, "error": e.user_message}), 400
        flash(e.user_message, "danger")
        return redirect(request.referrer or url_for("admin.applicants"))

    current_app.logger.info('Rating %s saved by %s', rating.id, current_user.id)
    if request.is_json:
        return jsonify({"ok": True, "rating": review.rating_view(rating)})
    flash("Rating saved.", "success")
    return redirect(request.referrer or url_for("admin.applicants"))

from flask import current_app, render_template, request, redirect, url_for, flash, jsonify, session, send_file
from flask_login import login_required, current_user
from werkzeug.exceptions import RequestEntityTooLarge
from . import bp
from .forms import BeginForm, TextResponseForm, ContactForm
from ...assessment import (
    AssessmentError, AssessmentFlow, FlowState, Identity, NetworkFailure, NotFoundOrExpired,
    PermissionDenied, RecordingSession, ValidationError, remove_user_spool,
)
from ...extensions import rq
from ...jobs.notify import send_completion_notice
from ...models.scenario import RESPONSE_AUDIO
from ...services.gateway import SqlGateway
from ...utils.decorators import applicant_required

_STATUS = {
    ValidationError: 400,
    PermissionDenied: 403,
    NotFoundOrExpired: 404,
    NetworkFailure: 503,
}


def _flow():
    flow = AssessmentFlow(
        Identity.from_user(current_user),
        SqlGateway(),
        session,
        max_audio_bytes=current_app.config['MAX_AUDIO_UPLOAD_BYTES'],
    )
    return flow.load()


def _recording(scenario_id):
    return RecordingSession(
        current_app.config['RECORDING_SPOOL_DIR'],
        current_user.id,
        scenario_id,
        max_bytes=current_app.config['MAX_AUDIO_UPLOAD_BYTES'],
        max_age=current_app.config['RECORDING_SPOOL_MAX_AGE'],
    )


def _open_question(flow, index):
    """The scenario shown at ``index``; only the question on screen accepts answers."""
    if flow.state != FlowState.IN_PROGRESS or flow.position != index:
        raise ValidationError("This question is no longer open. Please reload the page.")
    return flow.scenarios[index]


def _json_error(e):
    status = next((code for cls, code in _STATUS.items() if isinstance(e, cls)), 400)
    if e.detail:
        current_app.logger.warning('%s: %s', type(e).__name__, e.detail)
    return jsonify({"ok": False, "error": e.user_message}), status


def _after_submit(flow):
    if flow.state == FlowState.COMPLETED:
        remove_user_spool(current_app.config['RECORDING_SPOOL_DIR'], current_user.id)
        rq.enqueue(send_completion_notice, current_user.email, job_timeout=60)
        flash("Thank you! You have completed all questions.", "success")
        return url_for("assessment.contact")
    flash("Response saved.", "success")
    return url_for("assessment.question", index=flow.position)


@bp.errorhandler(RequestEntityTooLarge)
def request_too_large(e):
    current_app.logger.warning('Refused %s byte request to %s', request.content_length, request.endpoint)
    if not (request.endpoint or "").startswith("assessment.recording_"):
        return e
    # recorder.js expects the JSON error shape from every recording endpoint
    limit_mb = current_app.config['MAX_AUDIO_UPLOAD_BYTES'] // (1024 * 1024)
    return jsonify({"ok": False, "error": f"File size exceeds {limit_mb}MB limit"}), 413


@bp.get("")
@login_required
@applicant_required
def home():
    try:
        flow = _flow()
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return render_template("assessment/unavailable.html"), 503

    if flow.state == FlowState.POSITION_SELECTION_PENDING:
        return render_template("assessment/welcome.html", form=BeginForm(), flow=flow)
    if flow.state == FlowState.IN_PROGRESS:
        if flow.position is None:
            return render_template("assessment/unavailable.html", empty=True)
        return redirect(url_for("assessment.question", index=flow.position))
    return redirect(url_for("assessment.contact"))


@bp.post("/begin")
@login_required
@applicant_required
def begin():
    form = BeginForm()
    if not form.validate_on_submit():
        flash("Please select a position type to continue", "danger")
        return redirect(url_for("assessment.home"))
    try:
        flow = _flow()
        flow.begin(form.position_type.data)
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return redirect(url_for("assessment.home"))
    return redirect(url_for("assessment.question", index=0))


@bp.get("/questions/<int:index>")
@login_required
@applicant_required
def question(index):
    try:
        flow = _flow()
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return render_template("assessment/unavailable.html"), 503
    if flow.state != FlowState.IN_PROGRESS:
        return redirect(url_for("assessment.home"))

    previous = flow.current_scenario()
    try:
        scenario = flow.navigate(index)
    except ValidationError as e:
        if flow.position is None:
            return redirect(url_for("assessment.home"))
        flash(e.user_message, "warning")
        return redirect(url_for("assessment.question", index=flow.position))
    if previous is not None and previous.id != scenario.id:
        # leaving a question drops whatever was captured for it
        _recording(previous.id).teardown()

    flow.present()
    recording = _recording(scenario.id) if scenario.response_type == RESPONSE_AUDIO else None
    return render_template(
        "assessment/question.html",
        flow=flow,
        index=index,
        scenario=scenario,
        answered=flow.is_answered(index),
        elapsed=flow.elapsed(scenario),
        recording=recording.to_dict() if recording else None,
        form=TextResponseForm(),
        max_upload_mb=current_app.config['MAX_AUDIO_UPLOAD_BYTES'] // (1024 * 1024),
    )


@bp.post("/questions/<int:index>/text")
@login_required
@applicant_required
def submit_text(index):
    form = TextResponseForm()
    try:
        flow = _flow()
        _open_question(flow, index)
        if not form.validate_on_submit():
            raise ValidationError("Please enter your response before submitting.")
        flow.submit_text(form.response_text.data)
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return redirect(url_for("assessment.question", index=index))
    return redirect(_after_submit(flow))


# -- audio capture (JSON, driven by static/js/recorder.js) -----------------

def _recording_call(index, action):
    try:
        flow = _flow()
        scenario = _open_question(flow, index)
        if scenario.response_type != RESPONSE_AUDIO:
            raise ValidationError("This question expects a text response.")
        rec = _recording(scenario.id)
        extra = action(rec) or {}
    except AssessmentError as e:
        return _json_error(e)
    return jsonify({"ok": True, "recording": rec.to_dict(), **extra})


@bp.post("/questions/<int:index>/recording/start")
@login_required
@applicant_required
def recording_start(index):
    return _recording_call(index, lambda rec: rec.start())


@bp.post("/questions/<int:index>/recording/chunk")
@login_required
@applicant_required
def recording_chunk(index):
    data = request.get_data(cache=False)
    return _recording_call(index, lambda rec: {"chunks": rec.append(data)})


@bp.post("/questions/<int:index>/recording/stop")
@login_required
@applicant_required
def recording_stop(index):
    def stop(rec):
        rec.stop()
        return {"preview_url": url_for("assessment.recording_preview", index=index)}
    return _recording_call(index, stop)


@bp.post("/questions/<int:index>/recording/discard")
@login_required
@applicant_required
def recording_discard(index):
    return _recording_call(index, lambda rec: rec.discard())


@bp.post("/questions/<int:index>/recording/file")
@login_required
@applicant_required
def recording_file(index):
    def use_file(rec):
        f = request.files.get("audio")
        if f is None or not f.filename:
            raise ValidationError("Please select an audio file (MP3, WAV, etc.)")
        rec.use_file(f.stream, f.filename, f.mimetype)
        return {"preview_url": url_for("assessment.recording_preview", index=index)}
    return _recording_call(index, use_file)


@bp.get("/questions/<int:index>/recording/preview")
@login_required
@applicant_required
def recording_preview(index):
    try:
        flow = _flow()
        scenario = _open_question(flow, index)
    except AssessmentError:
        return jsonify({"ok": False}), 404
    rec = _recording(scenario.id)
    path = rec.capture_path()
    if path is None:
        return jsonify({"ok": False}), 404
    return send_file(path, mimetype=rec.content_type, max_age=0)


@bp.post("/questions/<int:index>/recording/submit")
@login_required
@applicant_required
def recording_submit(index):
    try:
        flow = _flow()
        scenario = _open_question(flow, index)
        rec = _recording(scenario.id)
        captured = rec.begin_submit()
    except AssessmentError as e:
        return _json_error(e)

    try:
        flow.submit_audio(captured)
    except AssessmentError as e:
        rec.submit_failed(e.user_message)
        return _json_error(e)
    except Exception:
        current_app.logger.exception('Unexpected failure submitting recording for user %s', current_user.id)
        rec.submit_failed(NetworkFailure.default_message)
        return jsonify({"ok": False, "error": NetworkFailure.default_message}), 500
    rec.submit_succeeded()
    return jsonify({"ok": True, "next": _after_submit(flow)})


@bp.route("/contact", methods=["GET", "POST"])
@login_required
@applicant_required
def contact():
    try:
        flow = _flow()
    except AssessmentError as e:
        flash(e.user_message, "danger")
        return render_template("assessment/unavailable.html"), 503
    if flow.state not in (FlowState.COMPLETED, FlowState.CONTACT_FORM_SUBMITTED):
        return redirect(url_for("assessment.home"))

    form = ContactForm(obj=flow.profile)
    if form.validate_on_submit():
        try:
            flow.submit_contact(
                form.full_name.data,
                form.phone_number.data,
                form.country.data,
                form.referred_by.data,
            )
        except AssessmentError as e:
            flash(e.user_message, "danger")
        else:
            flash("Thank you! Your details have been saved.", "success")
            return redirect(url_for("assessment.contact"))
    elif request.method == "POST":
        flash("Please fill in all required fields.", "danger")
    return render_template("assessment/contact.html", form=form, flow=flow)

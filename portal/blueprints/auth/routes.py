from flask import current_app, render_template, redirect, url_for, flash
from flask_login import login_user, logout_user, login_required, current_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import SQLAlchemyError
from . import bp
from ...assessment import remove_user_spool
from .forms import LoginForm, SignupForm, ResetRequestForm, ResetPasswordForm
from ...extensions import db, rq
from ...models.user import User
from ...jobs.notify import send_password_reset
from ...utils.roles import role_for_email

_RESET_SALT = "password-reset"


def _reset_serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=_RESET_SALT)


def make_reset_token(user):
    # the hash fragment makes a token single-use: it stops matching once the password changes
    return _reset_serializer().dumps({"uid": user.id, "h": user.password_hash[-12:]})


def load_reset_token(token):
    try:
        data = _reset_serializer().loads(token, max_age=current_app.config.get('PASSWORD_RESET_MAX_AGE', 3600))
    except (SignatureExpired, BadSignature):
        return None
    user = db.session.get(User, data.get("uid"))
    if user is None or user.password_hash[-12:] != data.get("h"):
        return None
    return user


def _sync_role(user):
    role = role_for_email(
        user.email,
        current_app.config.get('ADMIN_EMAILS', []),
        current_app.config.get('ADMIN_EMAIL_DOMAINS', []),
    )
    if user.role != role:
        current_app.logger.info('Role for %s changed %s -> %s', user.email, user.role, role)
        user.role = role
        db.session.commit()


@bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("index"))
    form = LoginForm()
    if form.validate_on_submit():
        user = User.query.filter_by(email=form.email.data.strip().lower()).first()
        if user and user.check_password(form.password.data):
            _sync_role(user)
            login_user(user)
            return redirect(url_for("index"))
        flash("Invalid email or password", "danger")
    return render_template("auth/login.html", form=form)


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    # captures in progress are not resumable after signing out
    remove_user_spool(current_app.config['RECORDING_SPOOL_DIR'], current_user.id)
    logout_user()
    return redirect(url_for("auth.login"))


@bp.route("/signup", methods=["GET", "POST"])
def signup():
    if current_user.is_authenticated:
        return redirect(url_for("index"))
    form = SignupForm()
    if form.validate_on_submit():
        email = form.email.data.strip().lower()
        if User.query.filter_by(email=email).first():
            flash("An account with this email already exists. Please sign in.", "danger")
            return render_template("auth/signup.html", form=form)
        user = User(email=email)
        user.role = role_for_email(
            email,
            current_app.config.get('ADMIN_EMAILS', []),
            current_app.config.get('ADMIN_EMAIL_DOMAINS', []),
        )
        user.set_password(form.password.data)
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception('Signup failed for %s', email)
            flash("Your account could not be created. Please try again.", "danger")
            return render_template("auth/signup.html", form=form)
        login_user(user)
        flash("Welcome! Your account has been created.", "success")
        return redirect(url_for("index"))
    return render_template("auth/signup.html", form=form)


@bp.route("/reset", methods=["GET", "POST"])
def reset_request():
    form = ResetRequestForm()
    if form.validate_on_submit():
        user = User.query.filter_by(email=form.email.data.strip().lower()).first()
        if user:
            link = url_for("auth.reset_password", token=make_reset_token(user), _external=True)
            rq.enqueue(send_password_reset, user.email, link, job_timeout=60)
        # identical response whether or not the address is registered
        flash("If that email is registered, a reset link is on its way.", "info")
        return redirect(url_for("auth.login"))
    return render_template("auth/reset_request.html", form=form)


@bp.route("/reset/<token>", methods=["GET", "POST"])
def reset_password(token):
    user = load_reset_token(token)
    if user is None:
        flash("This reset link is invalid or has expired.", "danger")
        return redirect(url_for("auth.reset_request"))
    form = ResetPasswordForm()
    if form.validate_on_submit():
        user.set_password(form.password.data)
        db.session.commit()
        flash("Your password has been updated. Please sign in.", "success")
        return redirect(url_for("auth.login"))
    return render_template("auth/reset_password.html", form=form, token=token)

from ..extensions import db
from flask_login import UserMixin
from .base import TimestampMixin
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_APPLICANT = "applicant"
ROLE_ADMIN = "admin"
POSITION_TYPES = ("voice", "non-voice")


class User(db.Model, UserMixin, TimestampMixin):
    """Sign-in identity and applicant profile in one row."""

    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_APPLICANT, index=True)

    # assessment progress
    current_scenario_index = db.Column(db.Integer, nullable=False, default=0)
    interview_started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    position_type = db.Column(db.String(20))  # voice/non-voice
    attempts = db.Column(db.Integer, nullable=False, default=1)

    # contact details collected after completion
    full_name = db.Column(db.String(200))
    phone_number = db.Column(db.String(40))
    country = db.Column(db.String(120))
    referred_by = db.Column(db.String(200))

    recordings = db.relationship("Recording", backref="user", lazy="dynamic")
    text_responses = db.relationship("TextResponse", backref="user", lazy="dynamic")

    def set_password(self, raw):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw):
        return check_password_hash(self.password_hash, raw)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

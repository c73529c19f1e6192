from ..extensions import db


class Recording(db.Model):
    __tablename__ = "recordings"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    scenario_id = db.Column(db.Integer, db.ForeignKey("scenarios.id"), nullable=False, index=True)
    storage_key = db.Column(db.String(512), nullable=False)  # <user_id>/recording-<ms>.<fmt>
    file_format = db.Column(db.String(20), nullable=False, default="webm")
    response_time = db.Column(db.Integer)  # seconds
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    # one answer per applicant and scenario, even with concurrent submits
    __table_args__ = (
        db.UniqueConstraint("user_id", "scenario_id", name="uq_recordings_user_scenario"),
    )

    kind = "audio"

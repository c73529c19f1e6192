from ..extensions import db


class TextResponse(db.Model):
    __tablename__ = "text_responses"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    scenario_id = db.Column(db.Integer, db.ForeignKey("scenarios.id"), nullable=False, index=True)
    response_text = db.Column(db.Text, nullable=False)
    response_time = db.Column(db.Integer)  # seconds
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("user_id", "scenario_id", name="uq_text_responses_user_scenario"),
    )

    kind = "text"

from ..extensions import db
from .base import TimestampMixin

RESPONSE_AUDIO = "audio"
RESPONSE_TEXT = "text"
RESPONSE_TYPES = (RESPONSE_AUDIO, RESPONSE_TEXT)


class Scenario(db.Model, TimestampMixin):
    __tablename__ = "scenarios"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    response_type = db.Column(db.String(10), nullable=False, default=RESPONSE_AUDIO)
    # traversal order for applicants; spaced by 10 to leave room for moves
    display_order = db.Column(db.Integer, nullable=False, default=0, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        db.CheckConstraint("response_type IN ('audio', 'text')", name="ck_scenarios_response_type"),
    )

    def __repr__(self) -> str:
        return f"<Scenario id={self.id} order={self.display_order} title={self.title!r}>"

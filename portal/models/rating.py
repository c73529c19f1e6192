from ..extensions import db
from .base import TimestampMixin

MIN_RATING = 1
MAX_RATING = 10


class ResponseRating(db.Model, TimestampMixin):
    """Staff score for exactly one recording or one text response."""

    __tablename__ = "response_ratings"
    id = db.Column(db.Integer, primary_key=True)
    recording_id = db.Column(db.Integer, db.ForeignKey("recordings.id"), unique=True)
    text_response_id = db.Column(db.Integer, db.ForeignKey("text_responses.id"), unique=True)
    rating = db.Column(db.Integer, nullable=False)
    feedback = db.Column(db.Text)
    rated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        db.CheckConstraint(
            "(recording_id IS NULL) <> (text_response_id IS NULL)",
            name="ck_response_ratings_single_target",
        ),
        db.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_response_ratings_range"),
    )

    def __repr__(self):
        target = f"recording={self.recording_id}" if self.recording_id else f"text={self.text_response_id}"
        return f"<ResponseRating id={self.id} {target} rating={self.rating}>"

"""Relational and object store operations used by the assessment flow and
the staff review screens.

Driver and storage failures are converted into the assessment error taxonomy
here, so callers only ever deal with ``NetworkFailure`` /
``NotFoundOrExpired`` / ``ValidationError``.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..assessment.errors import NetworkFailure, NotFoundOrExpired, ValidationError
from ..extensions import db
from ..models.rating import MAX_RATING, MIN_RATING, ResponseRating
from ..models.recording import Recording
from ..models.scenario import RESPONSE_AUDIO, RESPONSE_TEXT, Scenario
from ..models.text_response import TextResponse
from ..models.user import ROLE_APPLICANT, User
from ..utils.timeutil import utcnow
from . import storage

_PROFILE_FIELDS = {
    'current_scenario_index', 'interview_started_at', 'completed_at', 'position_type',
    'full_name', 'phone_number', 'country', 'referred_by', 'attempts',
}

_RESPONSE_MODELS = {RESPONSE_AUDIO: Recording, RESPONSE_TEXT: TextResponse}
_RATING_COLUMNS = {RESPONSE_AUDIO: 'recording_id', RESPONSE_TEXT: 'text_response_id'}


def _model_for(kind):
    try:
        return _RESPONSE_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Unknown response type: {kind}")


class SqlGateway:
    """Persistence gateway backed by Flask-SQLAlchemy and the storage service."""

    def _fail(self, what, exc):
        db.session.rollback()
        current_app.logger.exception('Gateway call failed: %s', what)
        return NetworkFailure(detail=f"{what}: {exc}")

    # -- scenarios -------------------------------------------------------

    def get_scenarios(self, active_only=True):
        try:
            query = Scenario.query
            if active_only:
                query = query.filter_by(active=True)
            return query.order_by(Scenario.display_order.asc(), Scenario.id.asc()).all()
        except SQLAlchemyError as e:
            raise self._fail('get_scenarios', e) from e

    # -- profiles --------------------------------------------------------

    def get_profile(self, user_id):
        try:
            profile = db.session.get(User, user_id)
        except SQLAlchemyError as e:
            raise self._fail('get_profile', e) from e
        if profile is None:
            raise NotFoundOrExpired("Your profile could not be found.")
        return profile

    def update_profile(self, user_id, **fields):
        unknown = set(fields) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"not profile fields: {sorted(unknown)}")
        profile = self.get_profile(user_id)
        try:
            for k, v in fields.items():
                setattr(profile, k, v)
            db.session.commit()
        except SQLAlchemyError as e:
            raise self._fail('update_profile', e) from e
        return profile

    def list_applicants(self):
        try:
            return (
                User.query.filter_by(role=ROLE_APPLICANT)
                .order_by(User.created_at.desc(), User.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise self._fail('list_applicants', e) from e

    # -- responses -------------------------------------------------------

    def _list(self, model, user_id, scenario_id):
        try:
            query = model.query
            if user_id is not None:
                query = query.filter_by(user_id=user_id)
            if scenario_id is not None:
                query = query.filter_by(scenario_id=scenario_id)
            return query.order_by(model.created_at.asc(), model.id.asc()).all()
        except SQLAlchemyError as e:
            raise self._fail(f'list {model.__tablename__}', e) from e

    def list_recordings(self, user_id=None, scenario_id=None):
        return self._list(Recording, user_id, scenario_id)

    def list_text_responses(self, user_id=None, scenario_id=None):
        return self._list(TextResponse, user_id, scenario_id)

    def count_responses(self, scenario_id):
        try:
            return (
                Recording.query.filter_by(scenario_id=scenario_id).count()
                + TextResponse.query.filter_by(scenario_id=scenario_id).count()
            )
        except SQLAlchemyError as e:
            raise self._fail('count_responses', e) from e

    def _has_response(self, model, user_id, scenario_id):
        try:
            return model.query.filter_by(user_id=user_id, scenario_id=scenario_id).count() > 0
        except SQLAlchemyError:
            db.session.rollback()
            return False

    def create_response(self, kind, profile_updates=None, **payload):
        """Insert a response and apply ``profile_updates`` to its author in one commit.

        A second response for the same applicant and scenario violates the
        unique constraint and raises ``ValidationError``.
        """
        model = _model_for(kind)
        unknown = set(profile_updates or ()) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"not profile fields: {sorted(unknown)}")
        try:
            row = model(**payload)
            db.session.add(row)
            if profile_updates:
                profile = db.session.get(User, payload['user_id'])
                for k, v in profile_updates.items():
                    setattr(profile, k, v)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if self._has_response(model, payload.get('user_id'), payload.get('scenario_id')):
                current_app.logger.warning('Duplicate %s response user=%s scenario=%s',
                                           kind, payload.get('user_id'), payload.get('scenario_id'))
                raise ValidationError("You have already answered this question.", detail=str(e)) from e
            raise self._fail(f'create {kind} response', e) from e
        except SQLAlchemyError as e:
            raise self._fail(f'create {kind} response', e) from e
        current_app.logger.info('Saved %s response id=%s user=%s scenario=%s',
                                kind, row.id, row.user_id, row.scenario_id)
        return row

    # -- object store ----------------------------------------------------

    def upload_binary(self, path, data, content_type="application/octet-stream"):
        try:
            return storage.put_bytes(path, data, content_type)
        except storage.StorageError as e:
            current_app.logger.exception('Upload failed for %s', path)
            raise NetworkFailure(detail=str(e)) from e

    def get_signed_read_url(self, path, ttl_seconds):
        try:
            return storage.signed_read_url(path, ttl_seconds)
        except storage.ObjectMissing as e:
            raise NotFoundOrExpired(detail=str(e)) from e
        except storage.StorageError as e:
            raise NetworkFailure(detail=str(e)) from e

    # -- ratings ---------------------------------------------------------

    def get_response(self, kind, response_id):
        model = _model_for(kind)
        try:
            row = db.session.get(model, response_id)
        except SQLAlchemyError as e:
            raise self._fail('get_response', e) from e
        if row is None:
            raise NotFoundOrExpired("That response no longer exists.")
        return row

    def ratings_for(self, kind, response_ids):
        """Map response id -> rating for the given responses."""
        column_name = _RATING_COLUMNS.get(kind)
        if column_name is None:
            raise ValidationError(f"Unknown response type: {kind}")
        ids = list(response_ids)
        if not ids:
            return {}
        column = getattr(ResponseRating, column_name)
        try:
            rows = ResponseRating.query.filter(column.in_(ids)).all()
        except SQLAlchemyError as e:
            raise self._fail('ratings_for', e) from e
        return {getattr(r, column_name): r for r in rows}

    def upsert_rating(self, response_id, kind, score, feedback, rater_id):
        """Create or overwrite the single rating of a response.

        The write is one ``INSERT ... ON CONFLICT DO UPDATE`` keyed by the
        unique target column, so concurrent reviewers never produce two rows.
        """
        column_name = _RATING_COLUMNS.get(kind)
        if column_name is None:
            raise ValidationError(f"Unknown response type: {kind}")
        try:
            score = int(score)
        except (TypeError, ValueError):
            raise ValidationError("Rating must be a number between 1 and 10.")
        if not MIN_RATING <= score <= MAX_RATING:
            raise ValidationError("Rating must be a number between 1 and 10.")
        feedback = (feedback or '').strip() or None

        self.get_response(kind, response_id)

        now = utcnow()
        values = {
            column_name: response_id,
            'rating': score,
            'feedback': feedback,
            'rated_by': rater_id,
            'created_at': now,
            'updated_at': now,
        }
        try:
            dialect = db.session.get_bind().dialect.name
            if dialect in ('postgresql', 'sqlite'):
                insert = pg_insert if dialect == 'postgresql' else sqlite_insert
                stmt = insert(ResponseRating).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[column_name],
                    set_={'rating': score, 'feedback': feedback, 'rated_by': rater_id, 'updated_at': now},
                )
                db.session.execute(stmt)
            else:
                current_app.logger.warning('No native upsert for %s; using check-then-write', dialect)
                existing = ResponseRating.query.filter_by(**{column_name: response_id}).first()
                if existing:
                    existing.rating = score
                    existing.feedback = feedback
                    existing.rated_by = rater_id
                    existing.updated_at = now
                else:
                    db.session.add(ResponseRating(**values))
            db.session.commit()
            return ResponseRating.query.filter_by(**{column_name: response_id}).one()
        except SQLAlchemyError as e:
            raise self._fail('upsert_rating', e) from e

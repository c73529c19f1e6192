"""Applicant progression through the ordered scenario list.

``AssessmentFlow`` is rebuilt on every request from three inputs: the
persisted profile and responses (through the gateway), a small per-user
store for what is only UI state (displayed question and question timer)
and the signed-in ``Identity``. Nothing here touches
Flask globals, so it can be driven directly from tests.
"""
import enum
import logging
import time
from dataclasses import dataclass

from ..models.scenario import RESPONSE_AUDIO, RESPONSE_TEXT
from ..models.user import POSITION_TYPES, ROLE_ADMIN
from ..utils.timeutil import utcnow
from .capture import MAX_AUDIO_BYTES, validate_audio
from .errors import ValidationError

logger = logging.getLogger(__name__)

_STORE_PREFIX = "assessment"


class FlowState(enum.Enum):
    NOT_STARTED = "not_started"
    POSITION_SELECTION_PENDING = "position_selection_pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CONTACT_FORM_SUBMITTED = "contact_form_submitted"


@dataclass(frozen=True)
class Identity:
    user_id: int
    email: str
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.id, email=user.email, role=user.role)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN


class AssessmentFlow:
    def __init__(self, identity, gateway, store, clock=time.time, max_audio_bytes=MAX_AUDIO_BYTES):
        self.identity = identity
        self.gateway = gateway
        self.clock = clock
        self.max_audio_bytes = max_audio_bytes
        self._store = store
        self._key = f"{_STORE_PREFIX}.{identity.user_id}"

        self.state = FlowState.NOT_STARTED
        self.scenarios = []
        self.profile = None
        self.answered = set()

    # -- per-user UI store -------------------------------------------------

    def _get(self, name, default=None):
        return (self._store.get(self._key) or {}).get(name, default)

    def _set(self, **values):
        # reassign the whole dict so session backends notice the change
        data = dict(self._store.get(self._key) or {})
        for k, v in values.items():
            if v is None:
                data.pop(k, None)
            else:
                data[k] = v
        self._store[self._key] = data

    # -- loading -----------------------------------------------------------

    def load(self):
        uid = self.identity.user_id
        self.scenarios = list(self.gateway.get_scenarios(active_only=True))
        self.profile = self.gateway.get_profile(uid)
        self.answered = {r.scenario_id for r in self.gateway.list_recordings(user_id=uid)}
        self.answered |= {r.scenario_id for r in self.gateway.list_text_responses(user_id=uid)}

        if self.profile.completed_at is not None:
            self.state = FlowState.CONTACT_FORM_SUBMITTED
        elif self.profile.interview_started_at is not None:
            self.state = FlowState.IN_PROGRESS
            if self.scenarios and all(s.id in self.answered for s in self.scenarios):
                # every active question already has a response but the profile never
                # recorded completion (scenario set changed since the last submit)
                self._complete()
        else:
            self.state = FlowState.POSITION_SELECTION_PENDING
        return self

    @property
    def total(self):
        return len(self.scenarios)

    @property
    def cursor(self):
        return self.profile.current_scenario_index if self.profile is not None else 0

    @property
    def position(self):
        """Index of the question on screen, or ``None`` outside the question phase."""
        if self.state != FlowState.IN_PROGRESS or not self.scenarios:
            return None
        stored = self._get("position")
        if isinstance(stored, int) and 0 <= stored < self.total:
            return stored
        if self.cursor < self.total:
            return max(self.cursor, 0)
        for i, s in enumerate(self.scenarios):
            if s.id not in self.answered:
                return i
        return self.total - 1

    def current_scenario(self):
        pos = self.position
        return None if pos is None else self.scenarios[pos]

    def is_answered(self, index):
        return 0 <= index < self.total and self.scenarios[index].id in self.answered

    def is_reachable(self, index):
        try:
            self._check_navigation(index)
        except ValidationError:
            return False
        return True

    # -- question timer ----------------------------------------------------

    def present(self):
        """Show the current question; starts its timer if it is still unanswered."""
        scenario = self.current_scenario()
        if scenario is None or scenario.id in self.answered:
            return scenario
        timer = self._get("timer") or {}
        if timer.get("scenario_id") != scenario.id:
            self._set(timer={"scenario_id": scenario.id, "started": self.clock()})
        return scenario

    def elapsed(self, scenario=None):
        scenario = scenario or self.current_scenario()
        if scenario is None or scenario.id in self.answered:
            return 0
        timer = self._get("timer") or {}
        if timer.get("scenario_id") != scenario.id:
            return 0
        return max(0, int(self.clock() - timer["started"]))

    # -- transitions -------------------------------------------------------

    def begin(self, position_type):
        if self.state != FlowState.POSITION_SELECTION_PENDING:
            raise ValidationError("The assessment has already been started.")
        if position_type not in POSITION_TYPES:
            raise ValidationError("Please select a position type to continue")
        if not self.scenarios:
            raise ValidationError("No assessment questions are available right now. Please check back later.")

        fields = {"current_scenario_index": 0, "position_type": position_type}
        if self.profile.interview_started_at is None:
            fields["interview_started_at"] = utcnow()
        self.profile = self.gateway.update_profile(self.identity.user_id, **fields)
        self.state = FlowState.IN_PROGRESS
        self._set(position=0, timer=None)
        logger.info("user %s began assessment (%s)", self.identity.user_id, position_type)

    def _check_navigation(self, target):
        if self.state != FlowState.IN_PROGRESS:
            raise ValidationError("The assessment is not in progress.")
        if not isinstance(target, int) or not 0 <= target < self.total:
            raise ValidationError("That question does not exist.")
        position = self.position
        if target <= position or self.scenarios[target].id in self.answered:
            return
        if any(s.id not in self.answered for s in self.scenarios[position:target]):
            raise ValidationError("Please complete the current question before moving to the next one.")

    def navigate(self, target):
        self._check_navigation(target)
        if target != self.position:
            self._set(position=target, timer=None)
        return self.scenarios[target]

    def _check_submittable(self, response_type):
        if self.state != FlowState.IN_PROGRESS:
            raise ValidationError("The assessment is not in progress.")
        scenario = self.current_scenario()
        if scenario is None:
            raise ValidationError("There is no question to answer.")
        if scenario.response_type != response_type:
            raise ValidationError(f"This question expects a {scenario.response_type} response.")
        if scenario.id in self.answered:
            raise ValidationError("You have already answered this question.")
        return scenario

    def submit_text(self, text):
        scenario = self._check_submittable(RESPONSE_TEXT)
        text = (text or "").strip()
        if not text:
            raise ValidationError("Please enter your response before submitting.")

        progress = self._progress_fields()
        row = self.gateway.create_response(
            RESPONSE_TEXT,
            profile_updates=progress,
            user_id=self.identity.user_id,
            scenario_id=scenario.id,
            response_text=text,
            response_time=max(1, self.elapsed(scenario)),
        )
        self._advanced(scenario, progress)
        return row

    def submit_audio(self, captured):
        scenario = self._check_submittable(RESPONSE_AUDIO)
        validate_audio(captured.content_type, captured.size, self.max_audio_bytes)

        if captured.source == "live":
            response_time = max(1, int(round(captured.duration or 0)))
        else:
            response_time = max(1, self.elapsed(scenario))
        key = f"{self.identity.user_id}/recording-{int(self.clock() * 1000)}.{captured.file_format}"

        self.gateway.upload_binary(key, captured.data, captured.content_type)
        progress = self._progress_fields()
        row = self.gateway.create_response(
            RESPONSE_AUDIO,
            profile_updates=progress,
            user_id=self.identity.user_id,
            scenario_id=scenario.id,
            storage_key=key,
            file_format=captured.file_format,
            response_time=response_time,
        )
        self._advanced(scenario, progress)
        return row

    def _progress_fields(self):
        """Profile changes that go in the same commit as the answer."""
        next_index = self.position + 1
        if next_index < self.total:
            return {"current_scenario_index": next_index}
        return self._completion_fields()

    def _advanced(self, scenario, progress):
        self.answered.add(scenario.id)
        next_index = progress["current_scenario_index"]
        if next_index >= self.total:
            self._completed()
        else:
            self._set(position=next_index, timer=None)

    def _completion_fields(self):
        fields = {"current_scenario_index": self.total}
        if self.profile.completed_at is None:
            fields["completed_at"] = utcnow()
        return fields

    def _complete(self):
        self.profile = self.gateway.update_profile(self.identity.user_id, **self._completion_fields())
        self._completed()

    def _completed(self):
        self.state = FlowState.COMPLETED
        self._set(position=None, timer=None)
        logger.info("user %s completed the assessment", self.identity.user_id)

    def submit_contact(self, full_name, phone_number, country, referred_by=None):
        if self.state not in (FlowState.COMPLETED, FlowState.CONTACT_FORM_SUBMITTED):
            raise ValidationError("Please finish the assessment first.")
        full_name = (full_name or "").strip()
        phone_number = (phone_number or "").strip()
        country = (country or "").strip()
        if not (full_name and phone_number and country):
            raise ValidationError("Please fill in all required fields.")
        self.profile = self.gateway.update_profile(
            self.identity.user_id,
            full_name=full_name,
            phone_number=phone_number,
            country=country,
            referred_by=(referred_by or "").strip() or None,
        )
        self.state = FlowState.CONTACT_FORM_SUBMITTED
        return self.profile

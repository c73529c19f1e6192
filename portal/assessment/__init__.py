from .errors import (
    AssessmentError,
    NetworkFailure,
    NotFoundOrExpired,
    PermissionDenied,
    ValidationError,
)
from .flow import AssessmentFlow, FlowState, Identity
from .capture import CapturedAudio, RecordingSession, RecordingState, remove_user_spool, sweep_spool

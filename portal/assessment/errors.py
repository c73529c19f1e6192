"""Failures the assessment flow reports back to the applicant or reviewer.

Every error carries a ``user_message`` that is safe to show as-is. None of
them is fatal: callers catch ``AssessmentError``, surface the message and
leave already confirmed progress untouched.
"""


class AssessmentError(Exception):
    default_message = "Something went wrong. Please try again."

    def __init__(self, user_message=None, *, detail=None):
        self.user_message = user_message or self.default_message
        self.detail = detail
        super().__init__(self.user_message)


class PermissionDenied(AssessmentError):
    default_message = (
        "Unable to access your microphone. Please check your browser permissions and try again."
    )


class ValidationError(AssessmentError):
    default_message = "Please check your input and try again."


class NetworkFailure(AssessmentError):
    default_message = "Your response could not be saved. Please try again."


class NotFoundOrExpired(AssessmentError):
    default_message = "The requested file is no longer available."

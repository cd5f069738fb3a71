"""Error taxonomy shared by the planner, the HTTP layer and the CLI."""


class StudyPilotError(Exception):
    """Base class for every error the planner reports to a caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StudyPilotError):
    status_code = 400


class NoSubjectsError(ValidationError):
    def __init__(self, message: str = "No subjects found. Please complete onboarding first."):
        super().__init__(message)


class AuthenticationError(StudyPilotError):
    status_code = 401


class NotFoundError(StudyPilotError):
    status_code = 404


class DraftParseError(StudyPilotError):
    """The oracle answered, but not with usable content."""

    status_code = 502

    def __init__(self, message: str, issues: list | None = None):
        super().__init__(message)
        self.issues = issues or []


class OracleError(StudyPilotError):
    """The oracle failed or timed out. Safe to retry."""

    status_code = 503


class OracleUnavailableError(OracleError):
    """The oracle is rate limited or out of quota."""

    status_code = 429

    def __init__(self, message: str = (
        "AI service is temporarily unavailable due to rate limits. "
        "Please wait a minute and try again."
    )):
        super().__init__(message)


class SchedulingError(StudyPilotError):
    """Rescheduling cannot terminate with the configured limits."""

    status_code = 500

"""
Errors raised by the submission service. Views map `status_code` onto the response.
"""


class SubmissionError(ValueError):
    status_code = 400


class EventNotRunning(SubmissionError):
    pass


class ChallengeNotInEvent(SubmissionError):
    pass


class ChallengeInactive(SubmissionError):
    status_code = 403


class NotParticipating(SubmissionError):
    status_code = 403


class AlreadySolved(SubmissionError):
    status_code = 409


class IncorrectFlag(SubmissionError):
    pass


class ParticipationLocked(SubmissionError):
    status_code = 409

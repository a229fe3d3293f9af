"""
Errors raised by event services. Views map `status_code` onto the response.
"""


class EventError(ValueError):
    status_code = 400


class EventNotActive(EventError):
    pass


class EventFull(EventError):
    pass


class JoinWindowClosed(EventError):
    pass


class OrganizerCannotJoin(EventError):
    pass


class AlreadyParticipating(EventError):
    pass


class InvalidEventState(EventError):
    pass

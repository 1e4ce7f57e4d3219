"""Error taxonomy shared by the store, digest pipeline and HTTP surface."""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for all application errors. ``status`` is the HTTP mapping."""

    status = 500


class ValidationError(NotifierError):
    """Bad input shape or missing field. Never retried."""

    status = 400


class NotFoundError(NotifierError):
    status = 404


class ConflictError(NotifierError):
    """The entity already transitioned (e.g. notification already read)."""

    status = 409


class ExternalServiceError(NotifierError):
    """A collaborator (store, AI backend, email, templating) failed."""

    status = 500


class StoreError(ExternalServiceError):
    pass


class CompletionServiceError(ExternalServiceError):
    pass


class EmailTransportError(ExternalServiceError):
    pass


class UnrecognizedScheduleError(NotifierError):
    """A trigger identifier that is not mapped to any job."""

    def __init__(self, trigger: str) -> None:
        super().__init__(f"Unrecognized schedule: {trigger}")
        self.trigger = trigger

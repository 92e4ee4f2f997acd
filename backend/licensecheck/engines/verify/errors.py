"""Errors raised by the verification core."""


class WorkSetError(RuntimeError):
    """The licenses or sources for a run could not be read. Fatal to the run."""


class LicenseNotFound(LookupError):
    """No license with the requested id."""

    def __init__(self, license_id):
        self.license_id = license_id
        super().__init__(f"License {license_id} not found")


class TaskMismatch(ValueError):
    """A task id was given that does not belong to the license being verified."""

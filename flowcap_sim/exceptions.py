"""Typed errors raised by the Flowcap simulation and decision engine."""


class FlowcapError(Exception):
    """Base class for all Flowcap errors."""


class ValidationError(FlowcapError, ValueError):
    """Raised when caller input is rejected before any simulation work starts."""


class DataUnavailable(FlowcapError):
    """Raised when a historical series is missing or upstream retries are exhausted."""


class UpstreamUnavailable(FlowcapError):
    """Raised by a data source for a transient upstream failure that may be retried."""


class InsufficientData(FlowcapError):
    """Raised when a series is too short or malformed to estimate parameters."""


class ExecutionError(FlowcapError):
    """Raised when a reallocation plan step fails; remaining steps are not run."""

    def __init__(self, step_index: int, step, message: str):
        self.step_index = step_index
        self.step = step
        self.message = message
        super().__init__(f"Step {step_index} ({step.step_type.value}) failed: {message}")

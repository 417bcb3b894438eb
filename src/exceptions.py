"""
Errors raised inside the renewal flow.

Neither of these reaches the user as a stack trace: RemoteCallFailure is
absorbed by the pipeline, StateCorruptionError by the dialog turn guard.
"""


class RemoteCallFailure(RuntimeError):
    """
    A remote automation call failed or returned an unusable payload.

    not_found marks a healthy answer that simply holds no renewal date for
    the policy (the robot filed nothing under its reference). Those do not
    count against the orchestrator circuit breaker.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        status_code: int | None = None,
        not_found: bool = False,
    ):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.status_code = status_code
        self.not_found = not_found


class StateCorruptionError(RuntimeError):
    """A step needed the session state and none was stored."""

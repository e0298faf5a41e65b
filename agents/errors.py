from __future__ import annotations


class CoachError(RuntimeError):
    pass


class RunNotCompletedError(CoachError):
    def __init__(self, status: str, run_id: str | None = None) -> None:
        self.status = status
        self.run_id = run_id
        super().__init__(f"Run not completed: {status}")


class RunTimeoutError(CoachError):
    def __init__(self, run_id: str, timeout: float, last_status: str) -> None:
        self.run_id = run_id
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(f"Run {run_id} did not finish within {timeout:g}s (last status: {last_status})")


class TurnCancelledError(CoachError):
    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id
        super().__init__("Turn cancelled before the run finished")


class IngestError(CoachError):
    pass

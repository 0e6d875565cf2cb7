"""Custom exceptions for vet-ci."""


class VetCIError(Exception):
    """Base exception for all vet-ci errors."""


class ConfigError(VetCIError):
    """Raised when action inputs or the runner environment are invalid."""


class BinaryError(VetCIError):
    """Raised when the vet binary cannot be acquired or verified."""


class UnsupportedEventError(VetCIError):
    """Raised when the triggering event is not push, pull_request or schedule."""

    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"Unsupported event type: {event_name}")


class ScannerExecutionError(VetCIError):
    """Raised when a vet invocation could not run to completion."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str = ""):
        self.args_list = args
        self.returncode = returncode
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"vet {' '.join(args[:2])} failed (exit {returncode}){detail}")


class ReportMissingError(VetCIError):
    """Raised when vet exits without writing an expected report file."""


class PolicyViolation(VetCIError):
    """Raised after delivery when vet flagged a dependency that fails the policy."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(
            f"vet found dependencies that violate the policy (exit {returncode})"
        )


class ContentNotFoundError(VetCIError):
    """Raised when a file does not exist at the requested ref."""

    def __init__(self, path: str, ref: str):
        self.path = path
        self.ref = ref
        super().__init__(f"{path} not found at {ref}")

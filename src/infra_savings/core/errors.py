"""
Exceptions raised inside the savings engine.

Per-finding and per-service problems (unresolvable resources, missing cost
data, denied billing permissions) are not exceptions here: lookup adapters
convert them to `LookupFailure` values and the run records them as
`Diagnostic` entries. Only the two conditions below ever raise.
"""


class NormalizationInvariantViolation(AssertionError):
    """A service's capped savings exceed its billed cost, or a capped value exceeds its raw value."""

    def __init__(self, service_code: str, message: str):
        self.service_code = service_code
        super().__init__(f"{service_code}: {message}")


class RunCancelled(Exception):
    """The enclosing execution was cancelled or timed out before the barrier."""

    def __init__(self, message: str, timed_out: bool = False):
        self.timed_out = timed_out
        super().__init__(message)

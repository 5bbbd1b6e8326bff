from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field

DEFAULT_MAX_ERRORS = 1000


@dataclass(slots=True, kw_only=True)
class ErrorCollector(list[Exception]):
    """Recoverable compile errors (unknown roots, ambiguous attribute
    syntax) get appended here instead of being raised, so that one bad
    binding doesn't take the whole template down with it.

    A template with thousands of bad bindings is almost certainly not
    a template at all, so past ``max_errors`` we give up and raise
    everything we've got as an ``ExceptionGroup``.
    """

    # The lambda here is so that the DEFAULT_MAX_ERRORS can be changed at
    # runtime by library consumers
    max_errors: int = field(default_factory=lambda: DEFAULT_MAX_ERRORS)

    def append(self, obj: Exception):
        list.append(self, obj)

        if len(self) > self.max_errors:
            raise ExceptionGroup(
                'Max number of collected compile errors exceeded!',
                self)

    def extend(self, objs: Iterable[Exception]):
        list.extend(self, objs)

        if len(self) > self.max_errors:
            raise ExceptionGroup(
                'Max number of collected compile errors exceeded!',
                self)

    def raise_if_any(self, message: str):
        if self:
            raise ExceptionGroup(message, list(self))


def capture_traceback[E: Exception](
        exc: E,
        from_exc: Exception | None = None) -> E:
    """Raises and immediately catches ``exc``, so that the collected
    error carries the traceback of the spot where it was detected,
    even though it won't surface until the end of the compile call.
    """
    try:
        if from_exc is None:
            raise exc
        else:
            raise exc from from_exc

    except type(exc) as exc_with_traceback:
        return exc_with_traceback

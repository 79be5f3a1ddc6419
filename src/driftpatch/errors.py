"""
Failure taxonomy for drift patching.

These exceptions are records, not control flow. The layer that detects a
failure instantiates one and attaches it to a result (RuleResult.error or
FinalizerTask.last_error); none of them is raised out of the package.
Every failure leaves the affected attribute at its prior value.
"""

from typing import Any, Optional, Sequence


class PatchError(Exception):
    """Base class for all recorded patch failures."""

    kind = "patch_error"


class MemberNotFound(PatchError):
    """No alias resolved to a writable member on the target's type."""

    kind = "member_not_found"

    def __init__(self, target_type: Optional[type], aliases: Sequence[str]):
        self.target_type = target_type
        self.aliases = tuple(aliases)
        type_name = target_type.__name__ if target_type is not None else "None"
        super().__init__(f"No member of {type_name} matches any of {list(self.aliases)}")


class TypeIncompatible(PatchError):
    """The desired value cannot be represented as the member's declared type."""

    kind = "type_incompatible"

    def __init__(self, member_name: str, value: Any, declared_type: Any):
        self.member_name = member_name
        self.value = value
        self.declared_type = declared_type
        super().__init__(
            f"Cannot coerce {type(value).__name__} {value!r} to {declared_type!r} for '{member_name}'"
        )


class InvocationFailure(PatchError):
    """Producing the value or invoking the setter raised."""

    kind = "invocation_failure"

    def __init__(self, member_name: str, cause: BaseException):
        self.member_name = member_name
        self.cause = cause
        super().__init__(f"Setting '{member_name}' failed: {cause!r}")


class SchedulerDeregistrationFailure(PatchError):
    """The scheduler refused to drop a finished finalizer task."""

    kind = "scheduler_deregistration_failure"

    def __init__(self, registration: Any, cause: BaseException):
        self.registration = registration
        self.cause = cause
        super().__init__(f"Deregistering {registration!r} failed: {cause!r}")

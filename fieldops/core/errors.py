"""
Error taxonomy for the compliance engine.

    SourceFetchFailure     one registry failed for one building → cache fallback
    MalformedRecord        one raw record could not be mapped → skipped, counted
    InvalidTransition      escalation command rejected → surfaced to the caller
    AllSourcesUnavailable  no registry answered and no cache → result is Unknown
"""

from __future__ import annotations


class FieldOpsError(Exception):
    """Base class for engine errors."""


class SourceFetchFailure(FieldOpsError):
    def __init__(self, authority: str, building_id: str, cause: BaseException | str) -> None:
        self.authority = authority
        self.building_id = building_id
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if isinstance(cause, BaseException) else cause
        super().__init__(f"{authority} fetch failed for building {building_id}: {detail}")


class MalformedRecord(FieldOpsError):
    def __init__(self, authority: str, reason: str, record_id: str | None = None) -> None:
        self.authority = authority
        self.reason = reason
        self.record_id = record_id
        ref = f" ({record_id})" if record_id else ""
        super().__init__(f"Malformed {authority} record{ref}: {reason}")


class InvalidTransition(FieldOpsError):
    def __init__(self, building_id: str, from_state: str, action: str, reason: str) -> None:
        self.building_id = building_id
        self.from_state = from_state
        self.action = action
        self.reason = reason
        super().__init__(f"Cannot {action} building {building_id} from '{from_state}': {reason}")


class AllSourcesUnavailable(FieldOpsError):
    def __init__(self, building_id: str, failures: list[SourceFetchFailure] | None = None) -> None:
        self.building_id = building_id
        self.failures = failures or []
        super().__init__(
            f"No registry data and no cached snapshot for building {building_id}"
        )

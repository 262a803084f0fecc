from enum import StrEnum


class ApplicationStatus(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING

    @classmethod
    def from_gateway(cls, raw_status: str | None) -> "ApplicationStatus":
        # PayU reports success/pending/failure, plus variants like "usercancelled".
        normalized = (raw_status or "").strip().lower()
        if normalized == "success":
            return cls.SUCCESS
        if normalized == "pending":
            return cls.PENDING
        return cls.FAILURE


class ReconciliationOutcome(StrEnum):
    CREATED = "created"
    APPLIED = "applied"
    REPLAYED = "replayed"
    CONFLICT = "conflict"
    IGNORED = "ignored"


class RecordOrigin(StrEnum):
    INITIATION = "initiation"
    CALLBACK = "callback"
    LOOKUP = "lookup"

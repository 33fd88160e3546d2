import enum


class RequestStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING_APPROVAL


class Priority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepRole(str, enum.Enum):
    INITIATOR = "initiator"
    VALIDATOR = "validator"
    APPROVER = "approver"
    DG = "dg"


class ApprovalAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    INITIATOR = "initiator"
    VALIDATOR = "validator"
    APPROVER = "approver"
    DG = "dg"

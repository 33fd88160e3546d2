# Import every model so Base.metadata knows all tables before create_all()
from needflow.db.session import Base  # noqa: F401
from needflow.models.user import User  # noqa: F401
from needflow.models.request import Request, ApprovalStep, TicketSequence  # noqa: F401
from needflow.models.approval_chain import ApprovalChainRule  # noqa: F401
from needflow.models.notification import Notification  # noqa: F401
from needflow.models.audit import AuditLog  # noqa: F401
from needflow.models.settings import SystemSetting  # noqa: F401

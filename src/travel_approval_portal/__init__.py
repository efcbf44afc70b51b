"""Travel Approval Portal - hierarchical approval workflow for corporate travel requests."""

from .audit import ActivityAction, ActivityLog, AuditSink, ConversationAuditSink
from .chain import build_approval_chain
from .config import ApprovalPolicy, normalize_email
from .directory import (
    InMemoryOrgDirectory,
    OrgDirectory,
    load_directory,
    load_directory_json,
    load_directory_spreadsheet,
)
from .engine import WorkflowEngine
from .errors import (
    ChainExhaustedUnexpectedly,
    ConcurrentModification,
    DirectoryLookupFailed,
    ErrorKind,
    InvalidTransition,
    NotAuthorized,
    NotCurrentApprover,
    RequestNotFound,
    WorkflowError,
)
from .models import (
    ApprovalChainEntry,
    ApprovedState,
    ChatMessage,
    DecisionOutcome,
    EmployeeRecord,
    ItineraryLeg,
    ManagerApprovedState,
    PendingState,
    POCRejectedState,
    RejectedState,
    RequestStatus,
    TravelRequest,
    TripDetails,
    TripNature,
)
from .notifications import Notification, NotificationCenter, NotificationKind, Notifier
from .portal_api import PortalResult, TravelPortal
from .projections import (
    ApprovalCounts,
    ApprovalQueue,
    counts_by_status,
    get_pending_approvals,
    list_pending_for,
)
from .repository import InMemoryTravelRequestRepository
from .security import Permission, RoleDirectory, RoleName

__all__ = [
    "ActivityAction",
    "ActivityLog",
    "ApprovalChainEntry",
    "ApprovalCounts",
    "ApprovalPolicy",
    "ApprovalQueue",
    "ApprovedState",
    "AuditSink",
    "ChainExhaustedUnexpectedly",
    "ChatMessage",
    "ConcurrentModification",
    "ConversationAuditSink",
    "DecisionOutcome",
    "DirectoryLookupFailed",
    "EmployeeRecord",
    "ErrorKind",
    "InMemoryOrgDirectory",
    "InMemoryTravelRequestRepository",
    "InvalidTransition",
    "ItineraryLeg",
    "ManagerApprovedState",
    "NotAuthorized",
    "NotCurrentApprover",
    "Notification",
    "NotificationCenter",
    "NotificationKind",
    "Notifier",
    "OrgDirectory",
    "POCRejectedState",
    "PendingState",
    "Permission",
    "PortalResult",
    "RejectedState",
    "RequestNotFound",
    "RequestStatus",
    "RoleDirectory",
    "RoleName",
    "TravelPortal",
    "TravelRequest",
    "TripDetails",
    "TripNature",
    "WorkflowEngine",
    "WorkflowError",
    "build_approval_chain",
    "counts_by_status",
    "get_pending_approvals",
    "list_pending_for",
    "load_directory",
    "load_directory_json",
    "load_directory_spreadsheet",
    "normalize_email",
    "__version__",
]
__version__ = "0.1.0"

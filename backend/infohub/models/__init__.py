from infohub.models.user import User, RoleUpgradeRequest, ApprovalStatus
from infohub.models.announcement import Announcement, AnnouncementStatus, Priority, TargetAudience
from infohub.models.event import Event, EventRegistration, EventStatus, EventType, RegistrationStatus
from infohub.models.notification import (
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
)
from infohub.models.communication import (
    BoardType,
    Communication,
    CommunicationAudience,
    CommunicationReply,
    CommunicationStatus,
    CommunicationType,
)
from infohub.models.resource import AccessLevel, GradeLevel, Resource, ResourceCategory, ResourceStatus, ResourceType
from infohub.models.feedback import Feedback, FeedbackStatus, FeedbackType
from infohub.models.system_setting import SystemSetting
from infohub.models.audit_log import AuditLog
from infohub.models.carousel import CarouselImage

__all__ = [
    "User",
    "RoleUpgradeRequest",
    "ApprovalStatus",
    "Announcement",
    "AnnouncementStatus",
    "Priority",
    "TargetAudience",
    "Event",
    "EventRegistration",
    "EventStatus",
    "EventType",
    "RegistrationStatus",
    "Notification",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationType",
    "BoardType",
    "Communication",
    "CommunicationAudience",
    "CommunicationReply",
    "CommunicationStatus",
    "CommunicationType",
    "AccessLevel",
    "GradeLevel",
    "Resource",
    "ResourceCategory",
    "ResourceStatus",
    "ResourceType",
    "Feedback",
    "FeedbackStatus",
    "FeedbackType",
    "SystemSetting",
    "AuditLog",
    "CarouselImage",
]

# app/constants/event.py
"""
Constants for event lifecycle, membership and notification values.

Provides type-safe constants to replace hardcoded strings throughout the codebase.
"""


class EventStatus:
    """Publication status of an event."""
    DRAFT = "DRAFT"
    SCHEDULED = "SCHEDULED"
    PUBLISHED = "PUBLISHED"

    @classmethod
    def all_values(cls) -> list[str]:
        return [cls.DRAFT, cls.SCHEDULED, cls.PUBLISHED]


class EventMode:
    """Participation mode, which determines the capacity rules."""
    ONE_TO_ONE = "ONE_TO_ONE"
    GROUP = "GROUP"
    CUSTOM = "CUSTOM"

    @classmethod
    def all_values(cls) -> list[str]:
        return [cls.ONE_TO_ONE, cls.GROUP, cls.CUSTOM]


class JoinMode:
    OPEN = "OPEN"
    REQUEST = "REQUEST"
    INVITE_ONLY = "INVITE_ONLY"

    @classmethod
    def all_values(cls) -> list[str]:
        return [cls.OPEN, cls.REQUEST, cls.INVITE_ONLY]


class MeetingKind:
    ONSITE = "ONSITE"
    ONLINE = "ONLINE"
    HYBRID = "HYBRID"

    @classmethod
    def all_values(cls) -> list[str]:
        return [cls.ONSITE, cls.ONLINE, cls.HYBRID]


class MemberRole:
    OWNER = "OWNER"
    MODERATOR = "MODERATOR"
    PARTICIPANT = "PARTICIPANT"

    @classmethod
    def moderators(cls) -> list[str]:
        """Roles allowed to manage the event and its members."""
        return [cls.OWNER, cls.MODERATOR]


class MemberStatus:
    """Membership status values. Memberships are never hard-deleted."""
    JOINED = "JOINED"
    PENDING = "PENDING"
    INVITED = "INVITED"
    WAITLIST = "WAITLIST"
    REJECTED = "REJECTED"
    BANNED = "BANNED"
    LEFT = "LEFT"
    KICKED = "KICKED"

    @classmethod
    def all_values(cls) -> list[str]:
        return [
            cls.JOINED, cls.PENDING, cls.INVITED, cls.WAITLIST,
            cls.REJECTED, cls.BANNED, cls.LEFT, cls.KICKED,
        ]


class NotificationKind:
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_CANCELED = "EVENT_CANCELED"
    EVENT_DELETED = "EVENT_DELETED"
    EVENT_PUBLISHED = "EVENT_PUBLISHED"
    EVENT_REMINDER = "EVENT_REMINDER"
    EVENT_FEEDBACK_REQUEST = "EVENT_FEEDBACK_REQUEST"
    EVENT_JOINED = "EVENT_JOINED"
    JOIN_REQUEST = "JOIN_REQUEST"
    MEMBERSHIP_APPROVED = "MEMBERSHIP_APPROVED"
    MEMBERSHIP_REJECTED = "MEMBERSHIP_REJECTED"
    WAITLIST_JOINED = "WAITLIST_JOINED"
    WAITLIST_PROMOTED = "WAITLIST_PROMOTED"


class JoinBlockReason:
    """Reasons returned by can_still_join when a join is not allowed."""
    CANCELED = "CANCELED"
    DELETED = "DELETED"
    MANUALLY_CLOSED = "MANUALLY_CLOSED"
    ENDED = "ENDED"
    NOT_OPEN_YET = "NOT_OPEN_YET"
    PRE_START_CUTOFF = "PRE_START_CUTOFF"
    LATE_JOIN_DISABLED = "LATE_JOIN_DISABLED"
    LATE_JOIN_CUTOFF = "LATE_JOIN_CUTOFF"


class AuditScope:
    EVENT = "EVENT"
    MEMBER = "MEMBER"


class AuditSeverity:
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"

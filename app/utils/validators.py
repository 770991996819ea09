# app/utils/validators.py
"""
Pure validation rules for events.

Nothing in here touches the database. Every check raises InvalidInput
naming the offending field. On update the callers pass the merged
(current + patch) values so a partial update can never produce an
invalid combination.
"""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Tuple

from app.constants.event import EventMode, JoinBlockReason, MeetingKind, JoinMode
from app.core.config import settings
from app.core.exceptions import InvalidInput
from app.utils.time_utils import ensure_utc, utcnow

MAX_WINDOW_MINUTES = 10080  # one week
GROUP_MAX = 50
CUSTOM_MAX = 99999


def validate_time_window(
    start_at: datetime,
    end_at: datetime,
    *,
    is_create: bool = False,
    now: Optional[datetime] = None,
) -> None:
    """
    Validate the start/end pair of an event.

    Raises:
        InvalidInput: if end_at is not after start_at, or (on create only)
            start_at is less than MIN_START_BUFFER_MINUTES in the future.
    """
    if start_at is None:
        raise InvalidInput("startAt is required", field="startAt")
    if end_at is None:
        raise InvalidInput("endAt is required", field="endAt")

    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)

    if end_at <= start_at:
        raise InvalidInput("endAt must be after startAt", field="endAt")

    if is_create:
        now = ensure_utc(now) if now else utcnow()
        buffer = timedelta(minutes=settings.MIN_START_BUFFER_MINUTES)
        if start_at < now + buffer:
            raise InvalidInput(
                f"startAt must be at least {settings.MIN_START_BUFFER_MINUTES} minutes in the future",
                field="startAt",
            )


def default_capacity(mode: str) -> Tuple[Optional[int], Optional[int]]:
    """Capacity used on create when the caller leaves min/max out."""
    if mode == EventMode.ONE_TO_ONE:
        return 2, 2
    if mode == EventMode.GROUP:
        return 1, GROUP_MAX
    return None, None


def validate_capacity(mode: str, min_value: Optional[int], max_value: Optional[int]) -> None:
    if mode not in EventMode.all_values():
        raise InvalidInput(f"Unknown mode: {mode}", field="mode")

    if mode == EventMode.ONE_TO_ONE:
        if min_value != 2:
            raise InvalidInput("ONE_TO_ONE events require min = 2", field="min")
        if max_value != 2:
            raise InvalidInput("ONE_TO_ONE events require max = 2", field="max")
        return

    if mode == EventMode.GROUP:
        if min_value is None:
            raise InvalidInput("GROUP events require min", field="min")
        if max_value is None:
            raise InvalidInput("GROUP events require max", field="max")
        if min_value < 1:
            raise InvalidInput("min must be at least 1", field="min")
        if max_value > GROUP_MAX:
            raise InvalidInput(f"GROUP events allow at most {GROUP_MAX} participants", field="max")
        if min_value > max_value:
            raise InvalidInput("min must not exceed max", field="min")
        return

    # CUSTOM: both bounds optional
    if min_value is not None and not 1 <= min_value <= CUSTOM_MAX:
        raise InvalidInput(f"min must be between 1 and {CUSTOM_MAX}", field="min")
    if max_value is not None and not 1 <= max_value <= CUSTOM_MAX:
        raise InvalidInput(f"max must be between 1 and {CUSTOM_MAX}", field="max")
    if min_value is not None and max_value is not None and min_value > max_value:
        raise InvalidInput("min must not exceed max", field="min")


def validate_join_window(
    join_opens_minutes_before_start: Optional[int],
    join_cutoff_minutes_before_start: Optional[int],
    late_join_cutoff_minutes_after_start: Optional[int],
    allow_join_late: bool,
) -> None:
    for field, value in (
        ("joinOpensMinutesBeforeStart", join_opens_minutes_before_start),
        ("joinCutoffMinutesBeforeStart", join_cutoff_minutes_before_start),
        ("lateJoinCutoffMinutesAfterStart", late_join_cutoff_minutes_after_start),
    ):
        if value is not None and not 0 <= value <= MAX_WINDOW_MINUTES:
            raise InvalidInput(
                f"{field} must be between 0 and {MAX_WINDOW_MINUTES}", field=field
            )

    if not allow_join_late and late_join_cutoff_minutes_after_start is not None:
        raise InvalidInput(
            "lateJoinCutoffMinutesAfterStart must be empty when late joining is disabled",
            field="lateJoinCutoffMinutesAfterStart",
        )

    if (
        join_opens_minutes_before_start is not None
        and join_cutoff_minutes_before_start is not None
        and join_opens_minutes_before_start <= join_cutoff_minutes_before_start
    ):
        raise InvalidInput(
            "joinOpensMinutesBeforeStart must be greater than joinCutoffMinutesBeforeStart",
            field="joinOpensMinutesBeforeStart",
        )


def validate_meeting_kind(kind: str, has_coords: bool, has_url: bool) -> None:
    if kind not in MeetingKind.all_values():
        raise InvalidInput(f"Unknown meetingKind: {kind}", field="meetingKind")
    if kind == MeetingKind.ONLINE and not has_url:
        raise InvalidInput("ONLINE events require an onlineUrl", field="onlineUrl")
    if kind == MeetingKind.ONSITE and not has_coords:
        raise InvalidInput("ONSITE events require coordinates", field="location")
    if kind == MeetingKind.HYBRID and not (has_coords or has_url):
        raise InvalidInput(
            "HYBRID events require coordinates or an onlineUrl", field="location"
        )


def validate_event_fields(
    values: Mapping[str, Any], *, is_create: bool = False, now: Optional[datetime] = None
) -> None:
    """Run every rule against a full set of event values (snake_case keys)."""
    validate_time_window(
        values.get("start_at"), values.get("end_at"), is_create=is_create, now=now
    )
    validate_capacity(values.get("mode"), values.get("min"), values.get("max"))
    validate_join_window(
        values.get("join_opens_minutes_before_start"),
        values.get("join_cutoff_minutes_before_start"),
        values.get("late_join_cutoff_minutes_after_start"),
        bool(values.get("allow_join_late", True)),
    )
    validate_meeting_kind(
        values.get("meeting_kind"),
        values.get("lat") is not None and values.get("lng") is not None,
        bool(values.get("online_url")),
    )
    join_mode = values.get("join_mode")
    if join_mode is not None and join_mode not in JoinMode.all_values():
        raise InvalidInput(f"Unknown joinMode: {join_mode}", field="joinMode")


def can_still_join(event, now: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    """
    Check whether the join window is currently open for an event.

    Returns:
        (True, None) when joining is allowed, otherwise (False, reason) with a
        JoinBlockReason value.
    """
    now = ensure_utc(now) if now else utcnow()

    if event.canceled_at is not None:
        return False, JoinBlockReason.CANCELED
    if event.deleted_at is not None:
        return False, JoinBlockReason.DELETED
    if event.join_manually_closed:
        return False, JoinBlockReason.MANUALLY_CLOSED

    start_at = ensure_utc(event.start_at)
    end_at = ensure_utc(event.end_at)

    if now >= end_at:
        return False, JoinBlockReason.ENDED

    if now < start_at:
        opens = event.join_opens_minutes_before_start
        if opens is not None and now < start_at - timedelta(minutes=opens):
            return False, JoinBlockReason.NOT_OPEN_YET
        cutoff = event.join_cutoff_minutes_before_start
        if cutoff is not None and now >= start_at - timedelta(minutes=cutoff):
            return False, JoinBlockReason.PRE_START_CUTOFF
        return True, None

    if not event.allow_join_late:
        return False, JoinBlockReason.LATE_JOIN_DISABLED
    late_cutoff = event.late_join_cutoff_minutes_after_start
    if late_cutoff is not None and now >= start_at + timedelta(minutes=late_cutoff):
        return False, JoinBlockReason.LATE_JOIN_CUTOFF
    return True, None

"""
GroupDiningLifecycle: membership eligibility and status transitions for a
group dining event.

Everything here works on an immutable DiningSnapshot plus a user id and the
current time; nothing touches the database. Services load a snapshot, call
one of these functions and write the returned snapshot back.

Status machine:
    ACTIVE -> CANCELLED   organizer only
    ACTIVE -> COMPLETED   organizer only, explicit call
CANCELLED and COMPLETED are terminal; membership is frozen in both.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import FrozenSet, Optional

from core.errors import IneligibleOperationError, ValidationError

ACTIVE = 'ACTIVE'
CANCELLED = 'CANCELLED'
COMPLETED = 'COMPLETED'

PENDING = 'PENDING'
ACCEPTED = 'ACCEPTED'
DECLINED = 'DECLINED'

MIN_PARTICIPANTS = 2


@dataclass(frozen=True)
class DiningSnapshot:
    organizer_id: str
    scheduled_date: datetime
    max_participants: int
    participants: FrozenSet[str] = frozenset()
    # Users holding a pending invitation
    invited_users: FrozenSet[str] = frozenset()
    status: str = ACTIVE
    updated_at: Optional[datetime] = None


def new_event(organizer_id: str, scheduled_date: datetime, max_participants: int,
              now: datetime) -> DiningSnapshot:
    """Organizer is the first participant."""
    if max_participants < MIN_PARTICIPANTS:
        raise ValidationError(
            f"A group dining needs room for at least {MIN_PARTICIPANTS} people", reason='INVALID_CAPACITY'
        )
    if scheduled_date <= now:
        raise ValidationError("Scheduled date must be in the future", reason='DATE_IN_PAST')
    return DiningSnapshot(
        organizer_id=organizer_id,
        scheduled_date=scheduled_date,
        max_participants=max_participants,
        participants=frozenset([organizer_id]),
        updated_at=now,
    )


def is_expired(event: DiningSnapshot, now: datetime) -> bool:
    return now > event.scheduled_date


def is_full(event: DiningSnapshot) -> bool:
    return len(event.participants) >= event.max_participants


def available_spots(event: DiningSnapshot) -> int:
    return max(event.max_participants - len(event.participants), 0)


def join_block_reason(event: DiningSnapshot, user_id: str, now: datetime) -> Optional[str]:
    # Checked in this order; the first hit is what the caller sees
    if user_id in event.participants:
        return 'ALREADY_PARTICIPANT'
    if is_full(event):
        return 'EVENT_FULL'
    if is_expired(event, now):
        return 'EVENT_EXPIRED'
    if event.status != ACTIVE:
        return 'EVENT_NOT_ACTIVE'
    return None


def can_join(event: DiningSnapshot, user_id: str, now: datetime) -> bool:
    return join_block_reason(event, user_id, now) is None


def leave_block_reason(event: DiningSnapshot, user_id: str) -> Optional[str]:
    if user_id == event.organizer_id:
        return 'ORGANIZER_CANNOT_LEAVE'
    if user_id not in event.participants:
        return 'NOT_PARTICIPANT'
    if event.status != ACTIVE:
        return 'EVENT_NOT_ACTIVE'
    return None


def can_leave(event: DiningSnapshot, user_id: str) -> bool:
    return leave_block_reason(event, user_id) is None


_REASON_MESSAGES = {
    'ALREADY_PARTICIPANT': "Already participating in this group dining",
    'EVENT_FULL': "This group dining is full",
    'EVENT_EXPIRED': "This group dining has already taken place",
    'EVENT_NOT_ACTIVE': "This group dining is no longer active",
    'ORGANIZER_CANNOT_LEAVE': "The organizer cannot leave; cancel the group dining instead",
    'NOT_PARTICIPANT': "You are not a participant of this group dining",
    'NOT_ORGANIZER': "Only the organizer can do this",
    'ALREADY_INVITED': "This user already has an invitation",
    'ALREADY_RESPONDED': "This invitation was already answered",
}


def _refuse(reason: str):
    raise IneligibleOperationError(_REASON_MESSAGES.get(reason, reason), reason=reason)


def join(event: DiningSnapshot, user_id: str, now: datetime) -> DiningSnapshot:
    reason = join_block_reason(event, user_id, now)
    if reason:
        _refuse(reason)
    return replace(event, participants=event.participants | {user_id}, updated_at=now)


def leave(event: DiningSnapshot, user_id: str, now: datetime) -> DiningSnapshot:
    reason = leave_block_reason(event, user_id)
    if reason:
        _refuse(reason)
    return replace(event, participants=event.participants - {user_id}, updated_at=now)


def _close(event: DiningSnapshot, requester_id: str, status: str, now: datetime) -> DiningSnapshot:
    if requester_id != event.organizer_id:
        _refuse('NOT_ORGANIZER')
    if event.status != ACTIVE:
        _refuse('EVENT_NOT_ACTIVE')
    return replace(event, status=status, updated_at=now)


def cancel(event: DiningSnapshot, requester_id: str, now: datetime) -> DiningSnapshot:
    return _close(event, requester_id, CANCELLED, now)


def complete(event: DiningSnapshot, requester_id: str, now: datetime) -> DiningSnapshot:
    return _close(event, requester_id, COMPLETED, now)


def invite(event: DiningSnapshot, from_user_id: str, to_user_id: str) -> None:
    """
    Checks that from_user_id may invite to_user_id. The event is not changed;
    the caller stores the pending invitation.
    """
    if from_user_id not in event.participants:
        _refuse('NOT_PARTICIPANT')
    if event.status != ACTIVE:
        _refuse('EVENT_NOT_ACTIVE')
    if to_user_id in event.participants:
        _refuse('ALREADY_PARTICIPANT')
    if to_user_id in event.invited_users:
        _refuse('ALREADY_INVITED')


def respond(invitation_status: str, accept: bool) -> str:
    """New invitation status; only a pending invitation can be answered."""
    if invitation_status != PENDING:
        _refuse('ALREADY_RESPONDED')
    return ACCEPTED if accept else DECLINED

"""Domain enumerations and state-transition rules."""

import enum


class RideKind(str, enum.Enum):
    HOST = "HOST"
    RIDER = "RIDER"


class RideStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    MATCHED = "MATCHED"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RideEvent(str, enum.Enum):
    MATCH = "match"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class MatchStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    STARTED = "STARTED"


class MatchEvent(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"


class MatchDecision(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class DistanceMode(str, enum.Enum):
    POINT = "point"
    SEGMENT = "segment"


# State machine: (current status, event) -> next status.
# Anything missing from a table is an illegal transition.
RIDE_TRANSITIONS: dict[tuple[RideStatus, RideEvent], RideStatus] = {
    (RideStatus.AVAILABLE, RideEvent.MATCH): RideStatus.MATCHED,
    (RideStatus.MATCHED, RideEvent.START): RideStatus.STARTED,
    (RideStatus.STARTED, RideEvent.COMPLETE): RideStatus.COMPLETED,
    (RideStatus.AVAILABLE, RideEvent.CANCEL): RideStatus.CANCELLED,
    (RideStatus.MATCHED, RideEvent.CANCEL): RideStatus.CANCELLED,
    (RideStatus.STARTED, RideEvent.CANCEL): RideStatus.CANCELLED,
}

MATCH_TRANSITIONS: dict[tuple[MatchStatus, MatchEvent], MatchStatus] = {
    (MatchStatus.PENDING, MatchEvent.ACCEPT): MatchStatus.ACCEPTED,
    (MatchStatus.PENDING, MatchEvent.REJECT): MatchStatus.REJECTED,
    (MatchStatus.ACCEPTED, MatchEvent.START): MatchStatus.STARTED,
}

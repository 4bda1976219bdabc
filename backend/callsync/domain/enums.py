"""Domain enumerations for strong typing & validation."""
from enum import Enum

PROVIDER_GOOGLE = "google"


class CallStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


class EventStatus(str, Enum):
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    CANCELLED = "cancelled"


class PushAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ConnectionType(str, Enum):
    COLD = "cold"
    ALUMNI = "alumni"
    FRIEND = "friend"
    REFERRAL = "referral"


class ContactStage(str, Enum):
    RESEARCHING = "researching"
    MESSAGED = "messaged"
    SCHEDULED = "scheduled"
    CALL_DONE = "call_done"
    STRONG_CONNECTION = "strong_connection"
    REFERRAL_REQUESTED = "referral_requested"
    INTERVIEW = "interview"
    OFFER = "offer"

    @property
    def rank(self) -> int:
        return PIPELINE_ORDER.index(self)

    def precedes(self, other: "ContactStage") -> bool:
        return self.rank < other.rank


PIPELINE_ORDER = list(ContactStage)

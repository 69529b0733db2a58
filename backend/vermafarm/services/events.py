"""Domain events emitted by the service-request lifecycle.

The lifecycle store never touches account statistics itself. Each transition
that moves a counter returns one of these events and the account store turns
it into stat deltas (see ``AccountStore.apply_request_event``).
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class RequestCreated:
    request_id: str
    farmer_id: str


@dataclass(frozen=True)
class RequestAccepted:
    request_id: str
    landowner_id: str


@dataclass(frozen=True)
class RequestCompleted:
    request_id: str
    farmer_id: str
    landowner_id: str
    farmer_earnings: float
    service_charge: float


@dataclass(frozen=True)
class RequestCancelled:
    request_id: str
    farmer_id: str


RequestEvent = Union[RequestCreated, RequestAccepted, RequestCompleted, RequestCancelled]

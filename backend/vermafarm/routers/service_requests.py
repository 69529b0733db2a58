from typing import List, Optional

from fastapi import APIRouter, Depends

from vermafarm.auth import AuthenticatedUser, require_authenticated_user, require_user_type
from vermafarm.models import (
    Earnings,
    ServiceRequest,
    ServiceRequestComplete,
    ServiceRequestCreate,
    ServiceRequestListResponse,
    ServiceRequestResponse,
)
from vermafarm.routers.common import raise_store_http_error
from vermafarm.services.account_store import account_store
from vermafarm.services.errors import StoreError
from vermafarm.services.service_request_store import service_request_store

router = APIRouter(tags=["service-requests"])


def _with_parties(requests: List[ServiceRequest]) -> List[ServiceRequest]:
    summaries = account_store.get_party_summaries(
        [item.farmer_id for item in requests] + [item.landowner_id for item in requests if item.landowner_id]
    )
    return [
        item.model_copy(
            update={
                "farmer": summaries.get(item.farmer_id),
                "landowner": summaries.get(item.landowner_id) if item.landowner_id else None,
            }
        )
        for item in requests
    ]


@router.post("", status_code=201, response_model=ServiceRequestResponse)
def create_service_request(
    payload: ServiceRequestCreate,
    user: AuthenticatedUser = Depends(require_user_type("farmer")),
):
    try:
        result = service_request_store.create_request(
            farmer_id=user.user_id,
            material_type=payload.material_type,
            quantity=payload.quantity,
            unit=payload.unit,
            service_charge_percent=payload.service_charge_percent,
            estimated_revenue=payload.estimated_revenue,
            notes=payload.notes,
        )
        account_store.apply_request_events(result.events)
        return ServiceRequestResponse(message="Service request created successfully", data=result.request)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/available", response_model=ServiceRequestListResponse)
def list_available_requests(user: AuthenticatedUser = Depends(require_user_type("landowner"))):
    requests = _with_parties(service_request_store.list_available())
    return ServiceRequestListResponse(count=len(requests), data=requests)


@router.get("/my-requests", response_model=ServiceRequestListResponse)
def list_my_requests(user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        requests = _with_parties(service_request_store.list_for_participant(user.user_id, user.user_type))
        return ServiceRequestListResponse(count=len(requests), data=requests)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/{request_id}", response_model=ServiceRequestResponse)
def get_service_request(request_id: str, user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        request = service_request_store.get_request(request_id, actor_user_id=user.user_id)
        return ServiceRequestResponse(data=_with_parties([request])[0])
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{request_id}/accept", response_model=ServiceRequestResponse)
def accept_service_request(request_id: str, user: AuthenticatedUser = Depends(require_user_type("landowner"))):
    try:
        result = service_request_store.accept_request(
            request_id,
            actor_user_id=user.user_id,
            actor_user_type=user.user_type,
        )
        account_store.apply_request_events(result.events)
        return ServiceRequestResponse(message="Service request accepted successfully", data=result.request)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{request_id}/start", response_model=ServiceRequestResponse)
def start_project(request_id: str, user: AuthenticatedUser = Depends(require_user_type("landowner"))):
    try:
        result = service_request_store.start_request(
            request_id,
            actor_user_id=user.user_id,
            actor_user_type=user.user_type,
        )
        return ServiceRequestResponse(message="Project started successfully", data=result.request)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{request_id}/complete", response_model=ServiceRequestResponse)
def complete_project(
    request_id: str,
    payload: Optional[ServiceRequestComplete] = None,
    user: AuthenticatedUser = Depends(require_user_type("landowner")),
):
    try:
        result = service_request_store.complete_request(
            request_id,
            actor_user_id=user.user_id,
            actor_user_type=user.user_type,
            actual_revenue=payload.actual_revenue if payload else None,
        )
        account_store.apply_request_events(result.events)
        settlement = result.settlement
        return ServiceRequestResponse(
            message="Project completed successfully",
            data=result.request,
            earnings=Earnings(landowner=settlement.service_charge, farmer=settlement.farmer_earnings),
        )
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{request_id}/cancel", response_model=ServiceRequestResponse)
def cancel_service_request(request_id: str, user: AuthenticatedUser = Depends(require_user_type("farmer"))):
    try:
        result = service_request_store.cancel_request(
            request_id,
            actor_user_id=user.user_id,
            actor_user_type=user.user_type,
        )
        account_store.apply_request_events(result.events)
        return ServiceRequestResponse(message="Service request cancelled successfully", data=result.request)
    except StoreError as exc:
        raise_store_http_error(exc)

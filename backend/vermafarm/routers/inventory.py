from fastapi import APIRouter, Depends

from vermafarm.auth import AuthenticatedUser, require_user_type
from vermafarm.models import (
    InventoryBulkResponse,
    InventoryBulkUpdateRequest,
    InventoryItemResponse,
    InventoryListResponse,
    InventoryUpdateRequest,
)
from vermafarm.routers.common import raise_store_http_error
from vermafarm.services.account_store import account_store
from vermafarm.services.errors import StoreError
from vermafarm.services.inventory_store import inventory_store

router = APIRouter(tags=["inventory"])

farmer_only = require_user_type("farmer")


@router.get("", response_model=InventoryListResponse)
def get_inventory(user: AuthenticatedUser = Depends(farmer_only)):
    items = inventory_store.list_items(user.user_id)
    total_quantity = sum(item.quantity for item in items)
    account_store.set_stats(user.user_id, {"total_inventory": total_quantity})
    return InventoryListResponse(count=len(items), total_quantity=total_quantity, data=items)


@router.put("/bulk", response_model=InventoryBulkResponse)
def bulk_update_inventory(payload: InventoryBulkUpdateRequest, user: AuthenticatedUser = Depends(farmer_only)):
    try:
        items = inventory_store.bulk_update(actor_user_id=user.user_id, updates=payload.updates)
        return InventoryBulkResponse(message="Inventory updated successfully", data=items)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{item_id}", response_model=InventoryItemResponse)
def update_inventory(
    item_id: str,
    payload: InventoryUpdateRequest,
    user: AuthenticatedUser = Depends(farmer_only),
):
    try:
        item = inventory_store.update_item(
            item_id,
            actor_user_id=user.user_id,
            quantity=payload.quantity,
            notes=payload.notes,
        )
        return InventoryItemResponse(message="Inventory updated successfully", data=item)
    except StoreError as exc:
        raise_store_http_error(exc)

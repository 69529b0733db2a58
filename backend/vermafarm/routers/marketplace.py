from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from vermafarm.auth import AuthenticatedUser, require_authenticated_user, require_user_type
from vermafarm.models import (
    ContactDetails,
    ContactResponse,
    Listing,
    ListingCreate,
    ListingListResponse,
    ListingResponse,
    ListingUpdate,
    MarketplaceStatsResponse,
    MessageResponse,
    MyListingsResponse,
    ProductSummary,
    SellerContact,
)
from vermafarm.routers.common import raise_store_http_error
from vermafarm.services.account_store import account_store
from vermafarm.services.errors import StoreError
from vermafarm.services.marketplace_store import marketplace_store

router = APIRouter(tags=["marketplace"])

seller_only = require_user_type("farmer", "landowner")


def _with_sellers(listings: List[Listing]) -> List[Listing]:
    summaries = account_store.get_party_summaries(item.seller_id for item in listings)
    return [item.model_copy(update={"seller": summaries.get(item.seller_id)}) for item in listings]


@router.get("", response_model=ListingListResponse)
def list_listings(
    category: Optional[str] = None,
    min_price: Optional[float] = Query(default=None, alias="minPrice"),
    max_price: Optional[float] = Query(default=None, alias="maxPrice"),
    search: Optional[str] = None,
    sort: str = "-createdAt",
):
    try:
        listings = marketplace_store.list_listings(
            category=category,
            min_price=min_price,
            max_price=max_price,
            search=search,
            sort=sort,
        )
        listings = _with_sellers(listings)
        return ListingListResponse(count=len(listings), data=listings)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/stats", response_model=MarketplaceStatsResponse)
def marketplace_stats():
    return MarketplaceStatsResponse(data=marketplace_store.stats())


@router.get("/my-listings", response_model=MyListingsResponse)
def my_listings(status: Optional[str] = None, user: AuthenticatedUser = Depends(seller_only)):
    try:
        listings, totals = marketplace_store.list_seller_listings(user.user_id, status)
        return MyListingsResponse(count=len(listings), totals=totals, data=listings)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str):
    try:
        listing = marketplace_store.get_listing(listing_id, count_view=True)
        return ListingResponse(data=_with_sellers([listing])[0])
    except StoreError as exc:
        raise_store_http_error(exc)


@router.post("", status_code=201, response_model=ListingResponse)
def create_listing(payload: ListingCreate, user: AuthenticatedUser = Depends(seller_only)):
    try:
        fields = payload.model_dump()
        if not fields.get("pickup_location"):
            fields["pickup_location"] = account_store.get_user(user.user_id).location
        listing = marketplace_store.create_listing(seller_id=user.user_id, fields=fields)
        if user.user_type == "farmer":
            account_store.increment_stats(user.user_id, {"total_sales": 1})
        return ListingResponse(message="Product listed successfully on marketplace", data=listing)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{listing_id}", response_model=ListingResponse)
def update_listing(listing_id: str, payload: ListingUpdate, user: AuthenticatedUser = Depends(seller_only)):
    try:
        listing = marketplace_store.update_listing(
            listing_id,
            actor_user_id=user.user_id,
            updates=payload.model_dump(exclude_unset=True),
        )
        return ListingResponse(message="Listing updated successfully", data=listing)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.delete("/{listing_id}", response_model=MessageResponse)
def delete_listing(listing_id: str, user: AuthenticatedUser = Depends(seller_only)):
    try:
        marketplace_store.delete_listing(listing_id, actor_user_id=user.user_id)
        return MessageResponse(message="Listing deleted successfully")
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{listing_id}/deactivate", response_model=ListingResponse)
def deactivate_listing(listing_id: str, user: AuthenticatedUser = Depends(seller_only)):
    try:
        listing = marketplace_store.set_active(listing_id, actor_user_id=user.user_id, active=False)
        return ListingResponse(message="Listing deactivated successfully", data=listing)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.put("/{listing_id}/activate", response_model=ListingResponse)
def activate_listing(listing_id: str, user: AuthenticatedUser = Depends(seller_only)):
    try:
        listing = marketplace_store.set_active(listing_id, actor_user_id=user.user_id, active=True)
        return ListingResponse(message="Listing activated successfully", data=listing)
    except StoreError as exc:
        raise_store_http_error(exc)


@router.post("/{listing_id}/contact", response_model=ContactResponse)
def contact_seller(listing_id: str, user: AuthenticatedUser = Depends(require_authenticated_user)):
    try:
        listing = marketplace_store.record_inquiry(listing_id)
        seller = account_store.get_user(listing.seller_id)
        details = ContactDetails(
            seller=SellerContact(name=seller.name, phone=seller.phone, email=seller.email, location=seller.location),
            product=ProductSummary(
                name=listing.product_name,
                price=listing.price_per_unit,
                unit=listing.unit,
                available=listing.quantity_available,
            ),
        )
        return ContactResponse(message="Seller contact information retrieved", data=details)
    except StoreError as exc:
        raise_store_http_error(exc)

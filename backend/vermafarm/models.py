from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


RequestStatus = Literal["pending", "accepted", "in_progress", "completed", "cancelled", "rejected"]
UserType = Literal["farmer", "landowner", "buyer"]
ListingStatus = Literal["active", "sold_out", "inactive", "pending_approval"]


class PartySummary(ApiModel):
    id: str
    name: str
    phone: str = ""
    location: str = ""


class ServiceRequest(ApiModel):
    id: str
    farmer_id: str
    landowner_id: Optional[str] = None
    material_type: str
    quantity: float
    unit: Literal["kg", "ton"] = "kg"
    service_charge_percent: float = 15
    estimated_revenue: float = 0
    actual_revenue: float = 0
    status: RequestStatus = "pending"
    notes: Optional[str] = None
    accepted_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    quality_rating: Optional[int] = Field(default=None, ge=1, le=5)
    farmer_review: Optional[str] = None
    landowner_review: Optional[str] = None
    created_at: str
    updated_at: str
    farmer: Optional[PartySummary] = None
    landowner: Optional[PartySummary] = None


class ServiceRequestCreate(ApiModel):
    material_type: str
    quantity: float
    unit: str = "kg"
    service_charge_percent: Optional[float] = None
    estimated_revenue: Optional[float] = None
    notes: Optional[str] = None


class ServiceRequestComplete(ApiModel):
    actual_revenue: Optional[float] = None


class Earnings(ApiModel):
    landowner: float
    farmer: float


class ServiceRequestResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    data: ServiceRequest
    earnings: Optional[Earnings] = None


class ServiceRequestListResponse(ApiModel):
    success: bool = True
    count: int
    data: List[ServiceRequest]


class FarmerStats(ApiModel):
    total_inventory: float = 0
    total_sales: int = 0
    active_requests: int = 0
    revenue: float = 0


class LandownerStats(ApiModel):
    active_projects: int = 0
    completed_projects: int = 0
    service_revenue: float = 0
    product_revenue: float = 0
    service_charge_percent: float = 15


class BuyerStats(ApiModel):
    total_purchases: int = 0
    spent: float = 0
    active_orders: int = 0


class UserProfile(ApiModel):
    id: str
    name: str
    email: str
    user_type: UserType
    phone: str
    location: str
    stats: Union[FarmerStats, LandownerStats, BuyerStats]
    is_active: bool = True
    is_verified: bool = False
    avatar: Optional[str] = None
    created_at: str
    last_login: Optional[str] = None


class RegisterRequest(ApiModel):
    name: str = ""
    email: str = ""
    password: str = ""
    phone: str = ""
    user_type: str = ""
    location: str = ""


class LoginRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UpdateDetailsRequest(ApiModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    service_charge_percent: Optional[float] = None


class UpdatePasswordRequest(ApiModel):
    current_password: str = ""
    new_password: str = ""


class AuthResponse(ApiModel):
    success: bool = True
    message: str
    token: str
    expires_at: str
    user: UserProfile


class UserResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    data: UserProfile


class MessageResponse(ApiModel):
    success: bool = True
    message: str
    data: dict = Field(default_factory=dict)


class InventoryItem(ApiModel):
    id: str
    user_id: str
    type: str
    name: str
    quantity: float = 0
    unit: Literal["kg", "ton"] = "kg"
    icon: str = "📦"
    notes: Optional[str] = None
    last_updated: str
    created_at: str
    updated_at: str


class InventoryUpdateRequest(ApiModel):
    quantity: Optional[float] = None
    notes: Optional[str] = None


class InventoryBulkUpdateRequest(ApiModel):
    updates: Any = None


class InventoryListResponse(ApiModel):
    success: bool = True
    count: int
    total_quantity: float
    data: List[InventoryItem]


class InventoryItemResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    data: InventoryItem


class InventoryBulkResponse(ApiModel):
    success: bool = True
    message: str
    data: List[InventoryItem]


class Listing(ApiModel):
    id: str
    seller_id: str
    category: str
    product_name: str
    description: str = ""
    quantity_available: float
    unit: Literal["kg", "ton"] = "kg"
    price_per_unit: float
    images: List[str] = Field(default_factory=list)
    status: ListingStatus = "active"
    total_sold: float = 0
    quality_grade: Literal["A", "B", "C", "Not Graded"] = "Not Graded"
    is_certified: bool = False
    certification_details: Optional[str] = None
    pickup_location: Optional[str] = None
    delivery_available: bool = False
    delivery_radius: float = 0
    delivery_charge: float = 0
    views: int = 0
    inquiries: int = 0
    average_rating: float = 0
    total_reviews: int = 0
    is_active: bool = True
    expires_at: Optional[str] = None
    created_at: str
    updated_at: str
    seller: Optional[PartySummary] = None


class ListingCreate(ApiModel):
    category: str
    product_name: str
    description: str = ""
    quantity_available: float
    unit: str = "kg"
    price_per_unit: float
    images: List[str] = Field(default_factory=list)
    quality_grade: str = "Not Graded"
    is_certified: bool = False
    certification_details: Optional[str] = None
    pickup_location: Optional[str] = None
    delivery_available: bool = False
    delivery_radius: float = 0
    delivery_charge: float = 0
    expires_at: Optional[str] = None


class ListingUpdate(ApiModel):
    category: Optional[str] = None
    product_name: Optional[str] = None
    description: Optional[str] = None
    quantity_available: Optional[float] = None
    unit: Optional[str] = None
    price_per_unit: Optional[float] = None
    images: Optional[List[str]] = None
    status: Optional[str] = None
    quality_grade: Optional[str] = None
    is_certified: Optional[bool] = None
    certification_details: Optional[str] = None
    pickup_location: Optional[str] = None
    delivery_available: Optional[bool] = None
    delivery_radius: Optional[float] = None
    delivery_charge: Optional[float] = None
    expires_at: Optional[str] = None


class ListingResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    data: Listing


class ListingListResponse(ApiModel):
    success: bool = True
    count: int
    data: List[Listing]


class ListingTotals(BaseModel):
    active: int = 0
    sold_out: int = 0
    inactive: int = 0
    total_revenue: float = 0
    total_sold: float = 0


class MyListingsResponse(ApiModel):
    success: bool = True
    count: int
    totals: ListingTotals
    data: List[Listing]


class CategoryStats(ApiModel):
    category: str
    count: int
    avg_price: float
    total_quantity: float
    min_price: float
    max_price: float


class MarketplaceStats(ApiModel):
    categories: List[CategoryStats]
    total_listings: int
    total_sellers: int


class MarketplaceStatsResponse(ApiModel):
    success: bool = True
    data: MarketplaceStats


class SellerContact(ApiModel):
    name: str
    phone: str
    email: str
    location: str


class ProductSummary(ApiModel):
    name: str
    price: float
    unit: str
    available: float


class ContactDetails(ApiModel):
    seller: SellerContact
    product: ProductSummary


class ContactResponse(ApiModel):
    success: bool = True
    message: str
    data: ContactDetails

import json
import math
import sqlite3
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from vermafarm.models import CategoryStats, Listing, ListingTotals, MarketplaceStats
from vermafarm.services.errors import StoreAuthorizationError, StoreNotFoundError, StoreValidationError
from vermafarm.services.sqlite_base import SqliteStore, configured_db_path, utcnow_iso

LISTING_CATEGORIES = ("poultry_waste", "coconut_husk", "dry_leaves", "vermicompost")
LISTING_STATUSES = ("active", "sold_out", "inactive", "pending_approval")
QUALITY_GRADES = ("A", "B", "C", "Not Graded")
UNITS = ("kg", "ton")

SORT_COLUMNS = {
    "createdAt": "created_at",
    "pricePerUnit": "price_per_unit",
    "quantityAvailable": "quantity_available",
    "productName": "product_name",
    "views": "views",
    "totalSold": "total_sold",
    "averageRating": "average_rating",
}

BOOLEAN_COLUMNS = {"is_certified", "delivery_available", "is_active"}
NULLABLE_COLUMNS = {"certification_details", "pickup_location", "expires_at"}


def _is_non_negative(value: Any) -> bool:
    return value is not None and math.isfinite(value) and value >= 0


def _validate_listing_fields(fields: Dict[str, Any]) -> None:
    if "category" in fields and fields["category"] not in LISTING_CATEGORIES:
        raise StoreValidationError("Invalid product category")
    if "product_name" in fields:
        name = (fields["product_name"] or "").strip()
        if not name:
            raise StoreValidationError("Product name is required")
        if len(name) > 100:
            raise StoreValidationError("Product name cannot exceed 100 characters")
        fields["product_name"] = name
    if "description" in fields and len(fields["description"] or "") > 1000:
        raise StoreValidationError("Description cannot exceed 1000 characters")
    if "quantity_available" in fields and not _is_non_negative(fields["quantity_available"]):
        raise StoreValidationError("Quantity must be a non-negative number")
    if "price_per_unit" in fields and not _is_non_negative(fields["price_per_unit"]):
        raise StoreValidationError("Price must be a non-negative number")
    if "unit" in fields and fields["unit"] not in UNITS:
        raise StoreValidationError("Invalid unit. Allowed: kg, ton")
    if "status" in fields and fields["status"] not in LISTING_STATUSES:
        raise StoreValidationError("Invalid listing status")
    if "quality_grade" in fields and fields["quality_grade"] not in QUALITY_GRADES:
        raise StoreValidationError("Invalid quality grade")
    if "certification_details" in fields and len(fields["certification_details"] or "") > 500:
        raise StoreValidationError("Certification details cannot exceed 500 characters")
    for column in ("delivery_radius", "delivery_charge"):
        if column in fields and fields[column] is not None and not _is_non_negative(fields[column]):
            raise StoreValidationError(f"{column} must be a non-negative number")


class MarketplaceStore(SqliteStore):
    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS listings (
                        id TEXT PRIMARY KEY,
                        seller_id TEXT NOT NULL,
                        category TEXT NOT NULL,
                        product_name TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        quantity_available REAL NOT NULL,
                        unit TEXT NOT NULL DEFAULT 'kg',
                        price_per_unit REAL NOT NULL,
                        images_json TEXT NOT NULL DEFAULT '[]',
                        status TEXT NOT NULL DEFAULT 'active',
                        total_sold REAL NOT NULL DEFAULT 0,
                        quality_grade TEXT NOT NULL DEFAULT 'Not Graded',
                        is_certified INTEGER NOT NULL DEFAULT 0,
                        certification_details TEXT,
                        pickup_location TEXT,
                        delivery_available INTEGER NOT NULL DEFAULT 0,
                        delivery_radius REAL NOT NULL DEFAULT 0,
                        delivery_charge REAL NOT NULL DEFAULT 0,
                        views INTEGER NOT NULL DEFAULT 0,
                        inquiries INTEGER NOT NULL DEFAULT 0,
                        average_rating REAL NOT NULL DEFAULT 0,
                        total_reviews INTEGER NOT NULL DEFAULT 0,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        expires_at TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_listings_seller_status ON listings (seller_id, status)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_listings_category_status ON listings (category, status)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_listings_price ON listings (price_per_unit)")
                conn.commit()

    def _row_to_listing(self, row: sqlite3.Row) -> Listing:
        try:
            images = json.loads(row["images_json"] or "[]")
        except json.JSONDecodeError:
            images = []
        return Listing(
            id=row["id"],
            seller_id=row["seller_id"],
            category=row["category"],
            product_name=row["product_name"],
            description=row["description"],
            quantity_available=row["quantity_available"],
            unit=row["unit"],
            price_per_unit=row["price_per_unit"],
            images=images if isinstance(images, list) else [],
            status=row["status"],
            total_sold=row["total_sold"],
            quality_grade=row["quality_grade"],
            is_certified=bool(row["is_certified"]),
            certification_details=row["certification_details"],
            pickup_location=row["pickup_location"],
            delivery_available=bool(row["delivery_available"]),
            delivery_radius=row["delivery_radius"],
            delivery_charge=row["delivery_charge"],
            views=row["views"],
            inquiries=row["inquiries"],
            average_rating=row["average_rating"],
            total_reviews=row["total_reviews"],
            is_active=bool(row["is_active"]),
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _fetch_owned(self, conn: sqlite3.Connection, listing_id: str, actor_user_id: str, action: str) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        if not row:
            raise StoreNotFoundError("Listing not found")
        if row["seller_id"] != actor_user_id:
            raise StoreAuthorizationError(f"Not authorized to {action} this listing")
        return row

    def list_listings(
        self,
        *,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        search: Optional[str] = None,
        sort: str = "-createdAt",
    ) -> List[Listing]:
        descending = sort.startswith("-")
        column = SORT_COLUMNS.get(sort.lstrip("-"))
        if not column:
            raise StoreValidationError(f"Invalid sort value. Allowed: {', '.join(SORT_COLUMNS)}")

        conditions = ["status = 'active'", "is_active = 1"]
        params: List[Any] = []
        if category:
            conditions.append("category = ?")
            params.append(category)
        if min_price is not None:
            conditions.append("price_per_unit >= ?")
            params.append(min_price)
        if max_price is not None:
            conditions.append("price_per_unit <= ?")
            params.append(max_price)
        if search:
            conditions.append("LOWER(product_name) LIKE ?")
            params.append(f"%{search.lower()}%")

        direction = "DESC" if descending else "ASC"
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT * FROM listings WHERE {' AND '.join(conditions)} ORDER BY {column} {direction}, rowid {direction}",
                    params,
                ).fetchall()
        return [self._row_to_listing(row) for row in rows]

    def get_listing(self, listing_id: str, *, count_view: bool = False) -> Listing:
        with self._lock:
            with self._connect() as conn:
                if count_view:
                    conn.execute("UPDATE listings SET views = views + 1 WHERE id = ?", (listing_id,))
                    conn.commit()
                row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        if not row:
            raise StoreNotFoundError("Listing not found")
        return self._row_to_listing(row)

    def record_inquiry(self, listing_id: str) -> Listing:
        with self._lock:
            with self._connect() as conn:
                cursor = conn.execute("UPDATE listings SET inquiries = inquiries + 1 WHERE id = ?", (listing_id,))
                if cursor.rowcount == 0:
                    raise StoreNotFoundError("Listing not found")
                conn.commit()
                row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._row_to_listing(row)

    def create_listing(self, *, seller_id: str, fields: Dict[str, Any]) -> Listing:
        fields = dict(fields)
        for required in ("category", "product_name", "quantity_available", "price_per_unit"):
            if fields.get(required) is None:
                raise StoreValidationError(f"{required} is required")
        _validate_listing_fields(fields)

        listing_id = f"lst_{uuid4().hex[:12]}"
        now = utcnow_iso()
        status = "sold_out" if fields["quantity_available"] == 0 else "active"
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO listings (
                        id, seller_id, category, product_name, description, quantity_available, unit,
                        price_per_unit, images_json, status, quality_grade, is_certified,
                        certification_details, pickup_location, delivery_available, delivery_radius,
                        delivery_charge, expires_at, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        listing_id,
                        seller_id,
                        fields["category"],
                        fields["product_name"],
                        fields.get("description") or "",
                        fields["quantity_available"],
                        fields.get("unit") or "kg",
                        fields["price_per_unit"],
                        json.dumps(fields.get("images") or []),
                        status,
                        fields.get("quality_grade") or "Not Graded",
                        1 if fields.get("is_certified") else 0,
                        fields.get("certification_details"),
                        fields.get("pickup_location"),
                        1 if fields.get("delivery_available") else 0,
                        fields.get("delivery_radius") or 0,
                        fields.get("delivery_charge") or 0,
                        fields.get("expires_at"),
                        now,
                        now,
                    ),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._row_to_listing(row)

    def list_seller_listings(self, seller_id: str, status: Optional[str] = None) -> Tuple[List[Listing], ListingTotals]:
        if status and status not in LISTING_STATUSES:
            raise StoreValidationError("Invalid listing status")
        query = "SELECT * FROM listings WHERE seller_id = ?"
        params: List[Any] = [seller_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(query + " ORDER BY created_at DESC, rowid DESC", params).fetchall()

        listings = [self._row_to_listing(row) for row in rows]
        totals = ListingTotals(
            active=sum(1 for item in listings if item.status == "active"),
            sold_out=sum(1 for item in listings if item.status == "sold_out"),
            inactive=sum(1 for item in listings if item.status == "inactive"),
            total_revenue=sum(item.total_sold * item.price_per_unit for item in listings),
            total_sold=sum(item.total_sold for item in listings),
        )
        return listings, totals

    def update_listing(self, listing_id: str, *, actor_user_id: str, updates: Dict[str, Any]) -> Listing:
        updates = {
            key: value
            for key, value in updates.items()
            if key not in {"id", "seller_id"} and (value is not None or key in NULLABLE_COLUMNS)
        }
        _validate_listing_fields(updates)
        now = utcnow_iso()
        with self._lock:
            with self._connect() as conn:
                row = self._fetch_owned(conn, listing_id, actor_user_id, "update")

                if "quantity_available" in updates:
                    current_status = updates.get("status", row["status"])
                    if updates["quantity_available"] == 0:
                        updates["status"] = "sold_out"
                    elif current_status == "sold_out":
                        updates["status"] = "active"

                columns: Dict[str, Any] = {}
                for key, value in updates.items():
                    if key == "images":
                        columns["images_json"] = json.dumps(value or [])
                    elif key in BOOLEAN_COLUMNS:
                        columns[key] = 1 if value else 0
                    else:
                        columns[key] = value
                columns["updated_at"] = now
                assignments = ", ".join(f"{column} = ?" for column in columns)
                conn.execute(
                    f"UPDATE listings SET {assignments} WHERE id = ?",
                    (*columns.values(), listing_id),
                )
                conn.commit()
                updated = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._row_to_listing(updated)

    def delete_listing(self, listing_id: str, *, actor_user_id: str) -> None:
        with self._lock:
            with self._connect() as conn:
                self._fetch_owned(conn, listing_id, actor_user_id, "delete")
                conn.execute("DELETE FROM listings WHERE id = ?", (listing_id,))
                conn.commit()

    def set_active(self, listing_id: str, *, actor_user_id: str, active: bool) -> Listing:
        with self._lock:
            with self._connect() as conn:
                row = self._fetch_owned(conn, listing_id, actor_user_id, "update")
                if active and row["quantity_available"] == 0:
                    raise StoreValidationError(
                        "Cannot activate listing with zero quantity. Please update quantity first."
                    )
                conn.execute(
                    "UPDATE listings SET status = ?, is_active = ?, updated_at = ? WHERE id = ?",
                    ("active" if active else "inactive", 1 if active else 0, utcnow_iso(), listing_id),
                )
                conn.commit()
                updated = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._row_to_listing(updated)

    def stats(self) -> MarketplaceStats:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT category,
                           COUNT(*) AS count,
                           AVG(price_per_unit) AS avg_price,
                           SUM(quantity_available) AS total_quantity,
                           MIN(price_per_unit) AS min_price,
                           MAX(price_per_unit) AS max_price
                    FROM listings
                    WHERE status = 'active' AND is_active = 1
                    GROUP BY category
                    ORDER BY count DESC, category
                    """
                ).fetchall()
                totals = conn.execute(
                    """
                    SELECT COUNT(*) AS total_listings, COUNT(DISTINCT seller_id) AS total_sellers
                    FROM listings
                    WHERE status = 'active' AND is_active = 1
                    """
                ).fetchone()
        return MarketplaceStats(
            categories=[
                CategoryStats(
                    category=row["category"],
                    count=row["count"],
                    avg_price=row["avg_price"],
                    total_quantity=row["total_quantity"],
                    min_price=row["min_price"],
                    max_price=row["max_price"],
                )
                for row in rows
            ],
            total_listings=totals["total_listings"],
            total_sellers=totals["total_sellers"],
        )


marketplace_store = MarketplaceStore(db_path=configured_db_path())

import math
import sqlite3
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from vermafarm.models import InventoryItem
from vermafarm.services.errors import StoreAuthorizationError, StoreNotFoundError, StoreValidationError
from vermafarm.services.sqlite_base import SqliteStore, configured_db_path, utcnow_iso

# type -> (display name, icon); the order is the seeding order for new farmers.
INVENTORY_TYPES: Dict[str, Tuple[str, str]] = {
    "poultry_waste": ("Poultry Waste", "🐔"),
    "coconut_husk": ("Coconut Husk", "🥥"),
    "dry_leaves": ("Dry Leaves", "🍂"),
    "vermicompost": ("Vermicompost", "🌱"),
}
NOTES_MAX_LENGTH = 500


class InventoryStore(SqliteStore):
    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS inventory_items (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        type TEXT NOT NULL,
                        name TEXT NOT NULL,
                        quantity REAL NOT NULL DEFAULT 0,
                        unit TEXT NOT NULL DEFAULT 'kg',
                        icon TEXT NOT NULL DEFAULT '📦',
                        notes TEXT,
                        last_updated TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute("CREATE INDEX IF NOT EXISTS idx_inventory_user_type ON inventory_items (user_id, type)")
                conn.commit()

    def _row_to_item(self, row: sqlite3.Row) -> InventoryItem:
        return InventoryItem(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            name=row["name"],
            quantity=row["quantity"],
            unit=row["unit"],
            icon=row["icon"],
            notes=row["notes"],
            last_updated=row["last_updated"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def seed_defaults(self, user_id: str) -> List[InventoryItem]:
        now = utcnow_iso()
        with self._lock:
            with self._connect() as conn:
                for item_type, (name, icon) in INVENTORY_TYPES.items():
                    conn.execute(
                        """
                        INSERT INTO inventory_items (id, user_id, type, name, quantity, unit, icon, last_updated, created_at, updated_at)
                        VALUES (?, ?, ?, ?, 0, 'kg', ?, ?, ?, ?)
                        """,
                        (f"inv_{uuid4().hex[:12]}", user_id, item_type, name, icon, now, now, now),
                    )
                conn.commit()
        return self.list_items(user_id)

    def list_items(self, user_id: str) -> List[InventoryItem]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM inventory_items WHERE user_id = ? ORDER BY rowid",
                    (user_id,),
                ).fetchall()
        return [self._row_to_item(row) for row in rows]

    def _validate_quantity(self, quantity: Any) -> float:
        if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
            raise StoreValidationError("Quantity must be a number")
        if not math.isfinite(quantity):
            raise StoreValidationError("Quantity must be a number")
        if quantity < 0:
            raise StoreValidationError("Quantity cannot be negative")
        return float(quantity)

    def update_item(
        self,
        item_id: str,
        *,
        actor_user_id: str,
        quantity: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> InventoryItem:
        if quantity is not None:
            quantity = self._validate_quantity(quantity)
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise StoreValidationError("Notes cannot exceed 500 characters")

        now = utcnow_iso()
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)).fetchone()
                if not row:
                    raise StoreNotFoundError("Inventory item not found")
                if row["user_id"] != actor_user_id:
                    raise StoreAuthorizationError("Not authorized to update this inventory")

                next_quantity = row["quantity"] if quantity is None else quantity
                next_notes = row["notes"] if notes is None else notes
                last_updated = now if next_quantity != row["quantity"] else row["last_updated"]
                conn.execute(
                    """
                    UPDATE inventory_items
                    SET quantity = ?, notes = ?, last_updated = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (next_quantity, next_notes, last_updated, now, item_id),
                )
                conn.commit()
                updated = conn.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(updated)

    def bulk_update(self, *, actor_user_id: str, updates: Any) -> List[InventoryItem]:
        if not isinstance(updates, list):
            raise StoreValidationError("Updates must be an array")
        parsed: List[Tuple[str, float]] = []
        for entry in updates:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise StoreValidationError("Each update needs an id and a quantity")
            parsed.append((str(entry["id"]), self._validate_quantity(entry.get("quantity"))))

        now = utcnow_iso()
        updated_ids: List[str] = []
        with self._lock:
            with self._connect() as conn:
                for item_id, quantity in parsed:
                    cursor = conn.execute(
                        """
                        UPDATE inventory_items
                        SET quantity = ?,
                            last_updated = CASE WHEN quantity != ? THEN ? ELSE last_updated END,
                            updated_at = ?
                        WHERE id = ? AND user_id = ?
                        """,
                        (quantity, quantity, now, now, item_id, actor_user_id),
                    )
                    if cursor.rowcount:
                        updated_ids.append(item_id)
                conn.commit()
                rows = [
                    conn.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)).fetchone()
                    for item_id in updated_ids
                ]
        return [self._row_to_item(row) for row in rows]


inventory_store = InventoryStore(db_path=configured_db_path())

import logging
import re
import sqlite3
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from passlib.context import CryptContext

from vermafarm.models import BuyerStats, FarmerStats, LandownerStats, PartySummary, UserProfile
from vermafarm.services.errors import (
    StoreAuthenticationError,
    StoreAuthorizationError,
    StoreConflictError,
    StoreNotFoundError,
    StoreValidationError,
)
from vermafarm.services.events import (
    RequestAccepted,
    RequestCancelled,
    RequestCompleted,
    RequestCreated,
    RequestEvent,
)
from vermafarm.services.sqlite_base import SqliteStore, configured_db_path, utcnow_iso

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

USER_TYPES = ("farmer", "landowner", "buyer")
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
EMAIL_PATTERN = re.compile(r"^\w+([\.-]?\w+)*@\w+([\.-]?\w+)*(\.\w{2,3})+$")
PHONE_PATTERN = re.compile(r"^[\+]?[(]?[0-9]{3}[)]?[-\s\.]?[0-9]{3}[-\s\.]?[0-9]{4,6}$")

STAT_DEFAULTS: Dict[str, Dict[str, float]] = {
    "farmer": {"total_inventory": 0, "total_sales": 0, "active_requests": 0, "revenue": 0},
    "landowner": {
        "active_projects": 0,
        "completed_projects": 0,
        "service_revenue": 0,
        "product_revenue": 0,
        "service_charge_percent": 15,
    },
    "buyer": {"total_purchases": 0, "spent": 0, "active_orders": 0},
}
STAT_MODELS = {"farmer": FarmerStats, "landowner": LandownerStats, "buyer": BuyerStats}


class AccountStore(SqliteStore):
    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS users (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        email TEXT NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        phone TEXT NOT NULL,
                        user_type TEXT NOT NULL,
                        location TEXT NOT NULL,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        is_verified INTEGER NOT NULL DEFAULT 0,
                        avatar TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        last_login TEXT
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_stats (
                        user_id TEXT NOT NULL,
                        stat_key TEXT NOT NULL,
                        value REAL NOT NULL DEFAULT 0,
                        PRIMARY KEY (user_id, stat_key)
                    )
                    """
                )
                conn.commit()

    def _load_stats(self, conn: sqlite3.Connection, user_id: str, user_type: str):
        values = dict(STAT_DEFAULTS[user_type])
        rows = conn.execute("SELECT stat_key, value FROM user_stats WHERE user_id = ?", (user_id,)).fetchall()
        for row in rows:
            if row["stat_key"] in values:
                values[row["stat_key"]] = row["value"]
        return STAT_MODELS[user_type](**values)

    def _row_to_profile(self, conn: sqlite3.Connection, row: sqlite3.Row) -> UserProfile:
        return UserProfile(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            user_type=row["user_type"],
            phone=row["phone"],
            location=row["location"],
            stats=self._load_stats(conn, row["id"], row["user_type"]),
            is_active=bool(row["is_active"]),
            is_verified=bool(row["is_verified"]),
            avatar=row["avatar"],
            created_at=row["created_at"],
            last_login=row["last_login"],
        )

    def _validate_name(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise StoreValidationError("Please provide a name")
        if len(name) > NAME_MAX_LENGTH:
            raise StoreValidationError("Name cannot be more than 50 characters")
        return name

    def _validate_phone(self, phone: str) -> str:
        phone = (phone or "").strip()
        if not phone:
            raise StoreValidationError("Please provide a phone number")
        if not PHONE_PATTERN.match(phone):
            raise StoreValidationError("Please provide a valid phone number")
        return phone

    def _validate_location(self, location: str) -> str:
        location = (location or "").strip()
        if not location:
            raise StoreValidationError("Please provide your location")
        return location

    def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        phone: str,
        user_type: str,
        location: str,
    ) -> UserProfile:
        name = self._validate_name(name)
        email = (email or "").strip().lower()
        if not email:
            raise StoreValidationError("Please provide an email")
        if not EMAIL_PATTERN.match(email):
            raise StoreValidationError("Please provide a valid email")
        if not password:
            raise StoreValidationError("Please provide a password")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise StoreValidationError("Password must be at least 6 characters")
        phone = self._validate_phone(phone)
        if user_type not in USER_TYPES:
            raise StoreValidationError("User type must be either farmer, landowner, or buyer")
        location = self._validate_location(location)

        user_id = f"usr_{uuid4().hex[:12]}"
        now = utcnow_iso()
        password_hash = pwd_context.hash(password)
        with self._lock:
            with self._connect() as conn:
                existing = conn.execute("SELECT id FROM users WHERE email = ?", (email,)).fetchone()
                if existing:
                    raise StoreConflictError("User with this email already exists")
                conn.execute(
                    """
                    INSERT INTO users (id, name, email, password_hash, phone, user_type, location, created_at, updated_at, last_login)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, name, email, password_hash, phone, user_type, location, now, now, now),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                profile = self._row_to_profile(conn, row)
        logger.info("Registered %s account %s", user_type, user_id)
        return profile

    def authenticate(self, *, email: Optional[str], password: Optional[str]) -> UserProfile:
        if not email or not password:
            raise StoreValidationError("Please provide email and password")
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM users WHERE email = ?", (email.strip().lower(),)).fetchone()
                if not row or not pwd_context.verify(password, row["password_hash"]):
                    raise StoreAuthenticationError("Invalid credentials")
                if not row["is_active"]:
                    raise StoreAuthorizationError("Account is deactivated. Please contact support.")
                conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (utcnow_iso(), row["id"]))
                conn.commit()
                row = conn.execute("SELECT * FROM users WHERE id = ?", (row["id"],)).fetchone()
                return self._row_to_profile(conn, row)

    def get_user(self, user_id: str) -> UserProfile:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                if not row:
                    raise StoreNotFoundError("User not found")
                return self._row_to_profile(conn, row)

    def get_party_summaries(self, user_ids: Iterable[str]) -> Dict[str, PartySummary]:
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT id, name, phone, location FROM users WHERE id IN ({placeholders})",
                    ids,
                ).fetchall()
        return {
            row["id"]: PartySummary(id=row["id"], name=row["name"], phone=row["phone"], location=row["location"])
            for row in rows
        }

    def update_details(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        location: Optional[str] = None,
        service_charge_percent: Optional[float] = None,
    ) -> UserProfile:
        updates: Dict[str, str] = {}
        if name is not None:
            updates["name"] = self._validate_name(name)
        if phone is not None:
            updates["phone"] = self._validate_phone(phone)
        if location is not None:
            updates["location"] = self._validate_location(location)

        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                if not row:
                    raise StoreNotFoundError("User not found")
                # Only landowners carry a default service charge; other types ignore it.
                if row["user_type"] == "landowner" and service_charge_percent:
                    if not 1 <= service_charge_percent <= 50:
                        raise StoreValidationError("Service charge must be between 1% and 50%")
                    self._set_stat(conn, user_id, "service_charge_percent", service_charge_percent)
                if updates:
                    assignments = ", ".join(f"{column} = ?" for column in updates)
                    conn.execute(
                        f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                        (*updates.values(), utcnow_iso(), user_id),
                    )
                conn.commit()
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                return self._row_to_profile(conn, row)

    def update_password(self, user_id: str, *, current_password: str, new_password: str) -> UserProfile:
        if len(new_password or "") < PASSWORD_MIN_LENGTH:
            raise StoreValidationError("Password must be at least 6 characters")
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                if not row:
                    raise StoreNotFoundError("User not found")
                if not current_password or not pwd_context.verify(current_password, row["password_hash"]):
                    raise StoreAuthenticationError("Current password is incorrect")
                conn.execute(
                    "UPDATE users SET password_hash = ?, updated_at = ? WHERE id = ?",
                    (pwd_context.hash(new_password), utcnow_iso(), user_id),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
                return self._row_to_profile(conn, row)

    def _set_stat(self, conn: sqlite3.Connection, user_id: str, stat_key: str, value: float) -> None:
        conn.execute(
            """
            INSERT INTO user_stats (user_id, stat_key, value) VALUES (?, ?, ?)
            ON CONFLICT(user_id, stat_key) DO UPDATE SET value = excluded.value
            """,
            (user_id, stat_key, value),
        )

    def set_stats(self, user_id: str, values: Dict[str, float]) -> None:
        with self._lock:
            with self._connect() as conn:
                for stat_key, value in values.items():
                    self._set_stat(conn, user_id, stat_key, value)
                conn.commit()

    def increment_stats(self, user_id: str, deltas: Dict[str, float]) -> None:
        with self._lock:
            with self._connect() as conn:
                for stat_key, delta in deltas.items():
                    conn.execute(
                        """
                        INSERT INTO user_stats (user_id, stat_key, value) VALUES (?, ?, ?)
                        ON CONFLICT(user_id, stat_key) DO UPDATE SET value = value + excluded.value
                        """,
                        (user_id, stat_key, delta),
                    )
                conn.commit()

    def apply_request_event(self, event: RequestEvent) -> None:
        if isinstance(event, RequestCreated):
            self.increment_stats(event.farmer_id, {"active_requests": 1})
        elif isinstance(event, RequestAccepted):
            self.increment_stats(event.landowner_id, {"active_projects": 1})
        elif isinstance(event, RequestCompleted):
            self.increment_stats(
                event.landowner_id,
                {
                    "completed_projects": 1,
                    "active_projects": -1,
                    "service_revenue": event.service_charge,
                },
            )
            self.increment_stats(
                event.farmer_id,
                {
                    "active_requests": -1,
                    "revenue": event.farmer_earnings,
                },
            )
        elif isinstance(event, RequestCancelled):
            self.increment_stats(event.farmer_id, {"active_requests": -1})
        else:
            raise TypeError(f"Unsupported request event: {type(event).__name__}")

    def apply_request_events(self, events: List[RequestEvent]) -> None:
        for event in events:
            self.apply_request_event(event)


account_store = AccountStore(db_path=configured_db_path())

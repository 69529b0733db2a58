import json
import logging
import math
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from uuid import uuid4

from vermafarm.models import ServiceRequest
from vermafarm.services.errors import (
    StoreAuthorizationError,
    StoreInvalidStateError,
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
from vermafarm.services.settlement import Settlement, settle_request
from vermafarm.services.sqlite_base import SqliteStore, configured_db_path, utcnow_iso

logger = logging.getLogger(__name__)

MATERIAL_TYPES = ("Poultry Waste", "Coconut Husk", "Dry Leaves", "Mixed Materials")
UNITS = ("kg", "ton")
REVENUE_PER_UNIT = 20
MIN_QUANTITY = 1
MIN_SERVICE_CHARGE_PERCENT = 5
MAX_SERVICE_CHARGE_PERCENT = 50
DEFAULT_SERVICE_CHARGE_PERCENT = 15
NOTES_MAX_LENGTH = 1000

PARTICIPANT_FIELDS = {
    "farmer": "farmer_id",
    "landowner": "landowner_id",
}


@dataclass(frozen=True)
class Transition:
    role: str
    source: str
    target: str
    invalid_state_message: str
    # Column the caller must already be bound to.
    binding_field: Optional[str] = None
    # Column bound to the caller by this transition; must still be NULL.
    binds_field: Optional[str] = None
    timestamp_field: Optional[str] = None


TRANSITIONS: Dict[str, Transition] = {
    "accept": Transition(
        role="landowner",
        source="pending",
        target="accepted",
        invalid_state_message="This request is not available",
        binds_field="landowner_id",
        timestamp_field="accepted_at",
    ),
    "start": Transition(
        role="landowner",
        source="accepted",
        target="in_progress",
        invalid_state_message="Request must be accepted first",
        binding_field="landowner_id",
        timestamp_field="started_at",
    ),
    "complete": Transition(
        role="landowner",
        source="in_progress",
        target="completed",
        invalid_state_message="Project must be in progress",
        binding_field="landowner_id",
        timestamp_field="completed_at",
    ),
    "cancel": Transition(
        role="farmer",
        source="pending",
        target="cancelled",
        invalid_state_message="Can only cancel pending requests",
        binding_field="farmer_id",
    ),
}


@dataclass
class LifecycleResult:
    request: ServiceRequest
    events: List[RequestEvent] = field(default_factory=list)
    settlement: Optional[Settlement] = None


class ServiceRequestStore(SqliteStore):
    """Service-request lifecycle: creation, the transition table and read queries."""

    def _init_db(self) -> None:
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS service_requests (
                        id TEXT PRIMARY KEY,
                        farmer_id TEXT NOT NULL,
                        landowner_id TEXT,
                        material_type TEXT NOT NULL,
                        quantity REAL NOT NULL,
                        unit TEXT NOT NULL DEFAULT 'kg',
                        service_charge_percent REAL NOT NULL DEFAULT 15,
                        estimated_revenue REAL NOT NULL DEFAULT 0,
                        actual_revenue REAL NOT NULL DEFAULT 0,
                        status TEXT NOT NULL DEFAULT 'pending',
                        notes TEXT,
                        accepted_at TEXT,
                        started_at TEXT,
                        completed_at TEXT,
                        quality_rating INTEGER,
                        farmer_review TEXT,
                        landowner_review TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sr_farmer_status ON service_requests (farmer_id, status)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sr_landowner_status ON service_requests (landowner_id, status)"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_sr_status_created ON service_requests (status, created_at)"
                )
                conn.commit()

    def _row_to_request(self, row: sqlite3.Row) -> ServiceRequest:
        return ServiceRequest(
            id=row["id"],
            farmer_id=row["farmer_id"],
            landowner_id=row["landowner_id"],
            material_type=row["material_type"],
            quantity=row["quantity"],
            unit=row["unit"],
            service_charge_percent=row["service_charge_percent"],
            estimated_revenue=row["estimated_revenue"],
            actual_revenue=row["actual_revenue"],
            status=row["status"],
            notes=row["notes"],
            accepted_at=row["accepted_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            quality_rating=row["quality_rating"],
            farmer_review=row["farmer_review"],
            landowner_review=row["landowner_review"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _log_transition(self, request_id: str, action: str, from_status: Optional[str], to_status: str, actor_user_id: str) -> None:
        payload = {
            "request_id": request_id,
            "action": action,
            "from_status": from_status,
            "to_status": to_status,
            "actor_user_id": actor_user_id,
        }
        logger.info("request_transition=%s", json.dumps(payload, sort_keys=True))

    def _validate_create(
        self,
        material_type: str,
        quantity: float,
        unit: str,
        service_charge_percent: float,
        estimated_revenue: Optional[float],
        notes: Optional[str],
    ) -> None:
        if material_type not in MATERIAL_TYPES:
            raise StoreValidationError("Invalid material type")
        if quantity is None or not math.isfinite(quantity) or quantity < MIN_QUANTITY:
            raise StoreValidationError("Quantity must be at least 1 kg")
        if unit not in UNITS:
            raise StoreValidationError("Invalid unit. Allowed: kg, ton")
        if not math.isfinite(service_charge_percent):
            raise StoreValidationError("Service charge must be a number")
        if service_charge_percent < MIN_SERVICE_CHARGE_PERCENT:
            raise StoreValidationError("Service charge must be at least 5%")
        if service_charge_percent > MAX_SERVICE_CHARGE_PERCENT:
            raise StoreValidationError("Service charge cannot exceed 50%")
        if estimated_revenue is not None and not math.isfinite(estimated_revenue):
            raise StoreValidationError("Estimated revenue must be a number")
        if estimated_revenue is not None and estimated_revenue < 0:
            raise StoreValidationError("Estimated revenue cannot be negative")
        if notes and len(notes) > NOTES_MAX_LENGTH:
            raise StoreValidationError("Notes cannot exceed 1000 characters")

    def create_request(
        self,
        *,
        farmer_id: str,
        material_type: str,
        quantity: float,
        unit: str = "kg",
        service_charge_percent: Optional[float] = None,
        estimated_revenue: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> LifecycleResult:
        charge_percent = DEFAULT_SERVICE_CHARGE_PERCENT if service_charge_percent is None else service_charge_percent
        self._validate_create(material_type, quantity, unit, charge_percent, estimated_revenue, notes)
        if not estimated_revenue:
            estimated_revenue = quantity * REVENUE_PER_UNIT

        request_id = f"sr_{uuid4().hex[:12]}"
        now = utcnow_iso()
        with self._lock:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO service_requests (
                        id, farmer_id, landowner_id, material_type, quantity, unit,
                        service_charge_percent, estimated_revenue, actual_revenue,
                        status, notes, created_at, updated_at
                    )
                    VALUES (?, ?, NULL, ?, ?, ?, ?, ?, 0, 'pending', ?, ?, ?)
                    """,
                    (
                        request_id,
                        farmer_id,
                        material_type,
                        quantity,
                        unit,
                        charge_percent,
                        estimated_revenue,
                        notes,
                        now,
                        now,
                    ),
                )
                conn.commit()
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()

        self._log_transition(request_id, "create", None, "pending", farmer_id)
        return LifecycleResult(
            request=self._row_to_request(row),
            events=[RequestCreated(request_id=request_id, farmer_id=farmer_id)],
        )

    def _authorize(self, row: sqlite3.Row, transition: Transition, actor_user_id: str, actor_user_type: str) -> None:
        if actor_user_type != transition.role:
            raise StoreAuthorizationError(f"User type {actor_user_type} is not authorized to access this route")
        if transition.binding_field and row[transition.binding_field] != actor_user_id:
            raise StoreAuthorizationError("Not authorized")

    def _apply_transition(
        self,
        action: str,
        request_id: str,
        actor_user_id: str,
        actor_user_type: str,
        extra_updates: Optional[Dict[str, Any]] = None,
    ) -> ServiceRequest:
        transition = TRANSITIONS[action]
        now = utcnow_iso()

        assignments = ["status = ?", "updated_at = ?"]
        params: List[Any] = [transition.target, now]
        if transition.binds_field:
            assignments.append(f"{transition.binds_field} = ?")
            params.append(actor_user_id)
        if transition.timestamp_field:
            assignments.append(f"{transition.timestamp_field} = COALESCE({transition.timestamp_field}, ?)")
            params.append(now)
        for column, value in (extra_updates or {}).items():
            assignments.append(f"{column} = ?")
            params.append(value)

        conditions = ["id = ?", "status = ?"]
        params.extend([request_id, transition.source])
        if transition.binding_field:
            conditions.append(f"{transition.binding_field} = ?")
            params.append(actor_user_id)
        if transition.binds_field:
            conditions.append(f"{transition.binds_field} IS NULL")

        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()
                if not row:
                    raise StoreNotFoundError("Service request not found")
                self._authorize(row, transition, actor_user_id, actor_user_type)
                if row["status"] != transition.source:
                    raise StoreInvalidStateError(transition.invalid_state_message)

                cursor = conn.execute(
                    f"UPDATE service_requests SET {', '.join(assignments)} WHERE {' AND '.join(conditions)}",
                    params,
                )
                if cursor.rowcount == 0:
                    # Another writer moved the record between the read and this update.
                    raise StoreInvalidStateError(transition.invalid_state_message)
                conn.commit()
                updated = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()

        self._log_transition(request_id, action, transition.source, transition.target, actor_user_id)
        return self._row_to_request(updated)

    def accept_request(self, request_id: str, *, actor_user_id: str, actor_user_type: str) -> LifecycleResult:
        request = self._apply_transition("accept", request_id, actor_user_id, actor_user_type)
        return LifecycleResult(
            request=request,
            events=[RequestAccepted(request_id=request.id, landowner_id=actor_user_id)],
        )

    def start_request(self, request_id: str, *, actor_user_id: str, actor_user_type: str) -> LifecycleResult:
        return LifecycleResult(request=self._apply_transition("start", request_id, actor_user_id, actor_user_type))

    def complete_request(
        self,
        request_id: str,
        *,
        actor_user_id: str,
        actor_user_type: str,
        actual_revenue: Optional[float] = None,
    ) -> LifecycleResult:
        if actual_revenue is not None and not math.isfinite(actual_revenue):
            raise StoreValidationError("Actual revenue must be a number")
        if actual_revenue is not None and actual_revenue < 0:
            raise StoreValidationError("Actual revenue cannot be negative")
        extra = {"actual_revenue": actual_revenue} if actual_revenue else None
        request = self._apply_transition("complete", request_id, actor_user_id, actor_user_type, extra)
        settlement = settle_request(request)
        return LifecycleResult(
            request=request,
            settlement=settlement,
            events=[
                RequestCompleted(
                    request_id=request.id,
                    farmer_id=request.farmer_id,
                    landowner_id=actor_user_id,
                    farmer_earnings=settlement.farmer_earnings,
                    service_charge=settlement.service_charge,
                )
            ],
        )

    def cancel_request(self, request_id: str, *, actor_user_id: str, actor_user_type: str) -> LifecycleResult:
        request = self._apply_transition("cancel", request_id, actor_user_id, actor_user_type)
        return LifecycleResult(
            request=request,
            events=[RequestCancelled(request_id=request.id, farmer_id=request.farmer_id)],
        )

    def get_request(self, request_id: str, *, actor_user_id: str) -> ServiceRequest:
        with self._lock:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()
        if not row:
            raise StoreNotFoundError("Service request not found")
        if actor_user_id not in {row["farmer_id"], row["landowner_id"]}:
            raise StoreAuthorizationError("Not authorized to view this request")
        return self._row_to_request(row)

    def list_available(self) -> List[ServiceRequest]:
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM service_requests
                    WHERE landowner_id IS NULL AND status = 'pending'
                    ORDER BY created_at DESC, rowid DESC
                    """
                ).fetchall()
        return [self._row_to_request(row) for row in rows]

    def list_for_participant(self, user_id: str, user_type: str) -> List[ServiceRequest]:
        column = PARTICIPANT_FIELDS.get(user_type)
        if not column:
            raise StoreAuthorizationError("Only farmers and landowners can access service requests")
        with self._lock:
            with self._connect() as conn:
                rows = conn.execute(
                    f"SELECT * FROM service_requests WHERE {column} = ? ORDER BY created_at DESC, rowid DESC",
                    (user_id,),
                ).fetchall()
        return [self._row_to_request(row) for row in rows]


service_request_store = ServiceRequestStore(db_path=configured_db_path())

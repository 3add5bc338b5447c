"""
Audit Trail Module

Append-only log of report registrations and payment decisions. Each event
stores the SHA-256 hash of its predecessor, so editing or removing a stored
event breaks the chain and is reported by verify_integrity().
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import hashlib
import json
import threading
import uuid

from .storage import StorageInterface


class AuditEventType(Enum):
    """Types of audit events"""
    REPORT_REGISTERED = "report_registered"
    PAYMENT_ACCEPTED = "payment_accepted"
    PAYMENT_REJECTED = "payment_rejected"
    LEDGER_INCONSISTENCY = "ledger_inconsistency"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class AuditEvent:
    """One link of the audit chain"""
    id: str
    created_at: datetime
    event_type: AuditEventType
    entity_type: str                    # "report"
    entity_id: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    previous_hash: str = ""             # Empty for the first event
    current_hash: str = ""

    def __post_init__(self):
        self.metadata = _jsonable(self.metadata or {})

    def calculate_hash(self) -> str:
        """SHA-256 over every field except current_hash"""
        payload = json.dumps({
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'metadata': self.metadata,
            'user_id': self.user_id,
            'previous_hash': self.previous_hash,
        }, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'metadata': self.metadata,
            'user_id': self.user_id,
            'previous_hash': self.previous_hash,
            'current_hash': self.current_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            event_type=AuditEventType(data['event_type']),
            entity_type=data['entity_type'],
            entity_id=data['entity_id'],
            metadata=data.get('metadata') or {},
            user_id=data.get('user_id'),
            previous_hash=data.get('previous_hash', ""),
            current_hash=data.get('current_hash', ""),
        )


class AuditTrail:
    """
    Hash-chained audit trail stored in one storage table.

    Events are read back in insertion order, which is also chain order.
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name
        self._lock = threading.Lock()

    def _events(self) -> List[AuditEvent]:
        return [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def _last_hash(self) -> str:
        stored = self.storage.load_all(self.table_name)
        return stored[-1].get('current_hash', "") if stored else ""

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        """
        Append an event to the chain

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Event-specific data (made JSON-safe)
            user_id: User who initiated the action

        Returns:
            The stored AuditEvent
        """
        with self._lock:
            # Chain tail comes from storage, never from a cached value
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=datetime.now(timezone.utc),
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata or {},
                user_id=user_id,
                previous_hash=self._last_hash()
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def get_events_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """Events for one entity, oldest first; `limit` keeps the most recent"""
        events = [
            AuditEvent.from_dict(data)
            for data in self.storage.find(self.table_name, {
                'entity_type': entity_type,
                'entity_id': entity_id
            })
        ]
        if limit:
            events = events[-limit:]
        return events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Re-hash every event and check each link of the chain

        Returns:
            {'valid', 'total_events', 'hash_errors', 'chain_breaks'}
        """
        events = self._events()
        hash_errors = []
        chain_breaks = []

        expected_previous = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                hash_errors.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != expected_previous:
                chain_breaks.append({
                    'event_id': event.id,
                    'position': position,
                    'expected_previous_hash': expected_previous,
                    'actual_previous_hash': event.previous_hash
                })
            expected_previous = event.current_hash

        return {
            'valid': not hash_errors and not chain_breaks,
            'total_events': len(events),
            'hash_errors': hash_errors,
            'chain_breaks': chain_breaks
        }

    def count_events(self) -> int:
        return self.storage.count(self.table_name)

"""Data models for room booking ingestion and derived operations rows."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


@dataclass
class Resource:
    """One resource line item attached to a reservation."""
    item_name: str
    quantity: Optional[int] = None
    instruction: Optional[str] = None


@dataclass
class Venue:
    """Known room from the venue directory."""
    id: int
    name: str
    spelling: Optional[str] = None


@dataclass
class Faculty:
    """Faculty directory entry keyed by the booking system's display name."""
    id: int
    twentyfivelive_name: str


@dataclass
class Series:
    """Recurring booking header that events belong to."""
    id: int
    series_name: str
    series_type: str
    total_events: int
    first_date: str
    last_date: str


@dataclass
class Event:
    """One concrete room occurrence."""
    id: int
    date: str
    start_time: str
    end_time: str
    event_name: str
    event_type: Optional[str]
    room_name: str
    series_id: int
    reservation_id: int
    resources: List[Resource] = field(default_factory=list)
    venue_id: Optional[int] = None
    series_position: Optional[int] = None
    transform: Optional[str] = None
    organization: Optional[str] = None
    instructor_names: Optional[List[str]] = None
    lecture_title: Optional[str] = None
    updated_at: int = 0


@dataclass
class HybridConfig:
    event: int
    meeting_id: Optional[int]
    meeting_link: Optional[str]
    instructions: Optional[str]


@dataclass
class AVConfig:
    event: int
    handhelds: int = 0
    lapels: int = 0
    left_source: Optional[str] = None
    right_source: Optional[str] = None
    center_source: Optional[str] = None
    left_device: Optional[str] = None
    right_device: Optional[str] = None
    center_device: Optional[str] = None
    clicker: bool = True


@dataclass
class OtherHardware:
    event: int
    other_hardware_dict: str
    quantity: int
    instructions: Optional[str]


@dataclass
class Recording:
    event: int
    type: str
    instructions: Optional[str]


@dataclass
class EnrichedEvent:
    """Event plus the sub-records derived from its resources."""
    event: Event
    av_config: AVConfig
    other_hardware: List[OtherHardware] = field(default_factory=list)
    hybrid: Optional[HybridConfig] = None
    recording: Optional[Recording] = None
    first_lecture: bool = False


@dataclass
class Action:
    """Derived unit of operator work. Operator-owned fields keep their defaults here."""
    id: int
    type: str
    sub_type: Optional[str]
    start_time: str
    event: int
    source: str = '25Live'
    status: str = 'pending'


@dataclass
class QcItem:
    """Checklist entry keyed by (action, qc_item_dict)."""
    action: int
    qc_item_dict: int


@dataclass
class ResourceEvent:
    event_id: int
    resource_id: str
    quantity: int
    instructions: Optional[str]


@dataclass
class SeriesFaculty:
    series: int
    faculty: int


@dataclass
class SyncBatch:
    """Everything one run derives for a target date, ready to reconcile."""
    target_date: str
    series: List[Series] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    enriched_events: List[EnrichedEvent] = field(default_factory=list)
    actions: List[Action] = field(default_factory=list)
    qc_items: List[QcItem] = field(default_factory=list)
    resource_events: List[ResourceEvent] = field(default_factory=list)
    resource_names: List[str] = field(default_factory=list)
    series_faculty: List[SeriesFaculty] = field(default_factory=list)
    protected_event_ids: Set[int] = field(default_factory=set)


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int
    updated: int
    deleted: int
    errors: list[str]
    tables: Dict[str, Dict[str, int]] = field(default_factory=dict)

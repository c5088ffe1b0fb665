from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _LenientEnum(str, Enum):
    @classmethod
    def parse(cls, value) -> Optional["_LenientEnum"]:
        """Case- and space-insensitive lookup. Unknown values give None."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace(" ", "")
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class Status(_LenientEnum):
    NEW = "New"
    IN_PROGRESS = "InProgress"
    DONE = "Done"


class Priority(_LenientEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Repeat(_LenientEnum):
    NONE = "none"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


class ListContext(str, Enum):
    """Which numbered list an owner was last shown in chat."""
    ALL = "all"
    TODAY = "today"


class Owner(BaseModel):
    id: str
    phone_key: str  # E.164-like, always starts with "+"
    name: Optional[str] = None
    created_at: datetime
    last_active_at: datetime
    list_context: ListContext = ListContext.ALL


class Task(BaseModel):
    id: str
    owner_id: str
    description: str
    status: Status = Status.NEW
    priority: Priority = Priority.MEDIUM
    due_date: datetime  # timezone-aware
    course: Optional[str] = None
    repeat: Repeat = Repeat.NONE
    created_at: datetime
    next_task: Optional["Task"] = None  # set by mark_done when a repeat rolls over


class TaskFields(BaseModel):
    """Loose task attributes, as typed by a user or posted by the web client.

    Enum fields stay plain strings here; unknown values are dropped when the
    draft is validated. `due` is any expression the date resolver accepts.
    """
    description: Optional[str] = None
    due: Optional[str] = None
    priority: Optional[str] = None
    course: Optional[str] = None
    repeat: Optional[str] = None
    status: Optional[str] = None


class TaskDraft(BaseModel):
    """A fully resolved task that has not been stored yet."""
    model_config = ConfigDict(frozen=True)

    owner_id: str
    description: str
    due_date: datetime
    status: Status = Status.NEW
    priority: Priority = Priority.MEDIUM
    course: Optional[str] = None
    repeat: Repeat = Repeat.NONE


class TaskQuery(BaseModel):
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    course: Optional[str] = None
    start: Optional[datetime] = None  # inclusive
    end: Optional[datetime] = None    # inclusive
    exclude_status: Optional[Status] = None
    sort: str = "due_date"
    order: str = "asc"
    limit: int = 50
    skip: int = 0


class TaskPage(BaseModel):
    tasks: list[Task]
    total: int
    has_more: bool


class IncomingMessage(BaseModel):
    """Webhook payload, using the messaging provider's field names."""
    model_config = ConfigDict(populate_by_name=True)

    body: str = Field("", alias="Body")
    sender: str = Field("", alias="From")
    profile_name: Optional[str] = Field(None, alias="ProfileName")

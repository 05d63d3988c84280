"""
Shared Enums and Pydantic Schemas
=================================

Enums are plain `str` enums so they serialize directly into JSON and can be
stored by SQLAlchemy's `Enum` column type.
"""

from enum import Enum
from typing import List, Optional, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS
# =============================================================================

class LLMMode(str, Enum):
    """Which OpenAI-compatible provider to call"""
    NONE = "none"
    OPENAI = "openai"
    OPENROUTER = "openrouter"


class UserRole(str, Enum):
    """Account-level role"""
    USER = "USER"
    ADMIN = "ADMIN"


class Priority(str, Enum):
    """Task priority, LOW < MEDIUM < HIGH < CRITICAL"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


PRIORITY_RANK: Dict[Priority, int] = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class TaskStatus(str, Enum):
    """Task lifecycle status"""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"


class PostCategory(str, Enum):
    """Community post categories"""
    ONBOARDING = "ONBOARDING"
    EQUIPMENT = "EQUIPMENT"
    PROCESS = "PROCESS"
    QUALITY = "QUALITY"
    LOGISTICS = "LOGISTICS"
    SAFETY = "SAFETY"
    GENERAL = "GENERAL"


class PostSort(str, Enum):
    """Listing sort modes"""
    NEWEST = "newest"
    TOP = "top"
    MOST_COMMENTED = "most-commented"


class TicketStatus(str, Enum):
    """Password-reset ticket status"""
    PENDING = "pending"
    RESOLVED = "resolved"
    DENIED = "denied"


class InterpretMode(str, Enum):
    """Text interpreter output modes"""
    SUMMARY = "summary"
    EMAIL = "email"
    UPDATE = "update"


# =============================================================================
# AUTH
# =============================================================================

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    id: str
    username: str
    role: str


# =============================================================================
# USERS (admin console)
# =============================================================================

class CreateUserRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UpdateUserRequest(BaseModel):
    isActive: Optional[bool] = None
    role: Optional[str] = None


class UserOut(BaseModel):
    id: str
    username: str
    role: UserRole
    isActive: bool
    reputation: int
    createdAt: Optional[datetime] = None


class AuthorOut(BaseModel):
    id: str
    username: str
    reputation: int


class RoleOut(BaseModel):
    id: str
    name: str


# =============================================================================
# TASKS
# =============================================================================

class CreateTaskRequest(BaseModel):
    roleId: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    dueDate: Optional[datetime] = None


class UpdateTaskRequest(BaseModel):
    """Partial update; only fields present in the body are applied"""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    dueDate: Optional[datetime] = None


class TaskOut(BaseModel):
    id: str
    roleId: str
    title: str
    description: Optional[str] = None
    priority: Priority
    status: TaskStatus
    dueDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


# =============================================================================
# BRIEFING
# =============================================================================

class BriefingRequest(BaseModel):
    roleId: Optional[str] = None


class BriefingOut(BaseModel):
    top3: List[str]
    alerts: List[str]
    blockers: List[str]
    dueOverdue: List[str]
    id: Optional[str] = None
    generatedAt: Optional[datetime] = None
    source: Optional[str] = None


# =============================================================================
# COMMUNITY
# =============================================================================

class CreatePostRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None


class CreateAnswerRequest(BaseModel):
    content: Optional[str] = None


class VoteRequest(BaseModel):
    value: Any = None


class VoteResult(BaseModel):
    voteScore: int
    userVote: Optional[int] = None


class AcceptRequest(BaseModel):
    answerId: Optional[str] = None


class ModeratePostRequest(BaseModel):
    isPinned: Optional[bool] = None
    isLocked: Optional[bool] = None


# =============================================================================
# PASSWORD TICKETS
# =============================================================================

class PasswordResetRequest(BaseModel):
    username: Optional[str] = None
    hint: Optional[str] = None


class TicketActionRequest(BaseModel):
    id: Optional[str] = None
    password: Optional[str] = None


class TicketOut(BaseModel):
    id: str
    username: str
    hint: str
    status: TicketStatus
    createdAt: Optional[datetime] = None
    resolvedAt: Optional[datetime] = None
    message: Optional[str] = None


# =============================================================================
# ANALYSIS PASSTHROUGHS
# =============================================================================

class CsvSummaryRequest(BaseModel):
    data: List[Any] = Field(default_factory=list)
    headers: List[str] = Field(default_factory=list)
    rowCount: int = 0
    qualityNotes: List[str] = Field(default_factory=list)


class CsvSummaryResponse(BaseModel):
    mainPoints: List[str]
    importantItems: List[str]
    top3Attention: List[str]
    dataQualityNotes: List[str]


class InterpretRequest(BaseModel):
    text: Optional[Any] = None
    mode: Optional[str] = None


class ImageRequest(BaseModel):
    image: Optional[Any] = None
    mimeType: Optional[str] = None


class ImageResponse(BaseModel):
    object: str
    purpose: str
    role: str


class GlossaryRequest(BaseModel):
    term: Optional[Any] = None
    level: str = "beginner"


class GlossaryResponse(BaseModel):
    definition: str
    example: str
    whyItMatters: str
    commonConfusion: str


# =============================================================================
# SYSTEM
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    version: str
    llm_mode: LLMMode
    timestamp: datetime

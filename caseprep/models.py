import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from .config import SIMULATION_MAX_TIME_LIMIT, SIMULATION_MIN_TIME_LIMIT
from .simulation.models import (
    EcosystemState,
    Environment,
    SimulationMetrics,
    SimulationResult,
    SimulationStatus,
    SpeciesInput,
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


class PreparationLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class DrillType(str, Enum):
    CASE_PROMPT = "CASE_PROMPT"
    CALCULATION = "CALCULATION"
    CASE_MATH = "CASE_MATH"
    BRAINSTORMING = "BRAINSTORMING"
    MARKET_SIZING = "MARKET_SIZING"
    SYNTHESIZING = "SYNTHESIZING"


class DrillDifficulty(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class DrillStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EVALUATED = "EVALUATED"


# Users
class UserProfileData(BaseModel):
    first_name: str = Field(default="", max_length=50)
    last_name: str = Field(default="", max_length=50)
    target_firm: str = Field(default="", max_length=100)
    interview_date: Optional[date] = None
    preparation_level: PreparationLevel = PreparationLevel.BEGINNER


class UserSettings(BaseModel):
    email_notifications: bool = False
    progress_reminders: bool = False
    timezone: str = Field(default="UTC", min_length=1, max_length=50)
    language: str = Field(default="en", min_length=2, max_length=2)  # ISO 639-1
    ui_preferences: Dict[str, Any] = Field(default_factory=dict)


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    email: EmailStr
    hashed_password: str
    profile: UserProfileData = Field(default_factory=UserProfileData)
    settings: UserSettings = Field(default_factory=UserSettings)
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    last_login_at: Optional[datetime] = None


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    profile: UserProfileData = Field(default_factory=UserProfileData)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class UserPublic(BaseModel):
    id: str
    email: str
    profile: UserProfileData
    subscription_tier: SubscriptionTier
    subscription_status: SubscriptionStatus
    created_at: datetime
    last_login_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    target_firm: Optional[str] = Field(default=None, max_length=100)
    interview_date: Optional[date] = None
    preparation_level: Optional[PreparationLevel] = None


class UserProgress(BaseModel):
    user_id: str
    drills_completed: int = 0
    drills_success_rate: float = 0
    simulations_completed: int = 0
    simulations_success_rate: float = 0
    average_drill_score: float = 0
    skill_levels: Dict[str, float] = Field(default_factory=dict)
    last_updated: datetime = Field(default_factory=_now)


class FileDownload(BaseModel):
    filename: str
    content: str  # base64 encoded
    mime_type: str


# Drills
class Drill(BaseModel):
    id: str = Field(default_factory=_new_id)
    type: DrillType
    difficulty: DrillDifficulty
    title: str
    content: str
    time_limit: int = Field(gt=0)  # minutes
    industry: str
    # Numeric drills only; never exposed publicly
    expected_answer: Optional[float] = None
    tolerance: Optional[float] = None
    evaluation_criteria: List[str] = Field(default_factory=list)


class DrillPublic(BaseModel):
    id: str
    type: DrillType
    difficulty: DrillDifficulty
    title: str
    content: str
    time_limit: int
    industry: str
    evaluation_criteria: List[str] = Field(default_factory=list)


class DrillAttempt(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    drill_id: str
    drill_type: DrillType
    status: DrillStatus = DrillStatus.IN_PROGRESS
    response: str = ""
    started_at: datetime = Field(default_factory=_now)
    completed_at: Optional[datetime] = None
    time_spent: float = 0  # seconds
    day: str  # YYYY-MM-DD, used for daily limits
    score: Optional[int] = None
    feedback_id: Optional[str] = None


class DrillSubmission(BaseModel):
    response: str = Field(min_length=1)


class DrillCategory(BaseModel):
    type: DrillType
    name: str
    time_limit: int
    drill_count: int


# Feedback
class FeedbackType(str, Enum):
    DRILL = "drill"
    SIMULATION = "simulation"


class FeedbackContent(BaseModel):
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    detailed_analysis: str = ""


class FeedbackMetric(BaseModel):
    name: str
    score: float
    feedback: str = ""
    category: str = ""


class Feedback(BaseModel):
    id: str = Field(default_factory=_new_id)
    attempt_id: str
    user_id: str
    type: FeedbackType
    content: FeedbackContent
    score: int = Field(ge=0, le=100)
    metrics: List[FeedbackMetric] = Field(default_factory=list)
    source: str = "local"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class FeedbackRequest(BaseModel):
    attempt_id: str
    type: FeedbackType


class FeedbackContentUpdate(BaseModel):
    summary: Optional[str] = None
    strengths: Optional[List[str]] = None
    improvements: Optional[List[str]] = None
    detailed_analysis: Optional[str] = None


class FeedbackUpdate(BaseModel):
    content: Optional[FeedbackContentUpdate] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)
    metrics: Optional[List[FeedbackMetric]] = None


class DrillResult(BaseModel):
    attempt: DrillAttempt
    feedback: Feedback


# Simulations
class SimulationStart(BaseModel):
    time_limit: int = Field(default=900, ge=SIMULATION_MIN_TIME_LIMIT, le=SIMULATION_MAX_TIME_LIMIT)
    environment_preset: Optional[str] = None


class SpeciesUpdate(BaseModel):
    species: List[SpeciesInput]


class EnvironmentUpdate(BaseModel):
    environment: Environment


class SimulationAttempt(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    status: SimulationStatus = SimulationStatus.SETUP
    time_limit: int
    environment: Environment
    state: Optional[EcosystemState] = None
    metrics: SimulationMetrics = Field(default_factory=SimulationMetrics)
    steps: int = 0
    result: Optional[SimulationResult] = None
    final_score: Optional[int] = None
    feedback_id: Optional[str] = None
    day: str
    started_at: datetime = Field(default_factory=_now)
    completed_at: Optional[datetime] = None


class StepResponse(BaseModel):
    attempt: SimulationAttempt
    finished: bool


# Subscriptions
class SubscriptionLimits(BaseModel):
    drill_attempts_per_day: int
    simulation_attempts_per_day: int


class SubscriptionPlan(BaseModel):
    id: str
    name: str
    tier: SubscriptionTier
    price_monthly: float
    limits: SubscriptionLimits
    features: List[str] = Field(default_factory=list)


class Subscription(BaseModel):
    user_id: str
    plan_id: str = "free"
    tier: SubscriptionTier = SubscriptionTier.FREE
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    updated_at: datetime = Field(default_factory=_now)


class SubscriptionUsage(BaseModel):
    tier: SubscriptionTier
    day: str
    drill_attempts: int
    simulation_attempts: int
    limits: SubscriptionLimits


class CheckoutRequest(BaseModel):
    tier: SubscriptionTier


class CheckoutSession(BaseModel):
    session_id: str
    checkout_url: str


class PortalSession(BaseModel):
    url: str


class CancelRequest(BaseModel):
    immediately: bool = False

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Dict, Union
from enum import Enum
from datetime import datetime

from identifier_rules import is_valid_phone, normalize_name, normalize_phone, normalize_external_id
from models import SLOT_SCHEME_BUCKETS, SlotScheme


class VerificationDecisionEnum(str, Enum):
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class VerifiableKindEnum(str, Enum):
    NCP = "NCP"
    SUB = "SUB"


class EventStatusEnum(str, Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class EventTypeEnum(str, Enum):
    USP = "USP"
    FLAGSHIP = "FLAGSHIP"
    POPULAR = "POPULAR"
    OTHERS = "OTHERS"


class EventPhaseTypeEnum(str, Enum):
    PRE_ELIMS_FINALS = "PRE_ELIMS_FINALS"
    ELIMS_FINALS = "ELIMS_FINALS"
    KNOCKOUTS = "KNOCKOUTS"
    DIRECT_FINALS = "DIRECT_FINALS"


class EventFormatEnum(str, Enum):
    SOLO = "SOLO"
    TEAM = "TEAM"


class PointAwardEnum(str, Enum):
    FIRST_PODIUM = "first_podium"
    SECOND_PODIUM = "second_podium"
    THIRD_PODIUM = "third_podium"
    QUALIFICATION = "qualification"
    NPR = "npr"
    NPQ = "npq"
    ARBITRARY = "arbitrary"


# Identity payloads
class DepartingIdentity(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    phone_number: str

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v):
        value = normalize_name(v)
        if not value:
            raise ValueError("Name cannot be blank")
        return value

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        if not is_valid_phone(v):
            raise ValueError("Phone number must be a valid 10 digit mobile number")
        return normalize_phone(v)


class ParticipantIdentity(DepartingIdentity):
    email: EmailStr


class TeamSubstituteData(BaseModel):
    team_members: List[ParticipantIdentity] = Field(default_factory=list)
    npa_members: List[ParticipantIdentity] = Field(default_factory=list)


class TeamDepartingData(BaseModel):
    team_members: List[DepartingIdentity] = Field(default_factory=list)
    npa_members: List[DepartingIdentity] = Field(default_factory=list)


class BucketSelection(BaseModel):
    sex: Optional[str] = None
    weight_category: Optional[str] = None

    @field_validator("sex")
    @classmethod
    def validate_sex(cls, v):
        if v and v not in SLOT_SCHEME_BUCKETS[SlotScheme.SEX]:
            raise ValueError(f"sex must be one of {', '.join(SLOT_SCHEME_BUCKETS[SlotScheme.SEX])}")
        return v

    @field_validator("weight_category")
    @classmethod
    def validate_weight_category(cls, v):
        if v and v not in SLOT_SCHEME_BUCKETS[SlotScheme.WEIGHT]:
            raise ValueError(f"weight_category must be one of {', '.join(SLOT_SCHEME_BUCKETS[SlotScheme.WEIGHT])}")
        return v

    @model_validator(mode="after")
    def validate_single_discriminator(self):
        if self.sex and self.weight_category:
            raise ValueError("Send either sex or weight_category, not both")
        return self

    @property
    def bucket(self) -> Optional[str]:
        return self.sex or self.weight_category


# Events
class EventPointSchedule(BaseModel):
    registration: int = Field(..., ge=0)
    qualification: int = Field(..., ge=0)
    npr: int = Field(..., ge=0)
    npq: int = Field(..., ge=0)
    first_podium: int = Field(..., ge=0)
    second_podium: int = Field(..., ge=0)
    third_podium: Optional[int] = Field(None, ge=0)


class TeamSize(BaseModel):
    min: int = Field(..., ge=1, le=100)
    max: int = Field(..., ge=1, le=100)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min > self.max:
            raise ValueError("team_size.min cannot exceed team_size.max")
        return self


class EventCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=150)
    description: str
    event_type: EventTypeEnum
    format: EventFormatEnum
    slots: Union[int, Dict[str, int]]
    date: datetime
    points: EventPointSchedule
    phase_type: EventPhaseTypeEnum = EventPhaseTypeEnum.KNOCKOUTS
    team_size: Optional[TeamSize] = None
    npa_amount: Optional[int] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return normalize_name(v)

    @field_validator("slots")
    @classmethod
    def validate_slots(cls, v):
        values = v.values() if isinstance(v, dict) else [v]
        if any(int(item) < 0 for item in values):
            raise ValueError("slots cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_team_fields(self):
        if self.format == EventFormatEnum.TEAM:
            if self.team_size is None or self.npa_amount is None:
                raise ValueError("team_size and npa_amount are required for team events")
            if isinstance(self.slots, dict):
                raise ValueError("Team events only support a single slot count")
        return self


class EventUpdate(BaseModel):
    description: Optional[str] = None
    event_type: Optional[EventTypeEnum] = None
    phase_type: Optional[EventPhaseTypeEnum] = None
    date: Optional[datetime] = None
    points: Optional[EventPointSchedule] = None


class EventStatusUpdate(BaseModel):
    status: EventStatusEnum


class EventResponse(BaseModel):
    id: int
    name: str
    description: str
    event_type: str
    format: str
    slot_scheme: str
    phase_type: str
    status: str
    date: datetime
    points: Dict[str, Optional[int]]
    slots: Dict[str, int]
    capacity: Dict[str, int]
    team_min_size: Optional[int] = None
    team_max_size: Optional[int] = None
    npa_amount: Optional[int] = None
    winners: Optional[dict] = None


# Allocation
class ConfirmRequest(BucketSelection):
    participant_id: str = Field(..., min_length=1)
    event_id: int = Field(..., ge=1)
    registration_id: Optional[int] = Field(None, ge=1)

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id(cls, v):
        return normalize_external_id(v)


class ConfirmationResponse(BaseModel):
    message: str
    event_id: int
    bucket: str
    participant_id: str
    slots_remaining: int
    points_awarded: int


class ReplaceRequest(BucketSelection):
    participant_id: str = Field(..., min_length=1)
    replacement_participant_id: str = Field(..., min_length=1)
    event_id: int = Field(..., ge=1)
    registration_id: Optional[int] = Field(None, ge=1)

    @field_validator("participant_id", "replacement_participant_id")
    @classmethod
    def validate_participant_id(cls, v):
        return normalize_external_id(v)


class ReplacementResponse(BaseModel):
    message: str
    event_id: int
    bucket: str
    departing_id: str
    arriving_id: str
    slots_remaining: int


class SubstitutionResponse(BaseModel):
    message: str
    substituted: int
    participant_ids: List[int] = Field(default_factory=list)


# Registration
class SoloRegistrationRequest(BucketSelection):
    event_id: int = Field(..., ge=1)
    is_dummy: bool = False
    participant: Optional[ParticipantIdentity] = None


class TeamMemberEntry(BaseModel):
    is_dummy: bool = False
    identity: Optional[ParticipantIdentity] = None
    ncp_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_single_source(self):
        provided = [bool(self.is_dummy), self.identity is not None, bool(self.ncp_id)]
        if sum(provided) != 1:
            raise ValueError("Each member must be exactly one of: dummy, identity, ncp_id")
        if self.ncp_id:
            self.ncp_id = normalize_external_id(self.ncp_id)
        return self


class TeamRegistrationRequest(BaseModel):
    event_id: int = Field(..., ge=1)
    team_name: str = Field(..., min_length=1, max_length=150)
    team_members: List[TeamMemberEntry] = Field(default_factory=list)
    npa_members: List[TeamMemberEntry] = Field(default_factory=list)

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v):
        value = normalize_name(v)
        if not value:
            raise ValueError("team_name cannot be blank")
        return value


class RegistrationResponse(BaseModel):
    message: str
    registration_id: int
    event_id: int
    bucket: str
    confirmed: bool


# Walk-ins
class WalkInSoloRequest(BucketSelection):
    event_id: int = Field(..., ge=1)
    participant: ParticipantIdentity


class WalkInTeamRequest(BaseModel):
    event_id: int = Field(..., ge=1)
    team_name: str = Field(..., min_length=1, max_length=150)
    registerer: ParticipantIdentity
    team_members: List[ParticipantIdentity] = Field(default_factory=list)

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v):
        value = normalize_name(v)
        if not value:
            raise ValueError("team_name cannot be blank")
        return value


class WalkInResponse(BaseModel):
    message: str
    event_id: int
    bucket: str
    otse_ids: List[str]
    slots_remaining: int


# Verification
class VerifyRequest(BaseModel):
    participant_kind: VerifiableKindEnum
    participant_id: int = Field(..., ge=1)
    verified: VerificationDecisionEnum


class PendingVerificationResponse(BaseModel):
    kind: VerifiableKindEnum
    id: int
    external_id: str
    first_name: str
    last_name: str
    email: str
    phone_number: str
    id_proof_url: Optional[str] = None
    govt_id_proof_url: Optional[str] = None


# Points
class AwardPointsRequest(BucketSelection):
    participant_id: str = Field(..., min_length=1)
    event_id: int = Field(..., ge=1)
    award: PointAwardEnum
    arbitrary_points: Optional[int] = None

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id(cls, v):
        return normalize_external_id(v)

    @model_validator(mode="after")
    def validate_arbitrary_points(self):
        if self.award == PointAwardEnum.ARBITRARY and self.arbitrary_points is None:
            raise ValueError("arbitrary_points is required for arbitrary awards")
        return self


class AwardPointsResponse(BaseModel):
    message: str
    participant_id: str
    points: Optional[int] = None


# Confirmation listing
class ListingEntry(BaseModel):
    owner_id: str
    participant: str
    registration_id: Optional[int] = None


class BucketListing(BaseModel):
    slots: int
    capacity: int
    pending: List[ListingEntry] = Field(default_factory=list)
    confirmed: List[ListingEntry] = Field(default_factory=list)
    walk_ins: List[ListingEntry] = Field(default_factory=list)


class EventConfirmationListing(BaseModel):
    event_id: int
    event_name: str
    format: str
    slot_scheme: str
    buckets: Dict[str, BucketListing]


# Bets
class BetCreate(BaseModel):
    participant_id: str = Field(..., min_length=1)
    event_id: int = Field(..., ge=1)
    amount: int = Field(..., ge=1)
    category: Optional[str] = Field(None, max_length=30)

    @field_validator("participant_id")
    @classmethod
    def validate_participant_id(cls, v):
        return normalize_external_id(v)


class BetResponse(BaseModel):
    id: int
    participant_id: str
    event_id: int
    event_name: str
    event_type: str
    format: str
    amount: int
    category: Optional[str] = None


# Participant details
class SoloEntryDetail(BaseModel):
    registration_id: int
    event_id: int
    event_name: str
    bucket: str
    participant: str
    confirmed: bool
    verified: bool


class TeamEntryDetail(BaseModel):
    registration_id: int
    event_id: int
    event_name: str
    team_name: str
    owner_id: str
    team_members: List[str] = Field(default_factory=list)
    npa_members: List[str] = Field(default_factory=list)
    confirmed: bool
    verified: bool


class ParticipantDetails(BaseModel):
    kind: str
    participant_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    points: int
    verified: str
    registered_solos: List[SoloEntryDetail] = Field(default_factory=list)
    registered_teams: List[TeamEntryDetail] = Field(default_factory=list)
    bets: List[BetResponse] = Field(default_factory=list)


# Auth
class AdminLogin(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

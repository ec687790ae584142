from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Text, JSON
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class VerificationStatus(enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class EventStatus(enum.Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class EventType(enum.Enum):
    USP = "USP"
    FLAGSHIP = "FLAGSHIP"
    POPULAR = "POPULAR"
    OTHERS = "OTHERS"


class EventPhaseType(enum.Enum):
    PRE_ELIMS_FINALS = "PRE_ELIMS_FINALS"
    ELIMS_FINALS = "ELIMS_FINALS"
    KNOCKOUTS = "KNOCKOUTS"
    DIRECT_FINALS = "DIRECT_FINALS"


class EventFormat(enum.Enum):
    SOLO = "SOLO"
    TEAM = "TEAM"


class SlotScheme(enum.Enum):
    SCALAR = "scalar"
    SEX = "sex"
    WEIGHT = "weight"


class OwnerKind(enum.Enum):
    CC = "CC"
    NCP = "NCP"
    OTSE = "OTSE"


class RefKind(enum.Enum):
    CC = "CC"
    NCP = "NCP"
    SUB = "SUB"
    OTSE = "OTSE"
    PLACEHOLDER = "PLACEHOLDER"


class MemberRole(enum.Enum):
    TEAM = "team"
    NPA = "npa"


OPEN_BUCKET = "open"

SLOT_SCHEME_BUCKETS = {
    SlotScheme.SCALAR: (OPEN_BUCKET,),
    SlotScheme.SEX: ("male", "female"),
    SlotScheme.WEIGHT: ("lightWeight", "middleWeight", "heavyWeight"),
}

# Request field that carries the bucket name for each categorical scheme.
SLOT_SCHEME_DISCRIMINATOR = {
    SlotScheme.SEX: "sex",
    SlotScheme.WEIGHT: "weight_category",
}


class CcUser(Base):
    __tablename__ = "cc_users"

    id = Column(Integer, primary_key=True, index=True)
    cc_id = Column(String(20), unique=True, index=True, nullable=False)
    email = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    points = Column(Integer, default=0, nullable=False)
    verified = Column(SQLEnum(VerificationStatus), default=VerificationStatus.VERIFIED, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    sub_participants = relationship("SubParticipant", back_populates="owner")


class NcpUser(Base):
    __tablename__ = "ncp_users"

    id = Column(Integer, primary_key=True, index=True)
    ncp_id = Column(String(20), unique=True, index=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone_number = Column(String(15), unique=True, nullable=False)
    id_proof_url = Column(String(500), nullable=True)
    govt_id_proof_url = Column(String(500), nullable=True)
    points = Column(Integer, default=0, nullable=False)
    verified = Column(SQLEnum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False)
    locked = Column(Boolean, default=False, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SubParticipant(Base):
    __tablename__ = "users_through_cc"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("cc_users.id"), nullable=False, index=True)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(15), nullable=False)
    id_proof_url = Column(String(500), nullable=True)
    id_proof_type = Column(String(100), nullable=True)
    govt_id_proof_url = Column(String(500), nullable=True)
    govt_id_proof_type = Column(String(100), nullable=True)
    verified = Column(SQLEnum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False)
    locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("CcUser", back_populates="sub_participants")


class OtseUser(Base):
    __tablename__ = "otse_users"
    __table_args__ = (
        UniqueConstraint("email", "phone_number", name="uq_otse_contact"),
    )

    id = Column(Integer, primary_key=True, index=True)
    otse_id = Column(String(20), unique=True, index=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(15), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Event(Base):
    __tablename__ = "fest_events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    description = Column(Text, nullable=False)
    event_type = Column(SQLEnum(EventType), nullable=False)
    format = Column(SQLEnum(EventFormat), nullable=False)
    slot_scheme = Column(SQLEnum(SlotScheme), default=SlotScheme.SCALAR, nullable=False)
    phase_type = Column(SQLEnum(EventPhaseType), default=EventPhaseType.KNOCKOUTS, nullable=False)
    status = Column(SQLEnum(EventStatus), default=EventStatus.UPCOMING, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    points = Column(JSON, nullable=False)  # {"registration": 10, "npr": 5, "first_podium": 50, ...}
    winners = Column(JSON, nullable=True)
    team_min_size = Column(Integer, nullable=True)
    team_max_size = Column(Integer, nullable=True)
    npa_amount = Column(Integer, nullable=True)
    deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    buckets = relationship("EventSlotBucket", back_populates="event", order_by="EventSlotBucket.id")


class EventSlotBucket(Base):
    __tablename__ = "event_slot_buckets"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_event_slot_bucket"),
        CheckConstraint("slots >= 0", name="ck_event_slot_bucket_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("fest_events.id"), nullable=False, index=True)
    name = Column(String(30), nullable=False)
    capacity = Column(Integer, nullable=False)
    slots = Column(Integer, nullable=False)

    event = relationship("Event", back_populates="buckets")


class SoloRegistration(Base):
    __tablename__ = "solo_registrations"
    __table_args__ = (
        UniqueConstraint("event_id", "bucket", "ref_kind", "ref_id", name="uq_solo_registration_ref"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("fest_events.id"), nullable=False, index=True)
    owner_kind = Column(SQLEnum(OwnerKind), nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)
    bucket = Column(String(30), nullable=False)
    ref_kind = Column(SQLEnum(RefKind), nullable=False)
    ref_id = Column(Integer, nullable=False)
    confirmed = Column(Boolean, default=False, nullable=False)
    verified = Column(SQLEnum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TeamRegistration(Base):
    __tablename__ = "team_registrations"
    __table_args__ = (
        UniqueConstraint("event_id", "owner_kind", "owner_id", name="uq_team_registration_owner"),
        UniqueConstraint("event_id", "team_name", name="uq_team_registration_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("fest_events.id"), nullable=False, index=True)
    owner_kind = Column(SQLEnum(OwnerKind), nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)
    team_name = Column(String(150), nullable=False)
    confirmed = Column(Boolean, default=False, nullable=False)
    verified = Column(SQLEnum(VerificationStatus), default=VerificationStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    members = relationship(
        "TeamRegistrationMember",
        back_populates="registration",
        order_by="TeamRegistrationMember.position",
        cascade="all, delete-orphan",
    )


class TeamRegistrationMember(Base):
    __tablename__ = "team_registration_members"
    __table_args__ = (
        UniqueConstraint("registration_id", "role", "position", name="uq_team_member_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(Integer, ForeignKey("team_registrations.id"), nullable=False, index=True)
    role = Column(SQLEnum(MemberRole), nullable=False)
    position = Column(Integer, nullable=False)
    ref_kind = Column(SQLEnum(RefKind), nullable=False)
    ref_id = Column(Integer, nullable=False)

    registration = relationship("TeamRegistration", back_populates="members")


class ConfirmedEntry(Base):
    __tablename__ = "confirmed_entries"
    __table_args__ = (
        UniqueConstraint("event_id", "bucket", "ref_kind", "ref_id", name="uq_confirmed_entry_ref"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("fest_events.id"), nullable=False, index=True)
    bucket = Column(String(30), nullable=False)
    ref_kind = Column(SQLEnum(RefKind), nullable=False)
    ref_id = Column(Integer, nullable=False)
    solo_registration_id = Column(Integer, ForeignKey("solo_registrations.id"), nullable=True)
    team_registration_id = Column(Integer, ForeignKey("team_registrations.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Bet(Base):
    __tablename__ = "bets"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_bet_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    cc_user_id = Column(Integer, ForeignKey("cc_users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("fest_events.id"), nullable=False, index=True)
    event_type = Column(SQLEnum(EventType), nullable=False)
    amount = Column(Integer, nullable=False)
    category = Column(String(30), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("CcUser")
    event = relationship("Event")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, nullable=True)
    admin_username = Column(String(100), nullable=False)
    action = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

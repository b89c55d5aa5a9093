"""SQLAlchemy models for committed policies and their child records."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    ARRAY,
    TIMESTAMP,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from policy_intake.core.database import Base


class Policy(Base):
    """Parent record of a committed policy aggregate."""

    __tablename__ = "policies"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    insurer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    insurer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    policy_number: Mapped[str] = mapped_column(String, nullable=False)
    policy_type: Mapped[str | None] = mapped_column(String, nullable=True)
    policy_name: Mapped[str | None] = mapped_column(String, nullable=True)
    start_date: Mapped[str] = mapped_column(String(10), nullable=False)
    end_date: Mapped[str] = mapped_column(String(10), nullable=False)
    premium: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    premium_frequency: Mapped[str | None] = mapped_column(
        String, nullable=True
    )  # monthly | quarterly | semiannual | annual
    coverage_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    deductible: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="active"
    )  # active | expired | cancelled | pending

    holder_name: Mapped[str | None] = mapped_column(String, nullable=True)
    holder_afm: Mapped[str | None] = mapped_column(String(9), nullable=True)
    holder_address: Mapped[str | None] = mapped_column(String, nullable=True)
    holder_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    holder_email: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    vehicle_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    property_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    document_parsed_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    analysis: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    added_method: Mapped[str] = mapped_column(
        String, nullable=False, default="manual"
    )  # document | search | manual

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()", onupdate=datetime.utcnow
    )


class PolicyCoverage(Base):
    """Coverage line of a policy."""

    __tablename__ = "policy_coverages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coverage_type: Mapped[str] = mapped_column(String, nullable=False)
    coverage_name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    limit_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    limit_type: Mapped[str | None] = mapped_column(
        String, nullable=True
    )  # per_incident | annual | lifetime | per_person
    deductible: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    co_pay_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    waiting_period: Mapped[int | None] = mapped_column(Integer, nullable=True)
    exclusions: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    conditions: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class PolicyBeneficiary(Base):
    """Beneficiary designated on a policy."""

    __tablename__ = "policy_beneficiaries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    beneficiary_type: Mapped[str] = mapped_column(
        String, nullable=False, default="primary"
    )  # primary | contingent | irrevocable
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    relationship: Mapped[str] = mapped_column(String, nullable=False, default="other")
    date_of_birth: Mapped[str | None] = mapped_column(String, nullable=True)
    afm: Mapped[str | None] = mapped_column(String, nullable=True)
    id_number: Mapped[str | None] = mapped_column(String, nullable=True)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class PolicyDriver(Base):
    """Named driver on an auto policy."""

    __tablename__ = "policy_drivers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    driver_type: Mapped[str] = mapped_column(
        String, nullable=False, default="primary"
    )  # primary | secondary | occasional
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    date_of_birth: Mapped[str] = mapped_column(String, nullable=False)
    afm: Mapped[str | None] = mapped_column(String, nullable=True)
    license_number: Mapped[str] = mapped_column(String, nullable=False)
    license_issue_date: Mapped[str | None] = mapped_column(String, nullable=True)
    license_expiry_date: Mapped[str | None] = mapped_column(String, nullable=True)
    license_categories: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    years_licensed: Mapped[int | None] = mapped_column(Integer, nullable=True)
    address: Mapped[str | None] = mapped_column(String, nullable=True)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class PolicyVehicle(Base):
    """Insured vehicle of an auto policy."""

    __tablename__ = "policy_vehicles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_type: Mapped[str] = mapped_column(
        String, nullable=False, default="car"
    )  # car | motorcycle | truck | van
    make: Mapped[str] = mapped_column(String, nullable=False)
    model: Mapped[str] = mapped_column(String, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    license_plate: Mapped[str] = mapped_column(String, nullable=False)
    vin: Mapped[str | None] = mapped_column(String, nullable=True)
    engine_size: Mapped[str | None] = mapped_column(String, nullable=True)
    fuel_type: Mapped[str | None] = mapped_column(String, nullable=True)
    color: Mapped[str | None] = mapped_column(String, nullable=True)
    market_value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    primary_use: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class PolicyProperty(Base):
    """Insured property of a home/property policy."""

    __tablename__ = "policy_properties"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    policy_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_type: Mapped[str] = mapped_column(
        String, nullable=False, default="house"
    )  # apartment | house | villa | commercial | land
    address: Mapped[str] = mapped_column(String, nullable=False)
    city: Mapped[str | None] = mapped_column(String, nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String, nullable=True)
    region: Mapped[str | None] = mapped_column(String, nullable=True)
    country: Mapped[str | None] = mapped_column(String, nullable=True, default="Greece")
    square_meters: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    year_built: Mapped[int | None] = mapped_column(Integer, nullable=True)
    construction_type: Mapped[str | None] = mapped_column(String, nullable=True)
    building_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    contents_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )


class InsurerPolicyRecord(Base):
    """Policy published by an insurer, looked up by identifier search."""

    __tablename__ = "insurer_policy_records"
    __table_args__ = (
        UniqueConstraint("insurer_id", "policy_number", name="uq_insurer_policy_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    insurer_id: Mapped[str] = mapped_column(String, nullable=False)
    policy_number: Mapped[str] = mapped_column(String, nullable=False)
    policy_data: Mapped[dict] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default="NOW()"
    )

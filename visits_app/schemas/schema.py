from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator

from models.enums import (
    AgentApprovalStatus,
    AppointmentStatus,
    NotificationChannel,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
    WalletTransactionType,
)


class UserPublicSchema(BaseModel):
    id: uuid.UUID
    full_name: str
    email: EmailStr
    phone_number: Optional[str] = None
    role: UserRole

    model_config = {"from_attributes": True}


class CityOut(BaseModel):
    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}


class AreaOut(BaseModel):
    id: uuid.UUID
    name: str
    city_id: uuid.UUID

    model_config = {"from_attributes": True}


class PropertyBrief(BaseModel):
    id: uuid.UUID
    title: str
    address: Optional[str] = None
    city_id: uuid.UUID
    area_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


# Appointments


class AppointmentCreate(BaseModel):
    property_id: uuid.UUID
    customer_id: Optional[uuid.UUID] = None
    appointment_date: date
    start_time: time
    end_time: time
    notes: Optional[str] = Field(default=None, max_length=2000)


class AppointmentOut(BaseModel):
    id: uuid.UUID
    property_id: uuid.UUID
    customer_id: uuid.UUID
    agent_id: Optional[uuid.UUID] = None
    appointment_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    notes: Optional[str] = None
    created_at: datetime
    property: Optional[PropertyBrief] = None
    customer: Optional[UserPublicSchema] = None
    agent: Optional[UserPublicSchema] = None

    model_config = {"from_attributes": True}


class AppointmentCreatedOut(BaseModel):
    appointment: AppointmentOut
    notified_agents: int


class AgentRequestOut(BaseModel):
    id: uuid.UUID
    appointment_id: uuid.UUID
    agent_id: uuid.UUID
    status: AppointmentStatus
    responded_at: Optional[datetime] = None
    is_commission_added: bool
    commission_amount: Optional[Decimal] = None
    commission_added_at: Optional[datetime] = None
    appointment: Optional[AppointmentOut] = None

    model_config = {"from_attributes": True}


class RespondRequestSchema(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_response_status(cls, value: AppointmentStatus):
        if value not in (AppointmentStatus.ACCEPTED, AppointmentStatus.REJECTED):
            raise ValueError("Agents can only accept or reject a request")
        return value


class RequestResponseOut(BaseModel):
    request: AgentRequestOut
    appointment: AppointmentOut


class FinalStatusSchema(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_final_status(cls, value: AppointmentStatus):
        if value not in (AppointmentStatus.COMPLETED, AppointmentStatus.EXPIRED):
            raise ValueError("Final status must be completed or expired")
        return value


class UpdateStatusSchema(BaseModel):
    status: AppointmentStatus
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: AppointmentStatus):
        if value == AppointmentStatus.COMPLETED:
            raise ValueError("Use the final-status endpoint to complete an appointment")
        return value


class AssignAgentSchema(BaseModel):
    agent_id: uuid.UUID


class PaginationMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class PaginatedAppointmentsOut(BaseModel):
    data: List[AppointmentOut]
    meta: PaginationMeta


class PaginatedRequestsOut(BaseModel):
    data: List[AgentRequestOut]
    meta: PaginationMeta


class AgentAppointmentsOut(BaseModel):
    confirmed: PaginatedRequestsOut
    pending: PaginatedRequestsOut
    counts: Dict[str, int] = {}


# Agents


class AgentCreateSchema(BaseModel):
    user_id: Optional[uuid.UUID] = None
    city_ids: Union[Literal["all"], List[uuid.UUID]]
    area_ids: Union[Literal["all"], List[uuid.UUID], None] = None
    kyc_notes: Optional[str] = None
    visit_amount: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("city_ids")
    @classmethod
    def validate_city_ids(cls, value):
        if value != "all" and not value:
            raise ValueError("At least one city must be selected")
        return value


class ReviewAgentSchema(BaseModel):
    status: AgentApprovalStatus
    kyc_notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_review_status(cls, value: AgentApprovalStatus):
        if value == AgentApprovalStatus.PENDING:
            raise ValueError("Review must approve or reject the agent")
        return value


class VisitAmountSchema(BaseModel):
    visit_amount: Decimal


class AgentOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    status: AgentApprovalStatus
    kyc_notes: Optional[str] = None
    visit_amount: Decimal
    wallet_balance: Decimal
    total_earned: Decimal
    total_paid: Decimal
    completed_appointments: int
    total_transactions: int
    last_payout_date: Optional[datetime] = None
    created_at: datetime
    user: Optional[UserPublicSchema] = None
    cities: List[CityOut] = []
    areas: List[AreaOut] = []

    model_config = {"from_attributes": True}


class PaginatedAgentsOut(BaseModel):
    data: List[AgentOut]
    meta: PaginationMeta


# Wallet


class PayoutSchema(BaseModel):
    amount: Decimal
    notes: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.MANUAL


class WalletTransactionOut(BaseModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    transaction_type: WalletTransactionType
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AgentPaymentOut(BaseModel):
    id: uuid.UUID
    agent_id: uuid.UUID
    amount: Decimal
    status: PaymentStatus
    payment_method: PaymentMethod
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
    processed_by_id: Optional[uuid.UUID] = None
    balance_before: Decimal
    balance_after: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class PayoutOut(BaseModel):
    payment: AgentPaymentOut
    transaction: WalletTransactionOut
    wallet_balance: Decimal
    total_paid: Decimal


class PaginatedPaymentsOut(BaseModel):
    data: List[AgentPaymentOut]
    meta: PaginationMeta


class WalletStatsOut(BaseModel):
    agent_id: uuid.UUID
    currency: str
    visit_amount: Decimal
    wallet_balance: Decimal
    total_earned: Decimal
    total_paid: Decimal
    completed_appointments: int
    total_transactions: int
    last_payout_date: Optional[datetime] = None
    earnings_last_30_days: Decimal
    payouts_last_30_days: Decimal
    available_for_payout: Decimal
    average_earning_per_appointment: Decimal
    ledger_balance: Decimal


class ReconcileOut(BaseModel):
    agent_id: uuid.UUID
    stored_balance: Decimal
    ledger_balance: Decimal
    stored_total_earned: Decimal
    ledger_total_earned: Decimal
    stored_total_paid: Decimal
    ledger_total_paid: Decimal
    transaction_count: int
    in_sync: bool


class PayoutSummaryOut(BaseModel):
    currency: str
    total_agents: int
    total_wallet_balance: Decimal
    total_paid_out: Decimal
    payouts_count: int
    paid_last_30_days: Decimal
    payouts_last_30_days: int


# Notifications


class NotificationOut(BaseModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    channel: NotificationChannel
    related_id: Optional[uuid.UUID] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PaginatedNotificationsOut(BaseModel):
    data: List[NotificationOut]
    meta: PaginationMeta

from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    ADMIN = "admin"
    QUALITY = "quality"


class AgentApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


OPEN_BOOKING_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.ACCEPTED)
AGENT_BUSY_STATUSES = (AppointmentStatus.CONFIRMED, AppointmentStatus.ACCEPTED)
FINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.EXPIRED)
SETTLEABLE_STATUSES = (AppointmentStatus.ACCEPTED, AppointmentStatus.CONFIRMED)
TERMINAL_STATUSES = (
    AppointmentStatus.COMPLETED,
    AppointmentStatus.EXPIRED,
    AppointmentStatus.CANCELLED,
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WalletTransactionType(str, Enum):
    EARNING = "earning"
    PAYOUT = "payout"


class PaymentMethod(str, Enum):
    MANUAL = "manual"
    BANK_TRANSFER = "bank_transfer"


class NotificationType(str, Enum):
    SYSTEM = "system"
    APPOINTMENT_REMINDER = "appointment_reminder"
    AGENT_NEW_REGISTRATION = "agent_new_registration"
    AGENT_APPROVED = "agent_approved"
    AGENT_REJECTED = "agent_rejected"
    WALLET = "wallet"


class NotificationChannel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class DomainEventType(str, Enum):
    APPOINTMENT_CREATED = "appointment.created"
    APPOINTMENT_ASSIGNED = "appointment.assigned"
    APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
    COMMISSION_CREDITED = "commission.credited"
    PAYOUT_PROCESSED = "payout.processed"
    VISIT_AMOUNT_UPDATED = "agent.visit_amount_updated"
    AGENT_REGISTERED = "agent.registered"
    AGENT_REVIEWED = "agent.reviewed"


class DomainEventStatus(str, Enum):
    PENDING = "pending"
    DISPATCHING = "dispatching"
    DISPATCHED = "dispatched"
    FAILED = "failed"

from sqlalchemy import event

from .models import AppointmentStatusHistory, User, WalletTransaction


class ImmutableRowError(RuntimeError):
    pass


@event.listens_for(WalletTransaction, "before_update")
@event.listens_for(AppointmentStatusHistory, "before_update")
def forbid_update(mapper, connection, target):
    raise ImmutableRowError(f"{type(target).__name__} rows are append-only")


@event.listens_for(WalletTransaction, "before_delete")
@event.listens_for(AppointmentStatusHistory, "before_delete")
def forbid_delete(mapper, connection, target):
    raise ImmutableRowError(f"{type(target).__name__} rows are append-only")


@event.listens_for(User, "before_insert")
@event.listens_for(User, "before_update")
def normalize_user(mapper, connection, target: User):
    if target.email:
        target.email = target.email.strip().lower()
    if target.full_name:
        target.full_name = " ".join(target.full_name.split()).title()

from uuid import UUID

from models.enums import AppointmentStatus
from models.models import AppointmentStatusHistory


class StatusHistoryRepo:
    def __init__(self, db):
        self.db = db

    async def log_status_change(
        self,
        *,
        appointment_id: UUID,
        old_status: AppointmentStatus,
        new_status: AppointmentStatus,
        changed_by: UUID | None,
        notes: str | None = None,
    ) -> AppointmentStatusHistory:
        entry = AppointmentStatusHistory(
            appointment_id=appointment_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            notes=notes,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

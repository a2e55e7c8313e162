import uuid
from typing import Optional

from sqlalchemy import select

from models.models import Property


class PropertyRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, property_id: uuid.UUID) -> Optional[Property]:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id)
        )
        return result.scalar_one_or_none()

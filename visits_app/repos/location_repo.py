import uuid
from typing import Iterable, List

from sqlalchemy import select

from models.models import Area, City


class LocationRepo:
    def __init__(self, db):
        self.db = db

    async def get_all_cities(self) -> List[City]:
        result = await self.db.execute(select(City).order_by(City.name))
        return list(result.scalars().all())

    async def get_cities_by_ids(self, city_ids: Iterable[uuid.UUID]) -> List[City]:
        ids = list(city_ids)
        if not ids:
            return []
        result = await self.db.execute(select(City).where(City.id.in_(ids)))
        return list(result.scalars().all())

    async def get_areas_by_ids(
        self, area_ids: Iterable[uuid.UUID], city_id: uuid.UUID | None = None
    ) -> List[Area]:
        ids = list(area_ids)
        if not ids:
            return []
        stmt = select(Area).where(Area.id.in_(ids))
        if city_id is not None:
            stmt = stmt.where(Area.city_id == city_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

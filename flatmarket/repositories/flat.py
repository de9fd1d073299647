"""
Flat repository for listing persistence and lifecycle transitions.
Status changes are issued as conditional updates so the state check and the
write happen in a single statement.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from flatmarket.repositories.base import BaseRepository
from flatmarket.models.flat import Flat, FlatStatus, sellable_statuses
from flatmarket.database import utcnow
from datetime import datetime
from typing import Optional, List, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class FlatRepository(BaseRepository[Flat]):
    """Repository for flat listings."""

    def __init__(self, db: AsyncSession):
        super().__init__(Flat, db)

    async def create_flat(self, flat_data: Dict[str, Any]) -> Flat:
        """
        Create a new flat listing.

        Args:
            flat_data: Column values for the flat

        Returns:
            Created flat instance
        """
        created_flat = await self.create(flat_data)
        logger.info(f"Created flat: {created_flat.title} (ID: {created_flat.id})")
        return created_flat

    async def get_owned(self, flat_id: uuid.UUID, owner_id: uuid.UUID) -> Optional[Flat]:
        """
        Get a flat only if it belongs to the given owner.
        A flat owned by someone else is indistinguishable from a missing one.
        """
        try:
            query = (
                select(Flat)
                .where(Flat.id == flat_id, Flat.user_id == owner_id)
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get flat {flat_id} for owner {owner_id}: {e}")
            raise

    async def list_by_status(self, status: FlatStatus) -> List[Flat]:
        """All flats in a given status, newest first, with owners loaded."""
        return await self.get_multi(filters={"status": status})

    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Flat]:
        """All flats listed by a user regardless of status, newest first."""
        return await self.get_multi(filters={"user_id": owner_id})

    async def set_status(
        self,
        flat_id: uuid.UUID,
        from_status: FlatStatus,
        to_status: FlatStatus
    ) -> bool:
        """
        Move a flat from one status to another if it is still in ``from_status``.

        Returns:
            True if the row was updated
        """
        try:
            stmt = (
                update(Flat)
                .where(Flat.id == flat_id, Flat.status == from_status)
                .values(status=to_status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount == 1
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to move flat {flat_id} from {from_status.value} to {to_status.value}: {e}")
            raise

    async def mark_sold(
        self,
        flat_id: uuid.UUID,
        owner_id: uuid.UUID,
        buyer_id: Optional[uuid.UUID],
        sold_at: datetime
    ) -> bool:
        """
        Mark an owned, not yet sold flat as sold.

        The ownership check, the sold check and the write are one UPDATE, so
        two concurrent calls cannot both succeed.

        Returns:
            True if this call performed the sale
        """
        try:
            stmt = (
                update(Flat)
                .where(
                    Flat.id == flat_id,
                    Flat.user_id == owner_id,
                    Flat.status.in_(sellable_statuses())
                )
                .values(
                    status=FlatStatus.SOLD,
                    sold_to_user_id=buyer_id,
                    sold_date=sold_at,
                    updated_at=utcnow()
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount == 1
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to mark flat {flat_id} sold: {e}")
            raise

"""
Flat model for property listings submitted by users.
Handles listing data, hosted image references and the moderation/sale lifecycle.
"""

from sqlalchemy import String, Text, Numeric, JSON, DateTime, Uuid, Enum as SQLEnum, Index, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from flatmarket.database import Base
from datetime import datetime
from decimal import Decimal
import enum
import uuid
from typing import List, Optional, FrozenSet, TYPE_CHECKING

if TYPE_CHECKING:
    from flatmarket.models.user import User


class FlatStatus(str, enum.Enum):
    """Listing lifecycle states. Transitions only move forward."""
    PENDING = "pending"
    APPROVED = "approved"
    SOLD = "sold"

    @property
    def is_terminal(self) -> bool:
        """A sold flat never changes status again."""
        return self == FlatStatus.SOLD

    def can_transition_to(self, target: "FlatStatus") -> bool:
        """Check whether moving from this status to ``target`` is allowed."""
        return target in FLAT_TRANSITIONS[self]


# pending -> approved is the admin moderation action; either state may be sold.
FLAT_TRANSITIONS: dict = {
    FlatStatus.PENDING: frozenset({FlatStatus.APPROVED, FlatStatus.SOLD}),
    FlatStatus.APPROVED: frozenset({FlatStatus.SOLD}),
    FlatStatus.SOLD: frozenset(),
}


def sellable_statuses() -> FrozenSet[FlatStatus]:
    """Statuses from which the owner may mark a flat as sold."""
    return frozenset(s for s, targets in FLAT_TRANSITIONS.items() if FlatStatus.SOLD in targets)


class Flat(Base):
    """
    Flat listing owned by a user.
    Created in ``pending`` status with one to five hosted image URLs.
    """

    __tablename__ = "flats"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the user who listed this flat"
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Listing title"
    )

    address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Flat address"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
        comment="Asking price"
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Free-form description"
    )

    images: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Hosted image URLs in submission order"
    )

    amenities: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Amenity labels"
    )

    status: Mapped[FlatStatus] = mapped_column(
        SQLEnum(FlatStatus, values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False,
        default=FlatStatus.PENDING,
        index=True,
        comment="Lifecycle status"
    )

    sold_to_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Buyer, if recorded at sale time"
    )

    sold_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When the flat was marked sold"
    )

    owner: Mapped["User"] = relationship(
        "User",
        foreign_keys=[user_id],
        lazy="selectin"
    )

    def __repr__(self) -> str:
        """String representation of the flat."""
        return f"<Flat(id={self.id}, title={self.title[:30]}, status={self.status})>"

    def to_dict(self, include_owner: bool = False) -> dict:
        """
        Convert flat to dictionary.

        Args:
            include_owner: Whether to include the public owner projection

        Returns:
            Dictionary representation of the flat
        """
        result = {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "title": self.title,
            "address": self.address,
            "price": float(self.price),
            "description": self.description,
            "images": list(self.images or []),
            "amenities": list(self.amenities or []),
            "status": self.status.value,
            "sold_to_user_id": str(self.sold_to_user_id) if self.sold_to_user_id else None,
            "sold_date": self.sold_date.isoformat() if self.sold_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

        if include_owner and self.owner is not None:
            result["owner"] = self.owner.to_public_dict()

        return result


# Public feed: approved flats, newest first
status_created_index = Index(
    'idx_flats_status_created',
    Flat.status,
    Flat.created_at.desc()
)

# Owner dashboard: a user's flats, newest first
owner_created_index = Index(
    'idx_flats_owner_created',
    Flat.user_id,
    Flat.created_at.desc()
)

"""
User model with authentication and role management.
Handles accounts for flat owners and administrators.
"""

from sqlalchemy import String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from flatmarket.database import Base
import enum
from typing import Optional


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """
    User model for authentication and authorization.
    The email column is the unique lookup key and is compared case-sensitively.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="User's display name"
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    phone: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Contact phone number"
    )

    address: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        comment="Postal address"
    )

    postal_code: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Postal code"
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=UserRole.USER,
        index=True,
        comment="User role for access control"
    )

    profile_image: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="URL of the hosted profile image"
    )

    def __repr__(self) -> str:
        """String representation of the user."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        """Check if user has admin role."""
        return self.role == UserRole.ADMIN

    def to_dict(self) -> dict:
        """
        Convert user to dictionary (excluding the password hash).

        Returns:
            Dictionary representation of user
        """
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "postal_code": self.postal_code,
            "role": self.role.value,
            "profile_image": self.profile_image,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_session_dict(self) -> dict:
        """Trimmed identity attached to authenticated requests."""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "profile_image": self.profile_image,
        }

    def to_public_dict(self) -> dict:
        """Owner details shown next to public listings."""
        return {
            "id": str(self.id),
            "name": self.name,
            "email": self.email,
            "address": self.address,
            "phone": self.phone,
        }

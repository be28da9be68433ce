from __future__ import annotations
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, UniqueConstraint, DateTime, Text, text
from typing import Optional

from .authz import Base  # reuse same metadata


class CustomRole(Base):
    __tablename__ = 'custom_roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_id: Mapped[int] = mapped_column(ForeignKey('locations.id', ondelete='CASCADE'), nullable=False, index=True)
    # NULL = any base role may hold this custom role
    requires_base_role: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location = relationship('Location')
    grants = relationship('CustomRolePermission', back_populates='custom_role', cascade='all, delete-orphan')
    user_custom_roles = relationship('UserCustomRole', back_populates='custom_role', cascade='all, delete-orphan')
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    @property
    def permission_keys(self):
        return frozenset(g.permission_key for g in self.grants)


class CustomRolePermission(Base):
    __tablename__ = 'custom_role_permissions'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    custom_role_id: Mapped[int] = mapped_column(ForeignKey('custom_roles.id', ondelete='CASCADE'), nullable=False)
    permission_key: Mapped[str] = mapped_column(String(64), nullable=False)
    custom_role = relationship('CustomRole', back_populates='grants')
    __table_args__ = (UniqueConstraint('custom_role_id', 'permission_key', name='uq_custom_role_permission'),)


class UserCustomRole(Base):
    __tablename__ = 'user_custom_roles'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    custom_role_id: Mapped[int] = mapped_column(ForeignKey('custom_roles.id', ondelete='CASCADE'), nullable=False)
    __table_args__ = (UniqueConstraint('user_id', 'custom_role_id', name='uq_user_custom_role'),)
    user = relationship('User', back_populates='user_custom_roles')
    custom_role = relationship('CustomRole', back_populates='user_custom_roles')

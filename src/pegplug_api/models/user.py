from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from pegplug_api.db.base import Base, generate_id


class UserRoleEnum(str, Enum):
    USER = "user"
    ADMIN = "admin"


class MembershipTierEnum(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"


class User(Base):
    """App member with spin balance; `version` guards spin/date writes."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=generate_id)
    email = Column(String, nullable=False, default="", server_default="")
    display_name = Column(String, nullable=False, default="", server_default="")
    role = Column(String(length=16), nullable=False, default=UserRoleEnum.USER.value, server_default=UserRoleEnum.USER.value)
    membership_tier = Column(
        String(length=16),
        nullable=False,
        default=MembershipTierEnum.BASIC.value,
        server_default=MembershipTierEnum.BASIC.value,
    )
    available_spins = Column(Integer, nullable=False, default=0, server_default="0")
    last_spin_date = Column(DateTime(timezone=True), nullable=True)
    notifications_enabled = Column(Boolean, nullable=False, default=True, server_default="true")
    push_token = Column(String(256), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

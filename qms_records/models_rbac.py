from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


class AreaMember(Base):
    __tablename__ = "user_business_areas"
    __table_args__ = (UniqueConstraint("business_area", "user_id", name="uq_user_business_area"),)

    id = Column(Integer, primary_key=True, index=True)
    business_area = Column(String(100), ForeignKey("business_areas.name", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # roles: "owner" | "editor"
    role = Column(String(32), nullable=False, default="editor")

    user = relationship("User", back_populates="memberships")
    area = relationship("BusinessArea", back_populates="members")

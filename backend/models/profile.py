from sqlalchemy import Column, String, Text, DateTime
from backend.core.database import Base, utcnow

ROLES = ("patient", "doctor", "ngo")

class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the identity provider's user
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(String(16), nullable=False, default="patient")
    bio = Column(Text, default="")
    avatar_url = Column(String, default="")
    specialization = Column(String, default="")
    organization = Column(String, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

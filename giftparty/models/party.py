from sqlalchemy import Column, String, BigInteger, Boolean, DateTime, Uuid
from sqlalchemy.orm import relationship
from giftparty.db.base import Base

class Party(Base):
    __tablename__ = "party_info"

    # Derived from the join phrase seed, never generated server-side
    id = Column(Uuid(as_uuid=True), primary_key=True)
    admin_id = Column(BigInteger, nullable=False, index=True)
    name = Column("party_name", String(255), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False, index=True)
    matches_made = Column(Boolean, nullable=False, default=False, index=True)

    signups = relationship("Signup", back_populates="party")
    matches = relationship("Match", back_populates="party")

    def __repr__(self):
        return f"<Party {self.id} {self.name!r} ends_at={self.ends_at} matches_made={self.matches_made}>"

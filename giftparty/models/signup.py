from sqlalchemy import Column, Integer, BigInteger, LargeBinary, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from giftparty.db.base import Base

class Signup(Base):
    __tablename__ = "party_signups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("party_info.id"), nullable=False, index=True)
    user_id = Column("uid", BigInteger, nullable=False, index=True)

    # Opaque payloads encoded by the chat layer
    display_payload = Column("name", LargeBinary, nullable=False)
    hint_payload = Column("hint", LargeBinary, nullable=False)

    party = relationship("Party", back_populates="signups")

    __table_args__ = (
        UniqueConstraint('party_id', 'uid', name='uq_signup_party_user'),
    )

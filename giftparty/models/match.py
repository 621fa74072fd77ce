from sqlalchemy import Column, Integer, BigInteger, LargeBinary, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from giftparty.db.base import Base

class Match(Base):
    __tablename__ = "party_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    party_id = Column(Uuid(as_uuid=True), ForeignKey("party_info.id"), nullable=False, index=True)
    giver_id = Column(BigInteger, nullable=False)
    receiver_id = Column(BigInteger, nullable=False)
    receiver_display = Column("receiver_name", LargeBinary, nullable=False)
    receiver_hint = Column("receiver_hint", LargeBinary, nullable=False)

    party = relationship("Party", back_populates="matches")

    __table_args__ = (
        UniqueConstraint('party_id', 'giver_id', name='uq_match_party_giver'),
        UniqueConstraint('party_id', 'receiver_id', name='uq_match_party_receiver'),
    )

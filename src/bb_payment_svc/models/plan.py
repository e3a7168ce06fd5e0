from sqlalchemy import Column, Integer, Numeric, String

from bb_payment_svc.models.base import Base


class Plan(Base):
    """
    Advertising plan offered to users. Read-only reference data for the payment workflow.
    """
    __tablename__ = 'plans'

    id = Column(String(64), primary_key=True)
    name = Column(String(64), nullable=False)
    display_name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    # None means unlimited ads
    max_ads = Column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<Plan(id={self.id}, name={self.name}, price={self.price})>"

# backend/models/log.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import relationship
from database import Base

# Audit trail of marketplace actions (checkout, order transitions, stock changes)
class Log(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    ts = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), index=True) # e.g. CHECKOUT, ORDER_CANCEL
    resource = Column(String(50), index=True) # orders, products, stores, auth
    status = Column(String(20), index=True) # SUCCESS / FAIL
    ip = Column(String(64), nullable=True)

    # Affected ids and other context
    meta = Column(JSON, nullable=True)

    user = relationship("User", uselist=False)

"""QuoteOffer model - one row per respond/counter on a quote request."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class QuoteOffer(Base):
    """Priced offer made by either party during negotiation."""
    
    __tablename__ = 'quote_offers'
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_request_id = Column(Uuid, ForeignKey('quote_requests.id'), nullable=False, index=True)
    side = Column(String(10), nullable=False)  # supplier | company
    offered_by = Column(Uuid, ForeignKey('users.id'), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default='USD')
    quantity = Column(Numeric(14, 3), nullable=True)
    unit = Column(String(50), nullable=True)
    valid_until = Column(DateTime, nullable=True)
    message = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)
    is_accepted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    # Relationships
    quote_request = relationship('QuoteRequest', back_populates='offers')
    
    def __repr__(self):
        return f"<QuoteOffer(quote_request_id={self.quote_request_id}, side='{self.side}', price={self.price})>"
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'quote_request_id': fmt_id(self.quote_request_id),
            'side': self.side,
            'offered_by': fmt_id(self.offered_by),
            'price': fmt_money(self.price),
            'currency': self.currency,
            'quantity': str(self.quantity) if self.quantity is not None else None,
            'unit': self.unit,
            'valid_until': fmt_dt(self.valid_until),
            'message': self.message,
            'terms': self.terms,
            'is_accepted': self.is_accepted,
            'created_at': fmt_dt(self.created_at),
        }

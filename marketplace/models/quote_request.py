"""QuoteRequest model - a company's request for custom pricing (RFQ)."""
import enum
import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Text, Uuid, Index
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_money, fmt_dt
from marketplace.utils.time import utcnow


class QuoteStatus(enum.Enum):
    """Quote negotiation status."""
    PENDING = 'pending'
    RESPONDED = 'responded'
    COUNTERED = 'countered'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


class QuoteParty(enum.Enum):
    """Side of the negotiation that made an offer."""
    SUPPLIER = 'supplier'
    COMPANY = 'company'


TERMINAL_STATUSES = frozenset({
    QuoteStatus.ACCEPTED.value,
    QuoteStatus.REJECTED.value,
    QuoteStatus.CANCELLED.value,
    QuoteStatus.EXPIRED.value,
})


def effective_status(status, expires_at, now=None):
    """
    Status as seen by readers at ``now``.
    
    A non-terminal quote whose expiry has passed reads as expired. Nothing
    is written back.
    """
    if status in TERMINAL_STATUSES or expires_at is None:
        return status
    if now is None:
        now = utcnow()
    if now > expires_at:
        return QuoteStatus.EXPIRED.value
    return status


class QuoteRequest(Base):
    """
    Quote request negotiated between a company and the product's supplier.
    
    supplier_id is copied from the product at creation so listings and
    access checks do not need a join.
    """
    
    __tablename__ = 'quote_requests'
    __table_args__ = (
        Index('ix_quote_requests_company_status', 'company_id', 'status'),
        Index('ix_quote_requests_supplier_status', 'supplier_id', 'status'),
    )
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey('products.id'), nullable=False)
    company_id = Column(Uuid, ForeignKey('tenants.id'), nullable=False)
    supplier_id = Column(Uuid, ForeignKey('tenants.id'), nullable=False)
    requested_by = Column(Uuid, ForeignKey('users.id'), nullable=True)
    
    quantity = Column(Numeric(14, 3), nullable=True)
    unit = Column(String(50), nullable=False)
    requested_price = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default='USD')
    message = Column(Text, nullable=True)
    
    status = Column(String(20), nullable=False, default=QuoteStatus.PENDING.value)
    expires_at = Column(DateTime, nullable=True)
    
    # Latest offer on the table
    quoted_price = Column(Numeric(12, 2), nullable=True)
    quoted_currency = Column(String(3), nullable=True)
    last_offer_by = Column(String(10), nullable=True)  # supplier | company
    
    responded_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(Uuid, nullable=True)
    close_reason = Column(Text, nullable=True)
    
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    product = relationship('Product')
    company = relationship('Tenant', foreign_keys=[company_id])
    supplier = relationship('Tenant', foreign_keys=[supplier_id])
    offers = relationship('QuoteOffer', back_populates='quote_request',
                          order_by='QuoteOffer.created_at', cascade='all, delete-orphan')
    
    def __repr__(self):
        return f"<QuoteRequest(id={self.id}, status='{self.status}', product_id={self.product_id})>"
    
    def effective_status(self, now=None):
        return effective_status(self.status, self.expires_at, now)
    
    def to_dict(self, now=None, include_offers=False):
        data = {
            'id': fmt_id(self.id),
            'product_id': fmt_id(self.product_id),
            'company_id': fmt_id(self.company_id),
            'supplier_id': fmt_id(self.supplier_id),
            'requested_by': fmt_id(self.requested_by),
            'quantity': str(self.quantity) if self.quantity is not None else None,
            'unit': self.unit,
            'requested_price': fmt_money(self.requested_price),
            'currency': self.currency,
            'message': self.message,
            'status': self.effective_status(now),
            'stored_status': self.status,
            'expires_at': fmt_dt(self.expires_at),
            'quoted_price': fmt_money(self.quoted_price),
            'quoted_currency': self.quoted_currency,
            'last_offer_by': self.last_offer_by,
            'responded_at': fmt_dt(self.responded_at),
            'closed_at': fmt_dt(self.closed_at),
            'close_reason': self.close_reason,
            'created_at': fmt_dt(self.created_at),
            'updated_at': fmt_dt(self.updated_at),
        }
        if include_offers:
            data['offers'] = [offer.to_dict() for offer in self.offers]
        return data

"""Product category tree (at most two levels deep)."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id
from marketplace.utils.time import utcnow


class Category(Base):
    """Product Category."""
    
    __tablename__ = 'categories'
    __table_args__ = (
        UniqueConstraint('parent_id', 'name', name='uq_category_parent_name'),
    )
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(Uuid, ForeignKey('categories.id'), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    parent = relationship('Category', remote_side=[id], back_populates='children')
    children = relationship('Category', back_populates='parent', order_by='Category.display_order')
    products = relationship('Product', back_populates='category')
    
    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
    
    def to_dict(self, include_children=False):
        data = {
            'id': fmt_id(self.id),
            'name': self.name,
            'description': self.description,
            'parent_id': fmt_id(self.parent_id),
            'display_order': self.display_order,
            'is_active': self.is_active,
            'image_url': self.image_url,
        }
        if include_children:
            data['children'] = [
                child.to_dict() for child in self.children if child.is_active
            ]
        return data

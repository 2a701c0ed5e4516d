"""
Admin audit log model for tracking approval and status actions.
"""
import uuid
from sqlalchemy import Column, String, DateTime, JSON, Uuid
from marketplace.database import Base
from marketplace.utils.formatters import fmt_id, fmt_dt
from marketplace.utils.time import utcnow


class AdminAuditLog(Base):
    """
    Audit trail for approvals, rejections and activation toggles.
    
    Written in the same transaction as the change it records.
    """
    __tablename__ = 'admin_audit_logs'
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    
    # Who performed the action
    actor_user_id = Column(Uuid, nullable=False)
    
    # What action was performed
    action = Column(String(100), nullable=False)
    
    # Target tenant and/or user
    target_tenant_id = Column(Uuid, nullable=True, index=True)
    target_user_id = Column(Uuid, nullable=True)
    
    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    
    def __repr__(self):
        return f'<AdminAuditLog id={self.id} action={self.action} actor={self.actor_user_id}>'
    
    @staticmethod
    def log_action(actor_user_id, action, target_tenant_id=None, target_user_id=None,
                   details=None, ip_address=None):
        """
        Helper method to create audit log entries.
        
        Args:
            actor_user_id: ID of the user performing the action
            action: Action type (see AuditAction)
            target_tenant_id: Optional tenant the action targets
            target_user_id: Optional user the action targets
            details: Optional dict with additional context
            ip_address: Optional IP address of the actor
        
        Returns:
            AdminAuditLog instance (not committed)
        """
        return AdminAuditLog(
            actor_user_id=actor_user_id,
            action=action,
            target_tenant_id=target_tenant_id,
            target_user_id=target_user_id,
            details=details,
            ip_address=ip_address
        )
    
    def to_dict(self):
        return {
            'id': fmt_id(self.id),
            'actor_user_id': fmt_id(self.actor_user_id),
            'action': self.action,
            'target_tenant_id': fmt_id(self.target_tenant_id),
            'target_user_id': fmt_id(self.target_user_id),
            'details': self.details,
            'created_at': fmt_dt(self.created_at),
        }


class AuditAction:
    """Constants for audited admin actions."""
    APPROVE_TENANT = 'APPROVE_TENANT'
    REJECT_TENANT = 'REJECT_TENANT'
    ACTIVATE_TENANT = 'ACTIVATE_TENANT'
    DEACTIVATE_TENANT = 'DEACTIVATE_TENANT'
    APPROVE_USER = 'APPROVE_USER'
    REJECT_USER = 'REJECT_USER'
    ACTIVATE_USER = 'ACTIVATE_USER'
    DEACTIVATE_USER = 'DEACTIVATE_USER'
    UPDATE_USER_PERMISSIONS = 'UPDATE_USER_PERMISSIONS'
    CREATE_SUPER_ADMIN = 'CREATE_SUPER_ADMIN'

"""Middleware for authentication and actor context."""
import uuid
from functools import wraps
from flask import session, g
from marketplace.actor import Actor
from marketplace.database import get_session
from marketplace.exceptions import AuthenticationError, ForbiddenError
from marketplace.services.auth_service import load_session_user


def load_actor():
    """
    Load current user and actor into g (Flask's per-request global).
    
    Called before each request. Sets g.user and g.actor when the session
    belongs to a user who is still allowed in; otherwise the login session
    is dropped.
    """
    g.user = None
    g.actor = None
    
    raw_user_id = session.get('user_id')
    if not raw_user_id:
        return
    
    try:
        user_id = uuid.UUID(str(raw_user_id))
    except ValueError:
        session.clear()
        return
    
    db_session = get_session()
    if not db_session:
        return
    
    user = load_session_user(db_session, user_id)
    if user is None:
        # Account or organization lost access since login
        session.clear()
        return
    
    g.user = user
    g.actor = Actor.from_user(user)


def login_user(user):
    session.clear()
    session['user_id'] = str(user.id)
    session.permanent = True


def logout_user():
    session.clear()


def require_login(f):
    """Decorator: Require an authenticated user (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('actor') is None:
            raise AuthenticationError("Authentication required")
        return f(*args, **kwargs)
    return decorated_function


def require_roles(*roles):
    """
    Decorator: Require one of the given roles.
    
    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.actor.role not in roles:
                raise ForbiddenError("Your role does not allow this action")
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_tenant_type(*tenant_types):
    """
    Decorator: Require the actor's tenant to be one of the given types.
    
    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.actor.tenant_type not in tenant_types:
                raise ForbiddenError("This action is not available to your organization type")
            return f(*args, **kwargs)
        return decorated_function
    return decorator

"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from marketplace.database import get_session

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.
    
    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        session = get_session()
        row = session.execute(text("SELECT 1 as health_check")).fetchone()
        
        if row and row[0] == 1:
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'message': 'Database connection successful'
            }), 200
        return jsonify({
            'status': 'unhealthy',
            'database': 'error',
            'message': 'Unexpected query result'
        }), 500
            
    except Exception as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
            'message': 'Failed to connect to database'
        }), 500


@main_bp.route('/health/events')
def health_events():
    """
    Event relay health check.
    
    Never returns 500: notifications are best-effort, so a missing Redis
    only degrades the service.
    """
    from marketplace.services.event_service import get_event_relay
    relay = get_event_relay()
    
    if relay.is_available():
        return jsonify({
            'status': 'ok',
            'events': 'connected',
            'message': 'Event relay is publishing'
        }), 200
    return jsonify({
        'status': 'degraded',
        'events': 'unavailable',
        'message': 'Event relay disabled or Redis unavailable (notifications are dropped)'
    }), 200

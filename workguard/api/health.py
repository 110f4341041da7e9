"""
Health Check Endpoint

Provides service health monitoring for load balancers and monitoring systems.
"""

from datetime import datetime, timezone

from flask import current_app, jsonify
from sqlalchemy import text

from workguard.models import db

from . import api_bp


@api_bp.route('/health', methods=['GET'])
def health_check():
    """
    Health check endpoint for load balancers and monitoring.

    Returns service status and database reachability.
    """
    db.session.execute(text('SELECT 1'))
    return jsonify({
        'status': 'healthy',
        'service': 'workguard-api',
        'version': current_app.config.get('VERSION', '1.0.0'),
        'database': 'connected',
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }), 200

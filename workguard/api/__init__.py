"""
API Blueprint for WorkGuard

HTTP REST endpoints over the compliance engine and the workforce lifecycle.
The caller identifies itself with the X-Actor-Id header; the value is recorded
on blocks, approvals, refusals and incidents.
"""

from flask import Blueprint, current_app, request

from workguard.domains.compliance import ComplianceService, ComplianceSettings
from workguard.models import db

ANONYMOUS_ACTOR = 'anonymous'

# Create the API blueprint
api_bp = Blueprint('api', __name__)


def current_actor() -> str:
    """Actor id from the request headers."""
    return request.headers.get('X-Actor-Id') or ANONYMOUS_ACTOR


def compliance_settings() -> ComplianceSettings:
    return ComplianceSettings.from_config(current_app.config)


def compliance_service() -> ComplianceService:
    """Compliance service bound to the request's session."""
    return ComplianceService(db.session, compliance_settings())


@api_bp.teardown_request
def discard_uncommitted(error=None):
    """Roll back whatever a failed request flushed but never committed."""
    db.session.rollback()


# Import routes to register them
from . import health, clients, workers, allocations, operations, compliance  # noqa: E402,F401

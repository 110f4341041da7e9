"""
Allocation API Endpoints

Allocation creation goes through the risk gate: critical risk is refused with
422 ALLOCATION_REJECTED, high risk is created with a rotation warning.
"""

from flask import jsonify, request

from workguard.models import db

from . import api_bp, compliance_service
from .schemas import AllocationListQuerySchema, AllocationSchema, AllocationStatusSchema


@api_bp.route('/allocations', methods=['POST'])
def create_allocation():
    """
    Create an allocation for a worker at a client location.

    Expects:
    {
        "workerId": 1, "clientId": 1, "locationId": 1, "workDate": "2026-10-19",
        "jobFunction": "loader", "dailyRate": 150.00
    }
    """
    data = AllocationSchema().load(request.get_json(silent=True) or {})
    result = compliance_service().create_allocation(**data)
    return jsonify(result.to_dict()), 201


@api_bp.route('/allocations/<int:allocation_id>/status', methods=['PATCH'])
def update_allocation_status(allocation_id: int):
    data = AllocationStatusSchema().load(request.get_json(silent=True) or {})
    allocation = compliance_service().update_allocation_status(allocation_id, data['status'])
    db.session.commit()
    return jsonify({'allocation': allocation.to_dict()}), 200


@api_bp.route('/allocations', methods=['GET'])
def list_allocations():
    """
    List allocations, latest work date first.

    Query parameters (all optional):
    - workerId, clientId, locationId
    - startDate, endDate: Inclusive work-date range
    - status: scheduled, in_progress, completed or cancelled
    """
    filters = AllocationListQuerySchema().load(request.args)
    allocations = compliance_service().list_allocations(**filters)
    return jsonify({
        'allocations': [allocation.to_dict() for allocation in allocations],
        'total': len(allocations),
    }), 200

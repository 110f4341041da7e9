"""
Operation API Endpoints

Operation creation, member acceptance and attendance, completion and incidents.
"""

from flask import jsonify, request

from workguard.domains.workforce import OperationService
from workguard.models import db

from . import api_bp, compliance_service, current_actor
from .schemas import AcceptOperationSchema, IncidentSchema, OperationSchema


def _operation_service() -> OperationService:
    return OperationService(compliance_service())


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


@api_bp.route('/operations', methods=['POST'])
def create_operation():
    """
    Create an operation and invite its members.

    Expects:
    {
        "clientId": 1, "locationId": 1, "operationName": "...", "workDate": "2026-10-19",
        "members": [{"workerId": 1, "jobFunction": "...", "dailyRate": 150.00}]
    }
    """
    data = OperationSchema().load(_json_body())
    operation = _operation_service().create_operation(created_by=current_actor(), **data)
    db.session.commit()
    return jsonify({'operation': operation.to_dict(include_members=True)}), 201


@api_bp.route('/operations/<int:operation_id>/start', methods=['POST'])
def start_operation(operation_id: int):
    operation = _operation_service().start_operation(operation_id)
    db.session.commit()
    return jsonify({'operation': operation.to_dict()}), 200


@api_bp.route('/operations/members/<int:member_id>/accept', methods=['POST'])
def accept_operation(member_id: int):
    data = AcceptOperationSchema().load(_json_body())
    member = _operation_service().accept_operation(member_id, data['cpf'])
    db.session.commit()
    return jsonify({'member': member.to_dict()}), 200


@api_bp.route('/operations/members/<int:member_id>/check-in', methods=['POST'])
def check_in(member_id: int):
    member = _operation_service().check_in(member_id)
    db.session.commit()
    return jsonify({'member': member.to_dict()}), 200


@api_bp.route('/operations/members/<int:member_id>/check-out', methods=['POST'])
def check_out(member_id: int):
    member = _operation_service().check_out(member_id)
    db.session.commit()
    return jsonify({'member': member.to_dict()}), 200


@api_bp.route('/operations/<int:operation_id>/complete', methods=['POST'])
def complete_operation(operation_id: int):
    operation = _operation_service().complete_operation(operation_id)
    db.session.commit()
    return jsonify({'operation': operation.to_dict(include_members=True)}), 200


@api_bp.route('/operations/<int:operation_id>/incidents', methods=['POST'])
def register_incident(operation_id: int):
    """
    Report an incident; absence, misconduct and accident block the worker.

    Expects:
    {
        "workerId": 1, "incidentType": "absence", "description": "...",
        "severity": "low|medium|high|critical"
    }
    """
    data = IncidentSchema().load(_json_body())
    incident, block_result = _operation_service().register_incident(
        operation_id, reported_by=current_actor(), **data
    )
    db.session.commit()
    return jsonify({'incident': incident.to_dict(), 'block': block_result}), 201

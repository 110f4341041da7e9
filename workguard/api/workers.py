"""
Worker API Endpoints

Registration lifecycle, blocks, refusals, autonomy metrics and per-worker risk.
"""

from flask import jsonify, request

from workguard.domains.workforce import RegistrationService
from workguard.models import db
from workguard.utils.exceptions import ValidationError
from workguard.utils.logger import get_logger

from . import api_bp, compliance_service, compliance_settings, current_actor
from .schemas import (
    BlockWorkerSchema,
    ContinuityCheckSchema,
    RefusalSchema,
    RegisterWorkerSchema,
    RejectWorkerSchema,
    UnblockWorkerSchema,
    WorkerListQuerySchema,
    WorkerRiskQuerySchema,
)

logger = get_logger(__name__)


def _registration_service() -> RegistrationService:
    settings = compliance_settings()
    return RegistrationService(
        db.session,
        minimum_age=settings.minimum_worker_age,
        business_timezone=settings.business_timezone,
    )


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


@api_bp.route('/workers', methods=['POST'])
def register_worker():
    """
    Register a worker pending approval.

    Expects:
    {
        "fullName": "...", "cpf": "123.456.789-09", "dateOfBirth": "1990-05-01",
        "workerType": "daily|freelancer|mei|clt", "phone": "...", "dailyRate": 150.00
    }
    """
    data = RegisterWorkerSchema().load(_json_body())
    worker = _registration_service().register_worker(**data)
    db.session.commit()

    logger.info("Worker registered", extra={'worker_id': worker.id})
    return jsonify({'worker': worker.to_dict()}), 201


@api_bp.route('/workers', methods=['GET'])
def list_workers():
    """
    List workers, newest first.

    Query parameters:
    - registrationStatus: pending, approved or rejected
    """
    query = WorkerListQuerySchema().load(request.args)
    workers = _registration_service().list_workers(query.get('registration_status'))
    return jsonify({
        'workers': [worker.to_dict() for worker in workers],
        'total': len(workers),
    }), 200


@api_bp.route('/workers/<int:worker_id>', methods=['GET'])
def get_worker(worker_id: int):
    worker = compliance_service().repository.require_worker(worker_id)
    return jsonify({'worker': worker.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/approve', methods=['POST'])
def approve_worker(worker_id: int):
    worker = _registration_service().approve_worker(worker_id, current_actor())
    db.session.commit()
    return jsonify({'worker': worker.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/reject', methods=['POST'])
def reject_worker(worker_id: int):
    data = RejectWorkerSchema().load(_json_body())
    worker = _registration_service().reject_worker(
        worker_id, current_actor(), data['reason']
    )
    db.session.commit()
    return jsonify({'worker': worker.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/block', methods=['POST'])
def block_worker(worker_id: int):
    """
    Block a worker.

    Expects:
    {
        "reason": "...",
        "blockType": "temporary|permanent",
        "daysBlocked": 7  // required for temporary blocks
    }
    """
    data = BlockWorkerSchema().load(_json_body())
    worker = compliance_service().block_worker(
        worker_id,
        reason=data['reason'],
        actor_id=current_actor(),
        block_type=data['block_type'],
        days_blocked=data.get('days_blocked'),
    )
    db.session.commit()
    return jsonify({'worker': worker.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/unblock', methods=['POST'])
def unblock_worker(worker_id: int):
    data = UnblockWorkerSchema().load(_json_body())
    worker = compliance_service().unblock_worker(
        worker_id, reason=data['reason'], actor_id=current_actor()
    )
    db.session.commit()
    return jsonify({'worker': worker.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/block-history', methods=['GET'])
def get_block_history(worker_id: int):
    history = compliance_service().get_worker_block_history(worker_id)
    return jsonify({
        'history': [entry.to_dict() for entry in history],
        'total': len(history),
    }), 200


@api_bp.route('/workers/<int:worker_id>/refusals', methods=['GET'])
def get_refusals(worker_id: int):
    refusals = compliance_service().get_worker_refusals(worker_id)
    return jsonify({
        'refusals': [refusal.to_dict() for refusal in refusals],
        'total': len(refusals),
    }), 200


@api_bp.route('/workers/<int:worker_id>/refusals', methods=['POST'])
def create_refusal(worker_id: int):
    """
    Register a declined assignment; autonomy metrics are rebuilt afterwards.

    Expects:
    {
        "refusalReason": "...",
        "refusalType": "scheduling_conflict|distance|rate_too_low|...",
        "refusalDate": "2026-10-18T08:00:00", "operationId": 1, "clientId": 1,
        "evidence": "..."
    }
    """
    data = RefusalSchema().load(_json_body())
    service = compliance_service()
    refusal = service.create_worker_refusal(
        worker_id, registered_by=current_actor(), **data
    )
    db.session.commit()

    metrics = service.get_autonomy_metrics(worker_id)
    return jsonify({
        'refusal': refusal.to_dict(),
        'autonomy': metrics.to_dict() if metrics else None,
    }), 201


@api_bp.route('/workers/<int:worker_id>/autonomy', methods=['GET'])
def get_autonomy(worker_id: int):
    metrics = compliance_service().get_autonomy_metrics(worker_id)
    return jsonify({'autonomy': metrics.to_dict() if metrics else None}), 200


@api_bp.route('/workers/<int:worker_id>/autonomy/recalculate', methods=['POST'])
def recalculate_autonomy(worker_id: int):
    metrics = compliance_service().update_worker_autonomy_metrics(worker_id)
    db.session.commit()
    return jsonify({'autonomy': metrics.to_dict()}), 200


@api_bp.route('/workers/<int:worker_id>/consecutive-days', methods=['GET'])
def get_consecutive_days(worker_id: int):
    client_id = request.args.get('clientId', type=int)
    if client_id is None:
        raise ValidationError("clientId query parameter is required", field="clientId")

    days = compliance_service().calculate_consecutive_days(worker_id, client_id)
    return jsonify({
        'workerId': worker_id,
        'clientId': client_id,
        'consecutiveDays': days,
    }), 200


@api_bp.route('/workers/<int:worker_id>/continuity-check', methods=['POST'])
def continuity_check(worker_id: int):
    """Apply the consecutive-day rule at one client, blocking when exceeded."""
    data = ContinuityCheckSchema().load(_json_body())
    result = compliance_service().check_and_block_by_continuity(
        worker_id, data['client_id'], current_actor()
    )
    db.session.commit()
    return jsonify(result), 200


@api_bp.route('/workers/<int:worker_id>/risk', methods=['GET'])
def get_worker_risk(worker_id: int):
    query = WorkerRiskQuerySchema().load(request.args)
    risk = compliance_service().calculate_worker_risk(
        worker_id, query['client_id'], query['location_id']
    )
    return jsonify({'workerId': worker_id, 'risk': risk.to_dict()}), 200

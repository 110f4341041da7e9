"""
Compliance API Endpoints

Fleet risk ranking, block metrics, autonomy watch-list, allocation
suggestions and the manual trigger for the expired-block sweep.
"""

from flask import jsonify, request

from workguard.models import db

from . import api_bp, compliance_service
from .schemas import SuggestionQuerySchema


@api_bp.route('/compliance/risks', methods=['GET'])
def get_worker_risks():
    """Every active worker with the composite risk breakdown, highest first."""
    assessments = compliance_service().calculate_worker_risks()
    return jsonify({
        'workers': [assessment.to_dict() for assessment in assessments],
        'total': len(assessments),
    }), 200


@api_bp.route('/compliance/risk-statistics', methods=['GET'])
def get_risk_statistics():
    return jsonify(compliance_service().get_risk_statistics()), 200


@api_bp.route('/compliance/metrics', methods=['GET'])
def get_compliance_metrics():
    return jsonify(compliance_service().get_compliance_metrics()), 200


@api_bp.route('/compliance/dashboard', methods=['GET'])
def get_risk_dashboard():
    return jsonify(compliance_service().get_risk_dashboard()), 200


@api_bp.route('/compliance/blocked-workers', methods=['GET'])
def get_blocked_workers():
    workers = compliance_service().get_blocked_workers()
    return jsonify({
        'workers': [worker.to_dict() for worker in workers],
        'total': len(workers),
    }), 200


@api_bp.route('/compliance/low-autonomy', methods=['GET'])
def get_low_autonomy_workers():
    workers = compliance_service().get_workers_with_low_autonomy()
    return jsonify({'workers': workers, 'total': len(workers)}), 200


@api_bp.route('/compliance/expired-blocks/sweep', methods=['POST'])
def sweep_expired_blocks():
    """Release temporary blocks whose expiry has passed."""
    result = compliance_service().check_and_unblock_expired_blocks()
    db.session.commit()
    return jsonify(result), 200


@api_bp.route('/compliance/suggestions', methods=['GET'])
def suggest_workers():
    """
    Rank available workers for a client location by ascending risk.

    Query parameters:
    - clientId, locationId: Where the work happens
    - quantity: Workers needed (up to twice as many are returned)
    """
    query = SuggestionQuerySchema().load(request.args)
    suggestions = compliance_service().suggest_workers(
        query['client_id'], query['location_id'], query['quantity']
    )
    return jsonify({'suggestions': suggestions, 'total': len(suggestions)}), 200

"""
Client API Endpoints

Clients and their work locations, referenced by allocations and operations.
"""

from flask import jsonify, request

from workguard.domains.workforce import ClientService
from workguard.models import db

from . import api_bp
from .schemas import ClientSchema, WorkLocationSchema


def _client_service() -> ClientService:
    return ClientService(db.session)


@api_bp.route('/clients', methods=['POST'])
def create_client():
    """
    Create a client.

    Expects:
    {
        "name": "Acme Logistics", "document": "12.345.678/0001-90"
    }
    """
    data = ClientSchema().load(request.get_json(silent=True) or {})
    client = _client_service().create_client(**data)
    db.session.commit()
    return jsonify({'client': client.to_dict()}), 201


@api_bp.route('/clients', methods=['GET'])
def list_clients():
    active_only = request.args.get('activeOnly', 'false').lower() == 'true'
    clients = _client_service().list_clients(active_only=active_only)
    return jsonify({
        'clients': [client.to_dict() for client in clients],
        'total': len(clients),
    }), 200


@api_bp.route('/clients/<int:client_id>', methods=['GET'])
def get_client(client_id: int):
    client = _client_service().require_client(client_id)
    return jsonify({'client': client.to_dict()}), 200


@api_bp.route('/clients/<int:client_id>/locations', methods=['POST'])
def create_location(client_id: int):
    data = WorkLocationSchema().load(request.get_json(silent=True) or {})
    location = _client_service().create_location(client_id, **data)
    db.session.commit()
    return jsonify({'location': location.to_dict()}), 201


@api_bp.route('/clients/<int:client_id>/locations', methods=['GET'])
def list_locations(client_id: int):
    locations = _client_service().list_locations(client_id)
    return jsonify({
        'locations': [location.to_dict() for location in locations],
        'total': len(locations),
    }), 200

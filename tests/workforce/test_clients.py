"""
Unit Tests for Clients and Work Locations
"""

import pytest

from workguard.domains.workforce import ClientService
from workguard.utils.exceptions import NotFoundError, ValidationError


class TestClientService:

    @pytest.fixture
    def clients(self, session):
        return ClientService(session)

    def test_create_client(self, clients):
        client = clients.create_client('  Acme Logistics ', document='12345678000190')

        assert client.id is not None
        assert client.name == 'Acme Logistics'
        assert client.to_dict()['isActive'] is True

    def test_client_name_required(self, clients):
        with pytest.raises(ValidationError):
            clients.create_client(' ')

    def test_list_clients_newest_first(self, clients, session):
        first = clients.create_client('First')
        second = clients.create_client('Second')
        second.is_active = False
        session.flush()

        assert [c.id for c in clients.list_clients()] == [second.id, first.id]
        assert [c.id for c in clients.list_clients(active_only=True)] == [first.id]

    def test_locations_belong_to_client(self, clients):
        acme = clients.create_client('Acme')
        other = clients.create_client('Other')
        dock = clients.create_location(acme.id, 'Dock 3', address='Rua B, 20')
        clients.create_location(other.id, 'Yard')

        locations = clients.list_locations(acme.id)
        assert [loc.id for loc in locations] == [dock.id]
        assert locations[0].to_dict()['clientId'] == acme.id

    def test_location_name_required(self, clients):
        acme = clients.create_client('Acme')

        with pytest.raises(ValidationError):
            clients.create_location(acme.id, '')

    def test_unknown_client(self, clients):
        with pytest.raises(NotFoundError):
            clients.create_location(999, 'Dock 3')
        with pytest.raises(NotFoundError):
            clients.list_locations(999)

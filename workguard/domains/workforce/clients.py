"""
Clients and Work Locations

The companies workers are allocated to and the sites where the work happens.
Every allocation and operation references one of each.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...models import Client, WorkLocation
from ...utils.exceptions import NotFoundError, ValidationError
from ...utils.logger import get_logger

logger = get_logger(__name__)


class ClientService:
    """Creates and lists clients and their locations."""

    def __init__(self, session: Session):
        self.session = session

    def require_client(self, client_id: int) -> Client:
        client = self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client", details={'clientId': client_id})
        return client

    def create_client(self, name: str, document: Optional[str] = None) -> Client:
        if not name or not name.strip():
            raise ValidationError("Client name is required", field="name")

        client = Client(name=name.strip(), document=document)
        self.session.add(client)
        self.session.flush()

        logger.info("Client created", extra={'client_id': client.id})
        return client

    def list_clients(self, active_only: bool = False) -> List[Client]:
        """Clients, newest first."""
        stmt = select(Client)
        if active_only:
            stmt = stmt.where(Client.is_active.is_(True))
        stmt = stmt.order_by(Client.created_at.desc(), Client.id.desc())
        return list(self.session.execute(stmt).scalars())

    def create_location(
        self, client_id: int, name: str, address: Optional[str] = None
    ) -> WorkLocation:
        """
        Add a work location to a client.

        Raises:
            NotFoundError: If the client does not exist
            ValidationError: If the name is empty
        """
        client = self.require_client(client_id)
        if not name or not name.strip():
            raise ValidationError("Location name is required", field="name")

        location = WorkLocation(client_id=client.id, name=name.strip(), address=address)
        self.session.add(location)
        self.session.flush()

        logger.info(
            "Work location created",
            extra={'client_id': client.id, 'location_id': location.id},
        )
        return location

    def list_locations(self, client_id: int) -> List[WorkLocation]:
        self.require_client(client_id)
        stmt = (
            select(WorkLocation)
            .where(WorkLocation.client_id == client_id)
            .order_by(WorkLocation.created_at.desc(), WorkLocation.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

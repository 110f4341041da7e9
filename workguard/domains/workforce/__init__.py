"""
Workforce Domain - Lifecycle Events That Feed the Compliance Engine

Clients and their work locations, worker registration and approval, and
operation membership from invitation to check-out, including incident
reporting.
"""

from .clients import ClientService
from .operations import OperationService
from .registration import RegistrationService

__all__ = ['ClientService', 'OperationService', 'RegistrationService']

"""
Huntr Services

Service layer containing the chart analysis pipeline and its collaborators.
Each service has a defined interface (contract) and implementation.
"""

from huntr.services.base import BaseService

__all__ = ["BaseService"]

"""SQLAlchemy models."""

from brokerdesk.models.client import Client, generate_client_id
from brokerdesk.models.user import User, UserRole

__all__ = ["Client", "User", "UserRole", "generate_client_id"]

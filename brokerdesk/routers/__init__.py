"""API routers."""

from brokerdesk.routers import auth, clients, documents

__all__ = ["auth", "clients", "documents"]

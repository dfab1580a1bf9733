"""Brokerdesk - insurance brokerage back office API."""

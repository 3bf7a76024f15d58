"""Utility helpers shared by the service and API packages."""

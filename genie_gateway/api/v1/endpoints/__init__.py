"""Endpoint routers."""

"""Utility helpers for wiring Flixr components."""

from flixr.utils.client_factory import create_client

__all__ = ["create_client"]

"""Networking utilities for the VoIP.ms API."""

from .http import api_session

__all__ = ["api_session"]

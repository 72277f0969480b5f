"""Authbound backend service package."""

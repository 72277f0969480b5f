"""Authbound: configurable authentication methods with bounded access tokens."""

"""Caller identity: roles, identity triple normalization and sessions."""

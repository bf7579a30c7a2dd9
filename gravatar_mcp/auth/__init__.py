"""Upstream OAuth provider configuration."""

"""Filmflow HTTP API."""

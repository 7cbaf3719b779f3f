"""Rovel utilities."""

"""Shared utilities used across Questline modules."""

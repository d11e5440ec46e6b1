"""Participant notification storage."""

"""Instances module: quest instance lifecycle.

Provides the transition table, the lifecycle service that applies status
changes under an optimistic concurrency guard, the post-commit side-effect
hooks, and the admin API for driving transitions.
"""

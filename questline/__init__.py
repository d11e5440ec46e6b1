"""Questline: quest instance lifecycle service.

Governs how scheduled quest instances move between operational states
and fans out the operational, audit and notification side effects of
each change.
"""

__version__ = "0.1.0"

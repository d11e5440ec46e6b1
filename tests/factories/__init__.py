"""Test data factories for Questline.

Factories build plain objects shaped like ORM rows so service logic can
be exercised without a database.
"""

from tests.factories.hook_factory import RecordingHook
from tests.factories.instance_factory import InMemoryInstanceStore, InstanceFactory

__all__ = [
    "InMemoryInstanceStore",
    "InstanceFactory",
    "RecordingHook",
]

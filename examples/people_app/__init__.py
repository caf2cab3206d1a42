"""
Person/address sample application showcasing Kestrel sessions.
"""

from .demo import CommitCounter, build_factory, keep_last_address, recreate_schema, run_demo
from .models import Address, Person

__all__ = [
    "Address",
    "CommitCounter",
    "Person",
    "build_factory",
    "keep_last_address",
    "recreate_schema",
    "run_demo",
]

"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import ProjectFactory, ApplicationFactory, ...
"""

from tests.factories.base import BaseFactory, generate_uuid7, in_days, utc_now
from tests.factories.marketplace import (
    STATEMENT,
    ApplicationFactory,
    MilestoneFactory,
    ProjectFactory,
    UserFactory,
)

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid7",
    "in_days",
    "utc_now",
    # Marketplace
    "STATEMENT",
    "ApplicationFactory",
    "MilestoneFactory",
    "ProjectFactory",
    "UserFactory",
]

"""Choose the profile a command runs against."""
from __future__ import annotations

import logging

from pb.config import ConfigStore
from pb.errors import DefaultProfileMissing, NoDefaultProfile, ProfileNotFound
from pb.models import Profile

logger = logging.getLogger(__name__)


class ProfileResolver:
    """Resolves an optional ``--profile`` name against the stored config.

    Resolution never writes; the only writes are the ones bootstrap does the
    first time the store is touched in this process.
    """

    def __init__(self, store: ConfigStore) -> None:
        self.store = store

    def resolve(self, requested: str | None = None) -> Profile:
        config = self.store.ensure_bootstrapped()

        if requested:
            profile = config.profiles.get(requested)
            if profile is None:
                raise ProfileNotFound(requested)
            logger.debug("Using requested profile '%s'", requested)
            return profile

        name = config.default_profile
        if not name:
            raise NoDefaultProfile()
        profile = config.profiles.get(name)
        if profile is None:
            raise DefaultProfileMissing(name)
        logger.debug("Using default profile '%s'", name)
        return profile

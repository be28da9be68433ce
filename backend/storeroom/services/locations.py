"""Location directory backed by the ``locations`` table."""
from __future__ import annotations
from typing import Optional, Set
from sqlalchemy import select

from storeroom import get_db
from storeroom.models.authz import Location
from storeroom.services.facts import LocationRef


class LocationDirectory:
    def __init__(self, session=None):
        self.session = session if session is not None else get_db()

    def _get(self, location_id) -> Optional[Location]:
        if location_id is None:
            return None
        try:
            location_id = int(location_id)
        except (TypeError, ValueError):
            return None
        return self.session.execute(
            select(Location).where(Location.id == location_id, Location.is_active.is_(True))
        ).scalar_one_or_none()

    def valid_ids(self) -> Set[int]:
        return set(self.session.execute(select(Location.id).where(Location.is_active.is_(True))).scalars())

    def exists(self, location_id) -> bool:
        return self._get(location_id) is not None

    def is_root(self, location_id) -> bool:
        loc = self._get(location_id)
        return loc is not None and loc.parent_id is None

    def ref(self, location_id) -> Optional[LocationRef]:
        loc = self._get(location_id)
        if loc is None:
            return None
        return LocationRef(id=loc.id, parent_id=loc.parent_id, is_standalone=bool(loc.is_standalone))

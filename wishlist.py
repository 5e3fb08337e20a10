"""Wish list reads and writes on top of the store."""

from __future__ import annotations
import logging
from typing import List, Sequence

from errors import ValidationError
from santa import MAX_WISHES

logger = logging.getLogger(__name__)


class WishListService:

    def __init__(self, store):
        self.store = store

    def own(self, person: str) -> List[str]:
        return self.store.get_wish_list(person)

    def for_name(self, person_name: str) -> List[str]:
        # any signed-in participant may read any wish list
        return self.store.get_wish_list(person_name)

    def submit(self, person: str, entries: Sequence[str]) -> bool:
        """Overwrite the person's wish list. False if the person has no assignment."""
        if len(entries) > MAX_WISHES:
            raise ValidationError(f"A wish list holds at most {MAX_WISHES} wishes")
        updated = self.store.set_wish_list(person, entries)
        if updated:
            logger.info("Wish list submitted for %s", person)
        else:
            logger.warning("Wish list submitted for unknown participant %s", person)
        return updated

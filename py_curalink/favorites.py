# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Resolves stored favorite references to detail records.

Resolution per reference is: local store lookup, then, for trials and
publications whose id has the external shape, one live fetch. Nothing
fetched live is written back, so repeated requests repeat the fetch.
"""

import asyncio
import json
import logging
from typing import Any

from py_curalink.concurrency import gather_settled
from py_curalink.errors import NotFound
from py_curalink.extractor.publications import PublicationEngine
from py_curalink.extractor.trials import TrialNormalizer
from py_curalink.models.favorite import (
    FavoriteReference,
    ItemType,
    ResolutionState,
    ResolvedFavorite,
)
from py_curalink.store.base import BaseStore, Row
from py_curalink.transformers.publications import is_publication_external_id
from py_curalink.transformers.trials import is_trial_external_id

logger = logging.getLogger(__name__)

JSON_LIST_FIELDS = ("specialties", "research_interests", "conditions", "keywords")


def decode_json_list(value: Any, field: str) -> list[Any]:
    """Decode a JSON-encoded list column, treating bad data as empty."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError):
        logger.warning("Failed to parse %s: %r", field, value)
        return []
    if not isinstance(decoded, list):
        logger.warning("Expected a list for %s, got %r", field, decoded)
        return []
    return decoded


def decode_row(row: Row) -> Row:
    """Return a copy of ``row`` with its JSON list columns decoded."""
    decoded = dict(row)
    for field in JSON_LIST_FIELDS:
        if field in decoded and decoded[field] is not None:
            decoded[field] = decode_json_list(decoded[field], field)
    return decoded


class FavoriteResolver:
    """Resolves favorites against the local store with a live fallback."""

    def __init__(
        self,
        store: BaseStore,
        trials: TrialNormalizer,
        publications: PublicationEngine,
    ) -> None:
        self.store = store
        self.trials = trials
        self.publications = publications

    async def _fetch_external(self, reference: FavoriteReference) -> dict[str, Any]:
        if reference.item_type == ItemType.TRIAL:
            logger.info("Fetching external trial: %s", reference.item_id)
            trial = await self.trials.fetch_trial_by_id(reference.item_id)
            return trial.model_dump()
        logger.info("Fetching external publication: %s", reference.item_id)
        publication = await self.publications.fetch_publication_by_id(reference.item_id)
        return publication.model_dump()

    @staticmethod
    def _is_external_candidate(reference: FavoriteReference) -> bool:
        if reference.item_type == ItemType.TRIAL:
            return is_trial_external_id(reference.item_id)
        if reference.item_type == ItemType.PUBLICATION:
            return is_publication_external_id(reference.item_id)
        return False

    async def resolve(self, reference: FavoriteReference) -> ResolvedFavorite:
        """Resolve one reference. External fetch failures degrade to a MISS."""
        row = await asyncio.to_thread(
            self.store.fetch_item, reference.item_type, reference.item_id,
        )
        if row is not None:
            return ResolvedFavorite(
                reference=reference,
                details=decode_row(row),
                resolution_state=ResolutionState.LOCAL_HIT,
            )

        if not self._is_external_candidate(reference):
            return ResolvedFavorite(reference=reference, resolution_state=ResolutionState.MISS)

        try:
            details = await self._fetch_external(reference)
        except NotFound as e:
            return ResolvedFavorite(
                reference=reference,
                resolution_state=ResolutionState.MISS,
                external_attempted=True,
                error=e.kind,
            )
        except Exception as e:
            logger.error(
                "Error fetching external %s %s: %s",
                reference.item_type.value,
                reference.item_id,
                e,
            )
            return ResolvedFavorite(
                reference=reference,
                resolution_state=ResolutionState.MISS,
                external_attempted=True,
                error=getattr(e, "kind", type(e).__name__),
            )

        return ResolvedFavorite(
            reference=reference,
            details=details,
            resolution_state=ResolutionState.EXTERNAL_HIT,
            external_attempted=True,
        )

    async def resolve_all(self, references: list[FavoriteReference]) -> list[ResolvedFavorite]:
        """Resolve every reference concurrently, one result per input, in order."""
        resolved = []
        for outcome in await gather_settled(self.resolve, references):
            if outcome.ok:
                resolved.append(outcome.value)
                continue
            logger.error("Failed to resolve favorite %s: %s", outcome.item, outcome.error)
            resolved.append(
                ResolvedFavorite(
                    reference=outcome.item,
                    resolution_state=ResolutionState.MISS,
                    error=type(outcome.error).__name__,
                )
            )
        return resolved

    async def resolve_for_owner(
        self, owner_id: int | str, item_type: ItemType | None = None,
    ) -> list[ResolvedFavorite]:
        """Read the owner's favorites from the store and resolve them."""
        references = await asyncio.to_thread(self.store.list_favorites, owner_id, item_type)
        return await self.resolve_all(references)

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
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ItemType(str, Enum):
    TRIAL = "trial"
    PUBLICATION = "publication"
    RESEARCHER = "researcher"
    EXPERT = "expert"


class ResolutionState(str, Enum):
    LOCAL_HIT = "LOCAL_HIT"
    EXTERNAL_HIT = "EXTERNAL_HIT"
    MISS = "MISS"


class FavoriteReference(BaseModel):
    """A stored (owner, type, id) favorite row, read-only here."""

    owner_id: int | str
    item_type: ItemType
    item_id: str


class ResolvedFavorite(BaseModel):
    """A favorite reference together with whatever details could be resolved.

    ``external_attempted`` is True whenever a live fallback fetch was issued,
    so a MISS after a failed fetch is distinguishable from a plain MISS.
    ``error`` names the error kind that degraded this entry, if any.
    """

    reference: FavoriteReference
    details: dict[str, Any] | None = None
    resolution_state: ResolutionState
    external_attempted: bool = False
    error: str | None = None

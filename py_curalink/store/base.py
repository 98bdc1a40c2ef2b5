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
from abc import ABC, abstractmethod
from typing import Any

from py_curalink.models.favorite import FavoriteReference, ItemType

Row = dict[str, Any]


class BaseStore(ABC):
    """Abstract read-only interface to the local record store.

    Tables are owned by the persistence layer; this package only reads
    them. Implementations must never write.
    """

    @abstractmethod
    def fetch_item(self, item_type: ItemType, item_id: str) -> Row | None:
        """Point lookup of one locally stored record, or None if absent."""
        ...

    @abstractmethod
    def list_favorites(
        self, owner_id: int | str, item_type: ItemType | None = None,
    ) -> list[FavoriteReference]:
        """Return the owner's favorite references, newest first."""
        ...

    @abstractmethod
    def find_trials(self, condition: str | None, country: str | None, limit: int) -> list[Row]:
        """Open trials whose title or description contains ``condition``,
        restricted to ``country`` when given."""
        ...

    @abstractmethod
    def find_publications(self, condition: str | None, limit: int) -> list[Row]:
        ...

    @abstractmethod
    def find_experts(self, condition: str | None, limit: int) -> list[Row]:
        """Available health experts whose specialties mention ``condition``."""
        ...

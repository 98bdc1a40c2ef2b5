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
from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg.rows import dict_row

from py_curalink.models.favorite import FavoriteReference, ItemType
from py_curalink.store.base import BaseStore, Row

OPEN_TRIAL_STATUSES = ("Recruiting", "Active, not recruiting", "Not yet recruiting")

# Ids are compared as text: favorites hold both numeric local ids and
# external identifiers such as NCT numbers.
ITEM_QUERIES = {
    ItemType.TRIAL: "SELECT * FROM clinical_trials WHERE id::text = %s",
    ItemType.PUBLICATION: "SELECT * FROM publications WHERE id::text = %s",
    ItemType.RESEARCHER: (
        "SELECT u.id, u.name, u.email, u.user_type, "
        "r.specialties, r.research_interests, r.institution, r.bio "
        "FROM users u LEFT JOIN researcher_profiles r ON u.id = r.user_id "
        "WHERE u.id::text = %s"
    ),
}
ITEM_QUERIES[ItemType.EXPERT] = ITEM_QUERIES[ItemType.RESEARCHER]


class PostgresStore(BaseStore):
    """PostgreSQL implementation of the read-only local store."""

    def __init__(self, dsn: str):
        """Initializes the PostgresStore with connection details.

        Args:
            dsn: The connection string for the PostgreSQL database.
        """
        self.dsn = dsn

    @contextmanager
    def get_conn(self) -> Iterator[psycopg.Connection]:
        """Yields a read-only connection for a single lookup."""
        with psycopg.connect(self.dsn, row_factory=dict_row) as conn:
            conn.read_only = True
            yield conn

    def _query(self, query: str, params: list | tuple) -> list[Row]:
        with self.get_conn() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def fetch_item(self, item_type: ItemType, item_id: str) -> Row | None:
        rows = self._query(ITEM_QUERIES[ItemType(item_type)], (str(item_id),))
        return rows[0] if rows else None

    def list_favorites(
        self, owner_id: int | str, item_type: ItemType | None = None,
    ) -> list[FavoriteReference]:
        query = "SELECT user_id, item_type, item_id FROM favorites WHERE user_id::text = %s"
        params: list = [str(owner_id)]
        if item_type:
            query += " AND item_type = %s"
            params.append(ItemType(item_type).value)
        query += " ORDER BY created_at DESC"

        return [
            FavoriteReference(
                owner_id=row["user_id"],
                item_type=row["item_type"],
                item_id=str(row["item_id"]),
            )
            for row in self._query(query, params)
        ]

    def find_trials(self, condition: str | None, country: str | None, limit: int) -> list[Row]:
        query = "SELECT * FROM clinical_trials WHERE status = ANY(%s)"
        params: list = [list(OPEN_TRIAL_STATUSES)]
        if condition:
            query += " AND (title ILIKE %s OR description ILIKE %s)"
            params += [f"%{condition}%", f"%{condition}%"]
        if country:
            query += " AND country = %s"
            params.append(country)
        query += " ORDER BY created_at DESC LIMIT %s"
        params.append(limit)
        return self._query(query, params)

    def find_publications(self, condition: str | None, limit: int) -> list[Row]:
        query = "SELECT * FROM publications WHERE TRUE"
        params: list = []
        if condition:
            query += " AND (title ILIKE %s OR summary ILIKE %s)"
            params += [f"%{condition}%", f"%{condition}%"]
        query += " ORDER BY year DESC, citation_count DESC LIMIT %s"
        params.append(limit)
        return self._query(query, params)

    def find_experts(self, condition: str | None, limit: int) -> list[Row]:
        query = (
            "SELECT u.id, u.name, u.email, r.specialties, r.institution, "
            "r.availability, r.bio "
            "FROM researcher_profiles r JOIN users u ON r.user_id = u.id "
            "WHERE r.availability = 'available' AND u.user_type = 'health_expert'"
        )
        params: list = []
        if condition:
            query += " AND r.specialties ILIKE %s"
            params.append(f"%{condition}%")
        query += " LIMIT %s"
        params.append(limit)
        return self._query(query, params)

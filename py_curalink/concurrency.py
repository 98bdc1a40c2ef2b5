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
"""Parallel map primitives that capture each item's outcome.

Both helpers return exactly one :class:`Settled` per input item, in input
order, whether the item's call returned or raised.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Settled(Generic[T]):
    """The outcome of one item: either a value or the exception it raised."""

    item: Any
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def gather_settled(
    func: Callable[[Any], Awaitable[T]], items: Iterable[Any],
) -> list[Settled[T]]:
    """Run ``func`` concurrently for every item and collect all outcomes."""

    async def _run(item: Any) -> Settled[T]:
        try:
            return Settled(item=item, value=await func(item))
        except Exception as e:
            return Settled(item=item, error=e)

    return list(await asyncio.gather(*(_run(item) for item in items)))


def map_settled(func: Callable[[Any], T], items: Iterable[Any]) -> list[Settled[T]]:
    """Synchronous counterpart of :func:`gather_settled` for pure transforms."""
    outcomes: list[Settled[T]] = []
    for item in items:
        try:
            outcomes.append(Settled(item=item, value=func(item)))
        except Exception as e:
            outcomes.append(Settled(item=item, error=e))
    return outcomes

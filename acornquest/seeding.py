"""Demo players for local runs and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from typing import Iterable

from faker import Faker

from .storage.base import PlayerRecord, PlayerStore


@dataclass(slots=True)
class PlayerFactory:
    faker: Faker = field(default_factory=Faker)
    rng: Random = field(default_factory=Random)

    def build(
        self,
        player_id: str | None = None,
        *,
        xp: int | None = None,
        acorns: int | None = None,
    ) -> PlayerRecord:
        return PlayerRecord(
            player_id=player_id or self.faker.unique.uuid4(),
            name=self.faker.first_name(),
            xp=self.rng.randint(0, 900) if xp is None else xp,
            acorns=self.rng.randint(20, 200) if acorns is None else acorns,
        )

    def batch(self, count: int) -> Iterable[PlayerRecord]:
        for _ in range(count):
            yield self.build()


async def seed_players(store: PlayerStore, count: int = 5, *, factory: PlayerFactory | None = None) -> list[PlayerRecord]:
    """Create ``count`` demo opponents so battles have someone to target."""
    factory = factory or PlayerFactory()
    return [await store.create(record) for record in factory.batch(count)]

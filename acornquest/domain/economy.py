"""Balance primitives shared by every settlement."""

from __future__ import annotations

from dataclasses import dataclass

from .leveling import level_of


@dataclass(slots=True)
class Balance:
    """Mutable xp/acorn pair used while a settlement is being computed."""

    xp: int = 0
    acorns: int = 0

    @property
    def level(self) -> int:
        return level_of(self.xp)

    def grant(self, *, xp: int = 0, acorns: int = 0) -> None:
        if xp < 0 or acorns < 0:
            raise ValueError("Cannot grant a negative amount")
        self.xp += xp
        self.acorns += acorns

    def take_acorns(self, amount: int) -> int:
        """Debit up to ``amount`` acorns, floored at zero; returns what was actually taken."""
        if amount < 0:
            raise ValueError("Cannot debit negative amount")
        taken = min(self.acorns, amount)
        self.acorns -= taken
        return taken

    def revoke(self, *, xp: int = 0, acorns: int = 0) -> None:
        """Reverse an earlier reward; both balances floor at zero."""
        if xp < 0 or acorns < 0:
            raise ValueError("Cannot revoke a negative amount")
        self.xp = max(0, self.xp - xp)
        self.acorns = max(0, self.acorns - acorns)

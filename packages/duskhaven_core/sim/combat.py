"""Combat resolution boundary and the default stat-check resolver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..ai.determinism import hash_range


@dataclass(frozen=True)
class Combatant:
    actor_id: str
    level: int
    health: int
    max_health: int
    strength: int
    defense: int
    weapon_power: int


@dataclass(frozen=True)
class CombatOutcome:
    winner_id: str
    loser_id: str
    rounds: int
    damage_taken: dict[str, int]
    log: tuple[str, ...] = ()

    def damage_to(self, actor_id: str) -> int:
        return int(self.damage_taken.get(actor_id, 0))


class CombatResolver(Protocol):
    def resolve(self, attacker: Combatant, defender: Combatant, *, hour: int) -> CombatOutcome:
        ...


class StatCombatResolver:
    """Exchange blows for a few rounds using stats plus a seeded d20 roll.

    The resolver never mutates actors; it only reports damage taken per side.
    """

    def __init__(self, *, seed: str = "0", max_rounds: int = 3) -> None:
        self.seed = str(seed)
        self.max_rounds = max(1, int(max_rounds))

    def _strike(self, striker: Combatant, target: Combatant, *, key: str) -> int:
        roll = hash_range(key, 1, 20)
        power = striker.strength + striker.weapon_power * 3 + striker.level * 2 + roll
        return max(1, power - target.defense)

    def resolve(self, attacker: Combatant, defender: Combatant, *, hour: int) -> CombatOutcome:
        health = {attacker.actor_id: attacker.health, defender.actor_id: defender.health}
        taken = {attacker.actor_id: 0, defender.actor_id: 0}
        log: list[str] = []
        rounds = 0
        finished = False
        for rnd in range(1, self.max_rounds + 1):
            rounds = rnd
            for striker, target in ((attacker, defender), (defender, attacker)):
                key = f"{self.seed}:{hour}:{attacker.actor_id}:{defender.actor_id}:{rnd}:{striker.actor_id}"
                damage = min(self._strike(striker, target, key=key), health[target.actor_id])
                health[target.actor_id] -= damage
                taken[target.actor_id] += damage
                log.append(f"Round {rnd}: {striker.actor_id} hits {target.actor_id} for {damage}")
                if health[target.actor_id] <= 0:
                    finished = True
                    break
            if finished:
                break

        def standing(c: Combatant) -> tuple[float, int]:
            return (health[c.actor_id] / float(max(1, c.max_health)), -taken[c.actor_id])

        if health[defender.actor_id] <= 0 or standing(attacker) >= standing(defender):
            winner, loser = attacker, defender
        else:
            winner, loser = defender, attacker
        if health[winner.actor_id] <= 0:
            winner, loser = loser, winner
        return CombatOutcome(
            winner_id=winner.actor_id,
            loser_id=loser.actor_id,
            rounds=rounds,
            damage_taken=taken,
            log=tuple(log),
        )

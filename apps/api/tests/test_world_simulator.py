#!/usr/bin/env python3

from __future__ import annotations

import json
import unittest

from packages.duskhaven_core.ai import Action, ActionType, MemoryEventKind, PersonalityProfile, RelationshipType
from packages.duskhaven_core.errors import SimulationInputError
from packages.duskhaven_core.sim import (
    Actor,
    ActorRole,
    ActorStats,
    SimulationContext,
    SimulationTuning,
    WorldEventKind,
    WorldSimulator,
    actor_from_blob,
    actor_to_blob,
    deserialize_actor,
    generate_population,
    restore_world,
    serialize_world,
)
from packages.duskhaven_core.world import LocationCatalog


QUIET_TUNING = SimulationTuning(betrayal_chance=0.0, world_event_chance=0.0)


def _hall_catalog() -> LocationCatalog:
    return LocationCatalog.from_dict(
        {
            "locations": [
                {
                    "location_id": "hall",
                    "name": "Great Hall",
                    "danger": 0.0,
                    "social_capacity": 20,
                    "affordances": ["social", "drink", "rest", "work"],
                }
            ]
        }
    )


def _yard_catalog() -> LocationCatalog:
    return LocationCatalog.from_dict(
        {
            "spawn_location": "hall",
            "locations": [
                {"location_id": "hall", "danger": 0.0, "social_capacity": 20, "affordances": ["social", "rest", "work"]},
                {"location_id": "yard", "danger": 0.0, "social_capacity": 20, "affordances": ["social"]},
            ],
        }
    )


def _actor(actor_id: str, *, location: str = "hall", role: ActorRole = ActorRole.AI, stats: ActorStats | None = None, **traits: float) -> Actor:
    return Actor(
        actor_id=actor_id,
        name=actor_id.title(),
        personality=PersonalityProfile(**traits),
        location=location,
        role=role,
        stats=stats or ActorStats(),
        brain_seed="sim-tests",
    )


def _populated(seed: str, *, count: int = 30, tuning: SimulationTuning = SimulationTuning()) -> WorldSimulator:
    context = SimulationContext(seed=seed, tuning=tuning)
    sim = WorldSimulator(context)
    sim.initialize(generate_population(count, seed=seed, catalog=context.catalog, tuning=tuning))
    return sim


class GangFormationTests(unittest.TestCase):
    def _setup_crew(self) -> WorldSimulator:
        sim = WorldSimulator(
            SimulationContext(
                seed="gang-seed",
                tuning=SimulationTuning(gang_bond_ticks=1, betrayal_chance=0.0, world_event_chance=0.0),
                catalog=_hall_catalog(),
            )
        )
        boss = _actor("boss", ambition=0.9, sociability=0.8, loyalty=0.7)
        followers = [_actor(f"f{idx}", loyalty=0.8) for idx in (1, 2, 3)]
        for follower in followers:
            boss.memory.record(MemoryEventKind.SHARED_DRINK, hour=0, other_id=follower.actor_id, location="hall")
            follower.memory.record(MemoryEventKind.WAS_HELPED, hour=0, other_id="boss", significance=1.0)
        sim.initialize([boss] + followers)
        return sim

    def test_bonded_followers_join_ambitious_leader(self) -> None:
        sim = self._setup_crew()

        events = sim.simulate_hour()

        gangs = sim.gangs()
        self.assertEqual(len(gangs), 1)
        self.assertEqual(gangs[0].leader_id, "boss")
        self.assertEqual(gangs[0].members, {"f1", "f2", "f3"})
        kinds = [event.kind for event in events]
        self.assertEqual(kinds.count(WorldEventKind.GANG_FORMED), 1)
        self.assertEqual(kinds.count(WorldEventKind.GANG_JOINED), 3)
        self.assertEqual(sim.gang_for("f2").gang_id, gangs[0].gang_id)
        self.assertTrue(
            any(e.kind == MemoryEventKind.JOINED_GANG for e in sim.get_actor("f1").memory.get_memories_about("boss"))
        )

    def test_helped_followers_rally_to_leader_within_a_week(self) -> None:
        sim = WorldSimulator(SimulationContext(seed="gang-seed", tuning=SimulationTuning(), catalog=_hall_catalog()))
        boss = _actor("boss", ambition=0.9, sociability=0.8, loyalty=0.7)
        followers = [_actor(f"f{idx}", loyalty=0.8) for idx in (1, 2, 3)]
        for follower in followers:
            follower.memory.record(MemoryEventKind.WAS_HELPED, hour=0, other_id="boss")
        self.assertEqual(boss.memory.event_count, 0)
        sim.initialize([boss] + followers)

        sim.simulate_hours(7 * 24)

        gang = sim.gang_for("boss")
        self.assertIsNotNone(gang)
        self.assertEqual(gang.leader_id, "boss")
        self.assertGreaterEqual(len(gang.members), 1)
        self.assertTrue(gang.members <= {"f1", "f2", "f3"})

    def test_gang_takes_town_and_holds_for_a_week(self) -> None:
        sim = self._setup_crew()

        events = sim.simulate_days(7)

        self.assertEqual(sim.hour, 168)
        self.assertEqual(sim.town_ruler_id, "boss")
        control = [e for e in events if e.kind == WorldEventKind.TOWN_CONTROL_CHANGED]
        self.assertEqual(len(control), 1)
        self.assertEqual(control[0].hour, 23)
        gangs = sim.gangs()
        self.assertEqual(len(gangs), 1)
        self.assertEqual(gangs[0].all_members(), ["boss", "f1", "f2", "f3"])
        status = sim.get_status()
        self.assertEqual(status["town_ruler_id"], "boss")
        self.assertEqual(status["gangs"][0]["members"], ["f1", "f2", "f3"])


class CombatTests(unittest.TestCase):
    def _arena(self) -> WorldSimulator:
        sim = WorldSimulator(
            SimulationContext(
                seed="arena",
                tuning=SimulationTuning(respawn_hours=5, betrayal_chance=0.0, world_event_chance=0.0),
                catalog=_yard_catalog(),
            )
        )
        hero = _actor("hero", role=ActorRole.PLAYER, stats=ActorStats(strength=200, weapon_power=5))
        victim = _actor("victim", stats=ActorStats(health=5, max_health=100))
        witness = _actor("witness")
        friend = _actor("zz_friend", location="yard")
        friend.memory.record(MemoryEventKind.WAS_HELPED, hour=0, other_id="victim", significance=1.0)
        sim.initialize([hero, victim, witness, friend])
        return sim

    def test_player_kill_notifies_witnesses_and_friends(self) -> None:
        sim = self._arena()
        sim.queue_player_action("hero", Action(ActionType.FIGHT, target_id="victim"))

        events = sim.simulate_hour()

        kinds = [event.kind for event in events]
        self.assertIn(WorldEventKind.COMBAT, kinds)
        self.assertIn(WorldEventKind.DEATH, kinds)
        death = next(e for e in events if e.kind == WorldEventKind.DEATH)
        self.assertEqual(death.details["victim_id"], "victim")
        self.assertEqual(death.details["killer_id"], "hero")

        victim = sim.get_actor("victim")
        self.assertFalse(victim.alive)
        self.assertEqual(victim.died_hour, 0)
        self.assertEqual(sim.relationships.stats_for("hero").kills, 1)
        self.assertEqual(sim.relationships.stats_for("victim").deaths, 1)

        witness_kinds = [e.kind for e in sim.get_actor("witness").memory.get_memories_about("hero")]
        self.assertIn(MemoryEventKind.SAW_DEATH, witness_kinds)
        friend = sim.get_actor("zz_friend")
        self.assertIn(MemoryEventKind.FRIEND_KILLED, [e.kind for e in friend.memory.get_memories_about("hero")])
        self.assertEqual(friend.memory.get_relationship("hero", now=0).classification, RelationshipType.ENEMY)
        self.assertNotIn("victim", [a.actor_id for a in sim.get_alive_npcs()])

    def test_dead_actor_respawns_after_delay(self) -> None:
        sim = self._arena()
        sim.queue_player_action("hero", Action(ActionType.FIGHT, target_id="victim"))
        sim.simulate_hour()

        events = sim.simulate_hours(5)

        victim = sim.get_actor("victim")
        self.assertTrue(victim.alive)
        self.assertEqual(victim.location, "hall")
        self.assertEqual(victim.stats.health, victim.stats.max_health)
        respawns = [e for e in events if e.kind == WorldEventKind.RESPAWN]
        self.assertEqual([e.hour for e in respawns], [5])

    def test_invalid_player_action_is_skipped(self) -> None:
        sim = self._arena()
        sim.queue_player_action("hero", Action(ActionType.FIGHT, target_id="ghost"))
        with self.assertLogs("duskhaven_core.sim", level="WARNING") as logs:
            sim.simulate_hour()
        self.assertTrue(any("ghost" in line for line in logs.output))
        self.assertEqual(sim.hour, 1)
        self.assertTrue(sim.get_actor("hero").alive)

    def test_only_players_accept_queued_actions(self) -> None:
        sim = self._arena()
        with self.assertRaises(SimulationInputError):
            sim.queue_player_action("victim", Action(ActionType.REST))
        with self.assertRaises(SimulationInputError):
            sim.queue_player_action("nobody", Action(ActionType.REST))


class SimulatorBehaviourTests(unittest.TestCase):
    def test_initialize_rejects_bad_population(self) -> None:
        sim = WorldSimulator(SimulationContext(seed="bad", catalog=_hall_catalog()))
        with self.assertRaises(SimulationInputError):
            sim.initialize([_actor("a"), _actor("a")])
        with self.assertRaises(SimulationInputError):
            sim.initialize([_actor("b", location="moon")])

    def test_same_seed_gives_identical_history(self) -> None:
        first = _populated("determinism")
        second = _populated("determinism")

        events_a = [event.as_dict() for event in first.simulate_hours(72)]
        events_b = [event.as_dict() for event in second.simulate_hours(72)]

        self.assertEqual(events_a, events_b)
        self.assertEqual(serialize_world(first), serialize_world(second))

    def test_parallel_decisions_match_serial(self) -> None:
        serial = _populated("workers", tuning=SimulationTuning(decision_workers=1))
        parallel = _populated("workers", tuning=SimulationTuning(decision_workers=4))

        events_serial = [event.as_dict() for event in serial.simulate_hours(48)]
        events_parallel = [event.as_dict() for event in parallel.simulate_hours(48)]

        self.assertEqual(events_serial, events_parallel)
        self.assertEqual(
            [actor.summary() for actor in serial.actors()],
            [actor.summary() for actor in parallel.actors()],
        )

    def test_memory_stays_bounded_over_long_runs(self) -> None:
        tuning = SimulationTuning(max_memory_events=20, prune_interval_hours=6, retention_hours=72)
        sim = _populated("bounded", count=15, tuning=tuning)

        peak = 0
        for _ in range(1200):
            sim.simulate_hour()
            peak = max(peak, max(actor.memory.event_count for actor in sim.actors()))
            self.assertLessEqual(peak, 20, sim.hour)

        self.assertEqual(sim.hour, 1200)
        self.assertLessEqual(sim.total_memory_events(), 20 * 15)

    def test_should_stop_halts_between_ticks(self) -> None:
        sim = _populated("cancel", count=5)
        sim.simulate_hours(10, should_stop=lambda: sim.hour >= 3)
        self.assertEqual(sim.hour, 3)

    def test_failing_sink_does_not_break_the_tick(self) -> None:
        received = []

        def broken_sink(event) -> None:
            raise RuntimeError("sink offline")

        context = SimulationContext(
            seed="sinks",
            tuning=SimulationTuning(world_event_chance=1.0),
            sinks=[broken_sink, received.append],
        )
        sim = WorldSimulator(context)
        sim.initialize(generate_population(6, seed="sinks", catalog=context.catalog))

        with self.assertLogs("duskhaven_core.sim", level="WARNING"):
            events = sim.simulate_hours(3)

        self.assertGreaterEqual(len(events), 3)
        self.assertEqual([e.seq for e in received], [e.seq for e in events])

    def test_recent_events_are_chronological(self) -> None:
        sim = _populated("recent", count=8, tuning=SimulationTuning(world_event_chance=1.0))
        events = sim.simulate_hours(6)

        recent = sim.get_recent_events(3)

        self.assertEqual([e.seq for e in recent], [e.seq for e in events[-3:]])
        self.assertEqual(sim.get_recent_events(0), [])
        self.assertEqual(len(sim.get_recent_events(10_000)), len(events))

    def test_status_and_reset(self) -> None:
        sim = _populated("status", count=12)
        sim.simulate_hours(25)
        status = sim.get_status()
        self.assertEqual(status["hour"], 25)
        self.assertEqual(status["day"], 1)
        self.assertEqual(status["hour_of_day"], 1)
        self.assertEqual(status["population"], 12)
        self.assertEqual(status["alive"] + status["dead"], 12)

        sim.reset()

        status = sim.get_status()
        self.assertEqual(status["hour"], 0)
        self.assertEqual(status["population"], 0)
        self.assertEqual(sim.get_recent_events(), [])


class PersistenceTests(unittest.TestCase):
    def test_restored_world_continues_identically(self) -> None:
        original = _populated("restore", count=20, tuning=QUIET_TUNING)
        original.simulate_hours(48)
        raw = json.loads(json.dumps(serialize_world(original)))

        restored = restore_world(raw)

        self.assertEqual(restored.hour, original.hour)
        self.assertEqual(restored.get_status(), original.get_status())
        continued_a = [event.as_dict() for event in original.simulate_hours(48)]
        continued_b = [event.as_dict() for event in restored.simulate_hours(48)]
        self.assertEqual(continued_a, continued_b)

    def test_restore_rejects_unknown_version(self) -> None:
        with self.assertRaises(SimulationInputError):
            restore_world({"state_version": 99})

    def test_actor_blob_round_trip(self) -> None:
        actor = _actor("keeper", vengefulness=0.9)
        actor.memory.record(MemoryEventKind.WAS_ATTACKED, hour=3, other_id="bully", damage=60, location="hall")
        actor.memory.record(MemoryEventKind.SHARED_DRINK, hour=4, other_id="pal", location="hall")
        actor.brain.process_hourly_update({"hour": 5, "location": "hall"})

        restored = actor_from_blob(actor_to_blob(actor))

        for other_id in ("bully", "pal"):
            self.assertEqual(
                restored.memory.get_relationship(other_id, now=5),
                actor.memory.get_relationship(other_id, now=5),
            )
        self.assertEqual(
            [(g.goal_type, g.target_id) for g in restored.goals.get_active_goals()],
            [(g.goal_type, g.target_id) for g in actor.goals.get_active_goals()],
        )
        self.assertEqual(restored.brain.last_tick, 5)
        self.assertEqual(restored.personality, actor.personality)

    def test_actor_snapshot_requires_id(self) -> None:
        with self.assertRaises(SimulationInputError):
            deserialize_actor({"name": "Nobody"})
        with self.assertRaises(SimulationInputError):
            actor_from_blob(b"{not json")


class PopulationTests(unittest.TestCase):
    def test_generation_is_seeded_and_placed_in_catalog(self) -> None:
        catalog = LocationCatalog.default()
        first = generate_population(25, seed="pop", catalog=catalog)
        second = generate_population(25, seed="pop", catalog=catalog)

        self.assertEqual(len(first), 25)
        self.assertEqual(len({actor.actor_id for actor in first}), 25)
        self.assertEqual([a.summary() for a in first], [a.summary() for a in second])
        self.assertEqual([a.personality for a in first], [a.personality for a in second])
        for actor in first:
            self.assertIn(actor.location, catalog)
            self.assertTrue(actor.is_ai)

    def test_negative_count_is_rejected(self) -> None:
        with self.assertRaises(SimulationInputError):
            generate_population(-1, seed="pop")


if __name__ == "__main__":
    unittest.main()

#!/usr/bin/env python3

from __future__ import annotations

import math
import unittest

from packages.duskhaven_core.ai import (
    ActionType,
    ActorBrain,
    EmotionalState,
    EmotionKind,
    GoalSystem,
    GoalType,
    MemoryEventKind,
    MemoryStore,
    PersonalityProfile,
    RelationshipManager,
    RelationshipType,
    WorldSnapshot,
)
from packages.duskhaven_core.ai.goals import GoalStatus
from packages.duskhaven_core.ai.personality import clamp_trait
from packages.duskhaven_core.errors import CognitionInputError


def _brain(actor_id: str, personality: PersonalityProfile) -> ActorBrain:
    memory = MemoryStore(owner_id=actor_id)
    return ActorBrain(
        actor_id=actor_id,
        personality=personality,
        memory=memory,
        emotions=EmotionalState(),
        goals=GoalSystem(personality=personality),
        seed="brain-tests",
    )


class PersonalityTests(unittest.TestCase):
    def test_traits_are_clamped_into_unit_range(self) -> None:
        profile = PersonalityProfile(aggression=1.7, greed=-0.3, courage=0.4)
        self.assertEqual(profile.aggression, 1.0)
        self.assertEqual(profile.greed, 0.0)
        self.assertEqual(profile.courage, 0.4)

    def test_non_numeric_traits_are_rejected(self) -> None:
        with self.assertRaises(CognitionInputError):
            clamp_trait("fierce", name="aggression")
        with self.assertRaises(CognitionInputError):
            PersonalityProfile(loyalty=float("nan"))
        with self.assertRaises(CognitionInputError):
            PersonalityProfile().trait("charisma")

    def test_unknown_archetype_falls_back_to_commoner(self) -> None:
        profile = PersonalityProfile(archetype="dragon")
        self.assertEqual(profile.archetype, "commoner")

    def test_seeded_generation_is_reproducible(self) -> None:
        first = PersonalityProfile.from_seed("guard", "seed-1:npc_0001")
        second = PersonalityProfile.from_seed("guard", "seed-1:npc_0001")
        other = PersonalityProfile.from_seed("guard", "seed-1:npc_0002")
        self.assertEqual(first, second)
        self.assertNotEqual(first, other)
        self.assertEqual(first.archetype, "guard")
        for value in first.as_dict().values():
            if isinstance(value, float):
                self.assertGreaterEqual(value, 0.0)
                self.assertLessEqual(value, 1.0)

    def test_compatibility_bounds(self) -> None:
        calm = PersonalityProfile(aggression=0.0, loyalty=0.0, sociability=0.0, ambition=0.0)
        wild = PersonalityProfile(aggression=1.0, loyalty=1.0, sociability=1.0, ambition=1.0)
        self.assertEqual(calm.compatibility(calm), 1.0)
        self.assertEqual(calm.compatibility(wild), 0.0)
        half = PersonalityProfile(aggression=0.5, loyalty=0.5, sociability=0.5, ambition=0.5)
        self.assertAlmostEqual(calm.compatibility(half), 0.5)

    def test_betrayal_and_revenge_tendencies(self) -> None:
        schemer = PersonalityProfile(loyalty=0.0, greed=1.0, ambition=1.0, impulsiveness=1.0)
        self.assertTrue(schemer.is_likely_to_betray())
        self.assertFalse(PersonalityProfile().is_likely_to_betray())
        grudge = PersonalityProfile(vengefulness=0.9, aggression=0.6)
        self.assertTrue(grudge.is_likely_to_seek_revenge())

    def test_profile_round_trip(self) -> None:
        profile = PersonalityProfile.from_seed("thug", "round-trip")
        self.assertEqual(PersonalityProfile.from_dict(profile.as_dict()), profile)


class EmotionTests(unittest.TestCase):
    def test_decay_is_additive_over_split_updates(self) -> None:
        split = EmotionalState()
        whole = EmotionalState()
        for state in (split, whole):
            state.add_emotion(EmotionKind.ANGER, 0.8, 6.0)
        split.update(2.0)
        split.update(3.0)
        whole.update(5.0)
        self.assertEqual(split.remaining(EmotionKind.ANGER), whole.remaining(EmotionKind.ANGER))
        self.assertAlmostEqual(split.intensity(EmotionKind.ANGER), whole.intensity(EmotionKind.ANGER))

    def test_expired_emotions_are_removed(self) -> None:
        state = EmotionalState()
        state.add_emotion("fear", 0.5, 1.5)
        state.update(2.0)
        self.assertFalse(state.has("fear"))
        self.assertEqual(state.intensity("fear"), 0.0)

    def test_negative_decay_is_rejected(self) -> None:
        state = EmotionalState()
        with self.assertRaises(CognitionInputError):
            state.update(-1.0)

    def test_at_most_five_emotions_and_weakest_is_evicted(self) -> None:
        state = EmotionalState()
        state.add_emotion(EmotionKind.ANGER, 0.9, 4.0)
        state.add_emotion(EmotionKind.FEAR, 0.8, 4.0)
        state.add_emotion(EmotionKind.JOY, 0.7, 4.0)
        state.add_emotion(EmotionKind.SADNESS, 0.6, 4.0)
        state.add_emotion(EmotionKind.CONFIDENCE, 0.5, 4.0)
        state.add_emotion(EmotionKind.GREED, 0.95, 4.0)
        self.assertEqual(len(state.active()), 5)
        self.assertFalse(state.has(EmotionKind.CONFIDENCE))
        self.assertTrue(state.has(EmotionKind.GREED))

    def test_repeated_emotion_refreshes_instead_of_duplicating(self) -> None:
        state = EmotionalState()
        state.add_emotion(EmotionKind.ANGER, 0.4, 2.0)
        state.add_emotion(EmotionKind.ANGER, 0.4, 5.0)
        self.assertEqual(len(state.active()), 1)
        self.assertEqual(state.remaining(EmotionKind.ANGER), 5.0)
        self.assertAlmostEqual(state.intensity(EmotionKind.ANGER), 0.6)

    def test_action_modifiers_stay_bounded(self) -> None:
        self.assertEqual(EmotionalState().action_modifier("fight"), 1.0)

        furious = EmotionalState()
        furious.add_emotion(EmotionKind.ANGER, 1.0, 5.0)
        furious.add_emotion(EmotionKind.CONFIDENCE, 1.0, 5.0)
        self.assertAlmostEqual(furious.action_modifier("fight"), 3.0)

        terrified = EmotionalState()
        terrified.add_emotion(EmotionKind.FEAR, 1.0, 5.0)
        self.assertAlmostEqual(terrified.action_modifier("fight"), 0.1)
        self.assertGreater(terrified.action_modifier("flee"), 1.0)

    def test_interaction_produces_primary_emotion(self) -> None:
        state = EmotionalState()
        primary = state.process_interaction(MemoryEventKind.WAS_ATTACKED, "bully", 0.8)
        self.assertEqual(primary, EmotionKind.ANGER)
        self.assertAlmostEqual(state.intensity(EmotionKind.ANGER), 0.8)
        self.assertAlmostEqual(state.intensity(EmotionKind.FEAR), 0.4)
        self.assertIsNone(state.process_interaction(MemoryEventKind.SAW_PERSON, "someone", 0.05))

    def test_unknown_emotion_kind_is_rejected(self) -> None:
        with self.assertRaises(CognitionInputError):
            EmotionalState().add_emotion("ennui", 0.5)

    def test_state_round_trip_keeps_exact_values(self) -> None:
        state = EmotionalState()
        state.add_emotion(EmotionKind.JOY, 0.37, 3.0)
        state.add_emotion(EmotionKind.HOPE, 0.21, 7.5)
        state.update(1.25)
        restored = EmotionalState.from_dict(state.to_dict())
        self.assertEqual(restored.to_dict(), state.to_dict())


class MemoryTests(unittest.TestCase):
    def test_heavy_attack_makes_an_enemy(self) -> None:
        store = MemoryStore(owner_id="victim")
        store.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80, location="market")
        rel = store.get_relationship("bully", now=0)
        self.assertGreater(rel.hostility, 50.0)
        self.assertGreater(rel.fear, 30.0)
        self.assertAlmostEqual(rel.hostility, 100.0 * math.tanh(0.70), places=6)
        self.assertEqual(rel.classification, RelationshipType.ENEMY)
        self.assertIn("bully", store.get_enemies(now=0))
        self.assertEqual(store.last_known_location("bully"), "market")

    def test_repeated_drinks_build_a_close_friendship(self) -> None:
        store = MemoryStore(owner_id="a")
        for hour in range(5):
            store.record("shared_drink", hour=hour, other_id="b", location="tavern")
        rel = store.get_relationship("b", now=4)
        self.assertGreater(rel.friendship, 50.0)
        self.assertEqual(rel.classification, RelationshipType.CLOSE_FRIEND)
        self.assertIn("b", store.get_allies(now=4))

    def test_betrayal_pins_trust_to_floor(self) -> None:
        store = MemoryStore(owner_id="leader")
        for hour in range(6):
            store.record(MemoryEventKind.SHARED_DRINK, hour=hour, other_id="rat")
        store.record(MemoryEventKind.WAS_BETRAYED, hour=6, other_id="rat", context="gang_0001")
        self.assertEqual(store.get_relationship("rat", now=6).trust, -100.0)
        self.assertEqual(store.get_relationship("rat", now=500).trust, -100.0)

    def test_older_memories_weigh_less(self) -> None:
        store = MemoryStore(owner_id="victim", half_life_hours=168.0)
        store.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80)
        fresh = store.get_relationship("bully", now=0).hostility
        one_half_life = store.get_relationship("bully", now=168).hostility
        self.assertAlmostEqual(one_half_life, 100.0 * math.tanh(0.35), places=6)
        self.assertLess(one_half_life, fresh)

    def test_invalid_event_input_is_rejected(self) -> None:
        store = MemoryStore(owner_id="a")
        with self.assertRaises(CognitionInputError):
            store.record("was_hugged", hour=0, other_id="b")
        with self.assertRaises(CognitionInputError):
            store.record(MemoryEventKind.WAS_HELPED, hour=0, other_id="b", damage=5)
        with self.assertRaises(CognitionInputError):
            store.record_event("was_attacked")  # type: ignore[arg-type]
        self.assertEqual(store.event_count, 0)

    def test_out_of_order_events_are_kept_sorted(self) -> None:
        store = MemoryStore(owner_id="a")
        store.record(MemoryEventKind.SOCIALIZED_WITH, hour=10, other_id="b")
        store.record(MemoryEventKind.SOCIALIZED_WITH, hour=3, other_id="b")
        hours = [event.hour for event in store.get_memories_about("b")]
        self.assertEqual(hours, [3, 10])

    def test_prune_keeps_classification_anchor(self) -> None:
        store = MemoryStore(owner_id="a", retention_hours=24, max_events=10)
        store.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80)
        for hour in range(30):
            store.record(MemoryEventKind.SAW_PERSON, hour=hour, other_id=f"passerby_{hour}")
        self.assertEqual(store.event_count, 10)
        before = store.get_relationship("bully", now=100).classification

        removed = store.prune(now=100)

        self.assertEqual(removed, 9)
        self.assertEqual(store.event_count, 1)
        self.assertEqual(store.get_relationship("bully", now=100).classification, before)
        self.assertEqual(before, RelationshipType.ENEMY)

    def test_prune_respects_capacity_and_protected_targets(self) -> None:
        store = MemoryStore(owner_id="a", retention_hours=720, max_events=10)
        store.record(MemoryEventKind.WAS_ATTACKED, hour=1, other_id="bully", damage=40)
        for hour in range(50):
            store.record(MemoryEventKind.SAW_PERSON, hour=hour, other_id=f"p{hour}")
        store.prune(now=49)
        self.assertLessEqual(store.event_count, 10)
        self.assertTrue(store.remembers_being_attacked_by("bully"))

        aged = MemoryStore(owner_id="b", retention_hours=24)
        aged.record(MemoryEventKind.SAW_PERSON, hour=0, other_id="target")
        aged.record(MemoryEventKind.SAW_PERSON, hour=0, other_id="stranger")
        aged.prune(now=200, protected_ids={"target"})
        self.assertEqual(aged.known_others(), ["target"])

    def test_capacity_holds_on_every_record(self) -> None:
        store = MemoryStore(owner_id="a", max_events=10)
        store.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=40)
        for hour in range(50):
            store.record(MemoryEventKind.SAW_PERSON, hour=hour, other_id=f"p{hour}")
            self.assertLessEqual(store.event_count, 10)

        self.assertEqual(store.event_count, 10)
        self.assertTrue(store.remembers_being_attacked_by("bully"))
        sightings = [e.hour for e in store.all_events() if e.kind == MemoryEventKind.SAW_PERSON]
        self.assertEqual(sightings, list(range(41, 50)))

    def test_zero_half_life_survives_round_trip(self) -> None:
        store = MemoryStore(owner_id="a", half_life_hours=0.0, retention_hours=0, max_events=0)
        store.record(MemoryEventKind.SHARED_DRINK, hour=0, other_id="b")
        store.advance_clock(500)
        before = store.get_relationship("b")

        restored = MemoryStore.from_dict(store.to_dict())

        self.assertEqual(restored.half_life_hours, 0.0)
        self.assertEqual(restored.retention_hours, 0)
        self.assertEqual(restored.max_events, 0)
        self.assertEqual(restored.get_relationship("b"), before)
        self.assertAlmostEqual(before.friendship, 100.0 * math.tanh(0.15), places=6)

    def test_store_round_trip_preserves_relationships(self) -> None:
        store = MemoryStore(owner_id="a")
        store.record(MemoryEventKind.WAS_HELPED, hour=2, other_id="b", significance=0.8)
        store.record(MemoryEventKind.WAS_INSULTED, hour=5, other_id="c", location="tavern")
        store.advance_clock(9)
        restored = MemoryStore.from_dict(store.to_dict())
        self.assertEqual(restored.event_count, store.event_count)
        for other_id in ("b", "c"):
            self.assertEqual(restored.get_relationship(other_id), store.get_relationship(other_id))

    def test_kill_bookkeeping_updates_both_memories(self) -> None:
        class _Npc:
            def __init__(self, actor_id: str) -> None:
                self.actor_id = actor_id
                self.memory = MemoryStore(owner_id=actor_id)

        killer, victim = _Npc("killer"), _Npc("victim")
        manager = RelationshipManager()
        record = manager.update_kill_stats(killer, victim, hour=3, location="docks")
        self.assertEqual(record.killer_stats.kills, 1)
        self.assertEqual(record.victim_stats.deaths, 1)
        self.assertEqual(manager.stats_for("killer").kills, 1)
        self.assertEqual(manager.stats_for("nobody").kills, 0)
        status = manager.get_relationship_status(victim, killer, now=3)
        self.assertEqual(status.classification, RelationshipType.ENEMY)
        self.assertAlmostEqual(status.relationship.hostility, 100.0 * math.tanh(1.0), places=6)


class GoalTests(unittest.TestCase):
    def test_add_goal_deduplicates_by_type_and_target(self) -> None:
        goals = GoalSystem(personality=PersonalityProfile())
        first = goals.add_goal(GoalType.ACCUMULATE_WEALTH, priority=0.3)
        second = goals.add_goal("accumulate_wealth", priority=0.6)
        self.assertIs(first, second)
        self.assertEqual(len(list(goals.get_active_goals())), 1)
        self.assertEqual(second.priority, 0.6)
        goals.add_goal(GoalType.GET_REVENGE, priority=0.5, target_id="x")
        goals.add_goal(GoalType.GET_REVENGE, priority=0.5, target_id="y")
        self.assertEqual(len(list(goals.get_active_goals())), 3)

    def test_equal_priorities_prefer_newest_goal(self) -> None:
        goals = GoalSystem(personality=PersonalityProfile())
        goals.add_goal(GoalType.MAKE_FRIENDS, priority=0.5)
        goals.add_goal(GoalType.HEAL_WOUNDS, priority=0.5)
        self.assertEqual(goals.get_priority_goal().goal_type, GoalType.HEAL_WOUNDS)
        goals.add_goal(GoalType.GAIN_INFLUENCE, priority=0.7)
        ranked = [goal.goal_type for goal in goals.get_active_goals()]
        self.assertEqual(ranked, [GoalType.GAIN_INFLUENCE, GoalType.HEAL_WOUNDS, GoalType.MAKE_FRIENDS])

    def test_invalid_goal_input_is_rejected(self) -> None:
        goals = GoalSystem(personality=PersonalityProfile())
        with self.assertRaises(CognitionInputError):
            goals.add_goal(GoalType.MAKE_FRIENDS, priority=1.5)
        with self.assertRaises(CognitionInputError):
            goals.add_goal(GoalType.MAKE_FRIENDS, priority=float("nan"))
        with self.assertRaises(CognitionInputError):
            goals.add_goal("conquer_world", priority=0.5)

    def test_level_up_boosts_ambition_goals(self) -> None:
        personality = PersonalityProfile(ambition=0.8)
        goals = GoalSystem(personality=personality)
        ruler = goals.add_goal(GoalType.BECOME_RULER, priority=0.5)
        goals.add_goal(GoalType.MAKE_FRIENDS, priority=0.5)
        emotions = EmotionalState()

        outcome = goals.on_level_up(15, emotions=emotions)

        self.assertEqual(outcome.boosted_goals, 1)
        self.assertTrue(outcome.elite_status)
        self.assertAlmostEqual(ruler.priority, 0.6)
        self.assertTrue(emotions.has(EmotionKind.CONFIDENCE))
        self.assertFalse(GoalSystem(personality=PersonalityProfile()).on_level_up(15, emotions=emotions).elite_status)

    def test_revenge_goal_follows_grudge_and_target_life(self) -> None:
        personality = PersonalityProfile(vengefulness=0.9)
        memory = MemoryStore(owner_id="victim")
        memory.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80)
        goals = GoalSystem(personality=personality)

        update = goals.update_goals(
            memory=memory,
            emotions=EmotionalState(),
            snapshot=WorldSnapshot(actor_id="victim", hour=1, alive_actor_ids=frozenset({"victim", "bully"})),
        )
        self.assertTrue(goals.has_goal(GoalType.GET_REVENGE, "bully"))
        self.assertEqual([g.goal_type for g in update.added], [GoalType.GET_REVENGE])
        self.assertIn("bully", goals.protected_targets())

        update = goals.update_goals(
            memory=memory,
            emotions=EmotionalState(),
            snapshot=WorldSnapshot(actor_id="victim", hour=2, alive_actor_ids=frozenset({"victim"})),
        )
        self.assertFalse(goals.has_goal(GoalType.GET_REVENGE, "bully"))
        self.assertEqual(update.closed[0].status, GoalStatus.INVALIDATED)
        self.assertEqual(len(goals.recent_history()), 1)

    def test_repeated_updates_keep_one_goal_per_target(self) -> None:
        memory = MemoryStore(owner_id="victim")
        memory.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80)
        goals = GoalSystem(personality=PersonalityProfile(vengefulness=0.9))
        alive = frozenset({"victim", "bully", "thug"})
        seen_seq: set[int] = set()

        for hour in range(1, 13):
            if hour == 3:
                memory.record(MemoryEventKind.WAS_ATTACKED, hour=hour, other_id="thug", damage=60)
            if hour == 5:
                memory.record(MemoryEventKind.WAS_ATTACKED, hour=hour, other_id="bully", damage=30)
            goals.update_goals(
                memory=memory,
                emotions=EmotionalState(),
                snapshot=WorldSnapshot(actor_id="victim", hour=hour, alive_actor_ids=alive),
            )
            keys = [goal.key for goal in goals.get_active_goals()]
            self.assertEqual(len(keys), len(set(keys)), hour)
            revenge = [g for g in goals.get_active_goals() if g.goal_type == GoalType.GET_REVENGE and g.target_id == "bully"]
            self.assertEqual(len(revenge), 1, hour)
            seen_seq.add(revenge[0].seq)

        self.assertEqual(seen_seq, {1})
        self.assertTrue(goals.has_goal(GoalType.GET_REVENGE, "thug"))

    def test_beaten_rival_is_not_hunted_again(self) -> None:
        memory = MemoryStore(owner_id="victim")
        memory.record(MemoryEventKind.WAS_ATTACKED, hour=0, other_id="bully", damage=80)
        goals = GoalSystem(personality=PersonalityProfile(vengefulness=0.9))
        alive = frozenset({"victim", "bully"})

        def update(hour: int):
            return goals.update_goals(
                memory=memory,
                emotions=EmotionalState(),
                snapshot=WorldSnapshot(actor_id="victim", hour=hour, alive_actor_ids=alive),
            )

        update(1)
        memory.record(MemoryEventKind.WON_AGAINST, hour=2, other_id="bully", rounds=2)
        closed = update(3).closed
        self.assertEqual([(g.goal_type, g.status) for g in closed], [(GoalType.GET_REVENGE, GoalStatus.SATISFIED)])
        self.assertGreater(memory.get_relationship("bully", now=4).hostility, 30.0)
        self.assertEqual(update(4).added, ())
        self.assertFalse(goals.has_goal(GoalType.GET_REVENGE, "bully"))

        memory.record(MemoryEventKind.WAS_ATTACKED, hour=5, other_id="bully", damage=50)
        self.assertEqual([g.target_id for g in update(6).added], ["bully"])

    def test_goal_system_round_trip(self) -> None:
        personality = PersonalityProfile()
        goals = GoalSystem(personality=personality)
        goals.add_goal(GoalType.ACCUMULATE_WEALTH, priority=0.4, hour=3)
        goals.add_goal(GoalType.GET_REVENGE, priority=0.8, target_id="bully", hour=5)
        restored = GoalSystem.from_dict(goals.to_dict(), personality=personality)
        self.assertEqual(
            [(g.goal_type, g.target_id) for g in restored.get_active_goals()],
            [(g.goal_type, g.target_id) for g in goals.get_active_goals()],
        )
        added = restored.add_goal(GoalType.HEAL_WOUNDS, priority=0.2)
        self.assertEqual(added.seq, 3)


class BrainTests(unittest.TestCase):
    def test_attacked_vengeful_actor_fights_back(self) -> None:
        brain = _brain("victim", PersonalityProfile(vengefulness=0.9))
        brain.record_interaction(MemoryEventKind.WAS_ATTACKED, other_id="bully", hour=9, damage=80, location="market")

        action = brain.process_hourly_update(
            {
                "hour": 10,
                "location": "market",
                "nearby": [{"actor_id": "bully", "level": 2}],
                "locations": [
                    {"location_id": "market", "danger": 0.1, "social_capacity": 40, "affordances": ["trade"]},
                    {"location_id": "temple", "danger": 0.0, "social_capacity": 25, "affordances": ["rest"]},
                ],
            }
        )

        self.assertEqual(action.action_type, ActionType.FIGHT)
        self.assertEqual(action.target_id, "bully")
        self.assertEqual(action.motivation, "revenge")
        revenge = [g for g in brain.goals.get_active_goals() if g.goal_type == GoalType.GET_REVENGE]
        self.assertEqual([g.target_id for g in revenge], ["bully"])
        self.assertTrue(brain.memory.remembers_being_attacked_by("bully"))
        self.assertTrue(brain.emotions.has(EmotionKind.ANGER))
        self.assertEqual(brain.last_tick, 10)

    def test_malformed_snapshot_still_yields_an_action(self) -> None:
        brain = _brain("drifter", PersonalityProfile())
        action = brain.process_hourly_update("not a snapshot")
        self.assertIsInstance(action.action_type, ActionType)
        action = brain.process_hourly_update({"hour": "late", "nearby": [None, 7, {"level": 3}], "locations": "nowhere"})
        self.assertIsInstance(action.action_type, ActionType)

    def test_same_tick_is_not_applied_twice(self) -> None:
        brain = _brain("sleeper", PersonalityProfile())
        brain.emotions.add_emotion(EmotionKind.JOY, 0.5, 3.0)
        brain.process_hourly_update({"hour": 4})
        brain.process_hourly_update({"hour": 5})
        remaining = brain.emotions.remaining(EmotionKind.JOY)
        brain.process_hourly_update({"hour": 5})
        self.assertEqual(brain.emotions.remaining(EmotionKind.JOY), remaining)
        self.assertEqual(remaining, 2.0)

    def test_decisions_are_reproducible_for_same_seed(self) -> None:
        snapshot = {
            "hour": 30,
            "location": "tavern",
            "affordances": ["social", "drink", "rest"],
            "nearby": [{"actor_id": "b"}, {"actor_id": "c"}],
            "locations": [
                {"location_id": "tavern", "social_capacity": 30, "affordances": ["social", "drink", "rest"]},
                {"location_id": "market", "social_capacity": 40, "affordances": ["trade", "work"]},
            ],
        }
        personality = PersonalityProfile.from_seed("merchant", "repro")
        first = _brain("a", personality).process_hourly_update(snapshot)
        second = _brain("a", personality).process_hourly_update(snapshot)
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()

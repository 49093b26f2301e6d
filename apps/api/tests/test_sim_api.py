#!/usr/bin/env python3

from __future__ import annotations

import os
import tempfile
import time
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[3]
TEST_DB_DIR = tempfile.TemporaryDirectory(dir=ROOT)
TEST_DB_PATH = Path(TEST_DB_DIR.name) / "test_sim_duskhaven.db"
os.environ["DUSKHAVEN_DB_PATH"] = str(TEST_DB_PATH)

from apps.api.duskhaven_api.main import app
from apps.api.duskhaven_api.services.runtime_scheduler import stop_world_runtime_scheduler
from apps.api.duskhaven_api.services.world_registry import reset_worlds_for_tests
from apps.api.duskhaven_api.storage.worlds import reset_backend_cache_for_tests as reset_worlds_backend


class SimApiTests(unittest.TestCase):
    def setUp(self) -> None:
        os.environ["DUSKHAVEN_DB_PATH"] = str(TEST_DB_PATH)
        if TEST_DB_PATH.exists():
            TEST_DB_PATH.unlink()
        reset_worlds_backend()
        reset_worlds_for_tests()
        stop_world_runtime_scheduler()
        self.client = TestClient(app)

    def tearDown(self) -> None:
        stop_world_runtime_scheduler()
        os.environ.pop("DUSKHAVEN_RUNTIME_TICK_SECONDS", None)

    def _create(self, world_id: str = "alpha", **extra) -> dict:
        body = {"world_id": world_id, "seed": f"{world_id}-seed", "generate": 10, "tuning": {"world_event_chance": 0.0}}
        body.update(extra)
        resp = self.client.post("/api/v1/sim/worlds", json=body)
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def test_create_tick_and_read_state(self) -> None:
        created = self._create()
        self.assertTrue(created["ok"])
        self.assertEqual(created["state"]["population"], 10)
        self.assertEqual(created["world"]["seed"], "alpha-seed")

        tick = self.client.post("/api/v1/sim/worlds/alpha/tick", json={"hours": 5})
        self.assertEqual(tick.status_code, 200, tick.text)
        payload = tick.json()
        self.assertEqual(payload["state"]["hour"], 5)
        self.assertEqual(payload["event_count"], len(payload["events"]))

        state = self.client.get("/api/v1/sim/worlds/alpha/state").json()["state"]
        self.assertEqual(state["hour"], 5)
        self.assertEqual(state["hour_of_day"], 5)
        self.assertEqual(state["alive"] + state["dead"], 10)

        events = self.client.get("/api/v1/sim/worlds/alpha/events", params={"limit": 3}).json()["events"]
        self.assertLessEqual(len(events), 3)
        seqs = [event["seq"] for event in events]
        self.assertEqual(seqs, sorted(seqs))

        worlds = self.client.get("/api/v1/sim/worlds").json()["worlds"]
        self.assertEqual([w["world_id"] for w in worlds], ["alpha"])

    def test_duplicate_world_is_rejected(self) -> None:
        self._create()
        resp = self.client.post("/api/v1/sim/worlds", json={"world_id": "alpha"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("already exists", resp.json()["detail"])

    def test_explicit_population_and_actor_views(self) -> None:
        self._create(
            "beta",
            generate=0,
            population=[
                {"actor_id": "mira", "name": "Mira Vale", "archetype": "merchant", "location": "market", "traits": {"greed": 0.9}},
                {"actor_id": "tom", "role": "player", "location": "market"},
            ],
        )

        actors = self.client.get("/api/v1/sim/worlds/beta/actors").json()
        self.assertEqual(actors["count"], 2)
        self.assertEqual([a["actor_id"] for a in actors["actors"]], ["mira", "tom"])

        detail = self.client.get("/api/v1/sim/worlds/beta/actors/mira")
        self.assertEqual(detail.status_code, 200)
        actor = detail.json()["actor"]
        self.assertEqual(actor["name"], "Mira Vale")
        self.assertEqual(actor["personality"]["greed"], 0.9)
        self.assertEqual(actor["personality"]["archetype"], "merchant")
        self.assertEqual(actor["kill_stats"], {"kills": 0, "deaths": 0})
        self.assertEqual(actor["brain"]["actor_id"], "mira")

        missing = self.client.get("/api/v1/sim/worlds/beta/actors/ghost")
        self.assertEqual(missing.status_code, 404)

    def test_record_memory_updates_relationship(self) -> None:
        self._create(
            "gamma",
            generate=0,
            population=[
                {"actor_id": "mira", "location": "market", "traits": {"vengefulness": 0.9}},
                {"actor_id": "tom", "role": "player", "location": "market"},
            ],
        )

        resp = self.client.post(
            "/api/v1/sim/worlds/gamma/actors/mira/memories",
            json={"kind": "was_attacked", "other_id": "tom", "details": {"damage": 80, "location": "market"}},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        payload = resp.json()
        self.assertEqual(payload["event"]["kind"], "was_attacked")
        self.assertGreater(payload["relationship"]["hostility"], 50.0)
        self.assertGreater(payload["relationship"]["fear"], 30.0)

        rel = self.client.get("/api/v1/sim/worlds/gamma/actors/mira/relationships/tom").json()["relationship"]
        self.assertEqual(rel["classification"], "enemy")
        self.assertEqual(rel["other_id"], "tom")

        memories = self.client.get("/api/v1/sim/worlds/gamma/actors/mira/memories").json()["memory"]
        self.assertEqual(memories["events"][0]["kind"], "was_attacked")
        self.assertEqual(memories["summary"]["total_events"], 1)

        bad_kind = self.client.post(
            "/api/v1/sim/worlds/gamma/actors/mira/memories",
            json={"kind": "was_hugged", "other_id": "tom"},
        )
        self.assertEqual(bad_kind.status_code, 400)
        bad_details = self.client.post(
            "/api/v1/sim/worlds/gamma/actors/mira/memories",
            json={"kind": "was_helped", "other_id": "tom", "details": {"damage": 5}},
        )
        self.assertEqual(bad_details.status_code, 400)

    def test_player_action_queue(self) -> None:
        self._create(
            "delta",
            generate=0,
            population=[
                {"actor_id": "mira", "location": "temple"},
                {"actor_id": "tom", "role": "player", "location": "market"},
            ],
        )

        queued = self.client.post("/api/v1/sim/worlds/delta/actors/tom/action", json={"action_type": "work"})
        self.assertEqual(queued.status_code, 200, queued.text)
        self.assertEqual(queued.json()["queued"]["action_type"], "work")
        gold_before = self.client.get("/api/v1/sim/worlds/delta/actors/tom").json()["actor"]["stats"]["gold"]
        self.client.post("/api/v1/sim/worlds/delta/tick", json={"hours": 1})
        gold_after = self.client.get("/api/v1/sim/worlds/delta/actors/tom").json()["actor"]["stats"]["gold"]
        self.assertGreater(gold_after, gold_before)

        npc = self.client.post("/api/v1/sim/worlds/delta/actors/mira/action", json={"action_type": "rest"})
        self.assertEqual(npc.status_code, 400)
        invalid = self.client.post("/api/v1/sim/worlds/delta/actors/tom/action", json={"action_type": "dance"})
        self.assertEqual(invalid.status_code, 422)

    def test_save_and_load_restores_world(self) -> None:
        self._create("epsilon")
        self.client.post("/api/v1/sim/worlds/epsilon/tick", json={"hours": 6})

        saved = self.client.post("/api/v1/sim/worlds/epsilon/save")
        self.assertEqual(saved.status_code, 200, saved.text)
        self.assertEqual(saved.json()["save"]["hour"], 6)
        self.assertEqual(saved.json()["save"]["actor_count"], 10)

        self.client.post("/api/v1/sim/worlds/epsilon/tick", json={"hours": 4})
        self.assertEqual(self.client.get("/api/v1/sim/worlds/epsilon/state").json()["state"]["hour"], 10)

        loaded = self.client.post("/api/v1/sim/worlds/epsilon/load")
        self.assertEqual(loaded.status_code, 200, loaded.text)
        self.assertEqual(loaded.json()["state"]["hour"], 6)
        self.assertEqual(self.client.get("/api/v1/sim/worlds/epsilon/state").json()["state"]["hour"], 6)

        missing = self.client.post("/api/v1/sim/worlds/never-saved/load")
        self.assertEqual(missing.status_code, 404)

    def test_news_feed_records_notable_events(self) -> None:
        self._create("zeta", generate=5, tuning={"world_event_chance": 1.0})
        self.client.post("/api/v1/sim/worlds/zeta/tick", json={"hours": 4})

        resp = self.client.get("/api/v1/sim/worlds/zeta/news", params={"limit": 50})
        self.assertEqual(resp.status_code, 200)
        news = resp.json()["news"]
        self.assertGreaterEqual(len(news), 4)
        self.assertIn("rumor", {item["kind"] for item in news})
        seqs = [item["seq"] for item in news]
        self.assertEqual(seqs, sorted(seqs, reverse=True))
        self.assertNotIn("combat", {item["kind"] for item in news})

    def test_runtime_start_status_and_stop(self) -> None:
        os.environ["DUSKHAVEN_RUNTIME_TICK_SECONDS"] = "0.05"
        self._create("eta", generate=4)

        started = self.client.post("/api/v1/sim/worlds/eta/runtime/start", json={"hours_per_tick": 2})
        self.assertEqual(started.status_code, 200, started.text)
        self.assertTrue(started.json()["world"]["runtime_enabled"])
        self.assertTrue(started.json()["scheduler"]["running"])

        deadline = time.time() + 5.0
        hour = 0
        while time.time() < deadline:
            hour = self.client.get("/api/v1/sim/worlds/eta/state").json()["state"]["hour"]
            if hour >= 2:
                break
            time.sleep(0.05)
        self.assertGreaterEqual(hour, 2)

        stopped = self.client.post("/api/v1/sim/worlds/eta/runtime/stop")
        self.assertEqual(stopped.status_code, 200)
        self.assertFalse(stopped.json()["world"]["runtime_enabled"])
        status = self.client.get("/api/v1/sim/worlds/eta/runtime/status").json()
        self.assertFalse(status["world"]["runtime_enabled"])

    def test_reset_and_delete_world(self) -> None:
        self._create("theta")
        self.client.post("/api/v1/sim/worlds/theta/tick", json={"hours": 2})

        reset = self.client.post("/api/v1/sim/worlds/theta/reset").json()
        self.assertEqual(reset["state"]["hour"], 0)
        self.assertEqual(reset["state"]["population"], 0)

        deleted = self.client.delete("/api/v1/sim/worlds/theta")
        self.assertEqual(deleted.status_code, 200)
        self.assertTrue(deleted.json()["removed"])
        gone = self.client.get("/api/v1/sim/worlds/theta/state")
        self.assertEqual(gone.status_code, 404)
        self.assertEqual(gone.json()["detail"], "World not found: theta")

    def test_request_validation(self) -> None:
        bad_id = self.client.post("/api/v1/sim/worlds", json={"world_id": "bad id!"})
        self.assertEqual(bad_id.status_code, 422)
        too_many = self.client.post("/api/v1/sim/worlds", json={"world_id": "big", "generate": 5000})
        self.assertEqual(too_many.status_code, 422)

        self._create("iota")
        zero_hours = self.client.post("/api/v1/sim/worlds/iota/tick", json={"hours": 0})
        self.assertEqual(zero_hours.status_code, 422)

    def test_invalid_location_catalog_is_reported(self) -> None:
        resp = self.client.post(
            "/api/v1/sim/worlds",
            json={"world_id": "kappa", "locations": {"locations": [{"location_id": "pit", "social_capacity": 0}]}},
        )
        self.assertEqual(resp.status_code, 400)
        detail = resp.json()["detail"]
        self.assertTrue(detail["errors"])
        self.assertTrue(any("social_capacity" in error for error in detail["errors"]))

    def test_custom_catalog_world(self) -> None:
        catalog = {
            "spawn_location": "inn",
            "locations": [
                {"location_id": "inn", "danger": 0.1, "social_capacity": 10, "affordances": ["social", "drink", "rest"]},
                {"location_id": "mill", "danger": 0.2, "social_capacity": 10, "affordances": ["work", "trade"]},
            ],
        }
        created = self._create("lambda", generate=0, locations=catalog, population=[{"actor_id": "ada"}])
        self.assertEqual(created["state"]["population"], 1)
        actor = self.client.get("/api/v1/sim/worlds/lambda/actors/ada").json()["actor"]
        self.assertEqual(actor["location"], "inn")

    def test_healthz(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")


if __name__ == "__main__":
    unittest.main()

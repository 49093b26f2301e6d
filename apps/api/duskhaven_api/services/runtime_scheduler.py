"""Background scheduler for autonomous world ticking."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import os
import threading
import uuid

from .world_registry import (
    SimulationBusyError,
    WorldEntry,
    _acquire_or_raise,
    runtime_worlds,
)


logger = logging.getLogger("duskhaven_api.runtime_scheduler")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _tick_seconds() -> float:
    raw = str(os.environ.get("DUSKHAVEN_RUNTIME_TICK_SECONDS") or "").strip()
    try:
        value = float(raw) if raw else 5.0
    except ValueError:
        value = 5.0
    return max(0.05, min(3600.0, value))


class RuntimeScheduler:
    def __init__(self) -> None:
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        self._last_loop_started_at: str | None = None
        self._last_loop_finished_at: str | None = None
        self._last_error: str | None = None
        self._loops = 0
        self._scheduler_instance_id = f"scheduler-{uuid.uuid4().hex[:12]}"

    def start(self) -> bool:
        with self._state_lock:
            if self._thread and self._thread.is_alive():
                return False
            self._stop_event.clear()
            thread = threading.Thread(
                target=self._run_loop,
                name="duskhaven-world-runtime-scheduler",
                daemon=True,
            )
            thread.start()
            self._thread = thread
            logger.info("[RUNTIME] Background world scheduler started")
            return True

    def stop(self, *, join_timeout_seconds: float = 3.0) -> bool:
        with self._state_lock:
            thread = self._thread
            if not thread:
                return False
            self._stop_event.set()
        thread.join(timeout=max(0.1, float(join_timeout_seconds)))
        with self._state_lock:
            if self._thread is thread:
                self._thread = None
        logger.info("[RUNTIME] Background world scheduler stopped")
        return True

    def status(self) -> dict[str, object]:
        with self._state_lock:
            running = bool(self._thread and self._thread.is_alive())
            thread_name = self._thread.name if self._thread else None
        return {
            "running": running,
            "thread_name": thread_name,
            "instance_id": self._scheduler_instance_id,
            "tick_seconds": _tick_seconds(),
            "loops": self._loops,
            "last_loop_started_at": self._last_loop_started_at,
            "last_loop_finished_at": self._last_loop_finished_at,
            "last_error": self._last_error,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self._last_loop_started_at = _utc_now_iso()
            try:
                for entry in runtime_worlds():
                    if self._stop_event.is_set():
                        break
                    self._tick_world(entry)
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[RUNTIME] Scheduler loop error: %s", exc)
            self._loops += 1
            self._last_loop_finished_at = _utc_now_iso()
            self._stop_event.wait(_tick_seconds())

    def _tick_world(self, entry: WorldEntry) -> None:
        try:
            with _acquire_or_raise(entry.lock, timeout=1.0):
                events = entry.simulator.simulate_hours(entry.hours_per_tick, should_stop=self._stop_event.is_set)
                entry.last_tick_at = _utc_now_iso()
                entry.last_error = None
        except SimulationBusyError:
            logger.debug("[RUNTIME] World busy, skipping: world_id='%s'", entry.world_id)
            return
        except Exception as exc:
            entry.last_error = f"{exc.__class__.__name__}: {exc}"
            logger.warning("[RUNTIME] Tick failed for world '%s': %s", entry.world_id, entry.last_error)
            return
        logger.debug(
            "[RUNTIME] Ticked world: world_id='%s', hour=%d, events=%d",
            entry.world_id,
            entry.simulator.hour,
            len(events),
        )


_SCHEDULER = RuntimeScheduler()


def start_world_runtime_scheduler() -> bool:
    return _SCHEDULER.start()


def stop_world_runtime_scheduler() -> bool:
    return _SCHEDULER.stop()


def world_runtime_scheduler_status() -> dict[str, object]:
    return _SCHEDULER.status()

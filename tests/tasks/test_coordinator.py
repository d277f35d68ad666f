"""
Tests for src/backend/tasks/coordinator.py

Covers:
- Full download -> install scenario and the persisted tasks.json record
- NotFound / InvalidRequest mapping
- Install id format and uniqueness
- completion_estimated threshold
- Best-effort complete-install for unknown ids
- strict_transitions mode
- Restoring tasks from tasks.json
"""

import asyncio
import json
import re
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from src.backend.settings.models import ServerConfig
from src.backend.tasks.coordinator import InstallIdGenerator, TaskCoordinator, completion_estimated
from src.backend.tasks.store import DownloadLog, TaskLog, TaskStore
from src.shared.envelope import InvalidRequest, NotFound

INSTALL_ID_RE = re.compile(r"^INSTALL_\d+_[0-9A-F]{8}$")


def _make_coordinator(root: Path, *, strict: bool = False, clock_ms=None) -> TaskCoordinator:
    config = ServerConfig()
    config.tasks.strict_transitions = strict
    install_ids = InstallIdGenerator(clock_ms=clock_ms) if clock_ms else None
    return TaskCoordinator(
        store=TaskStore(),
        task_log=TaskLog(path=root / "tasks.json"),
        download_log=DownloadLog(path=root / "downloads.json"),
        config=config,
        install_ids=install_ids,
    )


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


class TestTaskLifecycle(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_full_scenario_persists_install_fields(self):
        """create -> progress -> complete -> verify -> install -> complete-install."""

        async def run():
            c = _make_coordinator(self.root)
            created = await c.create(app_id="APP_1", package_name="com.example.one")
            task_id = created["task_id"]
            self.assertEqual(created["status"], "created")
            self.assertTrue(created["download_url"].endswith("/static/apks/APP_1/app.apk"))

            progress = await c.update_progress(task_id=task_id, progress=50, status=None)
            self.assertEqual(progress["status"], "downloading")
            self.assertEqual(progress["current_progress"], 50)
            self.assertFalse(progress["completion_estimated"])

            done = await c.complete(task_id=task_id, status=None)
            self.assertEqual(done["final_status"], "completed")

            verified = await c.verify_file(task_id=task_id, file_hash="abc", file_size=10)
            self.assertTrue(verified["ready_for_installation"])

            started = await c.start_install(task_id=task_id)
            install_id = started["install_task_id"]
            self.assertRegex(install_id, INSTALL_ID_RE)
            self.assertTrue(install_id.endswith(task_id[-8:]))
            self.assertEqual(started["install_status"], "installing")
            self.assertEqual(started["progress"], 0)
            self.assertEqual(started["estimated_time"], 30)

            inst = await c.update_install_progress(install_task_id=install_id, progress=95, status=None)
            self.assertTrue(inst["completion_estimated"])

            final = await c.complete_install(install_task_id=install_id, original_task_id=task_id)
            self.assertEqual(final["final_status"], "installed")
            self.assertTrue(final["app_ready"])
            self.assertTrue(final["launch_available"])
            return task_id, install_id

        task_id, install_id = asyncio.run(run())

        records = _read(self.root / "tasks.json")["tasks"]
        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record["task_id"], task_id)
        self.assertEqual(record["status"], "installed")
        self.assertEqual(record["install_status"], "installed")
        self.assertEqual(record["install_task_id"], install_id)
        self.assertTrue(record["completed_at"].endswith("Z"))
        self.assertTrue(record["install_completed_at"].endswith("Z"))

        downloads = _read(self.root / "downloads.json")["downloads"]
        self.assertEqual([d["task_id"] for d in downloads], [task_id])

    def test_create_requires_fields(self):
        async def run():
            c = _make_coordinator(self.root)
            with self.assertRaises(InvalidRequest):
                await c.create(app_id=None, package_name="com.example")
            with self.assertRaises(InvalidRequest):
                await c.create(app_id="APP", package_name="  ")

        asyncio.run(run())

    def test_unknown_task_is_not_found(self):
        async def run():
            c = _make_coordinator(self.root)
            with self.assertRaises(NotFound):
                await c.update_progress(task_id="TASK_NOPE", progress=1, status=None)
            with self.assertRaises(NotFound):
                await c.complete(task_id="TASK_NOPE", status=None)
            with self.assertRaises(NotFound):
                await c.start_install(task_id="TASK_NOPE")
            with self.assertRaises(NotFound):
                await c.update_install_progress(install_task_id="INSTALL_1_X", progress=1, status=None)

        asyncio.run(run())

    def test_complete_twice_keeps_first_completion_time(self):
        async def run():
            c = _make_coordinator(self.root)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            first = await c.complete(task_id=task_id, status=None)
            second = await c.complete(task_id=task_id, status=None)
            self.assertEqual(first["completion_time"], second["completion_time"])

        asyncio.run(run())
        self.assertEqual(len(_read(self.root / "downloads.json")["downloads"]), 1)

    def test_repeated_start_install_reuses_install_id(self):
        async def run():
            c = _make_coordinator(self.root)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            await c.complete(task_id=task_id, status=None)
            first = await c.start_install(task_id=task_id)
            second = await c.start_install(task_id=task_id)
            self.assertEqual(first["install_task_id"], second["install_task_id"])

        asyncio.run(run())

    def test_complete_install_unknown_ids_succeeds(self):
        """Unknown ids are answered from the request and leave tasks.json untouched."""

        async def run():
            c = _make_coordinator(self.root)
            await c.create(app_id="APP", package_name="pkg")
            before = (self.root / "tasks.json").read_text(encoding="utf-8")

            reply = await c.complete_install(install_task_id="INSTALL_1_DEADBEEF", original_task_id="TASK_GONE")
            self.assertEqual(reply["final_status"], "installed")
            self.assertEqual(reply["original_task_id"], "TASK_GONE")
            self.assertTrue(reply["app_ready"])
            return before

        before = asyncio.run(run())
        self.assertEqual((self.root / "tasks.json").read_text(encoding="utf-8"), before)

    def test_complete_install_needs_some_id(self):
        async def run():
            c = _make_coordinator(self.root)
            with self.assertRaises(InvalidRequest):
                await c.complete_install(install_task_id=None, original_task_id=None)

        asyncio.run(run())

    def test_complete_install_binds_install_id_when_missing(self):
        async def run():
            c = _make_coordinator(self.root)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            await c.complete_install(install_task_id="INSTALL_5_ABCDEF12", original_task_id=task_id)
            self.assertEqual(c.store.get_by_install_id("INSTALL_5_ABCDEF12").task_id, task_id)

        asyncio.run(run())
        record = _read(self.root / "tasks.json")["tasks"][0]
        self.assertEqual(record["install_task_id"], "INSTALL_5_ABCDEF12")

    def test_caller_supplied_status_is_trusted_by_default(self):
        async def run():
            c = _make_coordinator(self.root)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            reply = await c.update_progress(task_id=task_id, progress=10, status="installed")
            self.assertEqual(reply["status"], "installed")

        asyncio.run(run())

    def test_missing_tasks_file_does_not_fail_completion(self):
        async def run():
            c = _make_coordinator(self.root)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            (self.root / "tasks.json").unlink()
            reply = await c.complete(task_id=task_id, status=None)
            self.assertEqual(reply["final_status"], "completed")

        asyncio.run(run())
        self.assertFalse((self.root / "tasks.json").exists())

    def test_initial_params(self):
        c = _make_coordinator(self.root)
        params = c.initial_params()
        self.assertEqual(params["max_concurrent_downloads"], 3)
        self.assertEqual(params["retry_attempts"], 3)
        self.assertEqual(params["timeout_seconds"], 300)
        self.assertIsInstance(params["server_time"], int)


class TestStrictTransitions(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_install_requires_completed_download(self):
        async def run():
            c = _make_coordinator(self.root, strict=True)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            await c.update_progress(task_id=task_id, progress=40, status=None)
            with self.assertRaises(InvalidRequest):
                await c.start_install(task_id=task_id)

            await c.complete(task_id=task_id, status=None)
            started = await c.start_install(task_id=task_id)
            self.assertEqual(started["install_status"], "installing")

        asyncio.run(run())

    def test_illegal_and_unknown_statuses_rejected(self):
        async def run():
            c = _make_coordinator(self.root, strict=True)
            task_id = (await c.create(app_id="APP", package_name="pkg"))["task_id"]
            with self.assertRaises(InvalidRequest):
                await c.update_progress(task_id=task_id, progress=10, status="installed")
            with self.assertRaises(InvalidRequest):
                await c.update_progress(task_id=task_id, progress=10, status="paused")
            reply = await c.update_progress(task_id=task_id, progress=10, status="failed")
            self.assertEqual(reply["status"], "failed")

        asyncio.run(run())


class TestInstallIds(unittest.TestCase):
    def test_same_millisecond_ids_are_distinct(self):
        gen = InstallIdGenerator(clock_ms=lambda: 1_700_000_000_000)
        ids = {gen.next_id("TASK_0123456789ABCDEF") for _ in range(50)}
        self.assertEqual(len(ids), 50)
        for install_id in ids:
            self.assertRegex(install_id, INSTALL_ID_RE)
            self.assertTrue(install_id.endswith("89ABCDEF"))

    def test_clock_going_backwards_stays_increasing(self):
        ticks = iter([2000, 1000, 1000])
        gen = InstallIdGenerator(clock_ms=lambda: next(ticks))
        self.assertEqual(gen.next_id("TASK_AAAAAAAA"), "INSTALL_2000_AAAAAAAA")
        self.assertEqual(gen.next_id("TASK_AAAAAAAA"), "INSTALL_2001_AAAAAAAA")
        self.assertEqual(gen.next_id("TASK_AAAAAAAA"), "INSTALL_2002_AAAAAAAA")


class TestCompletionEstimated(unittest.TestCase):
    def test_threshold(self):
        self.assertFalse(completion_estimated(89))
        self.assertFalse(completion_estimated(89.9))
        self.assertTrue(completion_estimated(90))
        self.assertTrue(completion_estimated(100))
        self.assertFalse(completion_estimated(None))
        self.assertFalse(completion_estimated("abc"))


class TestRestore(unittest.TestCase):
    def test_restore_reloads_store_and_install_index(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            record = {
                "task_id": "TASK_RESTORED1",
                "app_id": "APP",
                "package_name": "pkg",
                "status": "installing",
                "progress": 0,
                "created_at": "2025-07-01T10:00:00.000Z",
                "updated_at": "2025-07-01T10:05:00.000Z",
                "install_task_id": "INSTALL_1_ESTORED1",
            }
            (root / "tasks.json").write_text(json.dumps({"tasks": [record, {"no_id": True}]}), encoding="utf-8")

            async def run():
                c = _make_coordinator(root)
                self.assertEqual(await c.restore(), 1)
                task = c.store.get("TASK_RESTORED1")
                self.assertEqual(task.created_at, datetime(2025, 7, 1, 10, 0, tzinfo=timezone.utc))
                reply = await c.update_install_progress(install_task_id="INSTALL_1_ESTORED1", progress=60, status=None)
                self.assertEqual(reply["install_progress"], 60)
                self.assertEqual(await c.restore(), 0)

            asyncio.run(run())


if __name__ == "__main__":
    unittest.main()

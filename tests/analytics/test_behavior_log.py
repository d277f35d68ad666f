import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from src.backend.analytics.store import BehaviorLog, behavior_codes


class TestBehaviorCodes(unittest.TestCase):
    def test_codes_extracted(self):
        detail = json.dumps([{"data": [{"behaviorCode": "A1"}, {"other": 1}, {"behaviorCode": "B2"}]}])
        self.assertEqual(behavior_codes(detail), ["A1", "B2"])

    def test_unparseable_detail(self):
        self.assertEqual(behavior_codes("not json"), [])
        self.assertEqual(behavior_codes(None), [])
        self.assertEqual(behavior_codes(json.dumps({"data": []})), [])
        self.assertEqual(behavior_codes(json.dumps([])), [])


class TestBehaviorLog(unittest.TestCase):
    def test_events_counted(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "user-behavior.json"

            async def run():
                log = BehaviorLog(path=path)
                await asyncio.gather(
                    *(log.record(access_token=None, behavior_detail=str(i), source="dt") for i in range(5))
                )
                return await log.load()

            doc = asyncio.run(run())
            self.assertEqual(len(doc["user_behaviors"]), 5)
            self.assertEqual(doc["analytics"]["total_events"], 5)
            self.assertTrue(doc["analytics"]["last_updated"].endswith("Z"))

    def test_unwritable_log_does_not_raise(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "user-behavior.json"
            path.write_text("[1, 2", encoding="utf-8")

            async def run():
                return await BehaviorLog(path=path).record(access_token="t", behavior_detail="x", source="appserver")

            self.assertFalse(asyncio.run(run()))


if __name__ == "__main__":
    unittest.main()

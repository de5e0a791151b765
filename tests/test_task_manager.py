import asyncio
import unittest

from core.exceptions import SessionStateError
from services.task_manager import TaskManager


class TestTaskManager(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tasks = TaskManager()
        self.release = asyncio.Event()
        self.delivered = []

    async def test_dispatch_marks_view_busy_until_result_delivered(self):
        async def slow():
            await self.release.wait()
            return "questions"

        task = self.tasks.dispatch("player", slow(), on_done=lambda t: self.delivered.append(t.result()))
        await asyncio.sleep(0)
        self.assertTrue(self.tasks.is_busy("player"))
        self.assertFalse(self.tasks.is_busy("admin"))

        self.release.set()
        self.assertEqual(await task, "questions")
        self.assertEqual(self.delivered, ["questions"])
        self.assertFalse(self.tasks.is_busy("player"))

    async def test_second_dispatch_while_busy_is_rejected(self):
        first = self.tasks.dispatch("player", self.release.wait())
        second = self.release.wait()
        with self.assertRaises(SessionStateError):
            self.tasks.dispatch("player", second)
        # The rejected coroutine was closed, not left un-awaited
        self.assertIsNone(second.cr_frame)

        self.release.set()
        await first
        await self.tasks.dispatch("player", asyncio.sleep(0))

    async def test_discarded_view_never_gets_callback(self):
        async def fetch():
            await self.release.wait()
            return 42

        task = self.tasks.dispatch("player", fetch(), on_done=self.delivered.append)
        self.tasks.discard("player")
        self.assertFalse(self.tasks.is_busy("player"))

        self.release.set()
        self.assertEqual(await task, 42)
        await asyncio.sleep(0)
        self.assertEqual(self.delivered, [])

    async def test_failed_task_result_is_delivered(self):
        async def boom():
            raise ValueError("nope")

        task = self.tasks.dispatch("player", boom(), on_done=self.delivered.append)
        with self.assertRaises(ValueError):
            await task

        self.assertEqual(self.delivered, [task])
        self.assertIsInstance(self.delivered[0].exception(), ValueError)

import asyncio
import unittest

from app.client.coordinator import RenewalError, SessionRefreshCoordinator


class RenewStub:
    """Counts renewal calls; each call waits until ``release`` is set."""

    def __init__(self, result: str = "A2", error: Exception | None = None):
        self.calls = 0
        self.result = result
        self.error = error
        self.release = asyncio.Event()

    async def __call__(self) -> str:
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


class TestSessionRefreshCoordinator(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.logouts = 0

    def _forced_logout(self) -> None:
        self.logouts += 1

    async def _start(self, coordinator, count: int, stale: str = "A1") -> list[asyncio.Task]:
        tasks = [asyncio.create_task(coordinator.acquire_or_wait(stale)) for _ in range(count)]
        # Let every task reach its wait point
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return tasks

    async def test_concurrent_callers_share_one_renewal(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=5)
        coordinator.set_token("A1")

        tasks = await self._start(coordinator, 5)
        self.assertTrue(coordinator.is_renewing)
        self.assertEqual(coordinator.pending_waiters, 5)

        renew.release.set()
        results = await asyncio.gather(*tasks)

        self.assertEqual(renew.calls, 1)
        self.assertEqual(results, ["A2"] * 5)
        self.assertEqual(coordinator.current_token, "A2")
        self.assertFalse(coordinator.is_renewing)
        self.assertEqual(coordinator.pending_waiters, 0)
        self.assertEqual(self.logouts, 0)

    async def test_waiters_resume_in_arrival_order(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, timeout=5)
        coordinator.set_token("A1")
        order: list[int] = []

        async def caller(index: int) -> None:
            await coordinator.acquire_or_wait("A1")
            order.append(index)

        tasks = [asyncio.create_task(caller(i)) for i in range(4)]
        await asyncio.sleep(0)
        renew.release.set()
        await asyncio.gather(*tasks)

        self.assertEqual(order, [0, 1, 2, 3])

    async def test_fresher_token_is_returned_without_renewal(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, timeout=5)
        coordinator.set_token("A2")

        self.assertEqual(await coordinator.acquire_or_wait("A1"), "A2")
        self.assertEqual(renew.calls, 0)

    async def test_failure_rejects_every_waiter_and_forces_logout(self):
        error = RuntimeError("refresh rejected")
        renew = RenewStub(error=error)
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=5)
        coordinator.set_token("A1")

        tasks = await self._start(coordinator, 3)
        renew.release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        self.assertEqual(renew.calls, 1)
        self.assertTrue(all(result is error for result in results))
        self.assertIsNone(coordinator.current_token)
        self.assertFalse(coordinator.is_renewing)
        self.assertEqual(self.logouts, 1)

    async def test_timeout_counts_as_failure(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=0.05)
        coordinator.set_token("A1")

        tasks = await self._start(coordinator, 2)
        results = await asyncio.gather(*tasks, return_exceptions=True)

        self.assertTrue(all(isinstance(result, RenewalError) for result in results))
        self.assertIs(results[0], results[1])
        self.assertEqual(self.logouts, 1)
        self.assertFalse(coordinator.is_renewing)

    async def test_caller_after_failure_gets_same_error_without_new_exchange(self):
        error = RuntimeError("refresh rejected")
        renew = RenewStub(error=error)
        renew.release.set()
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=5)
        coordinator.set_token("A1")

        with self.assertRaises(RuntimeError) as first:
            await coordinator.acquire_or_wait("A1")
        # Response of a call sent with A1 arriving after the failure
        with self.assertRaises(RuntimeError) as second:
            await coordinator.acquire_or_wait("A1")

        self.assertIs(first.exception, error)
        self.assertIs(second.exception, error)
        self.assertEqual(renew.calls, 1)
        self.assertEqual(self.logouts, 1)

    async def test_forced_logout_clearing_token_keeps_failure(self):
        renew = RenewStub(error=RuntimeError("down"))
        renew.release.set()
        coordinator = SessionRefreshCoordinator(renew, timeout=5)
        coordinator.set_token("A1")

        def clear_token() -> None:
            coordinator.set_token(None)

        coordinator._on_forced_logout = clear_token
        with self.assertRaises(RuntimeError):
            await coordinator.acquire_or_wait("A1")
        with self.assertRaises(RuntimeError):
            await coordinator.acquire_or_wait("A1")

        self.assertEqual(renew.calls, 1)

    async def test_new_renewal_possible_after_login(self):
        renew = RenewStub(error=RuntimeError("down"))
        coordinator = SessionRefreshCoordinator(renew, timeout=5)
        coordinator.set_token("A1")
        renew.release.set()

        with self.assertRaises(RuntimeError):
            await coordinator.acquire_or_wait("A1")

        # A fresh login installs a new token, which later expires in turn
        coordinator.set_token("B1")
        renew.error = None
        self.assertEqual(await coordinator.acquire_or_wait("B1"), "A2")
        self.assertEqual(renew.calls, 2)

    async def test_cancelled_caller_does_not_abort_shared_renewal(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=5)
        coordinator.set_token("A1")

        first, second = await self._start(coordinator, 2)
        first.cancel()
        await asyncio.sleep(0)
        self.assertTrue(coordinator.is_renewing)

        renew.release.set()
        self.assertEqual(await second, "A2")
        with self.assertRaises(asyncio.CancelledError):
            await first

        self.assertEqual(renew.calls, 1)
        self.assertEqual(self.logouts, 0)
        self.assertEqual(coordinator.current_token, "A2")
        self.assertEqual(coordinator.pending_waiters, 0)

    async def test_renewal_completes_when_every_caller_is_cancelled(self):
        renew = RenewStub()
        coordinator = SessionRefreshCoordinator(renew, self._forced_logout, timeout=5)
        coordinator.set_token("A1")

        (task,) = await self._start(coordinator, 1)
        renewal = coordinator._renewal
        task.cancel()
        await asyncio.sleep(0)
        renew.release.set()
        await renewal

        self.assertEqual(coordinator.current_token, "A2")
        self.assertFalse(coordinator.is_renewing)
        self.assertEqual(await coordinator.acquire_or_wait("A1"), "A2")
        self.assertEqual(renew.calls, 1)

    async def test_async_forced_logout_callback_is_awaited(self):
        called = asyncio.Event()

        async def on_logout() -> None:
            called.set()

        renew = RenewStub(error=RuntimeError("down"))
        renew.release.set()
        coordinator = SessionRefreshCoordinator(renew, on_logout, timeout=5)

        with self.assertRaises(RuntimeError):
            await coordinator.acquire_or_wait(None)
        self.assertTrue(called.is_set())


if __name__ == "__main__":
    unittest.main()

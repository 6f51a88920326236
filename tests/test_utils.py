import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

# Add the parent directory to sys.path so we can import the project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from hue_light_sync.core.utils import TaskManager, run_with_errorhandling


class TestTaskManager:
    async def test_task_start_and_cleanup(self):
        """Test that TaskManager properly starts and cleans up tasks"""
        result_value = "test_result"

        async def mock_coro():
            return result_value

        wrapped_mock = AsyncMock(side_effect=mock_coro)

        async with TaskManager(wrapped_mock, name="TestTask") as manager:
            # Task is created when entering context
            assert manager.task is not None
            assert manager.task.get_name() == "TestTask"
            assert not manager.task.done()

            await asyncio.sleep(0.1)

        # After exiting context, task should be completed and result captured
        assert manager.done
        assert not manager.running
        wrapped_mock.assert_called_once()
        assert manager.result == result_value

    async def test_task_handles_exceptions(self):
        """Test that a failing task is logged and leaves no result"""

        async def failing_coro():
            raise ValueError("Test error")

        with patch("hue_light_sync.core.utils.logger.error") as mock_logger:
            async with TaskManager(failing_coro, name="FailingTask") as manager:
                await asyncio.sleep(0.1)

        assert manager.task.done()
        assert manager.result is None
        mock_logger.assert_called_once()
        assert "FailingTask" in mock_logger.call_args[0][0]

    async def test_task_cancellation(self):
        """Test that TaskManager cancels long running tasks on exit"""

        async def long_running_coro():
            while True:
                await asyncio.sleep(0.1)

        async with TaskManager(
            long_running_coro, name="LongTask", timeout=0.1
        ) as manager:
            await asyncio.sleep(0)
            assert manager.running

        assert manager.task.done()
        assert manager.task.cancelled()
        assert manager.result is None

    async def test_cancel_without_start(self):
        """Test that cancelling a manager that never started is a no-op"""
        manager = TaskManager(AsyncMock(), name="Idle")

        await manager.cancel()

        assert manager.task is None
        assert not manager.running
        assert not manager.done


class TestErrorHandling:
    async def test_run_with_errorhandling_success(self):
        """Test run_with_errorhandling with successful operation"""

        async def success_coro():
            return "success"

        result = await run_with_errorhandling(success_coro(), "This operation failed")
        assert result == "success"

    async def test_run_with_errorhandling_failure(self):
        """Test run_with_errorhandling with failed operation"""

        async def failure_coro():
            raise ValueError("Something went wrong")

        with patch("hue_light_sync.core.utils.logger.warning") as mock_logger:
            result = await run_with_errorhandling(failure_coro(), "Test error")

            assert result is None
            mock_logger.assert_called_once()
            assert "Test error" in mock_logger.call_args[0][0]
            assert "Something went wrong" in mock_logger.call_args[0][0]

    async def test_run_with_errorhandling_cancelled(self):
        """Test run_with_errorhandling with cancelled operation"""

        async def cancelled_coro():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await run_with_errorhandling(cancelled_coro(), "This operation failed")

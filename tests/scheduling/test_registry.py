"""Tests for TaskRegistry."""

import pytest

from cronlease.scheduling import TaskRegistry


def _worker(lease):
    return "ok"


class TestTaskRegistry:
    """Test worker registration."""

    def test_register_and_get(self):
        """Registered workers are found by id."""
        registry = TaskRegistry()
        registry.register("daily-job", _worker)

        assert registry.get("daily-job") is _worker
        assert "daily-job" in registry
        assert len(registry) == 1

    def test_register_replaces(self):
        """A second registration for the same id wins."""
        registry = TaskRegistry()
        registry.register("daily-job", _worker)

        def replacement(lease):
            return "new"

        registry.register("daily-job", replacement)
        assert registry.get("daily-job") is replacement
        assert len(registry) == 1

    def test_register_non_callable(self):
        """Non-callable workers are rejected."""
        with pytest.raises(TypeError):
            TaskRegistry().register("daily-job", "not callable")

    def test_get_missing(self):
        """Unknown ids return None."""
        assert TaskRegistry().get("missing") is None

    def test_ids_in_registration_order(self):
        """ids() lists tasks in the order they were registered."""
        registry = TaskRegistry()
        for task_id in ("c", "a", "b"):
            registry.register(task_id, _worker)
        assert registry.ids() == ["c", "a", "b"]
        assert list(registry) == ["c", "a", "b"]

    def test_unregister(self):
        """Unregister reports whether anything was removed."""
        registry = TaskRegistry()
        registry.register("a", _worker)

        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert "a" not in registry

    def test_clear(self):
        """clear() forgets every worker."""
        registry = TaskRegistry()
        registry.register("a", _worker)
        registry.register("b", _worker)
        registry.clear()
        assert registry.ids() == []

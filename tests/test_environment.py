"""Tests for the variable environment and value helpers."""

from decimal import Decimal

from linecalc import AggregateSlot, Environment, Quantity, Value


class TestEnvironment:
    def test_set_get_remove(self):
        """Variables are stored by exact name."""
        env = Environment()
        env.set("my total", Value.of(3))
        assert env.get("my total") == Value.of(3)
        assert env.get("My Total") is None
        env.remove("my total")
        assert "my total" not in env

    def test_remove_missing_is_noop(self):
        """Removing an unknown name does nothing."""
        env = Environment()
        env.remove("ghost")
        assert env.variables == {}

    def test_variables_is_a_copy(self):
        """Mutating the returned mapping does not touch the environment."""
        env = Environment()
        env.set("x", Value.of(1))
        env.variables["y"] = Value.of(2)
        assert "y" not in env

    def test_aggregate_slots(self):
        """Aggregate slots live apart from user variables."""
        env = Environment()
        env.set_aggregate(AggregateSlot.PREV, Value.of(9))
        assert env.get_aggregate(AggregateSlot.PREV) == Value.of(9)
        assert env.get("prev") is None
        env.clear_aggregate(AggregateSlot.PREV)
        assert env.get_aggregate(AggregateSlot.PREV) is None

    def test_clear(self):
        """clear() drops variables and every aggregate slot."""
        env = Environment()
        env.set("x", Value.of(1))
        for slot in AggregateSlot:
            env.set_aggregate(slot, Value.of(5))
        env.clear()
        assert env.variables == {}
        assert all(env.get_aggregate(slot) is None for slot in AggregateSlot)


class TestQuantity:
    def test_scalar(self):
        q = Quantity.scalar("2.5")
        assert q.magnitude == Decimal("2.5")
        assert q.is_scalar


class TestInvalidAggregates:
    def test_invalidate_and_reset(self):
        """An invalidated slot reads as None until it is set or cleared."""
        env = Environment()
        env.invalidate_aggregate(AggregateSlot.SUM)
        assert env.get_aggregate(AggregateSlot.SUM) is None
        assert env.is_invalid_aggregate(AggregateSlot.SUM)
        env.set_aggregate(AggregateSlot.SUM, Value.of(1))
        assert not env.is_invalid_aggregate(AggregateSlot.SUM)
        env.invalidate_aggregate(AggregateSlot.AVG)
        env.clear()
        assert not env.is_invalid_aggregate(AggregateSlot.AVG)

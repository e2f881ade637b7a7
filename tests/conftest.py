"""Shared fixtures for linecalc tests."""

import pytest

from linecalc import ExpressionEngine


@pytest.fixture
def engine():
    return ExpressionEngine()


@pytest.fixture
def values(engine):
    """Evaluate a document and return each line's magnitude (or None)."""

    def run(source: str):
        result = engine.evaluate_all(source)
        return [r.value.as_decimal if r.value is not None else None for r in result.line_results]

    return run

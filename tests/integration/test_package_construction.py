"""Smoke tests for package wiring.

These catch missing imports and broken re-exports that unit tests on
individual modules miss.
"""

import importlib

import pytest

MODULES = [
    "fxpulse",
    "fxpulse.config",
    "fxpulse.logs",
    "fxpulse.cli",
    "fxpulse.engine",
    "fxpulse.engine.protocols",
    "fxpulse.engine.clock",
    "fxpulse.engine.session",
    "fxpulse.engine.pairs",
    "fxpulse.engine.timeframes",
    "fxpulse.engine.pips",
    "fxpulse.engine.levels",
    "fxpulse.engine.events",
    "fxpulse.engine.feeds",
    "fxpulse.engine.stream",
]


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    importlib.import_module(name)


def test_engine_exports_resolve():
    engine = importlib.import_module("fxpulse.engine")
    for name in engine.__all__:
        assert getattr(engine, name) is not None, name


def test_version():
    import fxpulse

    assert fxpulse.__version__


def test_session_evaluator_from_env_defaults():
    from fxpulse.config import Settings
    from fxpulse.engine import MarketSessionEvaluator

    ev = MarketSessionEvaluator.fromSettings(Settings.fromEnv({}))
    assert ev.timezone == "America/New_York"
    assert ev.status(0).timezone == "America/New_York"

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest
import yaml

from quotation.config.provider import build_table
from quotation.engine.context import AddressInfo, QuoteContext, QuoteInput
from quotation.engine.pipeline import QuotePipeline
from quotation.modules.catalog import default_catalog
from quotation.settings import DEFAULT_CONFIG_PATH


@pytest.fixture(scope="session")
def base_config_dict():
    with open(DEFAULT_CONFIG_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def config(base_config_dict):
    # the shipped constants table, validated like in production
    return build_table(base_config_dict)


@pytest.fixture
def sample_qin():
    # Tuesday, middle of the month, nothing special
    return QuoteInput(
        region="IDF",
        pickup=AddressInfo(floor=1, has_elevator=True),
        delivery=AddressInfo(floor=0),
        move_date=date(2025, 3, 11),
        move_hour=10,
        estimated_volume=Decimal("20"),
        distance_km=Decimal("30"),
    )


@pytest.fixture
def make_ctx(config, sample_qin):
    """Context builder: make_ctx(field=value, ...) overrides QuoteInput fields."""

    def _make(**changes):
        return QuoteContext(input=replace(sample_qin, **changes), config=config, quote_id="test_quote_1")

    return _make


@pytest.fixture
def ctx(make_ctx):
    return make_ctx()


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def pipeline(catalog):
    return QuotePipeline(catalog)


def run_modules(ctx, *modules):
    """Run the given modules in priority order, honouring their predicates."""
    for m in sorted(modules, key=lambda m: m.priority):
        if m.is_applicable(ctx):
            ctx = m.run(ctx)
    return ctx


@pytest.fixture
def run():
    return run_modules

from datetime import date
from decimal import Decimal

from quotation.modules.labor import CrewFlexibilityModule
from quotation.modules.temporal import EndOfMonthModule, WeekendModule

D = Decimal


def _priced(make_ctx, day):
    # one 500.00 line already in the accumulator
    return CrewFlexibilityModule().run(make_ctx(move_date=day, crew_flexibility=True))


def test_end_of_month_is_five_percent_of_costs_so_far(make_ctx, run):
    ctx = _priced(make_ctx, date(2025, 3, 28))
    out = run(ctx, EndOfMonthModule())

    line = out.accumulator.costs_by("end-of-month")[0]
    assert line.amount == D("25.00")
    assert line.metadata["base"] == "500.00"
    assert line.metadata["rate"] == "0.05"
    assert [r.amount for r in out.accumulator.risk_contributions] == [10]


def test_end_of_month_threshold_day(make_ctx):
    module = EndOfMonthModule()
    assert module.is_applicable(make_ctx(move_date=date(2025, 3, 24))) is False
    assert module.is_applicable(make_ctx(move_date=date(2025, 3, 25))) is True
    assert module.is_applicable(make_ctx(move_date=None)) is False


def test_end_of_month_on_empty_accumulator_is_zero(make_ctx):
    out = EndOfMonthModule().run(make_ctx(move_date=date(2025, 3, 28)))
    assert out.accumulator.costs[0].amount == D("0.00")


def test_weekend(make_ctx, run):
    saturday = date(2025, 3, 15)
    out = run(_priced(make_ctx, saturday), WeekendModule())
    assert out.accumulator.costs_by("weekend")[0].amount == D("25.00")
    assert WeekendModule().is_applicable(make_ctx(move_date=date(2025, 3, 11))) is False


def test_surcharges_stack_in_priority_order(make_ctx, run):
    # Saturday 31 May: end-of-month runs first, the weekend surcharge sees it
    out = run(_priced(make_ctx, date(2025, 5, 31)), WeekendModule(), EndOfMonthModule())

    amounts = [(c.module_id, c.amount) for c in out.accumulator.costs]
    assert amounts == [
        ("crew-flexibility", D("500.00")),
        ("end-of-month", D("25.00")),
        ("weekend", D("26.25")),
    ]

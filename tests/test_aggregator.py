import json
from dataclasses import replace
from decimal import Decimal

from quotation.engine.aggregator import OFFER_BILLED, OFFER_PENDING, aggregate
from quotation.engine.context import AddressInfo, CostCategory, QuoteContext
from quotation.modules.base import QuoteModule

D = Decimal


def _run(pipeline, config, qin):
    return pipeline.run(QuoteContext(input=qin, config=config, quote_id="test_quote_1"))


def test_totals_are_sums_of_rounded_lines(pipeline, config, sample_qin):
    out = _run(pipeline, config, sample_qin)
    summary = aggregate(out, margin_rate="0.30")

    assert summary.costs_total == sum(c.amount for c in out.accumulator.costs)
    assert summary.costs_total == sum(amount for _, amount in summary.subtotals)
    assert summary.margin == (summary.costs_total * D("0.30")).quantize(D("0.01"))
    assert summary.base_price == summary.costs_total + summary.margin
    # subtotals follow the category order
    cats = [cat for cat, _ in summary.subtotals]
    assert cats == [c for c in CostCategory if c in cats]


def test_risk_score_is_capped(config, sample_qin):
    class Risky(QuoteModule):
        module_id = "risky"

        def apply(self, ctx):
            ctx = self.add_risk(ctx, 80, "first")
            return self.add_risk(ctx, 80, "second")

    ctx = Risky().run(QuoteContext(input=sample_qin, config=config))
    summary = aggregate(ctx, risk_cap=100, manual_review_threshold=70)
    assert summary.risk_score == 100
    assert summary.manual_review_required is True


def test_critical_requirement_forces_manual_review(pipeline, config, sample_qin):
    qin = replace(sample_qin, pickup=AddressInfo(floor=5, has_elevator=False))
    summary = aggregate(_run(pipeline, config, qin))

    assert summary.risk_score <= 70
    assert summary.manual_review_required is True


def test_offer_status_follows_billing(pipeline, config, sample_qin):
    pending = aggregate(_run(pipeline, config, replace(sample_qin, pickup=AddressInfo(floor=2, has_elevator=False))))
    billed = aggregate(
        _run(
            pipeline,
            config,
            replace(sample_qin, pickup=AddressInfo(floor=2, has_elevator=False), furniture_lift_accepted=True),
        )
    )

    assert [(o.id, o.status) for o in pending.offers] == [("MONTE_MEUBLES", OFFER_PENDING)]
    assert [(o.id, o.status) for o in billed.offers] == [("MONTE_MEUBLES", OFFER_BILLED)]
    assert billed.costs_total - pending.costs_total == D("250.00")


def test_explain_names_every_line(pipeline, config, sample_qin):
    out = _run(pipeline, config, sample_qin)
    summary = aggregate(out)
    assert len(summary.explain) == len(out.accumulator.costs)
    assert summary.explain[0] == "fuel-cost: Fuel +6.12"


def test_to_dict_is_json_safe(pipeline, config, sample_qin):
    summary = aggregate(_run(pipeline, config, sample_qin))
    d = summary.to_dict()
    json.dumps(d)
    assert d["quoteId"] == "test_quote_1"
    assert d["configVersion"] == "2025.11"
    assert d["activatedModules"][0] == "volume-estimation"

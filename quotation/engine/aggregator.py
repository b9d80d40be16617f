from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from ..calculators.money import ZERO, money, to_decimal
from .context import CostCategory, QuoteContext, Severity

D = Decimal

OFFER_BILLED = "BILLED"
OFFER_PENDING = "PENDING"


@dataclass(frozen=True)
class OfferView:
    id: str
    label: str
    reason: str
    benefit: str
    price_impact: D
    optional: bool
    status: str
    based_on_requirement: str | None = None


@dataclass(frozen=True)
class QuoteSummary:
    quote_id: str
    config_version: str
    subtotals: Tuple[Tuple[CostCategory, D], ...]
    costs_total: D
    margin_rate: D
    margin: D
    base_price: D
    risk_score: int
    manual_review_required: bool
    requirements: Tuple[Dict[str, Any], ...]
    offers: Tuple[OfferView, ...]
    flags: Tuple[str, ...]
    activated_modules: Tuple[str, ...]
    explain: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quoteId": self.quote_id,
            "configVersion": self.config_version,
            "subtotals": {cat.value: str(amount) for cat, amount in self.subtotals},
            "costsTotal": str(self.costs_total),
            "marginRate": str(self.margin_rate),
            "margin": str(self.margin),
            "basePrice": str(self.base_price),
            "riskScore": self.risk_score,
            "manualReviewRequired": self.manual_review_required,
            "requirements": [dict(r) for r in self.requirements],
            "offers": [
                {
                    "id": o.id,
                    "label": o.label,
                    "reason": o.reason,
                    "benefit": o.benefit,
                    "priceImpact": str(o.price_impact),
                    "optional": o.optional,
                    "status": o.status,
                    "basedOnRequirement": o.based_on_requirement,
                }
                for o in self.offers
            ],
            "flags": list(self.flags),
            "activatedModules": list(self.activated_modules),
            "explain": list(self.explain),
        }


def aggregate(
    ctx: QuoteContext,
    *,
    margin_rate: Any = "0.30",
    risk_cap: int = 100,
    manual_review_threshold: int = 70,
) -> QuoteSummary:
    """
    Reduce a finished run into the figures a caller shows or stores.

    - subtotals per category (category order of the enum), total = sum of rounded lines
    - base price = total + margin
    - risk score = sum of contributions, capped
    - manual review when the score passes the threshold or a CRITICAL requirement exists
    """
    acc = ctx.accumulator

    by_cat: Dict[CostCategory, D] = {}
    for c in acc.costs:
        by_cat[c.category] = by_cat.get(c.category, ZERO) + c.amount
    subtotals = tuple((cat, by_cat[cat]) for cat in CostCategory if cat in by_cat)

    total = acc.costs_total()
    rate = to_decimal(margin_rate)
    margin = money(total * rate)

    raw_risk = sum(r.amount for r in acc.risk_contributions)
    risk_score = max(0, min(raw_risk, risk_cap))
    has_critical = any(r.severity is Severity.CRITICAL for r in acc.requirements)

    billed = {c.metadata.get("proposal_id") for c in acc.costs} - {None}
    offers: List[OfferView] = [
        OfferView(
            id=p.id,
            label=p.label,
            reason=p.reason,
            benefit=p.benefit,
            price_impact=p.price_impact,
            optional=p.optional,
            status=OFFER_BILLED if p.id in billed else OFFER_PENDING,
            based_on_requirement=p.based_on_requirement,
        )
        for p in acc.cross_sell_proposals
    ]

    requirements = tuple(
        {
            "type": r.type,
            "severity": r.severity.value,
            "reason": r.reason,
            "moduleId": r.module_id,
        }
        for r in acc.requirements
    )

    explain = tuple(f"{c.module_id}: {c.label} +{c.amount}" for c in acc.costs)

    return QuoteSummary(
        quote_id=ctx.quote_id,
        config_version=ctx.config.version,
        subtotals=subtotals,
        costs_total=total,
        margin_rate=rate,
        margin=margin,
        base_price=money(total + margin),
        risk_score=risk_score,
        manual_review_required=risk_score > manual_review_threshold or has_critical,
        requirements=requirements,
        offers=tuple(offers),
        flags=acc.operational_flags,
        activated_modules=acc.activated_modules,
        explain=explain,
    )

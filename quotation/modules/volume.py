from __future__ import annotations

from decimal import Decimal

from ..calculators.money import ZERO
from ..engine.context import QuoteContext
from ..logging_config import get_logger
from .base import QuoteModule, Trigger

D = Decimal

logger = get_logger(__name__)

# input flag -> key in volume.special_items_m3
_SPECIAL_ITEMS = (
    ("piano", "piano"),
    ("bulky_furniture", "bulky_furniture"),
    ("safe", "safe"),
    ("artwork", "artwork"),
)


class VolumeEstimationModule(QuoteModule):
    """
    Turns the upstream volume estimate into the volume every later module uses:
    estimate + special items, times the safety margin for (method, confidence),
    clamped to the valid range.
    """

    module_id = "volume-estimation"
    description = "Adjusted volume from the upstream estimate"
    priority = 20

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        qin = ctx.input
        if qin.estimated_volume is None or qin.estimated_volume <= 0:
            logger.debug("volume-estimation: no upstream volume, nothing computed")
            return ctx

        cfg = ctx.config
        special = ZERO
        items = []
        for flag, key in _SPECIAL_ITEMS:
            if getattr(qin, flag):
                special += cfg.decimal(f"volume.special_items_m3.{key}")
                items.append(key)

        base = qin.estimated_volume + special
        margin = cfg.decimal(
            f"volume.confidence_margins.{qin.volume_method.value}.{qin.volume_confidence.value}"
        )
        adjusted = (base * margin).quantize(D("0.01"))

        min_m3 = cfg.decimal("volume.min_m3")
        max_m3 = cfg.decimal("volume.max_m3")
        clamped = None
        if adjusted < min_m3:
            adjusted, clamped = min_m3, "min"
        elif adjusted > max_m3:
            adjusted, clamped = max_m3, "max"

        ctx = self.set_computed(ctx, base_volume=base, adjusted_volume=adjusted)
        return self.add_notes(
            ctx,
            volume_estimation={
                "estimated": str(qin.estimated_volume),
                "specialItems": items,
                "specialItemsVolume": str(special),
                "method": qin.volume_method.value,
                "confidence": qin.volume_confidence.value,
                "margin": str(margin),
                "adjusted": str(adjusted),
                "clamped": clamped,
            },
        )


class VolumeUncertaintyRiskModule(QuoteModule):
    module_id = "volume-uncertainty-risk"
    description = "Risk contribution from the volume confidence tier"
    priority = 24
    dependencies = ("volume-estimation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        base = ctx.computed.base_volume
        return base is not None and base > 0

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        confidence = ctx.input.volume_confidence
        score = ctx.config.integer(f"risk.volume_uncertainty.{confidence.value}")
        cap = ctx.config.integer("risk.max_volume_uncertainty")
        score = min(score, cap)

        return self.add_risk(
            ctx,
            score,
            f"Volume estimate with {confidence.value.lower()} confidence",
            confidence=confidence.value,
            method=ctx.input.volume_method.value,
        )

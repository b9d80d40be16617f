from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from ..config.provider import ConfigProvider
from ..errors import InputValidationError
from ..logging_config import LoggingContext, get_logger
from ..modules.catalog import default_catalog, filter_catalog
from ..schemas.quote_input_v1 import LIFT_DECISION_CONFLICT, QuoteRequestV1, lift_decision_conflict
from ..settings import Settings, get_settings
from .aggregator import QuoteSummary, aggregate
from .context import QuoteContext, QuoteInput
from .pipeline import QuotePipeline, validate_catalog

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuoteResult:
    context: QuoteContext
    summary: QuoteSummary


class QuoteEngine:
    """
    Entry point for a caller (API handler, tier orchestrator).

    Holds the catalog and the config provider, both built once at startup.
    Each calculate() call is an independent run on its own config snapshot.
    """

    def __init__(self, provider: ConfigProvider, modules: Sequence, settings: Optional[Settings] = None):
        self.provider = provider
        self.settings = settings or get_settings()
        self.modules = tuple(modules)
        validate_catalog(self.modules)
        self._full_pipeline = QuotePipeline(self.modules)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QuoteEngine":
        s = settings or get_settings()
        provider = ConfigProvider(s.config_path, s.config_overrides_path)
        return cls(provider, default_catalog(), settings=s)

    def pipeline(
        self,
        enabled: Optional[Iterable[str]] = None,
        disabled: Optional[Iterable[str]] = None,
    ) -> QuotePipeline:
        if not enabled and not disabled:
            return self._full_pipeline
        return QuotePipeline(
            filter_catalog(self.modules, enabled=enabled, disabled=disabled),
            require_dependencies=False,
        )

    @staticmethod
    def to_input(request: Union[QuoteRequestV1, QuoteInput, Mapping[str, Any]]) -> QuoteInput:
        if isinstance(request, QuoteInput):
            return request
        if not isinstance(request, QuoteRequestV1):
            try:
                request = QuoteRequestV1.model_validate(request)
            except ValidationError as e:
                raise InputValidationError(
                    "Invalid quote request", {"errors": e.errors(include_url=False)}
                ) from e
        return request.to_input()

    def calculate(
        self,
        request: Union[QuoteRequestV1, QuoteInput, Mapping[str, Any]],
        *,
        quote_id: str = "quote_1",
        enabled: Optional[Iterable[str]] = None,
        disabled: Optional[Iterable[str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> QuoteResult:
        """
        One pricing run.
        - overrides: QuoteInput field replacements applied before the run (scenario hook)
        - enabled/disabled: module selection for a commercial tier (see filter_catalog)
        """
        qin = self.to_input(request)
        if overrides:
            try:
                qin = replace(qin, **dict(overrides))
            except TypeError as e:
                raise InputValidationError(f"Invalid input override: {e}", {"overrides": sorted(overrides)}) from e
            if lift_decision_conflict(qin.furniture_lift_accepted, qin.furniture_lift_refused):
                raise InputValidationError(LIFT_DECISION_CONFLICT, {"overrides": sorted(overrides)})

        table = self.provider.snapshot()
        ctx = QuoteContext(input=qin, config=table, quote_id=quote_id)

        with LoggingContext(quote_id=quote_id, scenario_id=qin.scenario_id):
            logger.info("calculate quote config={}", table.version)
            out = self.pipeline(enabled, disabled).run(ctx)

        s = self.settings
        summary = aggregate(
            out,
            margin_rate=s.margin_rate,
            risk_cap=s.risk_score_cap,
            manual_review_threshold=s.manual_review_threshold,
        )
        return QuoteResult(context=out, summary=summary)

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from ..errors import CatalogError, ConfigurationError, ModuleContractError, ModuleExecutionError
from ..logging_config import get_logger
from .context import QuoteContext

logger = get_logger(__name__)


# -----------------------
# Catalog validation
# -----------------------


def validate_catalog(modules: Sequence, *, require_dependencies: bool = True) -> None:
    """
    Static ordering check, run once when a pipeline is built.

    - module ids are unique
    - every declared dependency exists (unless require_dependencies=False, used for
      tier-filtered catalogs where a dependency may have been disabled)
    - every dependency runs strictly before its dependant (lower priority)
    """
    ids = [m.module_id for m in modules]
    if len(ids) != len(set(ids)):
        seen, dups = set(), []
        for mid in ids:
            if mid in seen and mid not in dups:
                dups.append(mid)
            seen.add(mid)
        raise CatalogError(f"Duplicate module ids in catalog: {dups}", {"duplicates": dups})

    by_id: Dict[str, object] = {m.module_id: m for m in modules}

    missing: List[str] = []
    misordered: List[str] = []
    for m in modules:
        for dep in m.dependencies:
            producer = by_id.get(dep)
            if producer is None:
                missing.append(f"{m.module_id} -> {dep}")
                continue
            if not producer.priority < m.priority:
                misordered.append(f"{m.module_id}({m.priority}) -> {dep}({producer.priority})")

    if missing and require_dependencies:
        raise CatalogError(f"Modules depend on unknown module ids: {missing}", {"missing": missing})
    if misordered:
        raise CatalogError(
            f"Dependencies must run before their dependants: {misordered}",
            {"misordered": misordered},
        )


# -----------------------
# Pipeline
# -----------------------


class QuotePipeline:
    """
    Deterministic left fold of a context through the module catalog.

    Behavior:
    - modules run by ascending priority (stable for equal priorities)
    - not applicable => context passes through unchanged, module not recorded
    - applicable => module.run(ctx) replaces the running context
    - any error inside a module aborts the whole run (all-or-nothing pricing)
    """

    def __init__(self, modules: Iterable, *, require_dependencies: bool = True):
        mods = list(modules)
        validate_catalog(mods, require_dependencies=require_dependencies)
        self.modules: Tuple = tuple(sorted(mods, key=lambda m: m.priority))

    def __len__(self) -> int:
        return len(self.modules)

    @property
    def module_ids(self) -> Tuple[str, ...]:
        return tuple(m.module_id for m in self.modules)

    def run(self, ctx: QuoteContext) -> QuoteContext:
        log = logger.bind(quote_id=ctx.quote_id)

        for module in self.modules:
            try:
                if not module.is_applicable(ctx):
                    log.debug("skip {}", module.module_id)
                    continue
                out = module.run(ctx)
            except (ConfigurationError, ModuleContractError):
                log.error("module {} aborted the run", module.module_id)
                raise
            except Exception as e:
                log.error("module {} failed: {!r}", module.module_id, e)
                raise ModuleExecutionError(
                    module.module_id, f"Module {module.module_id} failed: {e}"
                ) from e

            self._check_contract(module, ctx, out)
            log.debug(
                "ran {} costs={} total={}",
                module.module_id,
                len(out.accumulator.costs),
                out.accumulator.costs_total(),
            )
            ctx = out

        acc = ctx.accumulator
        log.info(
            "pipeline done modules={}/{} costs={} total={}",
            len(acc.activated_modules),
            len(self.modules),
            len(acc.costs),
            acc.costs_total(),
        )
        return ctx

    @staticmethod
    def _check_contract(module, before: QuoteContext, after: QuoteContext) -> None:
        meta = {"moduleId": module.module_id}
        if after.input is not before.input and after.input != before.input:
            raise ModuleContractError(f"Module {module.module_id} modified the input", meta)
        if not after.accumulator.is_extension_of(before.accumulator):
            raise ModuleContractError(
                f"Module {module.module_id} removed or reordered accumulated entries", meta
            )
        if module.module_id not in after.accumulator.activated_modules:
            raise ModuleContractError(
                f"Module {module.module_id} ran but is missing from activated_modules", meta
            )

from __future__ import annotations

from typing import Any, Dict, Optional


class QuotationError(Exception):
    """
    Base class for every failure raised by the quotation core.
    - code: stable UPPER_SNAKE identifier (logs, API error payloads)
    - message: human readable text
    - meta: structured details
    """

    code: str = "QUOTATION_ERROR"

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(f"{self.code}: {self.message}")


class ConfigurationError(QuotationError):
    """Missing or invalid tunable constant. A deployment defect: the run aborts."""

    code = "CONFIGURATION_ERROR"


class CatalogError(QuotationError):
    """Module catalog is inconsistent (duplicate ids, bad dependency ordering)."""

    code = "CATALOG_ERROR"


class ModuleContractError(QuotationError):
    """A module broke the transform contract (mutation, removal, negative cost)."""

    code = "MODULE_CONTRACT_ERROR"


class InputValidationError(QuotationError):
    code = "INPUT_VALIDATION_ERROR"


class ModuleExecutionError(QuotationError):
    """
    Raised by the pipeline when a module fails. Pricing is all-or-nothing:
    the original exception is chained as __cause__.
    """

    code = "MODULE_EXECUTION_ERROR"

    def __init__(self, module_id: str, message: str, meta: Optional[Dict[str, Any]] = None):
        self.module_id = str(module_id)
        super().__init__(message, {"moduleId": self.module_id, **(meta or {})})

"""Feature flags evaluated per company.

Flags live under ``flags:`` in .prquorum.yml. A value can be:
  - a bool: on or off for everyone
  - a list of company ids: on only for those companies
  - a mapping ``{default: bool, companies: {id: bool}}``
Unknown flags are off.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

SEPARATE_DUPLICATE_DETECTION = "separate_duplicate_detection"
VALIDATION_PASS = "validation_pass"
VALIDATION_SECOND_PASS = "validation_second_pass"
VALIDATION_THIRD_PASS = "validation_third_pass"
NO_OP_DETECTION = "no_op_detection"
AUTO_APPROVE = "auto_approve"


def dispatch_flag(backend: str) -> str:
    """Flag gating an optional backend during dispatch."""
    return f"dispatch_{backend}"


class FeatureFlags:
    def __init__(self, flags: dict | None = None):
        self._flags = dict(flags or {})

    def is_enabled(self, name: str, company_id: str) -> bool:
        value = self._flags.get(name)
        if value is None:
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, (list, tuple, set)):
            return company_id in value
        if isinstance(value, dict):
            companies = value.get("companies") or {}
            if company_id in companies:
                return bool(companies[company_id])
            return bool(value.get("default", False))
        logger.warning("Flag %r has unsupported value %r; treating as disabled.", name, value)
        return False

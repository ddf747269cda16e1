"""Folds resolution outcome and data staleness into one Validity."""

from __future__ import annotations

from typing import Optional

from .errors import TimeEngineError
from .types import Validity


class ValidityClassifier:
    """Precedence: tzMissing > tzDataStale > unknown > ok."""

    def classify(self, missing: bool = False, stale: bool = False, failed: bool = False) -> Validity:
        if missing:
            return Validity.TZ_MISSING
        if stale:
            return Validity.TZ_DATA_STALE
        if failed:
            return Validity.UNKNOWN
        return Validity.OK

    def from_outcome(self, error: Optional[BaseException], stale: bool) -> Validity:
        """Classify a resolution attempt that raised *error* (or None)."""
        missing = isinstance(error, TimeEngineError) and error.validity is Validity.TZ_MISSING
        failed = error is not None and not missing
        return self.classify(missing=missing, stale=stale, failed=failed)

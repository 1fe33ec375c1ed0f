"""Classification engine combining the language-model gateway with fallback rules."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .errors import GatewayError
from .fallback import FallbackClassifier
from .gateway import ClassifierGateway
from .models import ClassificationOutcome

LOGGER = logging.getLogger(__name__)


class ClassificationEngine:
    """Label every display name, using the gateway when it works and rules when not.

    The merge policy is "fill gaps, never fail": a gateway error sends the
    whole batch to the fallback classifier, and names the gateway skipped are
    filled in one by one. ``classify`` therefore never raises for gateway
    problems and always covers every requested name.
    """

    def __init__(
        self,
        gateway: Optional[ClassifierGateway],
        fallback: FallbackClassifier,
        *,
        retries: int = 0,
    ) -> None:
        self._gateway = gateway
        self._fallback = fallback
        self._retries = max(retries, 0)

    def classify(self, names: Sequence[str]) -> ClassificationOutcome:
        """Return a folder label for every name in ``names``.

        Args:
            names: Display names to classify (duplicates collapse to one entry).

        Returns:
            ClassificationOutcome: Labels plus where they came from.
        """
        unique = list(dict.fromkeys(names))
        if not unique:
            return ClassificationOutcome()

        if self._gateway is None:
            return self._full_fallback(unique, error=None)

        try:
            answered = self._call_gateway(unique)
        except GatewayError as exc:
            LOGGER.warning("Classifier unavailable, using fallback rules: %s", exc)
            return self._full_fallback(unique, error=str(exc))

        missing = [name for name in unique if name not in answered]
        if not missing:
            return ClassificationOutcome(folders=dict(answered), source="gateway")

        LOGGER.warning(
            "Classifier omitted %d of %d files; filling them with fallback rules: %s",
            len(missing),
            len(unique),
            ", ".join(missing),
        )
        folders = {name: answered.get(name) or self._fallback.classify(name) for name in unique}
        return ClassificationOutcome(folders=folders, source="partial", fallback_names=missing)

    def _call_gateway(self, names: list[str]) -> dict[str, str]:
        assert self._gateway is not None
        attempt = 0
        while True:
            try:
                return self._gateway.classify(names)
            except GatewayError as exc:
                if attempt >= self._retries:
                    raise
                attempt += 1
                LOGGER.info(
                    "Classifier call failed (%s); retry %d of %d", exc, attempt, self._retries
                )

    def _full_fallback(self, names: list[str], *, error: Optional[str]) -> ClassificationOutcome:
        return ClassificationOutcome(
            folders=self._fallback.classify_all(names),
            source="fallback",
            fallback_names=list(names),
            error=error,
        )


__all__ = ["ClassificationEngine"]

"""
Humanizer
Adds non-semantic ambient and breathing cues to assistant text before synthesis
"""

import random
import re
from typing import Optional, Sequence

from voice_receptionist.core.config import settings
from voice_receptionist.models.tenant import TenantCallConfig

COMPANY_PLACEHOLDER = "{company_name}"

BREATH_CUE = "[breath]"
AMBIENT_CUES = (
    "[ambient:keyboard]",
    "[ambient:paper]",
    "[ambient:office]",
    "[ambient:mouse]",
)

CUE_PATTERN = re.compile(r"\[(?:ambient:[a-z_]+|breath)\]")


def strip_cues(text: str) -> str:
    """Remove humanizer cues, e.g. before the gateway's own voice reads the text"""
    return re.sub(r"\s{2,}", " ", CUE_PATTERN.sub("", text)).strip()


class Humanizer:
    """
    Inserts cue tokens at random word boundaries

    Strictly additive: original words are kept in order. Meant to run once
    per assistant turn; running it twice compounds the cues.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        ambient_probability: Optional[float] = None,
        breath_probability: Optional[float] = None,
        ambient_cues: Sequence[str] = AMBIENT_CUES
    ):
        self.rng = rng or random.Random()
        self.ambient_probability = (
            settings.humanizer_ambient_probability if ambient_probability is None else ambient_probability
        )
        self.breath_probability = (
            settings.humanizer_breath_probability if breath_probability is None else breath_probability
        )
        self.ambient_cues = tuple(ambient_cues)

    def _insert(self, words: list, cue: str) -> None:
        position = self.rng.randint(0, len(words))
        words.insert(position, cue)

    def humanize(self, text: str, tenant_config: TenantCallConfig) -> str:
        """
        Humanize one assistant utterance

        Args:
            text: Finalized reply text
            tenant_config: Tenant whose name replaces the company placeholder

        Returns:
            Text with the placeholder substituted and zero or more cues added
        """
        text = text.replace(COMPANY_PLACEHOLDER, tenant_config.company_name)
        words = text.split()
        if not words:
            return text

        if self.rng.random() < self.ambient_probability:
            self._insert(words, self.rng.choice(self.ambient_cues))

        if self.rng.random() < self.breath_probability:
            self._insert(words, BREATH_CUE)

        return " ".join(words)


# Singleton instance
_humanizer: Optional[Humanizer] = None


def get_humanizer() -> Humanizer:
    """Get the Humanizer singleton instance"""
    global _humanizer
    if _humanizer is None:
        _humanizer = Humanizer()
    return _humanizer

from __future__ import annotations

from typing import Tuple

# Physical condition of a stèle, best to worst.
CONDITION_VERY_GOOD = "Très bon"
CONDITION_GOOD = "Bon"
CONDITION_FAIR = "Moyen"
CONDITION_POOR = "Mauvais"
CONDITION_VERY_POOR = "Très mauvais"

CONDITION_CHOICES: Tuple[str, ...] = (
    CONDITION_VERY_GOOD,
    CONDITION_GOOD,
    CONDITION_FAIR,
    CONDITION_POOR,
    CONDITION_VERY_POOR,
)

CONDITION_DEFAULT = CONDITION_GOOD

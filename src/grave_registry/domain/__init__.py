from .constants import CONDITION_CHOICES, CONDITION_DEFAULT
from .models import GraveRecord, Person

__all__ = [
    "CONDITION_CHOICES",
    "CONDITION_DEFAULT",
    "GraveRecord",
    "Person",
]

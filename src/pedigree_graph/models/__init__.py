"""Record models for the family graph."""
from .person import DateAccuracy, Family, Person, ResearchStatus, Sex

__all__ = [
    "DateAccuracy",
    "Family",
    "Person",
    "ResearchStatus",
    "Sex",
]

"""Rule-based dosage and schedule suggestions.

A lookup table keyed by medication name fragments. It is not medical advice:
every suggestion carries a note and unknown medications fall back to
"as directed by doctor".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.errors import ValidationAppError
from app.schemas.schedule import DosageSuggestion, ScheduleSuggestion

logger = logging.getLogger(__name__)

ALL_DAYS = [0, 1, 2, 3, 4, 5, 6]  # 0 = Sunday


@dataclass(frozen=True)
class _DosageRule:
    keywords: tuple[str, ...]
    dosage: str
    frequency: str
    timing: tuple[str, ...]
    notes: str
    category: str


# First match wins.
_DOSAGE_RULES: tuple[_DosageRule, ...] = (
    _DosageRule(
        keywords=("paracetamol", "acetaminophen", "panadol", "tylenol"),
        dosage="500mg",
        frequency="Every 4-6 hours as needed",
        timing=("08:00", "14:00", "20:00"),
        notes="Maximum 4 doses per day. Take with food if stomach upset occurs.",
        category="pain_reliever",
    ),
    _DosageRule(
        keywords=("ibuprofen", "advil", "motrin"),
        dosage="200-400mg",
        frequency="Every 6-8 hours as needed",
        timing=("08:00", "14:00", "20:00"),
        notes="Take with food or milk to reduce stomach irritation. Maximum 3 doses per day.",
        category="pain_reliever",
    ),
    _DosageRule(
        keywords=("aspirin",),
        dosage="100-325mg",
        frequency="Once daily or as directed",
        timing=("08:00",),
        notes="Low-dose aspirin (81mg) for heart protection. Take with food.",
        category="pain_reliever",
    ),
    _DosageRule(
        keywords=("amoxicillin",),
        dosage="250-500mg",
        frequency="Three times daily",
        timing=("08:00", "14:00", "20:00"),
        notes="Take with food. Complete full course even if you feel better.",
        category="antibiotic",
    ),
    _DosageRule(
        keywords=("lisinopril",),
        dosage="10mg",
        frequency="Once daily",
        timing=("09:00",),
        notes="Take at the same time each day. May cause dizziness initially.",
        category="blood_pressure",
    ),
    _DosageRule(
        keywords=("metformin",),
        dosage="500-850mg",
        frequency="Twice daily with meals",
        timing=("08:00", "20:00"),
        notes="Take with meals to reduce stomach upset. Start with lower dose.",
        category="diabetes",
    ),
    _DosageRule(
        keywords=("atorvastatin", "simvastatin", "lipitor"),
        dosage="10-20mg",
        frequency="Once daily",
        timing=("20:00",),
        notes="Best taken in the evening. May take 2-4 weeks to show effects.",
        category="cholesterol",
    ),
    _DosageRule(
        keywords=("loratadine", "cetirizine", "claritin", "zyrtec"),
        dosage="10mg",
        frequency="Once daily",
        timing=("08:00",),
        notes="Non-drowsy antihistamine. Take with or without food.",
        category="antihistamine",
    ),
    _DosageRule(
        keywords=("vitamin d", "vitamin d3"),
        dosage="1000-2000 IU",
        frequency="Once daily",
        timing=("09:00",),
        notes="Best taken with food containing fat for better absorption.",
        category="vitamin",
    ),
    _DosageRule(
        keywords=("vitamin c",),
        dosage="500-1000mg",
        frequency="Once daily",
        timing=("08:00",),
        notes="Take with water. May cause mild stomach upset if taken on empty stomach.",
        category="vitamin",
    ),
)

_DEFAULT_RULE = _DosageRule(
    keywords=(),
    dosage="As directed by doctor",
    frequency="Follow prescription instructions",
    timing=("09:00", "21:00"),
    notes="Please consult your doctor or pharmacist for specific dosage instructions.",
    category="unknown",
)


def _require_name(medication_name: str) -> str:
    name = (medication_name or "").strip()
    if not name:
        raise ValidationAppError(
            code="medication_name_required",
            message="Medication name must not be empty",
            details={"field": "medication_name"},
        )
    return name


def _match_rule(name: str) -> _DosageRule:
    lowered = name.lower()
    for rule in _DOSAGE_RULES:
        if any(keyword in lowered for keyword in rule.keywords):
            return rule
    return _DEFAULT_RULE


def suggest_dosage(medication_name: str) -> DosageSuggestion:
    """Suggest a common dosage for a medication.

    Args:
        medication_name: Brand or generic name, any case.

    Returns:
        DosageSuggestion; the generic fallback for unknown medications.

    Raises:
        ValidationAppError: If the name is blank.
    """
    name = _require_name(medication_name)
    rule = _match_rule(name)

    logger.debug(
        "schedule.dosage_suggested",
        extra={"category": rule.category, "matched": rule is not _DEFAULT_RULE},
    )

    return DosageSuggestion(
        medication_name=name,
        dosage=rule.dosage,
        frequency=rule.frequency,
        timing=list(rule.timing),
        notes=rule.notes,
        matched=rule is not _DEFAULT_RULE,
    )


def _times_for_frequency(frequency: str, timing: list[str]) -> list[str]:
    freq = frequency.lower()

    if "once daily" in freq or "once a day" in freq:
        return [timing[0] if timing else "09:00"]
    if "twice daily" in freq or "twice a day" in freq or "2 times" in freq:
        first = timing[0] if len(timing) > 0 else "09:00"
        second = timing[2] if len(timing) > 2 else "21:00"
        return [first, second]
    if "three times" in freq or "3 times" in freq:
        return list(timing) if len(timing) >= 3 else ["08:00", "14:00", "20:00"]
    if "every 4" in freq or "4 hours" in freq:
        return ["08:00", "12:00", "16:00", "20:00"]
    if "every 6" in freq or "6 hours" in freq:
        return ["08:00", "14:00", "20:00"]
    return ["09:00", "21:00"]


def suggest_schedule(medication_name: str, frequency: str) -> ScheduleSuggestion:
    """Suggest reminder times for a medication taken at ``frequency``.

    Frequencies are matched loosely ("Twice daily", "2 times a day", "every 6
    hours", ...). Anything unrecognised falls back to 09:00 and 21:00.

    Raises:
        ValidationAppError: If the medication name is blank.
    """
    dosage = suggest_dosage(medication_name)
    times = _times_for_frequency(frequency or "", dosage.timing)

    return ScheduleSuggestion(
        medication_name=dosage.medication_name,
        times=times,
        days=list(ALL_DAYS),
        frequency=dosage.frequency,
        dosage=dosage.dosage,
        notes=dosage.notes,
    )

"""
Prompt validators for the renewal dialog.

Each validator trims the raw reply and checks its length. Nothing else is
normalized here; capitalization is the dialog's job.
"""

from dataclasses import dataclass

POLICY_NUMBER_MIN_LENGTH = 5
BIRTH_YEAR_MIN_LENGTH = 4


@dataclass(frozen=True)
class PromptValidation:
    """Outcome of validating one prompt reply."""

    accepted: bool
    value: str | None = None
    message: str | None = None


def _validate_min_length(raw: str | None, min_length: int, label: str) -> PromptValidation:
    value = (raw or "").strip()
    if len(value) >= min_length:
        return PromptValidation(accepted=True, value=value)
    return PromptValidation(
        accepted=False,
        message=f"{label} needs to be at least `{min_length}` characters long.",
    )


def validate_policy_number(raw: str | None) -> PromptValidation:
    """Accept a policy number of at least five characters once trimmed."""
    return _validate_min_length(raw, POLICY_NUMBER_MIN_LENGTH, "Policy number")


def validate_birth_year(raw: str | None) -> PromptValidation:
    """Accept a birth year of at least four characters once trimmed."""
    return _validate_min_length(raw, BIRTH_YEAR_MIN_LENGTH, "Birth year")

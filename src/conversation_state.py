"""
Per-session renewal conversation state.

A field counts as collected only when it holds something other than
whitespace. The dialog writes each field once, after validation.
"""

from dataclasses import dataclass


def is_collected(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass
class RenewalState:
    policy_number: str | None = None
    birth_year: str | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not is_collected(self.policy_number):
            missing.append("policy_number")
        if not is_collected(self.birth_year):
            missing.append("birth_year")
        return missing

    def is_complete(self) -> bool:
        return len(self.missing_fields()) == 0

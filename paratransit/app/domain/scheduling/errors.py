"""
Validation reporting surface for scheduling operations.

Validation failures are collected here and returned to the caller; they are
never raised from the scheduling core.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


BASE = "base"


class ValidationErrors:
    """Ordered field -> messages collection."""
    
    def __init__(self):
        self._errors: Dict[str, List[str]] = {}
    
    def add(self, field_name: str, message: str) -> None:
        self._errors.setdefault(field_name, []).append(message)
    
    def extend(self, other: "ValidationErrors") -> None:
        for field_name, messages in other._errors.items():
            for message in messages:
                self.add(field_name, message)
    
    def __bool__(self):
        return bool(self._errors)
    
    def __contains__(self, field_name):
        return field_name in self._errors
    
    def __getitem__(self, field_name) -> List[str]:
        return self._errors.get(field_name, [])
    
    def as_dict(self) -> Dict[str, List[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}
    
    def full_messages(self) -> List[str]:
        messages = []
        for field_name, field_messages in self._errors.items():
            for message in field_messages:
                if field_name == BASE:
                    messages.append(message)
                else:
                    messages.append(f"{field_name.replace('_', ' ').capitalize()} {message}")
        return messages
    
    def __repr__(self):
        return f"<ValidationErrors {self._errors}>"


@dataclass
class SaveResult:
    """Outcome of a trip save."""
    ok: bool
    trip: object
    errors: ValidationErrors = field(default_factory=ValidationErrors)
    instantiated: List[object] = field(default_factory=list)
    
    @property
    def run_id(self) -> Optional[int]:
        return getattr(self.trip, "run_id", None) if self.ok else None

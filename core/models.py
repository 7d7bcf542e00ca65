"""
Data records shared by the fetcher, the pattern library and the detector.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


UNKNOWN = "unknown"


class Severity(Enum):
    """Finding severity levels"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown severity: {value!r}")

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class ContractSource:
    """Verified source text and compiler metadata for one contract."""
    address: str
    raw_text: str
    is_verified: bool
    compiler_version: str = UNKNOWN
    proxy: bool = False
    implementation_address: Optional[str] = None
    contract_name: str = ""
    optimization_used: bool = False
    optimization_runs: str = ""
    evm_version: str = ""
    constructor_arguments: str = ""
    libraries: Mapping[str, Any] = field(default_factory=dict)
    license_type: str = ""
    network: str = "ethereum"
    file_count: int = 0

    def __post_init__(self):
        # Read-only view so the fetched record cannot be changed in place
        object.__setattr__(self, "libraries", MappingProxyType(dict(self.libraries)))


@dataclass(frozen=True)
class PatternRule:
    """A single detection rule of the pattern library."""
    id: str
    severity: Severity
    matcher: re.Pattern
    description: str
    impact: str
    recommendation: str
    suppressor: Optional[re.Pattern] = None
    technical_details: str = ""
    code_example: str = ""
    references: Tuple[Tuple[str, str], ...] = ()

    def matches(self, text: str) -> bool:
        """Presence check: the matcher hits and no suppressor is present."""
        if not self.matcher.search(text):
            return False
        if self.suppressor is not None and self.suppressor.search(text):
            return False
        return True


@dataclass(frozen=True)
class Finding:
    """One rule match reported to the caller."""
    rule_id: str
    severity: Severity
    description: str
    impact: str
    recommendation: str

    @classmethod
    def from_rule(cls, rule: PatternRule) -> "Finding":
        return cls(
            rule_id=rule.id,
            severity=rule.severity,
            description=rule.description,
            impact=rule.impact,
            recommendation=rule.recommendation,
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            'name': self.rule_id,
            'severity': self.severity.value,
            'description': self.description,
            'impact': self.impact,
            'recommendation': self.recommendation,
        }

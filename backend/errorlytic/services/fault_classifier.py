# errorlytic/services/fault_classifier.py
import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..config import settings
from .fault_catalog import (
    FAULT_CATEGORIES,
    HIGH_SEVERITY_KEYWORDS,
    OTHER_CATEGORY,
    SEVERITY_COST_FACTORS,
    SEVERITY_RANK,
    lookup_known_code,
    lookup_obd_prefix,
)
from .report_parser import FAULT_STATUSES, ParsedFault

logger = logging.getLogger(__name__)

AGGREGATE_SEVERITY = {"high": "critical", "medium": "recommended", "low": "monitor"}

# (category present -> recommendation), applied in order
CATEGORY_RECOMMENDATIONS = [
    ("Engine", "Engine diagnostics recommended"),
    ("Transmission", "Transmission inspection recommended"),
    ("Safety Systems", "Safety system inspection required"),
    ("Brakes", "Brake system inspection recommended"),
    ("Emission System", "Emission system check recommended"),
]

_CATEGORY_PATTERNS = {
    category: [re.compile(rf'\b{re.escape(keyword)}\b') for keyword in config["keywords"]]
    for category, config in FAULT_CATEGORIES.items()
}
_HIGH_SEVERITY_PATTERNS = [re.compile(rf'\b{re.escape(keyword)}') for keyword in HIGH_SEVERITY_KEYWORDS]


@dataclass
class ClassifiedFault:
    """A parsed fault with severity, category and baseline repair cost"""
    code: str
    description: str
    severity: str
    category: str
    estimated_cost: float
    status: str = "active"
    position: int = 0
    obd_code: Optional[str] = None

    def __post_init__(self):
        if self.severity not in SEVERITY_RANK:
            raise ValueError(f"Invalid severity: {self.severity}")
        if self.status not in FAULT_STATUSES:
            raise ValueError(f"Invalid fault status: {self.status}")
        if not self.category:
            raise ValueError("Fault category is required")
        if self.estimated_cost < 0:
            raise ValueError("Estimated cost cannot be negative")


@dataclass
class FaultSummary:
    """Report-level aggregate of classified faults"""
    overview: str
    severity: str
    total_errors: int
    critical_errors: int
    medium_errors: int
    low_errors: int
    estimated_cost: float
    priority: str
    max_fault_severity: Optional[str] = None
    primary_code: Optional[str] = None
    categories: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        if self.severity not in AGGREGATE_SEVERITY.values():
            raise ValueError(f"Invalid aggregate severity: {self.severity}")
        if self.critical_errors > self.total_errors:
            raise ValueError("critical_errors cannot exceed total_errors")


@dataclass
class Classification:
    """Classifier output: ordered faults, summary, causes and recommendations"""
    faults: List[ClassifiedFault]
    summary: FaultSummary
    causes: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def estimate_cost(category: str, severity: str, default_cost: Optional[float] = None) -> float:
    """
    Estimate repair cost from category base cost and severity

    cost = base x severity factor x category multiplier, rounded to the nearest 1000
    """
    config = FAULT_CATEGORIES.get(category)
    if not config:
        return float(default_cost if default_cost is not None else settings.DEFAULT_FAULT_COST)
    cost = config["base_cost"] * SEVERITY_COST_FACTORS[severity] * config["multiplier"]
    return float(round(cost / 1000) * 1000)


def category_from_description(description: str) -> Optional[str]:
    lowered = description.lower()
    for category, patterns in _CATEGORY_PATTERNS.items():
        if any(pattern.search(lowered) for pattern in patterns):
            return category
    return None


def escalate_severity(severity: str, description: str) -> str:
    lowered = description.lower()
    if any(pattern.search(lowered) for pattern in _HIGH_SEVERITY_PATTERNS):
        return "high"
    return severity


class FaultClassifier:
    """
    Deterministic, table-driven fault classification

    Resolution order per fault:
    1. Known code table (code, then its OBD equivalent)
    2. OBD-II subsystem prefix
    3. Description keywords
    4. Default: Other / medium / DEFAULT_FAULT_COST
    """

    def __init__(self, default_cost: Optional[float] = None):
        self.default_cost = default_cost if default_cost is not None else settings.DEFAULT_FAULT_COST

    def classify_fault(self, fault: ParsedFault, position: int = 0) -> ClassifiedFault:
        codes = [fault.code] + ([fault.obd_code] if fault.obd_code else [])

        for code in codes:
            known = lookup_known_code(code)
            if known:
                # Report text wins over the table unless the report had none
                description = fault.description
                if not description or description == f"Error Code {fault.code}":
                    description = known["description"]
                return ClassifiedFault(
                    code=fault.code,
                    description=description,
                    severity=known["severity"],
                    category=known["category"],
                    estimated_cost=float(known["estimated_cost"]),
                    status=fault.status,
                    position=position,
                    obd_code=fault.obd_code
                )

        category, severity = None, "medium"
        for code in codes:
            prefix = lookup_obd_prefix(code)
            if prefix:
                category, severity = prefix
                break

        if category is None:
            category = category_from_description(fault.description)

        if category is None:
            return ClassifiedFault(
                code=fault.code,
                description=fault.description,
                severity="medium",
                category=OTHER_CATEGORY,
                estimated_cost=float(self.default_cost),
                status=fault.status,
                position=position,
                obd_code=fault.obd_code
            )

        severity = escalate_severity(severity, fault.description)
        return ClassifiedFault(
            code=fault.code,
            description=fault.description,
            severity=severity,
            category=category,
            estimated_cost=estimate_cost(category, severity, self.default_cost),
            status=fault.status,
            position=position,
            obd_code=fault.obd_code
        )

    def classify(self, faults: Sequence[ParsedFault]) -> Classification:
        """
        Classify parsed faults and build the report summary

        Args:
            faults: Parsed faults in report order

        Returns:
            Classification with faults in the same order
        """
        classified = [self.classify_fault(fault, position) for position, fault in enumerate(faults)]
        summary = self.summarize(classified)
        causes = self._causes(classified)
        recommendations = self.recommend(summary, causes)

        logger.info(f"[Classifier] Classified {len(classified)} faults: "
                    f"severity={summary.severity}, cost={summary.estimated_cost}, causes={causes}")

        return Classification(faults=classified, summary=summary, causes=causes, recommendations=recommendations)

    def summarize(self, faults: List[ClassifiedFault]) -> FaultSummary:
        categories: Dict[str, Dict[str, Any]] = {}
        for fault in faults:
            entry = categories.setdefault(fault.category, {"count": 0, "codes": [], "estimated_cost": 0.0})
            entry["count"] += 1
            entry["codes"].append(fault.code)
            entry["estimated_cost"] += fault.estimated_cost

        critical = sum(1 for f in faults if f.severity == "high")
        medium = sum(1 for f in faults if f.severity == "medium")
        low = sum(1 for f in faults if f.severity == "low")

        primary = None
        for fault in faults:
            # Highest severity wins; ties go to the higher-cost entry, then report order
            if primary is None or (SEVERITY_RANK[fault.severity], fault.estimated_cost) > \
                    (SEVERITY_RANK[primary.severity], primary.estimated_cost):
                primary = fault

        max_severity = primary.severity if primary else None

        if critical > 0:
            priority = "high"
        elif medium > 2:
            priority = "medium"
        else:
            priority = "low"

        return FaultSummary(
            overview=f"Found {len(faults)} error codes" if faults else "No fault codes found",
            severity=AGGREGATE_SEVERITY[max_severity] if max_severity else "monitor",
            total_errors=len(faults),
            critical_errors=critical,
            medium_errors=medium,
            low_errors=low,
            estimated_cost=float(sum(f.estimated_cost for f in faults)),
            priority=priority,
            max_fault_severity=max_severity,
            primary_code=primary.code if primary else None,
            categories=categories
        )

    def recommend(self, summary: FaultSummary, causes: List[str]) -> List[str]:
        recommendations = []
        if summary.max_fault_severity == "high":
            recommendations.append("Immediate attention required - critical errors detected")

        for category, text in CATEGORY_RECOMMENDATIONS:
            if category in causes:
                recommendations.append(text)

        if not recommendations:
            if summary.total_errors == 0:
                recommendations.append("No action required - no fault codes reported")
            elif summary.max_fault_severity == "medium":
                recommendations.append("Schedule a diagnostic appointment to address the reported faults")
            else:
                recommendations.append("Monitor the reported faults and rescan at the next service")
        return recommendations

    def _causes(self, faults: List[ClassifiedFault]) -> List[str]:
        causes: List[str] = []
        for fault in faults:
            if fault.category not in causes:
                causes.append(fault.category)
        return causes


# Singleton instance
fault_classifier = FaultClassifier()

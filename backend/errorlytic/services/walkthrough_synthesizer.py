# errorlytic/services/walkthrough_synthesizer.py
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

logger = logging.getLogger(__name__)

STEP_TYPES = ("check", "replace", "retest")
DIFFICULTY_LEVELS = ("easy", "medium", "hard")

# Difficulty score thresholds: score < 10 easy, < 20 medium, otherwise hard
EASY_BELOW = 10
MEDIUM_BELOW = 20


@dataclass
class WalkthroughStep:
    """One repair step; order is 1-based and assigned by renumber_steps"""
    title: str
    detail: str
    type: str
    est_minutes: int
    order: int = 0
    category: Optional[str] = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValueError("Step title is required")
        if self.type not in STEP_TYPES:
            raise ValueError(f"Invalid step type: {self.type}")
        if self.est_minutes is None or int(self.est_minutes) < 0:
            raise ValueError("est_minutes must be >= 0")
        self.est_minutes = int(self.est_minutes)
        if self.order is None or self.order < 0:
            raise ValueError("order must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalkthroughStep":
        return cls(
            title=data.get("title", ""),
            detail=data.get("detail", "") or "",
            type=data.get("type", ""),
            est_minutes=data.get("est_minutes", 0),
            order=data.get("order") or 0,
            category=data.get("category"),
        )


@dataclass
class WalkthroughPart:
    """Part needed by a walkthrough; estimated_cost is the OEM price in KES"""
    name: str
    oem: str
    alt: List[str] = field(default_factory=list)
    qty: int = 1
    estimated_cost: float = 0.0

    def __post_init__(self):
        if not self.name:
            raise ValueError("Part name is required")
        if self.qty < 1:
            raise ValueError("Part quantity must be >= 1")
        if self.estimated_cost < 0:
            raise ValueError("Part cost cannot be negative")


@dataclass
class WalkthroughPlan:
    """Synthesized repair procedure"""
    steps: List[WalkthroughStep]
    parts: List[WalkthroughPart]
    tools: List[str]
    difficulty: str
    total_estimated_minutes: int

    def __post_init__(self):
        if self.difficulty not in DIFFICULTY_LEVELS:
            raise ValueError(f"Invalid difficulty: {self.difficulty}")
        orders = [step.order for step in self.steps]
        if orders != list(range(1, len(self.steps) + 1)):
            raise ValueError("Step orders must be contiguous 1..N")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _step(title, detail, type_, minutes):
    return {"title": title, "detail": detail, "type": type_, "est_minutes": minutes}


def _part(name, oem, alt, qty, cost):
    return {"name": name, "oem": oem, "alt": alt, "qty": qty, "estimated_cost": cost}


# Category -> canonical check/replace/retest procedure
CATEGORY_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "Engine": {
        "steps": [
            _step("Check ignition system components",
                  "Inspect spark plugs, ignition coils, and spark plug wires for wear or damage", "check", 30),
            _step("Test fuel system pressure",
                  "Connect fuel pressure gauge and verify pressure is within specifications", "check", 20),
            _step("Replace faulty ignition components",
                  "Replace any damaged spark plugs, coils, or wires found during inspection", "replace", 45),
            _step("Test engine performance",
                  "Start engine and verify misfire is resolved, check for smooth idle", "retest", 15),
        ],
        "parts": [
            _part("Spark Plugs", "NGK BKR6E", ["Bosch FR7DPP", "Champion RC12YC"], 4, 2500),
            _part("Ignition Coil", "VW 06H905115", ["Bosch 0221604001", "Beru ZSE038"], 1, 8500),
        ],
        "tools": ["Spark plug socket", "Torque wrench", "Fuel pressure gauge", "Multimeter"],
    },
    "Fuel System": {
        "steps": [
            _step("Check air intake system",
                  "Inspect air filter, intake hoses, and MAF sensor for leaks or contamination", "check", 25),
            _step("Test fuel pressure",
                  "Measure fuel pressure at rail to ensure adequate fuel delivery", "check", 20),
            _step("Clean or replace MAF sensor",
                  "Clean MAF sensor with appropriate cleaner or replace if faulty", "replace", 30),
            _step("Verify fuel trim values",
                  "Check long-term and short-term fuel trim values are within normal range", "retest", 20),
        ],
        "parts": [
            _part("Air Filter", "Mann C14130", ["Bosch 1457433276", "Fram CA9265"], 1, 1200),
            _part("MAF Sensor", "VW 06A906461", ["Bosch 0280218004", "Pierburg 7.22684.01.0"], 1, 15000),
        ],
        "tools": ["MAF sensor cleaner", "Fuel pressure gauge", "Scan tool", "Multimeter"],
    },
    "Transmission": {
        "steps": [
            _step("Check transmission fluid level and condition",
                  "Verify fluid level is correct and check for contamination or burning smell", "check", 15),
            _step("Scan transmission control module",
                  "Read all transmission DTCs to identify specific component failures", "check", 10),
            _step("Test transmission solenoids",
                  "Check resistance and operation of shift solenoids and pressure control valves", "check", 45),
            _step("Replace faulty transmission components",
                  "Replace any defective solenoids, sensors, or mechanical components", "replace", 120),
            _step("Road test transmission",
                  "Clear codes, run adaptation and verify shift quality on a road test", "retest", 30),
        ],
        "parts": [
            _part("Transmission Fluid", "VW G052182A2", ["Pentosin ATF 44", "Castrol Transmax"], 4, 800),
            _part("Shift Solenoid", "VW 01M325429", ["Bosch 0 986 375 001", "Febi 25120"], 1, 12000),
        ],
        "tools": ["Transmission fluid pump", "Scan tool", "Multimeter", "Transmission jack"],
    },
    "Brakes": {
        "steps": [
            _step("Check ABS wheel speed sensors",
                  "Inspect all wheel speed sensors for damage, contamination, or loose connections", "check", 30),
            _step("Test ABS sensor signals",
                  "Use oscilloscope to verify proper signal output from each wheel speed sensor", "check", 45),
            _step("Clean or replace ABS sensors",
                  "Clean sensor mounting surfaces and replace any faulty sensors", "replace", 60),
            _step("Test ABS system operation",
                  "Perform ABS test drive and verify system activates correctly", "retest", 20),
        ],
        "parts": [
            _part("ABS Wheel Speed Sensor", "VW 1J0927807", ["Bosch 0265008001", "Febi 25120"], 1, 8500),
            _part("ABS Sensor Cable", "VW 1J0927808", ["Bosch 0265008002"], 1, 3500),
        ],
        "tools": ["Oscilloscope", "Multimeter", "Jack stands", "ABS scan tool"],
    },
    "Safety Systems": {
        "steps": [
            _step("Check airbag system connections",
                  "Inspect all airbag connectors and wiring harnesses for damage or corrosion", "check", 45),
            _step("Test airbag control module",
                  "Use airbag scan tool to read system status and test module communication", "check", 30),
            _step("Replace faulty airbag components",
                  "Replace any damaged airbag modules, sensors, or wiring harnesses", "replace", 90),
            _step("Verify airbag system readiness",
                  "Clear codes and verify airbag warning light extinguishes properly", "retest", 15),
        ],
        "parts": [
            _part("Airbag Control Module", "VW 1J0909601", ["Bosch 0265008001"], 1, 25000),
            _part("Airbag Wiring Harness", "VW 1J0973702", ["Bosch 0265008002"], 1, 4500),
        ],
        "tools": ["Airbag scan tool", "Multimeter", "Safety glasses", "Anti-static wrist strap"],
    },
    "Electrical": {
        "steps": [
            _step("Check battery and charging voltage",
                  "Measure battery rest voltage and charging voltage with the engine running", "check", 15),
            _step("Inspect databus wiring and connectors",
                  "Check CAN bus wiring, gateway connectors and module grounds for corrosion or damage", "check", 40),
            _step("Repair wiring or replace faulty module",
                  "Repair damaged wiring and replace or recode any module that fails to communicate", "replace", 60),
            _step("Clear codes and rescan all modules",
                  "Clear fault memory and run a full auto-scan to confirm no faults return", "retest", 20),
        ],
        "parts": [
            _part("Wiring Repair Kit", "VW 000979009E", ["Febi 36214"], 1, 3000),
        ],
        "tools": ["Multimeter", "Scan tool", "Battery tester", "Crimping tool"],
    },
    "Suspension": {
        "steps": [
            _step("Check steering angle sensor",
                  "Read steering angle sensor values and inspect the sensor connector", "check", 20),
            _step("Check wheel alignment",
                  "Measure toe and camber and verify the steering wheel is centred", "check", 30),
            _step("Calibrate or replace steering angle sensor",
                  "Perform basic setting of the steering angle sensor or replace it if calibration fails", "replace", 45),
            _step("Verify stability control operation",
                  "Clear codes and verify ESC and steering assist on a road test", "retest", 20),
        ],
        "parts": [
            _part("Steering Angle Sensor", "VW 1K0959654", ["Hella 6PK008707", "Febi 34713"], 1, 18000),
        ],
        "tools": ["Scan tool", "Wheel alignment rig", "Torque wrench"],
    },
    "Emission System": {
        "steps": [
            _step("Check oxygen sensor readings",
                  "Compare upstream and downstream oxygen sensor signals with the engine warm", "check", 25),
            _step("Inspect exhaust for leaks",
                  "Check exhaust manifold and pipes upstream of the catalyst for leaks", "check", 20),
            _step("Replace faulty oxygen sensor",
                  "Replace the oxygen sensor that fails the signal test", "replace", 40),
            _step("Run catalyst readiness test",
                  "Clear codes and complete a drive cycle until catalyst readiness is set", "retest", 30),
        ],
        "parts": [
            _part("Oxygen Sensor", "VW 06A906262BR", ["Bosch 0258006537", "NTK OZA659"], 1, 9500),
        ],
        "tools": ["Oxygen sensor socket", "Scan tool", "Multimeter"],
    },
}

# Used for categories without a dedicated procedure
GENERIC_TEMPLATE: Dict[str, Any] = {
    "steps": [
        _step("Perform visual inspection",
              "Thoroughly inspect the affected system for obvious signs of damage or wear", "check", 20),
        _step("Check system connections",
              "Verify all electrical connections and wiring harnesses are secure and undamaged", "check", 15),
        _step("Test system operation",
              "Use appropriate diagnostic tools to test system functionality and identify root cause", "check", 30),
        _step("Replace faulty components",
              "Replace any components identified as defective during inspection and testing", "replace", 60),
        _step("Verify repair success",
              "Test system operation to confirm the issue has been resolved", "retest", 15),
    ],
    "parts": [],
    "tools": ["Multimeter", "Scan tool", "Basic hand tools"],
}


StepLike = Union[WalkthroughStep, Dict[str, Any]]


def _as_step(step: StepLike) -> WalkthroughStep:
    if isinstance(step, WalkthroughStep):
        return WalkthroughStep(**asdict(step))
    return WalkthroughStep.from_dict(step)


def renumber_steps(steps: Iterable[StepLike]) -> List[WalkthroughStep]:
    """Assign order 1..N following list position"""
    renumbered = [_as_step(step) for step in steps]
    for index, step in enumerate(renumbered, 1):
        step.order = index
    return renumbered


def append_step(steps: Iterable[StepLike], step: StepLike) -> List[WalkthroughStep]:
    """Append a step at the end; any order it carries is replaced"""
    return renumber_steps(list(steps) + [step])


def replace_steps(new_steps: Iterable[StepLike]) -> List[WalkthroughStep]:
    """
    Replace the step list wholesale

    Steps are placed by the order they carry (stable for ties; steps without
    an order keep their list position after ordered ones) and renumbered 1..N.
    """
    indexed = list(enumerate(_as_step(step) for step in new_steps))
    indexed.sort(key=lambda item: (item[1].order == 0, item[1].order, item[0]))
    return renumber_steps(step for _, step in indexed)


def total_minutes(steps: Iterable[WalkthroughStep]) -> int:
    return sum(step.est_minutes for step in steps)


def score_difficulty(steps: Sequence[WalkthroughStep], high_categories: Set[str]) -> str:
    """
    Difficulty from step composition

    score = step count + 2 x replace steps + 2 x steps of a high-severity category
    """
    score = len(steps)
    score += 2 * sum(1 for step in steps if step.type == "replace")
    score += 2 * sum(1 for step in steps if step.category and step.category in high_categories)
    if score < EASY_BELOW:
        return "easy"
    if score < MEDIUM_BELOW:
        return "medium"
    return "hard"


class WalkthroughSynthesizer:
    """
    Walkthrough Synthesizer Service

    Builds an ordered repair procedure from the distinct fault categories of
    an analysis. Each category contributes its check -> replace -> retest
    template; parts are merged by name and tools de-duplicated in order.
    """

    def synthesize(self, causes: Sequence[str], faults: Sequence[Any]) -> WalkthroughPlan:
        """
        Args:
            causes: Ordered distinct fault categories
            faults: Classified faults (objects with code, category, severity)

        Returns:
            WalkthroughPlan with steps ordered 1..N
        """
        codes_by_category: Dict[str, List[str]] = {}
        high_categories: Set[str] = set()
        for fault in faults:
            codes_by_category.setdefault(fault.category, []).append(fault.code)
            if _value(fault.severity) == "high":
                high_categories.add(fault.category)

        steps: List[WalkthroughStep] = []
        parts: Dict[str, WalkthroughPart] = {}
        tools: List[str] = []

        for category in causes:
            template = CATEGORY_TEMPLATES.get(category, GENERIC_TEMPLATE)
            codes = ", ".join(codes_by_category.get(category, [])) or "none"
            for step in template["steps"]:
                detail = step["detail"]
                if template is GENERIC_TEMPLATE:
                    detail = f"{detail} ({category})"
                steps.append(WalkthroughStep(
                    title=step["title"],
                    detail=f"{detail}. Related codes: {codes}",
                    type=step["type"],
                    est_minutes=step["est_minutes"],
                    category=category,
                ))

            for part in template["parts"]:
                existing = parts.get(part["name"])
                if existing is None:
                    parts[part["name"]] = WalkthroughPart(
                        name=part["name"], oem=part["oem"], alt=list(part["alt"]),
                        qty=part["qty"], estimated_cost=float(part["estimated_cost"]),
                    )
                elif part["qty"] > existing.qty:
                    existing.qty = part["qty"]

            for tool in template["tools"]:
                if tool not in tools:
                    tools.append(tool)

        steps = renumber_steps(steps)
        plan = WalkthroughPlan(
            steps=steps,
            parts=list(parts.values()),
            tools=tools,
            difficulty=score_difficulty(steps, high_categories),
            total_estimated_minutes=total_minutes(steps),
        )

        logger.info(f"[Walkthrough] Synthesized {len(steps)} steps, {len(plan.parts)} parts "
                    f"for categories {list(causes)}: difficulty={plan.difficulty}, "
                    f"{plan.total_estimated_minutes} min")
        return plan


def _value(severity) -> str:
    # ORM rows carry enum members, dataclasses carry plain strings
    return getattr(severity, "value", severity)


# Singleton instance
walkthrough_synthesizer = WalkthroughSynthesizer()

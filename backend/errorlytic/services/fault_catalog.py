# errorlytic/services/fault_catalog.py
"""
Static lookup tables for fault classification.

All costs are in the base currency (KES).
"""

from typing import Dict, List, Optional, Tuple

# Severity multipliers applied to a category's base cost
SEVERITY_COST_FACTORS: Dict[str, float] = {
    "high": 1.5,
    "medium": 1.0,
    "low": 0.8,
}

SEVERITY_RANK: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}

OTHER_CATEGORY = "Other"

# Category -> description keywords, base cost and multiplier.
# Dict order is the keyword match order.
FAULT_CATEGORIES: Dict[str, Dict] = {
    "Engine": {
        "keywords": ["engine", "motor", "cylinder", "misfire", "fuel", "injection", "ignition", "timing"],
        "base_cost": 8000,
        "multiplier": 1.2,
    },
    "Transmission": {
        "keywords": ["transmission", "gearbox", "clutch", "shift", "gear", "automatic", "manual", "gear selector"],
        "base_cost": 15000,
        "multiplier": 1.5,
    },
    "Electrical": {
        "keywords": ["electrical", "battery", "alternator", "starter", "wiring", "fuse", "relay",
                     "databus", "communication", "gateway", "voltage"],
        "base_cost": 5000,
        "multiplier": 1.1,
    },
    "Suspension": {
        "keywords": ["suspension", "shock", "strut", "spring", "control arm", "bushing", "ball joint", "steering"],
        "base_cost": 12000,
        "multiplier": 1.3,
    },
    "Brakes": {
        "keywords": ["brake", "abs", "traction", "stability", "pad", "rotor", "caliper", "esc", "tire pressure", "tpms"],
        "base_cost": 10000,
        "multiplier": 1.2,
    },
    "Air Conditioning": {
        "keywords": ["ac", "air conditioning", "climate", "climatronic", "hvac", "heater", "coolant", "thermostat"],
        "base_cost": 8000,
        "multiplier": 1.1,
    },
    "Emission System": {
        "keywords": ["emission", "catalyst", "oxygen", "lambda", "egr", "dpf", "adblue"],
        "base_cost": 20000,
        "multiplier": 1.4,
    },
    "Fuel System": {
        "keywords": ["fuel", "pump", "filter", "injector", "pressure", "tank"],
        "base_cost": 7000,
        "multiplier": 1.2,
    },
    "Exhaust System": {
        "keywords": ["exhaust", "muffler", "pipe", "catalytic"],
        "base_cost": 15000,
        "multiplier": 1.3,
    },
    "Safety Systems": {
        "keywords": ["airbag", "safety", "crash", "impact", "protection", "restraint", "seat belt"],
        "base_cost": 25000,
        "multiplier": 1.5,
    },
}

# Description words that escalate a fault to high severity
HIGH_SEVERITY_KEYWORDS: List[str] = ["misfire", "failure", "critical", "severe", "broken", "damaged"]

# SAE J2012 subsystem prefixes -> (category, baseline severity).
# Longest matching prefix wins.
OBD_PREFIX_TABLE: Dict[str, Tuple[str, str]] = {
    "P00": ("Fuel System", "medium"),
    "P01": ("Fuel System", "medium"),
    "P02": ("Fuel System", "medium"),
    "P03": ("Engine", "high"),
    "P04": ("Emission System", "medium"),
    "P05": ("Engine", "low"),
    "P06": ("Electrical", "medium"),
    "P07": ("Transmission", "medium"),
    "P08": ("Transmission", "medium"),
    "P09": ("Transmission", "medium"),
    "P": ("Engine", "medium"),
    "C": ("Brakes", "medium"),
    "B00": ("Safety Systems", "high"),
    "B": ("Electrical", "medium"),
    "U": ("Electrical", "medium"),
}

# Exact code -> known description, severity, category and repair cost
KNOWN_FAULT_CODES: Dict[str, Dict] = {
    # Generic OBD-II powertrain
    "P0300": {"description": "Random/Multiple Cylinder Misfire Detected", "severity": "high", "category": "Engine", "estimated_cost": 15000},
    "P0171": {"description": "System Too Lean (Bank 1)", "severity": "medium", "category": "Fuel System", "estimated_cost": 8000},
    "P0172": {"description": "System Too Rich (Bank 1)", "severity": "medium", "category": "Fuel System", "estimated_cost": 8000},
    "P0420": {"description": "Catalyst System Efficiency Below Threshold", "severity": "medium", "category": "Emission System", "estimated_cost": 25000},
    "P0430": {"description": "Catalyst System Efficiency Below Threshold (Bank 2)", "severity": "medium", "category": "Emission System", "estimated_cost": 25000},
    "P0128": {"description": "Coolant Thermostat Temperature Below Regulating Temperature", "severity": "low", "category": "Engine", "estimated_cost": 5000},
    "P0122": {"description": "Throttle/Pedal Position Sensor/Switch A Circuit Low Input", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "P0123": {"description": "Throttle/Pedal Position Sensor/Switch A Circuit High Input", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "P0222": {"description": "Throttle/Pedal Position Sensor/Switch B Circuit Low Input", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "P0223": {"description": "Throttle/Pedal Position Sensor/Switch B Circuit High Input", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "P0506": {"description": "Idle Control System RPM Lower Than Expected", "severity": "low", "category": "Engine", "estimated_cost": 6000},
    "P0507": {"description": "Idle Control System RPM Higher Than Expected", "severity": "low", "category": "Engine", "estimated_cost": 6000},
    "P0562": {"description": "System Voltage Low", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "P0563": {"description": "System Voltage High", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "P0700": {"description": "Transmission Control System Malfunction", "severity": "high", "category": "Transmission", "estimated_cost": 20000},
    "P0741": {"description": "Torque Converter Clutch Circuit Performance or Stuck Off", "severity": "medium", "category": "Transmission", "estimated_cost": 18000},
    "P0742": {"description": "Torque Converter Clutch Circuit Stuck On", "severity": "medium", "category": "Transmission", "estimated_cost": 18000},
    "P0753": {"description": "Shift Solenoid A Electrical", "severity": "medium", "category": "Transmission", "estimated_cost": 15000},
    "P0758": {"description": "Shift Solenoid B Electrical", "severity": "medium", "category": "Transmission", "estimated_cost": 15000},
    "P0841": {"description": "Transmission Fluid Pressure Sensor/Switch A Circuit Range/Performance", "severity": "medium", "category": "Transmission", "estimated_cost": 16000},
    "P0842": {"description": "Transmission Fluid Pressure Sensor/Switch A Circuit Low", "severity": "medium", "category": "Transmission", "estimated_cost": 16000},
    "P0843": {"description": "Transmission Fluid Pressure Sensor/Switch A Circuit High", "severity": "medium", "category": "Transmission", "estimated_cost": 16000},

    # VAG manufacturer codes
    "17158": {"description": "Databus - Received Error Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "5250": {"description": "Function Restriction due to Faults in Other Modules", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "7150": {"description": "Implausible Data Received from Steering Angle Sensor Module", "severity": "high", "category": "Suspension", "estimated_cost": 18000},
    "4716": {"description": "No Communications with Parking Brake Control Module", "severity": "medium", "category": "Brakes", "estimated_cost": 15000},
    "25472": {"description": "No Communication with Gear Selector Module", "severity": "high", "category": "Transmission", "estimated_cost": 20000},
    "21221": {"description": "No Communications with Parking Brake Control Module", "severity": "medium", "category": "Brakes", "estimated_cost": 15000},
    "0295": {"description": "Steering angle sensor - Missing Calibration", "severity": "high", "category": "Suspension", "estimated_cost": 18000},
    "8299": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "16390": {"description": "Display for Tire Pressure Monitoring - Signal Failure", "severity": "medium", "category": "Brakes", "estimated_cost": 12000},
    "554773": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "12658704": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "13637426": {"description": "Databus - Received Error Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "16776967": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "16776973": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "15873": {"description": "Steering angle sensor - Missing Calibration", "severity": "high", "category": "Suspension", "estimated_cost": 18000},
    "7175": {"description": "Function Restricted due to Missing Message(s)", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "7206": {"description": "Function Restricted due to Missing Message(s)", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},

    # OBD equivalents seen on VAG reports
    "C3298": {"description": "ESC Component Error", "severity": "high", "category": "Brakes", "estimated_cost": 25000},
    "C0608": {"description": "ESC Component Error", "severity": "high", "category": "Brakes", "estimated_cost": 25000},
    "C1146": {"description": "Tire Pressure Monitoring Display Error", "severity": "high", "category": "Brakes", "estimated_cost": 15000},
    "B1168": {"description": "Steering Angle Sensor Error", "severity": "high", "category": "Suspension", "estimated_cost": 20000},
    "U1123": {"description": "Databus - Received Error Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "U1113": {"description": "Function Restriction due to Faults in Other Modules", "severity": "medium", "category": "Engine", "estimated_cost": 12000},
    "U0428": {"description": "Implausible Data from Steering Angle Sensor", "severity": "high", "category": "Suspension", "estimated_cost": 20000},
    "U0128": {"description": "No Communications with Parking Brake Control Module", "severity": "medium", "category": "Brakes", "estimated_cost": 15000},
    "U0103": {"description": "No Communication with Gear Selector Module", "severity": "high", "category": "Transmission", "estimated_cost": 20000},
    "U1121": {"description": "Databus - Missing Message", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "U1111": {"description": "Function Restricted due to Missing Message(s)", "severity": "medium", "category": "Electrical", "estimated_cost": 8000},
    "C2410": {"description": "Body Control Module (BCM) Communication Error", "severity": "high", "category": "Electrical", "estimated_cost": 15000},
    "C0000": {"description": "Airbag System Component Error", "severity": "high", "category": "Safety Systems", "estimated_cost": 20000},
    "C8000": {"description": "Airbag System Component Error", "severity": "high", "category": "Safety Systems", "estimated_cost": 20000},
    "C2136": {"description": "Side Sensor Communication Error", "severity": "high", "category": "Safety Systems", "estimated_cost": 18000},
    "C4008": {"description": "Front Sensor Communication Error", "severity": "high", "category": "Safety Systems", "estimated_cost": 18000},
    "C0714": {"description": "Dashboard Communication Error", "severity": "high", "category": "Electrical", "estimated_cost": 8000},
    "C9004": {"description": "Passenger Door Control Module Error", "severity": "high", "category": "Electrical", "estimated_cost": 8000},
    "B7945": {"description": "Air Conditioning System Error", "severity": "high", "category": "Air Conditioning", "estimated_cost": 15000},
    "B0864": {"description": "CAN Gateway Communication Error", "severity": "high", "category": "Electrical", "estimated_cost": 8000},
    "B0950": {"description": "Driver Door Control Module Error", "severity": "high", "category": "Electrical", "estimated_cost": 8000},
    "U5012": {"description": "Transmission Control Module Error", "severity": "high", "category": "Transmission", "estimated_cost": 20000},
    "U3700": {"description": "Park Assist System Coding Error", "severity": "high", "category": "Electrical", "estimated_cost": 8000},
}


def lookup_known_code(code: str) -> Optional[Dict]:
    """Exact, case-insensitive lookup in the known code table."""
    return KNOWN_FAULT_CODES.get(code.strip().upper())


def lookup_obd_prefix(code: str) -> Optional[Tuple[str, str]]:
    """Return (category, severity) for an OBD-II code by its subsystem prefix."""
    code = code.strip().upper()
    if len(code) != 5 or code[0] not in "PCBU" or not code[1:].isdigit():
        return None
    for length in (3, 1):
        entry = OBD_PREFIX_TABLE.get(code[:length])
        if entry:
            return entry
    return None

# errorlytic/services/reasoning_client.py
"""AI reasoning client abstraction used by the enrichment stage."""

from typing import Any, Dict, List, Protocol

from .fault_classifier import ClassifiedFault


class ReasoningClient(Protocol):
    """Produce natural-language diagnostics for classified faults.

    Every method raises ``EnrichmentUnavailable`` when the provider cannot
    answer (missing credentials, timeout, transport or API error, empty reply).
    """

    provider: str
    model: str

    def assess(self, faults: List[ClassifiedFault], vehicle_info: Dict[str, Any]) -> str:
        """Return an overall assessment of the report."""

    def explain(self, fault: ClassifiedFault, vehicle_info: Dict[str, Any]) -> str:
        """Return a customer-facing explanation of one fault."""

    def troubleshoot(self, fault: ClassifiedFault, vehicle_info: Dict[str, Any]) -> str:
        """Return troubleshooting steps for one fault."""

"""Schema definitions for the provider directory.

Maps 1:1 to the ``providers`` and ``insurance_plans`` tables. Only the
columns the verification core reads are modelled here.
"""

from dataclasses import dataclass


@dataclass
class Provider:
    """A healthcare provider identified by NPI.

    Attributes:
        npi: 10-digit National Provider Identifier.
        name: Display name.
        primary_specialty: Free-text specialty used for freshness thresholds.
        taxonomy_description: Free-text NUCC taxonomy description.
    """

    npi: str
    name: str = ""
    primary_specialty: str | None = None
    taxonomy_description: str | None = None

    def __post_init__(self) -> None:
        if not (len(self.npi) == 10 and self.npi.isdigit()):
            raise ValueError(f"Invalid NPI {self.npi!r}. Must be 10 digits.")


@dataclass
class InsurancePlan:
    """An insurance plan a provider may or may not accept."""

    plan_id: str
    plan_name: str = ""
    issuer_name: str | None = None

    def __post_init__(self) -> None:
        if not self.plan_id:
            raise ValueError("plan_id must be non-empty")

"""Provider directory: providers, insurance plans and the lookup repository."""

from src.providers.repository import ProviderRepository
from src.providers.schemas import InsurancePlan, Provider

__all__ = [
    "InsurancePlan",
    "Provider",
    "ProviderRepository",
]

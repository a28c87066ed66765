"""
Dependency injection for FastAPI endpoints.
"""

from src.confidence.config import ConfidenceConfig
from src.confidence.service import ConfidenceService
from src.providers.repository import ProviderRepository
from src.storage.database import Database
from src.verification.config import VerificationConfig
from src.verification.repository import VerificationRepository
from src.verification.service import VerificationService
from src.verification.votes import VoteLedger

# Global instances (initialized on first request)
_database: Database | None = None
_confidence_service: ConfidenceService | None = None
_verification_service: VerificationService | None = None
_vote_ledger: VoteLedger | None = None


async def get_database() -> Database:
    """Get the shared connected Database."""
    global _database

    if _database is None:
        _database = Database()
        await _database.connect()

    return _database


def get_confidence_service() -> ConfidenceService:
    """Get the shared confidence formula (stateless, config from env)."""
    global _confidence_service

    if _confidence_service is None:
        _confidence_service = ConfidenceService(ConfidenceConfig())

    return _confidence_service


async def get_verification_service() -> VerificationService:
    """
    Get verification service instance.

    Creates a singleton service over the shared database pool.
    """
    global _verification_service

    if _verification_service is None:
        database = await get_database()
        _verification_service = VerificationService(
            VerificationRepository(database),
            ProviderRepository(database),
            config=VerificationConfig(),
            confidence=get_confidence_service(),
        )

    return _verification_service


async def get_vote_ledger() -> VoteLedger:
    """Get vote ledger instance."""
    global _vote_ledger

    if _vote_ledger is None:
        database = await get_database()
        _vote_ledger = VoteLedger(
            VerificationRepository(database),
            ProviderRepository(database),
            confidence=get_confidence_service(),
        )

    return _vote_ledger


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _database, _confidence_service, _verification_service, _vote_ledger

    _verification_service = None
    _vote_ledger = None
    _confidence_service = None

    if _database is not None:
        await _database.close()
        _database = None

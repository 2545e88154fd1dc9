from shadowit.services.app_verification_service import AppVerificationService
from shadowit.services.reconciliation_service import ReconciliationService
from shadowit.services.sync_manager import SyncManager
from shadowit.services.sync_orchestrator import SyncOrchestrator

__all__ = [
    "AppVerificationService",
    "ReconciliationService",
    "SyncManager",
    "SyncOrchestrator",
]

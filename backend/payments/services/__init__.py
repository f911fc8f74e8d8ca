from .reconciliation import PaymentReconciliationService, generate_reference

__all__ = ["PaymentReconciliationService", "generate_reference"]

"""Domain errors raised by the reconciliation services."""


class ReconciliationError(Exception):
    """Base exception for statement reconciliation errors."""

    pass


class NotFoundError(ReconciliationError):
    """Raised when a statement, transaction or payment does not exist for the tenant."""

    def __init__(self, resource: str, resource_id: object) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class DuplicateImportError(ReconciliationError):
    """Raised when the same statement file was already imported by the tenant."""

    def __init__(self, file_hash: str, existing_statement_id: object | None = None) -> None:
        self.file_hash = file_hash
        self.existing_statement_id = existing_statement_id
        super().__init__("Statement file already imported")


class NoTransactionsError(ReconciliationError):
    """Raised when a parsed statement carries no transactions."""

    def __init__(self) -> None:
        super().__init__("Statement contains no transactions")


class InvalidTransitionError(ReconciliationError):
    """Raised when a transaction is not in a state that allows the requested change."""

    pass


class PaymentAlreadyLinkedError(ReconciliationError):
    """Raised when a payment is already reconciled with another bank transaction."""

    def __init__(self, payment_id: object, linked_transaction_id: object | None = None) -> None:
        self.payment_id = payment_id
        self.linked_transaction_id = linked_transaction_id
        super().__init__(f"Payment {payment_id} is already linked to another transaction")

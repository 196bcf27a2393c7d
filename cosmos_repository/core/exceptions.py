"""
Repository exception hierarchy.

Only the conditions the repository raises on its own live here. Faults
reported by Cosmos DB (not found, conflict, throttling, bad request) are
propagated as the SDK's own ``azure.cosmos.exceptions`` types and are never
wrapped.
"""


class RepositoryError(Exception):
    """Base exception for cosmos_repository"""
    pass


class RepositoryNotReadyError(RepositoryError):
    """Raised when an operation is issued before provisioning completed or after close()"""
    pass


class ProvisioningTimeoutError(RepositoryError, TimeoutError):
    """
    Raised when database/collection provisioning does not finish in time.

    Attributes:
        database_id: Target database id
        collection_id: Target collection id
        timeout_ms: The timeout that was exceeded, in milliseconds
    """

    def __init__(self, database_id: str, collection_id: str, timeout_ms: float):
        self.database_id = database_id
        self.collection_id = collection_id
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Provisioning of {database_id}/{collection_id} did not complete "
            f"within {timeout_ms:g} ms"
        )


class OperationNotSupportedError(RepositoryError, NotImplementedError):
    """
    Raised by repository overloads that are deliberately not implemented.

    Signals a caller-side mistake (wrong overload selected), not a
    transient condition.
    """

    def __init__(self, operation: str, hint: str = ""):
        self.operation = operation
        message = f"{operation} is not supported"
        if hint:
            message = f"{message}: {hint}"
        super().__init__(message)

class MenuCacheError(Exception):
    """Base exception for tenant menu cache errors."""
    pass


class TenantMenuNotFoundError(MenuCacheError):
    """Raised when a tenant has no stored menu record."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No menu data found for tenant {tenant_id}")


class MenuValidationError(MenuCacheError):
    """Raised when required input is missing or malformed."""

    def __init__(self, message: str = "Invalid menu input"):
        super().__init__(message)


class MenuAlreadyExistsError(MenuValidationError):
    """Raised when the manual creation path targets a tenant that already has data."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Menu data already exists for tenant {tenant_id}; use a manual update instead")


class MenuFetchError(MenuCacheError):
    """Raised by fetch collaborators when the upstream failed or returned unusable data."""

    def __init__(self, message: str = "Failed to fetch menu"):
        super().__init__(message)


class PersistenceError(MenuCacheError):
    """Raised when the underlying store failed to read or write."""

    def __init__(self, message: str = "Failed to persist menu data"):
        super().__init__(message)

class TelemetryError(Exception):
    """Base class for telemetry failures."""
    pass


class TelemetryStoreError(TelemetryError):
    """Storage unreachable or a query/insert failed."""
    pass


class FetchError(TelemetryStoreError):
    """An analysis could not read its window from the store."""

    def __init__(self, building_id: str, what: str, cause: Exception = None):
        self.building_id = building_id
        self.what = what
        message = f"Failed to fetch {what} for building {building_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class BootstrapError(TelemetryStoreError):
    """A missing substation could not be created for a building."""

    def __init__(self, building_id: str, cause: Exception = None):
        self.building_id = building_id
        message = f"Could not create substation for building {building_id}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)

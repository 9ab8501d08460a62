"""Exception hierarchy for the trip planner."""


class TripPlannerError(Exception):
    """Base class for every planner error."""


class InvalidTripRequestError(TripPlannerError):
    """Coordinates, SoC or vehicle parameters rejected before simulation."""


class RouteNotFoundError(TripPlannerError):
    """The routing provider returned no usable route."""


class ProviderError(TripPlannerError):
    """An upstream provider failed in a way the caller has to handle."""

    def __init__(self, provider: str, message: str, status_code: int = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")

"""
Failure outcomes of a single perception request.

Every error is recoverable. `benign` separates "nothing found" results, which
happen in normal operation, from infrastructure problems such as a missing
sensor feed or an unresolvable frame transform.
"""


class PerceptionError(Exception):
    benign = True


class NoInputError(PerceptionError):
    """No raw cloud arrived before the input deadline."""
    benign = False


class TransformUnavailableError(PerceptionError):
    """The pose provider could not resolve sensor -> fixed frame in time."""
    benign = False


class RequestCancelledError(PerceptionError):
    benign = False


class EmptyCloudError(PerceptionError):
    """Nothing left after cropping."""


class NoPlaneFoundError(PerceptionError):
    pass


class EmptyRegionError(PerceptionError):
    """Nothing above the table (or nothing inside a pixel selection)."""


class NoClustersFoundError(PerceptionError):
    pass


class InvalidPixelError(PerceptionError):
    """The sensor reported no valid range at the requested pixel."""

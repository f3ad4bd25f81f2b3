from __future__ import annotations


class RecommendationError(Exception):
    """Base class for failures inside the recommendation pipeline."""


class StoreUnavailable(RecommendationError):
    """The backing store could not be reached while reading users or events."""


class WriteFailed(RecommendationError):
    """A recommendation replace did not commit. The previous set is untouched."""


class MalformedEvent(RecommendationError):
    """An activity row is missing its type or carries an unusable timestamp."""

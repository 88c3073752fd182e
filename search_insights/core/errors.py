"""Error taxonomy for insight computations.

Every failure propagates to the top of a single chart computation; the router
turns it into an error response so the chart view shows an error state.
"""


class InsightError(Exception):
    """Base class for all failures of an insight computation."""


class ConfigurationError(InsightError):
    """Invalid insight object, unknown insight id or missing viewer context."""


class GraphQLError(InsightError):
    """The API returned an error list alongside (or instead of) data."""

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__("\n".join(self.messages))


class TransientSearchError(InsightError):
    """Timeout-class failure of a remote call. The only retryable error."""


class ConsistencyError(InsightError):
    """The search backend violated an invariant the pipeline relies on.

    Raised when a resolved commit postdates its query boundary, when a commit
    carries no committer date, or when a batched response does not list its
    fields in request order. Never retried.
    """


class UnknownInsightError(ConfigurationError):
    """No enabled insight is registered under the requested id."""


class IncompleteResultError(InsightError):
    """A sub-query of a batched call came back without a result."""


class StaleInsightError(InsightError):
    """The insight configuration changed while its chart was being computed."""

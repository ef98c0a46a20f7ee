"""Error taxonomy shared by the ingestion pipeline."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    code = "pipeline_error"


class MalformedPayload(PipelineError):
    """Webhook body is missing required fields. Not retryable."""

    code = "malformed_payload"


class PersistenceError(PipelineError):
    """A storage write failed."""

    code = "persistence_error"


class UpstreamUnavailable(PipelineError):
    """Model or channel API call failed or timed out."""

    code = "upstream_unavailable"


class ConfigurationError(PipelineError):
    """A credential or integration is missing."""

    code = "configuration_error"

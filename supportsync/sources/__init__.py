"""Remote conversation sources."""

from supportsync.sources.client import ProbeResult, SourceMetrics, SupportApiClient, unwrap_envelope

__all__ = ["SupportApiClient", "SourceMetrics", "ProbeResult", "unwrap_envelope"]

"""Response builders for HTTP endpoints."""

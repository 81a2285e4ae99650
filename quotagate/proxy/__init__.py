"""HTTP surface: identity resolution, rate limit middleware and the proxy app."""

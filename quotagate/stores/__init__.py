"""Counter store backends for the rate limiter."""

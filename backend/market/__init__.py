"""Read-through cache for crypto, FX and index metrics."""

"""Multi-footprint roof merge."""

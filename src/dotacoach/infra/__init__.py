"""Persistence for hero benchmarks and cached analyses."""

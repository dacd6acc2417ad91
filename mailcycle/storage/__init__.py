"""Persisted cycle state: arrival and processing records plus their stores."""

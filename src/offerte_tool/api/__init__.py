"""HTTP API for the offerte calculator."""

"""Shared test doubles and sample portal pages."""

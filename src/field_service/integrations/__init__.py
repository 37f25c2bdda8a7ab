"""Adapters for services outside the lifecycle engine."""

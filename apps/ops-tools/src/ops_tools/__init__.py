"""Operator commands for the kitchen ops backend."""

"""Operator CLI for inspecting and resolving tracked changes."""

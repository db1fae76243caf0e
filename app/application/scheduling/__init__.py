"""Interval arithmetic, slot grids and conflict detection for appointment booking."""

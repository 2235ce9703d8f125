"""Game domain services: matching, scoring, the session registry and round timers.

This package contains pure(ish) domain logic that should be imported by
socket handlers and HTTP routes, keeping transport concerns separated
from core game mechanics.
"""

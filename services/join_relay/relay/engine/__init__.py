"""Candidate building, attempt execution and fallback dispatch for join relays."""

"""Duel domain services: lifecycle transitions and score negotiation.

Called by the HTTP blueprints with an explicit Principal. Nothing here reads
the request; failures are raised as duelapp.errors types.
"""

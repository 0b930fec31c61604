"""Channels module - messaging gateway clients."""

from .evolution import EvolutionClient, create_evolution_client

__all__ = ['EvolutionClient', 'create_evolution_client']

"""Test mocks for mercado-qa.

Provides mock implementations for testing:
- MockMercadoServer: In-memory replica of the mercado REST API
"""

from .mock_mercado_server import MockMercadoServer

__all__ = ["MockMercadoServer"]

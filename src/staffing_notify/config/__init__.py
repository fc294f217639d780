"""Configurações centralizadas do staffing_notify.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- Constantes da Graph API Meta (GRAPH_API_VERSION, GRAPH_API_BASE_URL)

Uso típico:
    from staffing_notify.config import get_settings
"""

from staffing_notify.config.settings import (
    GRAPH_API_BASE_URL,
    GRAPH_API_VERSION,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "GRAPH_API_VERSION",
    "GRAPH_API_BASE_URL",
]

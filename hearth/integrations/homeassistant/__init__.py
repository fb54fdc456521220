from hearth.integrations.homeassistant.config import (
    HomeAssistantConfig,
    RetryConfig,
    WsReconnectConfig,
)
from hearth.integrations.homeassistant.rest_client import (
    HomeAssistantAuthError,
    HomeAssistantRateLimitError,
    HomeAssistantRestClient,
    HomeAssistantTransportError,
)
from hearth.integrations.homeassistant.ws_client import HomeAssistantWsClient, HomeAssistantWsError

__all__ = [
    "HomeAssistantAuthError",
    "HomeAssistantConfig",
    "HomeAssistantRateLimitError",
    "HomeAssistantRestClient",
    "HomeAssistantTransportError",
    "HomeAssistantWsClient",
    "HomeAssistantWsError",
    "RetryConfig",
    "WsReconnectConfig",
]

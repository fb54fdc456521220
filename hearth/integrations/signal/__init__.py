from hearth.integrations.signal.config import MODE_JSON_RPC, MODE_POLLING, SignalConfig
from hearth.integrations.signal.contracts import (
    ChatGroup,
    ChatTransport,
    InboundMessage,
    OriginKind,
    ReplyTarget,
)
from hearth.integrations.signal.jsonrpc_transport import SignalJsonRpcTransport
from hearth.integrations.signal.rest_transport import SignalRestTransport


def build_chat_transport(config: SignalConfig) -> ChatTransport:
    if config.mode == MODE_JSON_RPC:
        return SignalJsonRpcTransport(config)
    return SignalRestTransport(config)


__all__ = [
    "ChatGroup",
    "ChatTransport",
    "InboundMessage",
    "MODE_JSON_RPC",
    "MODE_POLLING",
    "OriginKind",
    "ReplyTarget",
    "SignalConfig",
    "SignalJsonRpcTransport",
    "SignalRestTransport",
    "build_chat_transport",
]

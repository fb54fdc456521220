"""Bridge entrypoint."""

from __future__ import annotations

import logging
import signal
from pathlib import Path

from dotenv import load_dotenv

from hearth.bridge import WELCOME_TEXT, BridgeLoop, ensure_broadcast_group
from hearth.commands.dispatcher import CommandDispatcher
from hearth.commands.entities import EntityResolver
from hearth.config import BridgeConfig, BridgeConfigError, load_bridge_config
from hearth.gates import AuthorizationGate, DedupGate
from hearth.integrations.homeassistant import HomeAssistantRestClient, HomeAssistantWsClient
from hearth.integrations.signal import ChatTransport, ReplyTarget, build_chat_transport


def load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


def main() -> int:
    load_env()
    try:
        config = load_bridge_config()
    except BridgeConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logging.critical("Invalid configuration: %s", exc)
        return 1
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))

    ha = HomeAssistantRestClient(config.homeassistant)
    try:
        ha.check_api()
        ha_config = ha.get_config()
    except Exception as exc:
        logging.critical("Failed to connect to Home Assistant: %s", exc)
        ha.close()
        return 1
    logging.info(
        "Connected to Home Assistant location=%s version=%s",
        ha_config.get("location_name"),
        ha_config.get("version"),
    )

    transport = build_chat_transport(config.signal)
    transport.start()
    logging.info("Chat transport ready mode=%s", transport.name)

    broadcast_group_id = _setup_broadcast_group(config, transport)

    resolver = EntityResolver(ha.get_states, ttl_sec=config.entity_cache_ttl_sec)
    loop = BridgeLoop(
        transport,
        CommandDispatcher(resolver, ha),
        dedup=DedupGate(capacity=config.dedup_capacity),
        auth=AuthorizationGate(config.allowed_numbers),
        own_number=config.signal.number,
        poll_interval_sec=config.update_interval_sec,
        broadcast_group_id=broadcast_group_id,
        notify_rules=config.notify_rules,
    )

    events: HomeAssistantWsClient | None = None
    if broadcast_group_id and config.notify_rules:
        events = HomeAssistantWsClient(config.homeassistant)
        events.subscribe_events("state_changed", loop.on_state_changed)

    def _request_stop(signum: int, _frame: object) -> None:
        logging.info("Shutdown requested signal=%s", signal.Signals(signum).name)
        loop.stop()

    signal.signal(signal.SIGTERM, _request_stop)
    signal.signal(signal.SIGINT, _request_stop)

    logging.info("Listening for Signal messages from: %s", ", ".join(config.allowed_numbers))
    if broadcast_group_id:
        logging.info("Group mode active group_name=%s", config.group_name)
    logging.info('Send "help" to get started')
    try:
        loop.run()
    finally:
        if events is not None:
            events.stop()
        transport.stop()
        ha.close()
    logging.info("Shut down gracefully")
    return 0


def _setup_broadcast_group(config: BridgeConfig, transport: ChatTransport) -> str | None:
    group_id = config.broadcast_group_id
    if group_id is None and not config.group_mode:
        return None
    try:
        if group_id is None:
            logging.info("Group mode enabled - setting up HA group")
            group = ensure_broadcast_group(
                transport,
                config.group_name,
                [config.signal.number, *config.allowed_numbers],
            )
            if not group.id:
                raise RuntimeError(f'group "{config.group_name}" has no id')
            group_id = group.id
            logging.info('Group ready name="%s" members=%s', group.name, len(group.members))
        transport.send_message(ReplyTarget.group(group_id), WELCOME_TEXT)
    except Exception as exc:
        logging.error("Failed to setup group: %s", exc)
        logging.info("Continuing in individual mode")
        return None
    return group_id


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()

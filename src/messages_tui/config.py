from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_HOST = "127.0.0.1"
_DEFAULT_PORT = 18790
_DEFAULT_EDITOR = "nvim"
CONFIG_DIR = Path.home() / ".config" / "messages-tui"
_DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass
class GatewayConfig:
    host: str = _DEFAULT_HOST
    port: int = _DEFAULT_PORT
    token: str | None = None

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.port}"


@dataclass
class NavigationKeybinds:
    """Keys accepted immediately after the leader key."""

    conversations: str = "c"
    messages: str = "m"
    input: str = "i"


@dataclass
class GlobalKeybinds:
    quit: str = "q"
    next_panel: str = "tab"
    prev_panel: str = "shift+tab"
    help: str = "?"
    refresh: str = "ctrl+r"


@dataclass
class KeybindConfig:
    leader_key: str = "ctrl+space"
    navigation: NavigationKeybinds = field(default_factory=NavigationKeybinds)
    global_keys: GlobalKeybinds = field(default_factory=GlobalKeybinds)


@dataclass
class ThemeConfig:
    primary_color: str = "#7C3AED"
    secondary_color: str = "#10B981"


@dataclass
class AppConfig:
    editor: str = _DEFAULT_EDITOR
    editor_args: list[str] = field(default_factory=list)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    keybinds: KeybindConfig = field(default_factory=KeybindConfig)
    theme: ThemeConfig = field(default_factory=ThemeConfig)


def _merge_strings(target: object, section: object) -> None:
    """Copy non-empty string values from ``section`` onto matching dataclass fields."""
    if not isinstance(section, dict):
        return
    for name in vars(target):
        value = section.get(name)
        if isinstance(value, str) and value.strip():
            setattr(target, name, value.strip())


def _apply_file(cfg: AppConfig, data: dict) -> None:
    editor = data.get("editor")
    if isinstance(editor, str) and editor.strip():
        cfg.editor = editor.strip()

    editor_args = data.get("editor_args")
    if isinstance(editor_args, list):
        cfg.editor_args = [str(arg) for arg in editor_args]

    gateway_section = data.get("gateway", {})
    if isinstance(gateway_section, dict):
        host = gateway_section.get("host")
        if isinstance(host, str) and host.strip():
            cfg.gateway.host = host.strip()
        if "port" in gateway_section:
            cfg.gateway.port = int(gateway_section["port"])
        token = gateway_section.get("token")
        if isinstance(token, str) and token:
            cfg.gateway.token = token

    keybinds_section = data.get("keybinds", {})
    if isinstance(keybinds_section, dict):
        leader = keybinds_section.get("leader_key")
        if isinstance(leader, str) and leader.strip():
            cfg.keybinds.leader_key = leader.strip()
        _merge_strings(cfg.keybinds.navigation, keybinds_section.get("navigation"))
        _merge_strings(cfg.keybinds.global_keys, keybinds_section.get("global"))

    _merge_strings(cfg.theme, data.get("theme"))


def load_config(config_path: str | None = None) -> AppConfig:
    """Load config from ~/.config/messages-tui/config.json, falling back to env vars.

    Config file fields:
    - editor (str), editor_args (list[str])
    - gateway.host / gateway.port / gateway.token
    - keybinds.leader_key, keybinds.navigation.*, keybinds.global.*
    - theme.primary_color / theme.secondary_color

    Empty or missing values fall back to defaults field by field.

    Env var overrides:
    - MESSAGES_TUI_GATEWAY_HOST / MESSAGES_TUI_GATEWAY_PORT / MESSAGES_TUI_GATEWAY_TOKEN
    - EDITOR (only when the config file does not name an editor)

    Returns AppConfig. Never raises: uses defaults if config missing or broken.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH

    cfg = AppConfig()
    editor_from_file = False

    if path.exists():
        try:
            data = json.loads(path.read_text())
            if not isinstance(data, dict):
                raise ValueError("top-level value is not an object")
            _apply_file(cfg, data)
            editor_from_file = isinstance(data.get("editor"), str) and bool(data["editor"].strip())
        except Exception as exc:
            logger.warning("Failed to parse config file %s: %s, using defaults", path, exc)
            cfg = AppConfig()
    else:
        logger.info("Config file not found at %s, using defaults", path)

    if not editor_from_file:
        cfg.editor = os.environ.get("EDITOR", "").strip() or _DEFAULT_EDITOR

    env_host = os.environ.get("MESSAGES_TUI_GATEWAY_HOST")
    if env_host:
        cfg.gateway.host = env_host

    env_port = os.environ.get("MESSAGES_TUI_GATEWAY_PORT")
    if env_port is not None:
        try:
            cfg.gateway.port = int(env_port)
        except ValueError:
            logger.warning(
                "Invalid MESSAGES_TUI_GATEWAY_PORT value %r, using %d", env_port, cfg.gateway.port
            )

    env_token = os.environ.get("MESSAGES_TUI_GATEWAY_TOKEN")
    if env_token is not None:
        cfg.gateway.token = env_token

    return cfg

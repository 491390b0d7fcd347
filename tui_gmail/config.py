import json
import os
import re
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .debuglog import DebugLogger, log
from .gmail import DEFAULT_API_BASE

LIST_THREADS = "threads"
LIST_MESSAGES = "messages"


class ConfigError(RuntimeError):
    pass


@dataclass
class Config:
    access_token: str = ""
    api_base: str = DEFAULT_API_BASE
    timeout: float = 30.0
    query: str = "in:inbox"
    max_results: int = 20
    list_kind: str = LIST_THREADS
    editor: str = "/usr/bin/emacs"
    opener: str = "xdg-open"
    signature: str = "Best regards"
    reply_prefix: str = "Re: "
    reply_regexp: str = r"^(Re|Sv|Aw|AW): "
    keys: Dict[str, Dict[str, List[Any]]] = field(default_factory=dict)
    source_path: str = ""

    @property
    def threads(self) -> bool:
        return self.list_kind == LIST_THREADS

    @property
    def reply_re(self) -> "re.Pattern":
        return re.compile(self.reply_regexp)


def candidate_config_paths(explicit: str = "") -> List[str]:
    if explicit:
        return [os.path.abspath(os.path.expanduser(explicit))]

    paths: List[str] = []
    env_path = os.environ.get("TUI_GMAIL_CONFIG", "").strip()
    if env_path:
        paths.append(os.path.abspath(os.path.expanduser(env_path)))

    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg:
        paths.append(os.path.join(os.path.abspath(os.path.expanduser(xdg)), "tui-gmail", "config.toml"))
    else:
        paths.append(os.path.join(os.path.expanduser("~"), ".config", "tui-gmail", "config.toml"))
    paths.append(os.path.join(os.path.expanduser("~"), ".tui-gmail.toml"))

    unique: List[str] = []
    for path in paths:
        if path not in unique:
            unique.append(path)
    return unique


def read_token_file(path: str) -> str:
    path = os.path.abspath(os.path.expanduser(path))
    try:
        with open(path, "r", encoding="utf-8") as fp:
            raw = fp.read()
    except OSError as err:
        raise ConfigError(f"cannot read token file {path}: {err}") from err

    try:
        data = json.loads(raw)
    except ValueError:
        token = raw.strip()
    else:
        token = ""
        if isinstance(data, dict):
            token = str(data.get("access_token") or data.get("token") or "").strip()
    if not token:
        raise ConfigError(f"no access token found in {path}")
    return token


def load_config(
    explicit_path: str = "",
    overrides: Optional[Dict[str, Any]] = None,
    logger: Optional[DebugLogger] = None,
) -> Config:
    data: Dict[str, Any] = {}
    source = ""
    for path in candidate_config_paths(explicit_path):
        if not os.path.isfile(path):
            if explicit_path:
                raise ConfigError(f"config file not found: {path}")
            continue
        try:
            with open(path, "rb") as fp:
                data = tomllib.load(fp)
        except (OSError, tomllib.TOMLDecodeError) as err:
            raise ConfigError(f"cannot parse config {path}: {err}") from err
        source = path
        log(logger, "BOOT", f"config loaded path={path}")
        break

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    cfg = Config(source_path=source)
    try:
        if "token_file" in data and not data.get("access_token"):
            cfg.access_token = read_token_file(str(data["token_file"]))
        else:
            cfg.access_token = str(data.get("access_token", "")).strip()
        cfg.api_base = str(data.get("api_base", cfg.api_base))
        cfg.timeout = float(data.get("timeout", cfg.timeout))
        cfg.query = str(data.get("query", cfg.query))
        cfg.max_results = max(1, int(data.get("max_results", cfg.max_results)))
        cfg.list_kind = str(data.get("list", cfg.list_kind)).strip().lower()
        cfg.editor = str(data.get("editor", cfg.editor))
        cfg.opener = str(data.get("opener", cfg.opener))
        cfg.signature = str(data.get("signature", cfg.signature))
        cfg.reply_prefix = str(data.get("reply_prefix", cfg.reply_prefix))
        cfg.reply_regexp = str(data.get("reply_regexp", cfg.reply_regexp))
    except (TypeError, ValueError) as err:
        raise ConfigError(f"invalid config value: {err}") from err

    keys = data.get("keys", {})
    if not isinstance(keys, dict) or not all(isinstance(v, dict) for v in keys.values()):
        raise ConfigError("[keys] must contain one table per mode")
    cfg.keys = keys

    if cfg.list_kind not in (LIST_THREADS, LIST_MESSAGES):
        raise ConfigError(f"list must be {LIST_THREADS!r} or {LIST_MESSAGES!r}, got {cfg.list_kind!r}")
    try:
        re.compile(cfg.reply_regexp)
    except re.error as err:
        raise ConfigError(f"reply_regexp {cfg.reply_regexp!r} is not a valid regex: {err}") from err
    if not cfg.access_token:
        raise ConfigError("no access token configured (set access_token or token_file)")
    return cfg

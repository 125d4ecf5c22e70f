"""
Config system - layered tracer configuration with validation.

The engine consumes a resolved ``TracerConfig``.  ``TracerConfigLoader``
builds one from defaults, config files, a ``.env`` file, the process
environment and explicit overrides.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .classifier import DEFAULT_CATEGORY_RULES
from .faults import ConfigInvalidFault
from .record import OutputFormat

__all__ = ["TracerConfig", "TracerConfigLoader", "DEFAULT_EXCLUDE_PATTERNS"]

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    "/site-packages/",
    "/dist-packages/",
    "/.venv/",
    "/venv/",
)

_SECTION = "route_tracer"


@dataclass(frozen=True)
class TracerConfig:
    """
    Resolved tracer configuration.

    Attributes:
        enabled: Trace every request (off by default)
        log_channel: Logger name receiving per-trace summaries
        exclude_patterns: Substrings that exclude a loaded file
        output_format: Serialization of stored traces
        base_dir: Application base directory; only files under it are reported
        trace_dir: Where traces are stored (default ``<base_dir>/logs/traces``)
        category_rules: Ordered ``(path fragment, category)`` pairs
        control_poll_seconds: Re-read the CLI control file at most this often
            while serving requests (0 disables polling)
    """

    enabled: bool = False
    log_channel: str = "routetracer"
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    output_format: OutputFormat = OutputFormat.STRUCTURED
    base_dir: Path = field(default_factory=Path.cwd)
    trace_dir: Optional[Path] = None
    category_rules: Tuple[Tuple[str, str], ...] = DEFAULT_CATEGORY_RULES
    control_poll_seconds: float = 0.0

    @property
    def traces_path(self) -> Path:
        if self.trace_dir is not None:
            return self.trace_dir
        return self.base_dir / "logs" / "traces"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "log_channel": self.log_channel,
            "exclude_patterns": list(self.exclude_patterns),
            "output_format": self.output_format.value,
            "base_dir": str(self.base_dir),
            "trace_dir": str(self.traces_path),
            "category_rules": [list(rule) for rule in self.category_rules],
            "control_poll_seconds": self.control_poll_seconds,
        }


class TracerConfigLoader:
    """
    Loads and merges configuration with precedence:
    overrides > environment variables > .env file > config files > defaults

    Config files may hold the keys at top level or under a
    ``route_tracer`` section.  Environment keys are upper-cased with the
    prefix, e.g. ``ROUTE_TRACER_OUTPUT_FORMAT=markdown``.
    """

    def __init__(self, env_prefix: str = "ROUTE_TRACER_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[Sequence[str]] = None,
        env_prefix: str = "ROUTE_TRACER_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "TracerConfigLoader":
        loader = cls(env_prefix=env_prefix)

        for path in paths or ():
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env()

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    # ── Sources ──────────────────────────────────────────────────────

    def _load_file(self, path: Path):
        if not path.exists():
            raise ConfigInvalidFault(str(path), "config file not found")

        if path.suffix == ".json":
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            import yaml
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        else:
            raise ConfigInvalidFault(str(path), f"unsupported config file type '{path.suffix}'")

        if not data:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "config file must contain a mapping")
        self._merge_dict(self.config_data, data.get(_SECTION, data))

    def _load_env_file(self, path: str):
        """Load prefixed keys from a ``.env`` file."""
        from dotenv import dotenv_values

        if not Path(path).exists():
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self):
        for key, value in os.environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert ROUTE_TRACER_OUTPUT_FORMAT to ``output_format``."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "1"):
            return True
        if value.lower() in ("false", "no", "0"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    # ── Resolution ───────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        return self.config_data.get(key, default)

    def to_config(self) -> TracerConfig:
        """Validate the merged data and build a ``TracerConfig``."""
        data = self.config_data
        kwargs: Dict[str, Any] = {}

        if "enabled" in data:
            if not isinstance(data["enabled"], bool):
                raise ConfigInvalidFault("enabled", "expected a boolean")
            kwargs["enabled"] = data["enabled"]

        if "log_channel" in data:
            if not isinstance(data["log_channel"], str) or not data["log_channel"]:
                raise ConfigInvalidFault("log_channel", "expected a non-empty string")
            kwargs["log_channel"] = data["log_channel"]

        if "exclude_patterns" in data:
            kwargs["exclude_patterns"] = _parse_patterns(data["exclude_patterns"])

        if "output_format" in data:
            try:
                kwargs["output_format"] = OutputFormat.parse(data["output_format"])
            except ValueError as exc:
                raise ConfigInvalidFault("output_format", str(exc)) from exc

        if data.get("base_dir"):
            kwargs["base_dir"] = Path(str(data["base_dir"])).resolve()

        if data.get("trace_dir"):
            trace_dir = Path(str(data["trace_dir"]))
            if not trace_dir.is_absolute():
                trace_dir = kwargs.get("base_dir", Path.cwd()) / trace_dir
            kwargs["trace_dir"] = trace_dir

        if "category_rules" in data:
            kwargs["category_rules"] = _parse_rules(data["category_rules"])

        if "control_poll_seconds" in data:
            kwargs["control_poll_seconds"] = _parse_seconds(
                "control_poll_seconds", data["control_poll_seconds"],
            )

        return TracerConfig(**kwargs)


def _parse_seconds(key: str, value: Any) -> float:
    # Environment parsing turns "0" and "1" into booleans; bool is an int here.
    if not isinstance(value, (int, float)) or value < 0:
        raise ConfigInvalidFault(key, "expected a non-negative number of seconds")
    return float(value)


def _parse_patterns(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, (list, tuple)) or not all(isinstance(p, str) for p in value):
        raise ConfigInvalidFault("exclude_patterns", "expected a list of strings")
    return tuple(value)


def _parse_rules(value: Any) -> Tuple[Tuple[str, str], ...]:
    if isinstance(value, dict):
        value = list(value.items())
    rules = []
    for rule in value if isinstance(value, (list, tuple)) else [None]:
        if (
            not isinstance(rule, (list, tuple))
            or len(rule) != 2
            or not all(isinstance(part, str) and part for part in rule)
        ):
            raise ConfigInvalidFault("category_rules", "expected (fragment, category) pairs")
        rules.append((rule[0], rule[1]))
    return tuple(rules)

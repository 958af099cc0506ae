# config/config_loader.py
"""
Config loader module for modular YAML configuration.

server.yml holds the runtime settings; the device model lives in its own
file (model.yml by default, see iedbridge.model.loader for the format).
Missing files or keys fall back to defaults; a missing model file is
replaced by the demo model so a fresh checkout starts with something to
serve.
"""

import copy
import sys
from pathlib import Path

import yaml

from iedbridge.model.loader import default_model_document

DEFAULTS = {
    "server": {
        "ied_name": None,
        "host": "0.0.0.0",
        "port": 8102,
        "model_file": "model.yml",
    },
    "bridge": {
        "enabled": True,
        "poll_interval": 0.2,
        "strategy": "heuristic",
        "status_suffix": ".stVal",
    },
    "registry": {
        "capacity": None,
        "on_growth_failure": "fatal",
    },
    "logging": {
        "log_dir": None,
        "json": True,
    },
}


class ConfigLoader:
    """Loads and merges modular configuration files."""

    def __init__(self, config_dir="config"):
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_all(self):
        """Load server configuration merged over the defaults."""
        config = copy.deepcopy(DEFAULTS)

        server_path = self.config_dir / "server.yml"
        if server_path.exists():
            with open(server_path) as f:
                server_data = yaml.safe_load(f) or {}
            for section, defaults in config.items():
                overrides = server_data.get(section) or {}
                if not isinstance(overrides, dict):
                    raise ValueError(
                        f"Section {section!r} in {server_path} must be a mapping"
                    )
                defaults.update(overrides)

        self._validate(config)
        return config

    def model_path(self, config):
        """Absolute model file path; relative names live in config_dir."""
        model_file = Path(config["server"]["model_file"])
        if not model_file.is_absolute():
            model_file = self.config_dir / model_file
        return model_file

    def ensure_model(self, config):
        """Return the model file path, writing the demo model if it is missing."""
        model_path = self.model_path(config)
        if not model_path.exists():
            self._save_model(model_path, default_model_document())
        return model_path

    def _validate(self, config):
        port = config["server"]["port"]
        if not isinstance(port, int) or not 0 <= port <= 65535:
            raise ValueError(f"port must be 0-65535, got {port!r}")

        policy = config["registry"]["on_growth_failure"]
        if policy not in ("fatal", "degrade"):
            raise ValueError(
                "registry.on_growth_failure must be 'fatal' or 'degrade', "
                f"got {policy!r}"
            )

        capacity = config["registry"]["capacity"]
        if capacity is not None and (not isinstance(capacity, int) or capacity < 0):
            raise ValueError(f"registry.capacity must be >= 0, got {capacity!r}")

        if config["bridge"]["poll_interval"] <= 0:
            raise ValueError("bridge.poll_interval must be positive")

    def _save_model(self, model_path, document):
        """Save a model document to file."""
        model_path.parent.mkdir(parents=True, exist_ok=True)
        with open(model_path, "w") as f:
            yaml.dump(document, f, default_flow_style=False, sort_keys=False)
        print(f"[INFO] Created default model at {model_path}", file=sys.stderr)

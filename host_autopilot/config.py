"""
Configuration loading.

The only module that reads the process environment. Everything it finds is
folded into a ReconcilerConfig that the CLI passes down explicitly.

Environment:
  ADMIN_PORT, HAPP_PORT           conductor admin / app interface ports
  CONDUCTOR_HOST                  conductor host (default localhost)
  CORE_APP_ID                     installed id of the core app
  HAPPS_FILE_PATH                 YAML file listing core and self-hosted apps;
                                  used to derive CORE_APP_ID when unset
  HOST_ID                         holoport id used for registry updates
  KEYSTORE_SEED_PATH              host agent seed (raw or hex)
  HPOS_CONFIG_PATH                host JSON config (operator email)
  HBS_URL                         billing service base url
  INSTALLER_URL                   delegate installs to this installer service
  SL_BUNDLE_URL                   service logger bundle for hosted apps
  SL_PREFS_PATH                   where service logger preferences are written
  DEV_UID_OVERRIDE                suffix appended to bundle-derived installed ids
  CONNECT_MAX_ATTEMPTS            give up connecting after this many attempts
  MISSING_PREFERENCE_POLICY       fail_open | fail_closed
"""

import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ValidationError

from host_autopilot.errors import ConfigError
from host_autopilot.models.reconciler import ReconcilerConfig

logger = logging.getLogger(__name__)

CORE_APP_MARKER = "core-app"


class HappEntry(BaseModel):
    """One app listed in the happs file."""

    bundle_url: Optional[str] = None
    bundle_path: Optional[str] = None
    ui_url: Optional[str] = None
    ui_path: Optional[str] = None

    def installed_id(self, uid_override: Optional[str] = None) -> str:
        """
        The installed app id derived from the bundle file name:
        "elemental_chat.1.0001.happ" -> "elemental_chat:1:0001".
        """
        if self.bundle_path:
            name = os.path.basename(self.bundle_path)
        elif self.bundle_url:
            name = os.path.basename(urlparse(self.bundle_url).path)
        else:
            raise ConfigError("happ entry has neither bundle_path nor bundle_url")

        app_id = name.replace(".happ", "").replace(".", ":")
        if uid_override:
            return f"{app_id}::{uid_override}"
        return app_id


class HappsFile(BaseModel):
    self_hosted_happs: List[HappEntry] = []
    core_happs: List[HappEntry] = []

    def core_app(self, uid_override: Optional[str] = None) -> Optional[HappEntry]:
        for happ in self.core_happs:
            if CORE_APP_MARKER in happ.installed_id(uid_override):
                return happ
        return None


def load_happs_file(path: str) -> HappsFile:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"failed to open happs file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse happs file {path}: {exc}") from exc

    try:
        return HappsFile.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"unexpected happs file shape in {path}: {exc}") from exc


def read_operator_email(path: str) -> str:
    """settings.admin.email from the host config (any version)."""
    try:
        with open(path) as f:
            config = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"failed to read host config {path}: {exc}") from exc

    # Versioned configs are wrapped as {"v2": {...}}
    if isinstance(config, dict) and len(config) == 1:
        (version, body), = config.items()
        if version.lower().startswith("v") and isinstance(body, dict):
            config = body

    try:
        return config["settings"]["admin"]["email"]
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"host config {path} has no admin email") from exc


def _int(env: Mapping[str, str], key: str) -> Optional[int]:
    value = env.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc


def load_config(env: Optional[Mapping[str, str]] = None) -> ReconcilerConfig:
    """Build the run configuration from environment variables."""
    env = os.environ if env is None else env
    fields: Dict[str, Any] = {}

    for key, field in (("ADMIN_PORT", "admin_port"), ("HAPP_PORT", "app_port"),
                       ("CONNECT_MAX_ATTEMPTS", "connect_max_attempts")):
        value = _int(env, key)
        if value is not None:
            fields[field] = value

    for key, field in (
        ("CONDUCTOR_HOST", "conductor_host"),
        ("HOST_ID", "host_id"),
        ("KEYSTORE_SEED_PATH", "keystore_seed_path"),
        ("HPOS_CONFIG_PATH", "hpos_config_path"),
        ("HBS_URL", "billing_url"),
        ("HAPPS_FILE_PATH", "happs_file_path"),
        ("INSTALLER_URL", "installer_url"),
        ("SL_BUNDLE_URL", "servicelogger_bundle_url"),
        ("SL_PREFS_PATH", "servicelogger_prefs_path"),
        ("MISSING_PREFERENCE_POLICY", "missing_preference"),
    ):
        if env.get(key):
            fields[field] = env[key]

    if env.get("CORE_APP_ID"):
        fields["core_app_id"] = env["CORE_APP_ID"]
    elif fields.get("happs_file_path"):
        core_app = load_happs_file(fields["happs_file_path"]).core_app(
            env.get("DEV_UID_OVERRIDE")
        )
        if core_app is None:
            raise ConfigError("happs file lists no core-app")
        fields["core_app_id"] = core_app.installed_id(env.get("DEV_UID_OVERRIDE"))

    try:
        config = ReconcilerConfig(**fields)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc

    logger.debug("loaded %s", config)
    return config

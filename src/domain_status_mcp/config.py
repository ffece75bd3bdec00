"""
Configuration for Domain Status MCP.

Runtime settings come from environment variables and are frozen into a
ServerConfig; the resolution core only ever sees that value object.

Secret lookup order (per secret):
1. macOS Keychain (if on macOS)
2. Environment variable (e.g. NAMESILO_API_KEY)
3. Config file (fallback)
"""

import json
import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

APP_NAME = "domain-status-mcp"

# Keychain service prefix; each secret is stored as "<prefix>.<name>"
KEYCHAIN_SERVICE_PREFIX = APP_NAME

# name -> (environment variable, config file key)
SECRETS = {
    "namesilo": ("NAMESILO_API_KEY", "namesilo_api_key"),
    "tld_list": ("TLD_LIST_API_KEY", "tld_list_api_key"),
    "namecheap_auctions": ("NAMECHEAP_AUCTIONS_TOKEN", "namecheap_auctions_token"),
}


# =============================================================================
# macOS Keychain
# =============================================================================

def _is_macos() -> bool:
    """Check if running on macOS."""
    return sys.platform == "darwin"


def _keychain_get(service: str, account: str) -> str | None:
    """Get a password from macOS Keychain."""
    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-s", service, "-a", account, "-w"],
            capture_output=True,
            text=True
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        pass
    return None


def _keychain_set(service: str, account: str, password: str) -> bool:
    """Store a password in macOS Keychain, replacing any existing entry."""
    try:
        subprocess.run(
            ["security", "delete-generic-password", "-s", service, "-a", account],
            capture_output=True
        )
        result = subprocess.run(
            ["security", "add-generic-password", "-s", service, "-a", account, "-w", password, "-U"],
            capture_output=True
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError):
        return False


def _keychain_delete(service: str, account: str) -> bool:
    """Delete a password from macOS Keychain."""
    try:
        result = subprocess.run(
            ["security", "delete-generic-password", "-s", service, "-a", account],
            capture_output=True,
            text=True
        )
        return result.returncode == 0 or "could not be found" in result.stderr.lower()
    except (subprocess.SubprocessError, FileNotFoundError):
        return False


# =============================================================================
# Config file
# =============================================================================

def get_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Get the config directory for this app."""
    environ = os.environ if environ is None else environ
    if os.name == 'nt':  # Windows
        base = Path(environ.get('APPDATA', Path.home()))
    else:  # macOS, Linux
        base = Path(environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))
    return base / APP_NAME


def get_config_file(environ: Mapping[str, str] | None = None) -> Path:
    """Get the path to the config file."""
    return get_config_dir(environ) / 'config.json'


def get_cache_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Get the cache directory (RDAP bootstrap file)."""
    environ = os.environ if environ is None else environ
    if os.name == 'nt':
        base = Path(environ.get('LOCALAPPDATA', Path.home()))
    else:
        base = Path(environ.get('XDG_CACHE_HOME', Path.home() / '.cache'))
    return base / APP_NAME


def load_config_file(environ: Mapping[str, str] | None = None) -> dict:
    """Read the JSON config file; missing or unreadable files give {}."""
    config_file = get_config_file(environ)
    try:
        if config_file.exists():
            data = json.loads(config_file.read_text())
            return data if isinstance(data, dict) else {}
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_file, e)
    return {}


def _write_config_file(config: dict, environ: Mapping[str, str] | None = None) -> bool:
    try:
        config_dir = get_config_dir(environ)
        config_dir.mkdir(parents=True, exist_ok=True)
        get_config_file(environ).write_text(json.dumps(config, indent=2))
        return True
    except OSError:
        return False


# =============================================================================
# Secrets
# =============================================================================

def _secret_names(name: str) -> tuple[str, str]:
    if name not in SECRETS:
        raise KeyError(f"Unknown secret: {name}")
    return SECRETS[name]


def get_secret(name: str, environ: Mapping[str, str] | None = None) -> str | None:
    """
    Get a secret (API key or token) from available sources.

    Lookup order:
    1. macOS Keychain (if on macOS)
    2. Environment variable
    3. Config file
    """
    env_var, file_key = _secret_names(name)
    environ = os.environ if environ is None else environ

    if _is_macos():
        if value := _keychain_get(f"{KEYCHAIN_SERVICE_PREFIX}.{name}", name):
            return value

    if value := environ.get(env_var):
        return value

    if value := load_config_file(environ).get(file_key):
        return value

    return None


def get_secret_source(name: str, environ: Mapping[str, str] | None = None) -> str | None:
    """Where a secret is stored (for display purposes)."""
    env_var, file_key = _secret_names(name)
    environ = os.environ if environ is None else environ

    if _is_macos() and _keychain_get(f"{KEYCHAIN_SERVICE_PREFIX}.{name}", name):
        return "macOS Keychain"
    if environ.get(env_var):
        return "environment variable"
    if load_config_file(environ).get(file_key):
        return "config file"
    return None


def set_secret(name: str, value: str) -> bool:
    """
    Store a secret.

    On macOS: Uses Keychain.
    On other platforms: Uses config file.
    """
    _, file_key = _secret_names(name)
    if _is_macos():
        return _keychain_set(f"{KEYCHAIN_SERVICE_PREFIX}.{name}", name, value)

    config = load_config_file()
    config[file_key] = value
    return _write_config_file(config)


def delete_secret(name: str) -> bool:
    """Remove a secret."""
    _, file_key = _secret_names(name)
    if _is_macos():
        return _keychain_delete(f"{KEYCHAIN_SERVICE_PREFIX}.{name}", name)

    config = load_config_file()
    if file_key in config:
        del config[file_key]
        return _write_config_file(config)
    return True


def mask_secret(value: str) -> str:
    """Mask an API key for display."""
    if len(value) > 8:
        return value[:4] + "*" * (len(value) - 8) + value[-4:]
    elif len(value) > 4:
        return value[:2] + "*" * (len(value) - 2)
    else:
        return "*" * len(value)


# =============================================================================
# Server configuration
# =============================================================================

@dataclass(frozen=True)
class ServerConfig:
    """
    Everything the server needs, resolved once at startup.

    Timeouts are in seconds. `http_timeout` applies per HTTP hop, not per
    redirect chain.
    """

    http_timeout: float = 10.0
    registry_timeout: float = 10.0
    pricing_timeout: float = 60.0
    aftermarket_timeout: float = 30.0
    cache_ttl: int = 3600
    auction_cache_ttl: int = 300
    enable_http_verification: bool = True
    http_bulk_limit: int = 20
    tld_list_api_key: str | None = None
    namecheap_auctions_token: str | None = None
    namesilo_api_key: str | None = None
    rdap_bootstrap_cache: Path | None = None


def _int_env(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: must not be negative, using %s", name, raw, default)
        return default
    return value


def load_config(environ: Mapping[str, str] | None = None) -> ServerConfig:
    """
    Build a ServerConfig from the environment.

    Environment variables:
        HTTP_TIMEOUT: per-hop HTTP probe timeout in milliseconds (default 10000)
        CACHE_TTL: provider cache lifetime in seconds (default 3600)
        DISABLE_HTTP_VERIFICATION: "true" to skip HTTP probing
        RDAP_BOOTSTRAP_CACHE: path of the IANA bootstrap cache file
        TLD_LIST_API_KEY, NAMECHEAP_AUCTIONS_TOKEN, NAMESILO_API_KEY: provider
            credentials (also read from Keychain / config file)
    """
    environ = os.environ if environ is None else environ
    defaults = ServerConfig()

    timeout_ms = _int_env(environ, "HTTP_TIMEOUT", int(defaults.http_timeout * 1000))
    if timeout_ms == 0:
        logger.warning("Ignoring HTTP_TIMEOUT=0, using %sms", int(defaults.http_timeout * 1000))
        timeout_ms = int(defaults.http_timeout * 1000)

    cache_path = environ.get("RDAP_BOOTSTRAP_CACHE")
    bootstrap_cache = Path(cache_path) if cache_path else get_cache_dir(environ) / "rdap_bootstrap.json"

    return ServerConfig(
        http_timeout=timeout_ms / 1000,
        cache_ttl=_int_env(environ, "CACHE_TTL", defaults.cache_ttl),
        enable_http_verification=environ.get("DISABLE_HTTP_VERIFICATION", "").strip().lower() != "true",
        tld_list_api_key=get_secret("tld_list", environ),
        namecheap_auctions_token=get_secret("namecheap_auctions", environ),
        namesilo_api_key=get_secret("namesilo", environ),
        rdap_bootstrap_cache=bootstrap_cache,
    )

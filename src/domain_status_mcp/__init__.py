"""
Domain Status MCP Server

An MCP server that resolves one canonical availability status per domain
from RDAP, registrar pricing, aftermarket listings and live HTTP probing.
"""

__version__ = "0.2.0"


def main():
    """Main entry point for the CLI."""
    import sys

    # Handle CLI arguments before importing heavy dependencies
    if "--help" in sys.argv or "-h" in sys.argv:
        print_help()
        sys.exit(0)

    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"domain-status-mcp {__version__}")
        sys.exit(0)

    if "--setup" in sys.argv:
        run_setup()
        sys.exit(0)

    if "--show-config" in sys.argv:
        show_config()
        sys.exit(0)

    # Default: run the MCP server. stdout is the MCP transport, so logs go to stderr.
    import logging
    import os

    logging.basicConfig(
        level=logging.DEBUG if os.environ.get("DOMAIN_STATUS_DEBUG") else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    from .server import get_engine, mcp
    get_engine()
    mcp.run()


def print_help():
    """Print help message."""
    print(f"""domain-status-mcp {__version__}

An MCP server that reports whether a domain is available, taken, parked,
for sale or premium, with registrar pricing and auction listings.

Usage:
    domain-status-mcp                Run the MCP server
    domain-status-mcp --setup        Configure API keys interactively
    domain-status-mcp --show-config  Show current configuration
    domain-status-mcp --version      Show version
    domain-status-mcp --help         Show this help

Configuration:
    Works out of the box: RDAP for availability, Porkbun for pricing and
    HTTP probing for parking detection. Optional credentials:

    TLD_LIST_API_KEY          Multi-registrar pricing from TLD-List.com
    NAMECHEAP_AUCTIONS_TOKEN  Aftermarket auction listings
    NAMESILO_API_KEY          Registrar availability and premium detection

    Other environment variables:
    HTTP_TIMEOUT              Per-hop HTTP probe timeout in ms (default 10000)
    CACHE_TTL                 Provider cache lifetime in seconds (default 3600)
    DISABLE_HTTP_VERIFICATION Set to "true" to skip live HTTP probing
    RDAP_BOOTSTRAP_CACHE      Path of the IANA RDAP bootstrap cache file
    DOMAIN_STATUS_DEBUG       Set to enable verbose (HTTP request) logging

Claude Code Setup:
    Add to ~/.claude/settings.json:
    {{
      "mcpServers": {{
        "domain-status": {{
          "command": "uvx",
          "args": ["domain-status-mcp"]
        }}
      }}
    }}
""")


SETUP_PROMPTS = [
    ("tld_list", "TLD-List.com API key (multi-registrar pricing)", "https://tld-list.com/api"),
    ("namecheap_auctions", "Namecheap Auctions token (auction listings)",
     "https://aftermarketapi.namecheap.com/client/docs/"),
    ("namesilo", "NameSilo API key (registrar availability)", "https://www.namesilo.com/account/api-manager"),
]


def run_setup():
    """Interactive setup wizard."""
    import getpass
    from .config import get_secret, mask_secret, set_secret

    print("=" * 50)
    print("Domain Status MCP - Setup")
    print("=" * 50)
    print()
    print("All keys are optional. Press Enter to skip (or keep the current value).")

    for name, label, url in SETUP_PROMPTS:
        print()
        print(label)
        print(f"  Get one at: {url}")
        current = get_secret(name)
        if current:
            print(f"  Current: {mask_secret(current)}")

        value = getpass.getpass("  Value: ").strip()
        if not value:
            print("  Skipped.")
            continue

        if set_secret(name, value):
            print("  ✓ Saved")
            if name == "namesilo":
                test_namesilo_key(value)
        else:
            print("  ✗ Failed to save")

    print()
    print("Setup complete!")


def show_config():
    """Show current configuration."""
    from .config import get_config_file, get_secret_source, load_config, mask_secret

    config = load_config()

    print("Configuration")
    print("=" * 50)
    print()

    config_file = get_config_file()
    print(f"Config file: {config_file}")
    print(f"  Exists: {config_file.exists()}")
    print()

    print(f"HTTP timeout: {config.http_timeout}s per hop")
    print(f"Provider cache TTL: {config.cache_ttl}s")
    print(f"HTTP verification: {'enabled' if config.enable_http_verification else 'disabled'}")
    print(f"RDAP bootstrap cache: {config.rdap_bootstrap_cache}")
    print()

    for name, value, fallback in (
        ("tld_list", config.tld_list_api_key, "Porkbun pricing will be used"),
        ("namecheap_auctions", config.namecheap_auctions_token, "Auction tools disabled"),
        ("namesilo", config.namesilo_api_key, "Registry data only (no premium detection)"),
    ):
        if value:
            print(f"{name}: {mask_secret(value)}")
            print(f"  Source: {get_secret_source(name)}")
        else:
            print(f"{name}: Not configured")
            print(f"  {fallback}")


def test_namesilo_key(key: str):
    """Test the NameSilo API key."""
    import httpx

    print("  Testing NameSilo API...")
    try:
        response = httpx.get(
            "https://www.namesilo.com/api/checkRegisterAvailability",
            params={
                "version": "1",
                "type": "json",
                "key": key,
                "domains": "test-domain-check-12345.com"
            },
            timeout=10
        )
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        print(f"  ✗ Test failed: {type(e).__name__}")
        return

    code = data.get("reply", {}).get("code")
    if str(code) == "300":
        print("  ✓ API key is valid")
    else:
        detail = data.get("reply", {}).get("detail", "Unknown error")
        print(f"  ✗ API error: {detail}")

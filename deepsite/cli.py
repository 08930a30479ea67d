#!/usr/bin/env python3
"""
deepsite CLI — run and inspect the site-builder gateway.

Every command has a primary name and aliases:

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           start, up       Start the HTTP gateway
    providers       check-env, env  Show which providers have credentials
    ping            test            Send a connectivity test to one provider
    templates       tpl             List the template catalog
    history         sessions        Inspect or delete stored chat sessions
"""

import argparse
import asyncio
import sys

from deepsite import __version__

BANNER = f"""
    deepsite {__version__}
    AI web-site builder gateway
"""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the gateway server."""
    import uvicorn
    from deepsite.config import config_int, config_str, get_config
    from deepsite.providers.registry import ProviderRegistry

    cfg = get_config()
    host = args.host or config_str(cfg, "server", "host", "0.0.0.0")
    port = args.port or config_int(cfg, "server", "port", 3000)

    configured = [p.name for p in ProviderRegistry.from_env().list_configured()]

    print(BANNER)
    print(f"  Listening on {host}:{port}")
    print(f"  Providers: {', '.join(configured) if configured else 'none configured'}")
    print()

    uvicorn.run(
        "deepsite.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_providers(args):
    """Print each provider's credential and model status."""
    from deepsite.providers.registry import ProviderRegistry

    registry = ProviderRegistry.from_env()
    status = registry.env_status()

    print(f"  {'PROVIDER':<14} {'KEY':<5} MODEL")
    for provider_id, info in status.items():
        key = "yes" if info["apiKeyConfigured"] else "no"
        model = info["model"]
        if info["modelConfigured"]:
            model += " (env)"
        print(f"  {provider_id:<14} {key:<5} {model}")

    configured = registry.list_configured()
    print()
    if configured:
        print(f"  Fallback order: {' -> '.join(p.id for p in configured)}")
    else:
        print("  No AI providers configured with API keys")


def cmd_ping(args):
    """Run a connectivity test against one provider."""
    from deepsite.errors import DeepSiteError
    from deepsite.providers.registry import ProviderRegistry
    from deepsite.router import FallbackRouter

    router = FallbackRouter(ProviderRegistry.from_env())
    try:
        result = asyncio.run(router.test_connection(args.provider, args.model))
    except DeepSiteError as e:
        print(f"  ✗  {args.provider}: {e.message}")
        sys.exit(1)

    print(f"  ✓  {result['provider']} ({result['model']}) answered")
    print(f"     {result['response']}")


def cmd_templates(args):
    """List the template catalog."""
    from deepsite.templates import TemplateCatalog

    catalog = TemplateCatalog()
    for item in catalog.list():
        print(f"  {item['id']:<12} {item['name']:<24} {item['description']}")


def cmd_history(args):
    """List stored sessions, show one, or delete one."""
    from deepsite.config import config_str, get_config
    from deepsite.errors import StorageUnavailable
    from deepsite.storage.sqlite_store import SQLiteStore

    path = config_str(get_config(), "storage", "sqlite_path")
    if not path:
        print("  Chat store not configured (storage.sqlite_path is empty)")
        return
    try:
        store = SQLiteStore(path)
    except StorageUnavailable as e:
        print(f"  ✗  {e}")
        sys.exit(1)

    if args.session_id and args.delete:
        deleted = store.delete_session(args.session_id)
        print(f"  Deleted {deleted} turns of session {args.session_id}")
        return

    if args.session_id:
        print(f"  Session {args.session_id}: {store.count(args.session_id)} turns")
        for turn in store.history(args.session_id, limit=args.last):
            who = turn.role if turn.role == "user" else f"{turn.role} ({turn.provider}/{turn.model})"
            print(f"  [{turn.created_at}] {who}: {turn.content[:80]!r}")
        return

    sessions = store.list_sessions(limit=args.last)
    if not sessions:
        print("  No stored sessions")
        return
    print(f"  {'SESSION':<38} {'TURNS':>5}  LAST ACTIVE")
    for s in sessions:
        print(f"  {s['session_id']:<38} {s['turns']:>5}  {s['last_active']}")


def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under its primary name and aliases."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def main():
    parser = argparse.ArgumentParser(
        prog="deepsite",
        description="deepsite — AI web-site builder gateway with provider fallback.",
        epilog=(
            "Each command has aliases.\n"
            "Example: 'deepsite serve' and 'deepsite start' do the same thing.\n"
            "Run 'deepsite <command> --help' for command-specific options."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"deepsite {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    # serve / start / up
    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "up"],
                 "Start the HTTP gateway", cmd_serve, setup_serve)

    # providers / check-env / env
    _add_command(sub, ["providers", "check-env", "env"],
                 "Show which providers have credentials", cmd_providers)

    # ping / test
    def setup_ping(p):
        p.add_argument("provider", help="Provider id (openai, openrouter, xai, groq, perplexity, gemini)")
        p.add_argument("--model", "-m", default=None, help="Model to test (default: provider default)")

    _add_command(sub, ["ping", "test"],
                 "Send a connectivity test to one provider", cmd_ping, setup_ping)

    # templates / tpl
    _add_command(sub, ["templates", "tpl"], "List the template catalog", cmd_templates)

    # history / sessions
    def setup_history(p):
        p.add_argument("session_id", nargs="?", default=None, help="Session to show (omit to list sessions)")
        p.add_argument("--last", "-n", type=int, default=20, help="How many sessions or turns to show")
        p.add_argument("--delete", action="store_true", help="Delete the given session")

    _add_command(sub, ["history", "sessions"],
                 "Inspect or delete stored chat sessions", cmd_history, setup_history)

    args = parser.parse_args()
    if not args.command:
        print(BANNER)
        parser.print_help()
        return

    args.func(args)


if __name__ == "__main__":
    main()

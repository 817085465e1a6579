"""CLI entry point: sign in, manage the token cache, list providers.

Every AuthError is mapped to its exit status here, with the error's hint
printed as actionable guidance.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from aitools_auth.auth.cache.disk import DiskTokenCache
from aitools_auth.auth.manager import AuthManager
from aitools_auth.auth.models.errors import (
    AuthError,
    ConfigurationError,
    ExitCode,
    TokenCacheError,
)
from aitools_auth.auth.models.tokens import CachedTokenEntry, TokenResult
from aitools_auth.auth.services.console import OperatorConsole
from aitools_auth.auth.services.device_code import DeviceCodeFlow
from aitools_auth.auth.services.interactive import InteractiveFlow
from aitools_auth.auth.services.managed_identity import ManagedIdentityResolver
from aitools_auth.config import (
    DEFAULT_CALLBACK_TIMEOUT_SECS,
    AuthConfig,
    AuthMethod,
    Cloud,
    EnvironmentOverrides,
)
from aitools_auth.utils.logging import setup_logging

logger = logging.getLogger(__name__)

LOGIN_METHODS = ("device-code", "interactive", "managed-identity")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aitools-auth",
        description="Acquire and cache credentials for Azure AI services",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress prompts")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", type=Path, help="Also write logs to a file")
    parser.add_argument(
        "--cache-file", type=Path, help="Token cache location (default: per-user)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Sign in and print a bearer token")
    login.add_argument("--auth", choices=LOGIN_METHODS, default="device-code")
    login.add_argument("--tenant", help="Entra tenant ID (device-code, interactive)")
    login.add_argument("--client-id", help="Public client ID (default: Azure CLI)")
    login.add_argument(
        "--managed-identity-client-id", help="Client ID of a user-assigned identity"
    )
    login.add_argument("--cloud", default="global", help="global or china")
    login.add_argument(
        "--no-save", action="store_true", help="Do not write the token to the cache"
    )
    login.add_argument(
        "--clear-cache", action="store_true", help="Delete cached tokens and exit"
    )
    login.add_argument(
        "--callback-timeout",
        type=float,
        default=DEFAULT_CALLBACK_TIMEOUT_SECS,
        help="Seconds to wait for the browser redirect (interactive)",
    )
    login.add_argument("--output", choices=("text", "json"), default="text")

    providers = subparsers.add_parser(
        "providers", help="List configured authentication providers"
    )
    providers.add_argument("--auth", help="Method to resolve (default: key)")
    providers.add_argument("--api-key")
    providers.add_argument("--region")
    providers.add_argument("--tenant")
    providers.add_argument("--cloud", help="global or china")

    return parser


def output_token(token: str, expires_in_minutes: int, output: str) -> None:
    if output == "json":
        print(
            json.dumps(
                {"access_token": token, "expires_in_minutes": expires_in_minutes}
            )
        )
        return
    Console(file=sys.stderr).print(
        f"[bold]Bearer Token[/bold] (expires in ~{expires_in_minutes} minutes):"
    )
    print(token)


async def run_login(args: argparse.Namespace, console: OperatorConsole) -> ExitCode:
    cache = DiskTokenCache(args.cache_file)

    if args.clear_cache:
        cache.clear()
        console.success("Token cache cleared.")
        return ExitCode.SUCCESS

    cloud = Cloud.parse(args.cloud)
    method = AuthMethod.parse(args.auth)

    if method is AuthMethod.MANAGED_IDENTITY:
        resolver = ManagedIdentityResolver(
            cloud,
            args.managed_identity_client_id
            or EnvironmentOverrides().managed_identity_client_id,
        )
        try:
            response = await resolver.fetch_token_response()
        finally:
            await resolver.close()
        output_token(response.access_token, response.expires_in // 60, args.output)
        return ExitCode.SUCCESS

    tenant_id = args.tenant or EnvironmentOverrides().tenant_id
    if not tenant_id:
        raise ConfigurationError(
            f"tenant_id required for {method.value}",
            missing="tenant_id",
            hint=f"Run 'aitools-auth login --auth {method.value} --tenant <tenant-id>'.",
        )

    entry = _cached_entry(cache, cloud.cognitive_scope, tenant_id)
    if entry is not None:
        console.info(f"Using cached token ({entry.remaining_minutes()} minutes remaining)")
        output_token(entry.access_token, entry.remaining_minutes(), args.output)
        return ExitCode.SUCCESS

    result = await _authenticate(args, method, tenant_id, cloud, console)

    if not args.no_save:
        try:
            cache.insert(CachedTokenEntry.from_result(result, tenant_id))
            cache.save()
        except TokenCacheError as e:
            logger.warning(f"Token acquired but not cached: {e}")
        else:
            console.success("Token saved to cache.")

    output_token(result.access_token, result.expires_in_secs // 60, args.output)
    return ExitCode.SUCCESS


def _cached_entry(
    cache: DiskTokenCache, scope: str, tenant_id: str
) -> CachedTokenEntry | None:
    try:
        return cache.get_valid(scope, tenant_id)
    except TokenCacheError as e:
        logger.warning(f"Ignoring unreadable token cache: {e}")
        return None


async def _authenticate(
    args: argparse.Namespace,
    method: AuthMethod,
    tenant_id: str,
    cloud: Cloud,
    console: OperatorConsole,
) -> TokenResult:
    if method is AuthMethod.INTERACTIVE:
        flow = InteractiveFlow(
            tenant_id,
            args.client_id,
            cloud,
            callback_timeout=args.callback_timeout,
            console=console,
            use_cache=False,
        )
    else:
        flow = DeviceCodeFlow(
            tenant_id, args.client_id, cloud, console=console, use_cache=False
        )

    try:
        return await flow.authenticate()
    finally:
        await flow.close()


async def run_providers(args: argparse.Namespace) -> ExitCode:
    # Command-line values win over the environment
    config = AuthConfig(quiet=True).with_env_overrides()
    if args.auth:
        config.default_method = AuthMethod.parse(args.auth)
    if args.cloud:
        config.cloud = Cloud.parse(args.cloud)
    if args.api_key:
        config.api_key = args.api_key
    if args.region:
        config.region = args.region
    if args.tenant:
        config.user.tenant_id = args.tenant

    manager = AuthManager(config)
    try:
        for provider in manager.get_all_providers():
            print(provider.method_name)
        active = manager.get_provider()
        print(f"Active ({config.default_method.value}): {active.method_name}")
    finally:
        await manager.close()
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING", args.log_file)
    console = OperatorConsole(quiet=args.quiet)

    try:
        if args.command == "login":
            code = asyncio.run(run_login(args, console))
        else:
            code = asyncio.run(run_providers(args))
    except AuthError as e:
        err = Console(file=sys.stderr)
        err.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        if e.hint:
            err.print()
            err.print(f"[bold yellow]Hint:[/bold yellow] {escape(e.hint)}")
        return int(e.exit_code)

    return int(code)


if __name__ == "__main__":
    sys.exit(main())

"""
VPSPlane Operator CLI
=====================

Inspect configured providers and their catalogs from the shell.
Provider tokens come from the environment (LINODE_API_TOKEN,
DIGITALOCEAN_API_TOKEN); each token becomes a provider with id
``<type>-env``.

Usage:
    python -m vpsplane providers
    python -m vpsplane plans --provider linode-env --json
    python -m vpsplane regions --provider digitalocean-env --refresh
"""

from dataclasses import asdict, is_dataclass
from typing import Any, List, Optional
import argparse
import json
import logging
import sys

from .config import VPSPlaneConfig
from .logging_config import configure_logging
from .provider_service import ProviderService
from .providers.api_config import get_api_config
from .providers.base import ProviderError
from .providers.errors import get_user_friendly_message

logger = logging.getLogger(__name__)

# Command -> adapter method
ADAPTER_METHODS = {
    "plans": "get_plans",
    "images": "get_images",
    "regions": "get_regions",
    "marketplace": "get_marketplace_apps",
    "instances": "list_instances",
}


def _to_jsonable(item: Any) -> Any:
    if hasattr(item, "to_dict"):
        return item.to_dict()
    if is_dataclass(item):
        return asdict(item)
    return item


def _print_items(items: List[Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps([_to_jsonable(i) for i in items], indent=2, default=str))
        return
    if not items:
        print("(none)")
    for item in items:
        print(f"  {item}")


def _require_provider(args) -> str:
    if not args.provider:
        raise SystemExit(f"{args.command}: --provider is required")
    return args.provider


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vpsplane", description="VPSPlane provider CLI")
    parser.add_argument("command", choices=[
        "providers", "plans", "images", "regions", "marketplace", "instances", "validate",
    ])
    parser.add_argument("--provider", help="Provider id (e.g. linode-env)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--refresh", action="store_true", help="Drop cached catalogs first")
    parser.add_argument("--all", action="store_true", help="Ignore region/app allowlists")
    return parser


def run(args, service: ProviderService) -> int:
    if args.command == "providers":
        providers = service.get_active_providers()
        if args.json:
            print(json.dumps(providers, indent=2))
        else:
            for p in providers:
                print(f"  {p['id']:<20} {p['type']:<14} {p['name']}")
            if not providers:
                print("No providers configured. Set LINODE_API_TOKEN or DIGITALOCEAN_API_TOKEN.")
        return 0

    provider_id = _require_provider(args)

    if args.command == "validate":
        ok = service.validate_provider_credentials(provider_id)
        if args.json:
            print(json.dumps({"provider_id": provider_id, "valid": ok}))
        else:
            print(f"{provider_id}: {'[OK] credentials valid' if ok else '[FAIL] credentials rejected'}")
            info = service.get_provider_info(provider_id)
            api_config = get_api_config(info["type"]) if info else None
            if not ok and api_config:
                print(f"  Manage tokens at {api_config.api_key_url}")
        return 0 if ok else 1

    if args.refresh:
        service.refresh_provider(provider_id)

    if args.command == "regions" and not args.all:
        items = service.get_allowed_regions(provider_id)
    elif args.command == "marketplace" and not args.all:
        items = service.get_allowed_marketplace_apps(provider_id)
    else:
        adapter = service.get_provider_service(provider_id)
        items = getattr(adapter, ADAPTER_METHODS[args.command])()

    _print_items(items, args.json)
    return 0


def main(argv: Optional[List[str]] = None, service: Optional[ProviderService] = None) -> int:
    args = build_parser().parse_args(argv)

    if service is None:
        config = VPSPlaneConfig.from_env()
        configure_logging(config.log_level, config.log_format)
        service = ProviderService.from_config(config)

    try:
        return run(args, service)
    except ProviderError as e:
        logger.debug(f"{args.command} failed: {e}", extra={"provider": e.provider, "error_code": e.code})
        print(f"Error: {get_user_friendly_message(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

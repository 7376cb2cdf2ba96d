from __future__ import annotations

import argparse
import json
import subprocess
import sys
from pathlib import Path
from typing import Any

from galley_core.auth import issue_device_token
from galley_core.config import get_config
from galley_core.fleet import get_device, offline_devices, provision_device
from galley_core.pki import bundle_url, generate_ca, load_authority, render_qr_png
from galley_core.stores import get_store_bundle

DEFAULT_CA_CERT = "galley-ca.pem"
DEFAULT_CA_KEY = "galley-ca-key.pem"
SERVICE_APPS = {
    "monolith": "galley_api.monolith_service:app",
    "device": "galley_api.device_service:app",
    "operator": "galley_api.operator_service:app",
}


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _stores():
    return get_store_bundle(get_config().control_plane_root)


def _uvicorn_cmd(app_path: str, host: str, port: int, log_level: str) -> list[str]:
    return [
        sys.executable,
        "-m",
        "uvicorn",
        app_path,
        "--host",
        host,
        "--port",
        str(port),
        "--log-level",
        log_level,
    ]


def cmd_serve(args: argparse.Namespace) -> int:
    command = _uvicorn_cmd(
        SERVICE_APPS[args.service],
        args.host,
        args.port,
        args.log_level,
    )
    if args.dry_run:
        print(" ".join(command))
        return 0
    try:
        return subprocess.call(command)
    except KeyboardInterrupt:
        return 0


def cmd_init_ca(args: argparse.Namespace) -> int:
    cert_path = Path(args.cert_out)
    key_path = Path(args.key_out)
    for path in (cert_path, key_path):
        if path.exists() and not args.force:
            raise RuntimeError(f"{path} already exists (use --force to overwrite)")
    cert_pem, key_pem = generate_ca(
        common_name=args.common_name,
        organization=args.organization,
        validity_days=args.validity_days,
    )
    cert_path.write_text(cert_pem, encoding="utf-8")
    key_path.write_text(key_pem, encoding="utf-8")
    key_path.chmod(0o600)
    print(f"Wrote CA certificate to {cert_path}")
    print(f"Wrote CA key to {key_path}")
    print(f"Set CA_CERT_PATH={cert_path} and CA_KEY_PATH={key_path}")
    return 0


def cmd_bundle(args: argparse.Namespace) -> int:
    config = get_config()
    _device, bundle = provision_device(
        _stores(),
        args.device_id,
        authority=load_authority(config),
        config=config,
    )
    _print_json(bundle.to_dict())
    return 0


def cmd_qrcode(args: argparse.Namespace) -> int:
    config = get_config()
    device, _bundle = provision_device(
        _stores(),
        args.device_id,
        authority=load_authority(config),
        config=config,
    )
    output = Path(args.output)
    output.write_bytes(render_qr_png(bundle_url(config, device.id), size=args.size))
    print(f"Wrote provisioning QR code to {output}")
    return 0


def cmd_offline(args: argparse.Namespace) -> int:
    config = get_config()
    devices = offline_devices(
        _stores(),
        threshold_seconds=args.threshold_seconds or config.offline_threshold_seconds,
        tenant_id=args.tenant_id,
    )
    _print_json(
        [
            {
                "device_id": device.id,
                "site_id": device.site_id,
                "tenant_id": device.tenant_id,
                "last_heartbeat": device.last_heartbeat,
            }
            for device in devices
        ]
    )
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    config = get_config()
    device = get_device(_stores(), args.device_id)
    token = issue_device_token(
        device,
        secret=config.device_token_secret,
        ttl_seconds=args.ttl_seconds or config.device_token_ttl_seconds,
    )
    print(token)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="galley")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run a Galley API service")
    serve_parser.add_argument(
        "--service", choices=sorted(SERVICE_APPS), default="monolith"
    )
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8080)
    serve_parser.add_argument("--log-level", default="info")
    serve_parser.add_argument(
        "--dry-run", action="store_true", help="Print command only"
    )
    serve_parser.set_defaults(func=cmd_serve)

    init_ca_parser = subparsers.add_parser(
        "init-ca", help="Generate a CA certificate and key for device signing"
    )
    init_ca_parser.add_argument("--cert-out", default=DEFAULT_CA_CERT)
    init_ca_parser.add_argument("--key-out", default=DEFAULT_CA_KEY)
    init_ca_parser.add_argument("--common-name", default="Galley Device CA")
    init_ca_parser.add_argument("--organization", default="Galley")
    init_ca_parser.add_argument("--validity-days", type=int, default=3650)
    init_ca_parser.add_argument("--force", action="store_true")
    init_ca_parser.set_defaults(func=cmd_init_ca)

    bundle_parser = subparsers.add_parser(
        "bundle", help="Print a device provisioning bundle"
    )
    bundle_parser.add_argument("device_id")
    bundle_parser.set_defaults(func=cmd_bundle)

    qrcode_parser = subparsers.add_parser(
        "qrcode", help="Write the provisioning QR code as PNG"
    )
    qrcode_parser.add_argument("device_id")
    qrcode_parser.add_argument("output")
    qrcode_parser.add_argument("--size", type=int, default=256)
    qrcode_parser.set_defaults(func=cmd_qrcode)

    offline_parser = subparsers.add_parser(
        "offline", help="List online devices with overdue heartbeats"
    )
    offline_parser.add_argument("--threshold-seconds", type=int)
    offline_parser.add_argument("--tenant-id")
    offline_parser.set_defaults(func=cmd_offline)

    token_parser = subparsers.add_parser(
        "token", help="Issue a short-lived device bearer token"
    )
    token_parser.add_argument("device_id")
    token_parser.add_argument("--ttl-seconds", type=int)
    token_parser.set_defaults(func=cmd_token)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

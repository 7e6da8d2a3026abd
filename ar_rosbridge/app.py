from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m ar_rosbridge.app run --endpoint 192.168.1.20:9090 [--rate depth=5]
#     python -m ar_rosbridge.app show-config [--config bridge.yaml]

import argparse

import yaml

from .errors import BridgeError, ErrorResponse
from .manager import add_bridge_args, build_config


def main() -> None:
    parser = argparse.ArgumentParser(description="AR rosbridge publisher - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Publish synthetic AR samples to a rosbridge server")
    add_bridge_args(p_run)
    p_run.add_argument("--source-rate", type=float, default=30.0)
    p_run.add_argument("--seed", type=int, default=None)
    p_run.add_argument("--duration", type=float, default=None)

    p_show = sub.add_parser("show-config", help="Print the effective configuration as YAML")
    add_bridge_args(p_show)

    args = parser.parse_args()

    if args.cmd == "run":
        from .manager import main as run

        run_args = _bridge_argv(args)
        run_args += ["--source-rate", str(args.source_rate)]
        if args.seed is not None:
            run_args += ["--seed", str(args.seed)]
        if args.duration is not None:
            run_args += ["--duration", str(args.duration)]
        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "show-config":
        try:
            config = build_config(args)
        except (BridgeError, ValueError, OSError) as e:
            print(yaml.safe_dump(ErrorResponse.from_exception(e).to_message(), sort_keys=False), end="")
            raise SystemExit(2)
        print(yaml.safe_dump(config.to_dict(), sort_keys=False), end="")
        return


def _bridge_argv(args: argparse.Namespace) -> list[str]:
    argv: list[str] = ["--log-level", args.log_level]
    if args.endpoint:
        argv += ["--endpoint", args.endpoint]
    if args.config:
        argv += ["--config", args.config]
    if args.namespace:
        argv += ["--namespace", args.namespace]
    for key, rate in args.rate or []:
        argv += ["--rate", f"{key.value}={rate}"]
    for name in args.disable_stream or []:
        argv += ["--disable-stream", name]
    return argv


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    import sys

    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()

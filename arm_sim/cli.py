"""CLI entrypoint for the arm simulator."""

from __future__ import annotations

import argparse

from .engine import ArmEngine
from .server import ArmHTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kinematic 3-joint arm simulator")
    sub = parser.add_subparsers(dest="mode", required=True)

    headless = sub.add_parser("headless", help="Run headless HTTP simulator bridge")
    headless.add_argument("--host", default="127.0.0.1")
    headless.add_argument("--port", type=int, default=8000)
    headless.add_argument("--dt", type=float, default=0.01)
    headless.add_argument("--camera-every", type=int, default=1)
    headless.add_argument(
        "--attach-plugin",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Load the DQN control plugin into the simulator",
    )
    headless.add_argument("--config", type=str, default=None, help="YAML config for the control plugin")
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.mode != "headless":
        parser.error(f"Unsupported mode: {args.mode}")

    engine = ArmEngine(dt=args.dt, camera_every=args.camera_every)
    if args.attach_plugin:
        from arm_rl.config import load_config
        from arm_rl.plugin import ArmPlugin

        plugin = ArmPlugin(load_config(args.config))
        plugin.load(engine)

    server = ArmHTTPServer(engine=engine, host=args.host, port=args.port, mode="headless")
    print(f"Arm headless server listening on http://{server.host}:{server.port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
        engine.close()


if __name__ == "__main__":
    main()

import argparse
import asyncio
import logging

from core.models import TableConfig

from .client import run_terminal
from .server import HostServer

logging.basicConfig(level=logging.INFO)


def main() -> None:
    parser = argparse.ArgumentParser(description="Three-card table: host authority or remote player")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the authoritative table")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8765)
    serve.add_argument("--seats", type=int, default=3)
    serve.add_argument("--starting-chips", type=int, default=10_000)
    serve.add_argument("--ante", type=int, default=100)
    serve.add_argument("--aggression", type=float, default=1.0)
    serve.add_argument("--bot-delay", type=int, default=1_500, help="Bot think time in milliseconds")
    serve.add_argument("--next-hand-delay", type=int, default=4_000, help="Pause between hands in milliseconds")

    join = sub.add_parser("join", help="Take a seat at a running table from the terminal")
    join.add_argument("url", help="e.g. ws://127.0.0.1:8765")

    args = parser.parse_args()

    if args.command == "join":
        asyncio.run(run_terminal(args.url))
        return

    # Seat 0 is played by the house bot; hands start once someone joins.
    config = TableConfig(
        seats=args.seats,
        starting_chips=args.starting_chips,
        ante=args.ante,
        aggression=args.aggression,
        bot_delay_ms=args.bot_delay,
        next_hand_delay_ms=args.next_hand_delay,
        host_is_human=False,
    )
    server = HostServer(config)
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    main()

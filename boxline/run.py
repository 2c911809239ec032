import argparse
import asyncio
import logging
import sys

from .config import ChannelLimits
from .echo import EchoServer, echo_once
from .errors import ChannelError

"""
run.py — single entry point for the boxline echo demo.

What you can do here:
- Server:  listen on a port and securely echo whatever clients send
- Client:  dial a server, send one message, print the echo

Quick examples:
  Server:  boxline -l 9000
  Client:  boxline 9000 "hello world"

Both sides read BOXLINE_MAX_MESSAGE_SIZE from the environment; set it the
same on both or large messages will be refused.
"""


# -------------------------
# Process runners (thin wrappers)
# -------------------------

async def run_server(host: str, port: int, limits: ChannelLimits) -> None:
    """Spin up the echo server and serve forever on host:port."""
    server = EchoServer(host, port, limits)
    await server.start()
    print(f"Echo server listening on {host or '*'}:{port}")
    await server.serve_forever()


async def run_client(host: str, port: int, message: str, limits: ChannelLimits) -> None:
    """Send one message and print what came back."""
    reply = await echo_once(host, port, message.encode("utf-8"), limits)
    print(reply.decode("utf-8", errors="replace"))


# -------------------------
# Argument parsing
# -------------------------

def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="boxline", description="Secure echo over NaCl box.")
    p.add_argument("-l", "--listen", type=int, metavar="PORT", help="Listen mode: serve on PORT")
    p.add_argument("--host", help="Host to bind (server) or dial (client)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("port", nargs="?", type=int, help="Server port to dial")
    p.add_argument("message", nargs="?", help="Message to send")
    args = p.parse_args(argv)

    if args.listen is None and (args.port is None or args.message is None):
        p.error("client mode needs PORT and MESSAGE (or use -l PORT to serve)")
    return args


# -------------------------
# Main entrypoint
# -------------------------

def main(argv=None) -> None:
    """Dispatch into server or client mode; keep top-level code very small."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        limits = ChannelLimits.from_env()
    except ValueError as exc:
        raise SystemExit(str(exc))

    if args.listen is not None:
        try:
            asyncio.run(run_server(args.host, args.listen, limits))
        except KeyboardInterrupt:
            pass
        return

    try:
        asyncio.run(run_client(args.host or "localhost", args.port, args.message, limits))
    except (ChannelError, OSError) as exc:
        print(f"boxline: {exc}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()

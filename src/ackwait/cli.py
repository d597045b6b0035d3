from __future__ import annotations

import argparse
import json
import logging
import random
from dataclasses import asdict
from pathlib import Path

from .checksum import ChecksumFault
from .constants import DEFAULT_BACKLOG, DEFAULT_FAULT_RATE, DEFAULT_MESSAGES_FILE
from .loopback import run_loopback
from .net import StreamConnection
from .packet import FrameError
from .sender import ProtocolError, StopAndWaitSender
from .server import Listener

log = logging.getLogger("ackwait")


def port_number(text: str) -> int:
    try:
        port = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a port number: {text!r}") from None
    if not 0 < port < 65536:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def bind_port(text: str) -> int:
    if text == "0":
        return 0
    return port_number(text)


def probability(text: str) -> float:
    try:
        p = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    if not 0.0 <= p <= 1.0:
        raise argparse.ArgumentTypeError(f"must be within [0, 1]: {p}")
    return p


def retry_count(text: str) -> int:
    try:
        n = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a retry count: {text!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"retry count must not be negative: {n}")
    return n


def read_messages(path: str) -> list[str]:
    # Text mode already folds \r\n and \r into \n; split on nothing else.
    lines = Path(path).read_text(encoding="utf-8").split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def cmd_send(args: argparse.Namespace) -> int:
    try:
        messages = read_messages(args.file)
    except (OSError, UnicodeDecodeError) as e:
        log.error("cannot read messages from %s: %s", args.file, e)
        return 2

    fault = ChecksumFault(
        rate=args.fault_rate,
        rng=random.Random(args.seed),
        on_retries=not args.first_attempt_only,
    )
    log.info("connecting to %s:%d", args.host, args.port)
    try:
        with StreamConnection.connect(args.host, args.port, timeout=args.timeout) as conn:
            log.info("connected")
            StopAndWaitSender(conn, messages, fault=fault, max_retries=args.max_retries, log=log).run()
    except (OSError, FrameError, ProtocolError) as e:
        log.error("transfer failed: %s", e)
        return 1
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    try:
        listener = Listener.bind(
            args.host,
            args.port,
            backlog=args.backlog,
            delay_s=args.delay_ms / 1000.0,
            log=log,
        )
    except OSError as e:
        log.error("cannot listen on %s:%d: %s", args.host, args.port, e)
        return 1

    try:
        listener.serve_forever()
    except KeyboardInterrupt:
        log.info("interrupted; shutting down")
    except OSError as e:
        log.error("accept failed: %s", e)
        return 1
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    if args.file:
        try:
            messages = read_messages(args.file)
        except (OSError, UnicodeDecodeError) as e:
            log.error("cannot read messages from %s: %s", args.file, e)
            return 2
    else:
        messages = list(args.messages)

    try:
        r = run_loopback(
            messages,
            fault_rate=args.fault_rate,
            seed=args.seed,
            first_attempt_only=args.first_attempt_only,
            max_retries=args.max_retries,
            log=log,
        )
    except (OSError, FrameError, ProtocolError) as e:
        log.error("demo failed: %s", e)
        return 1
    payload = {"role": "demo", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ackwait", description="Checksum-verified stop-and-wait messaging over TCP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_faults(x: argparse.ArgumentParser) -> None:
        x.add_argument("--fault-rate", type=probability, default=DEFAULT_FAULT_RATE,
                       help="chance of corrupting an outgoing checksum (0 disables)")
        x.add_argument("--seed", type=int, default=None, help="seed for the fault decisions")
        x.add_argument("--first-attempt-only", action="store_true",
                       help="never corrupt the checksum of a retransmission")
        x.add_argument("--max-retries", type=retry_count, default=None, help="give up after this many NAKs per message")

    send = sub.add_parser("send", help="send every line of a file and wait for each ACK")
    send.add_argument("host")
    send.add_argument("port", type=port_number)
    send.add_argument("--file", default=DEFAULT_MESSAGES_FILE)
    send.add_argument("--timeout", type=float, default=None, help="socket timeout in seconds")
    add_faults(send)
    send.set_defaults(func=cmd_send)

    recv = sub.add_parser("recv", help="accept connections and verify incoming messages")
    recv.add_argument("port", type=bind_port)
    recv.add_argument("--host", default="0.0.0.0")
    recv.add_argument("--backlog", type=int, default=DEFAULT_BACKLOG)
    recv.add_argument("--delay-ms", type=float, default=0.0, help="simulated processing delay per message")
    recv.set_defaults(func=cmd_recv)

    demo = sub.add_parser("demo", help="run a sender and a receiver on loopback")
    demo.add_argument("messages", nargs="*", default=["hello", "world"])
    demo.add_argument("--file", default=None)
    demo.add_argument("--json", action="store_true")
    add_faults(demo)
    demo.set_defaults(func=cmd_demo)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())

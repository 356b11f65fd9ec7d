"""User-facing messages: headlines on stdout, warnings on stderr."""

import sys


def ohai(msg: str) -> None:
    sys.stdout.write(f"==> {msg}\n")
    sys.stdout.flush()


def opoo(msg: str) -> None:
    sys.stderr.write(f"Warning: {msg.rstrip()}\n")
    sys.stderr.flush()

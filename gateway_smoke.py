"""
End-to-end smoke check against a running webhook gateway.

Registers a subscriber, answers the verification handshake, delivers a
sample event and confirms it shows up in the history page.

Run:
    python gateway_smoke.py http://localhost:3000 --verify-token TOKEN
"""

import argparse
import re
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import requests

TIMEOUT = 10

CALLBACK_RE = re.compile(r"Callback URL: (\S+)")
HISTORY_RE = re.compile(r"Events at URL: (\S+)")


class SmokeFailure(Exception):
    pass


def _check(r: requests.Response, expected: int, step: str) -> None:
    if r.status_code != expected:
        raise SmokeFailure(
            f"{step}: expected {expected}, got {r.status_code} - {r.text[:200]}"
        )


def _local_url(gateway_url: str, public_url: str) -> str:
    # Registration URLs carry the public scheme; talk to the gateway we were given.
    path = public_url.split("://", 1)[-1].split("/", 1)[-1]
    return f"{gateway_url.rstrip('/')}/{path}"


# -----------------------------
# STEPS
# -----------------------------


def register(
    session: requests.Session, gateway_url: str, key: Optional[str] = None
) -> Tuple[str, str]:
    params = {"key": key} if key else None
    r = session.get(f"{gateway_url.rstrip('/')}/register", params=params, timeout=TIMEOUT)
    _check(r, 200, "register")

    callback = CALLBACK_RE.search(r.text)
    history = HISTORY_RE.search(r.text)
    if not callback or not history:
        raise SmokeFailure(f"register: unexpected body {r.text[:200]!r}")

    return (
        _local_url(gateway_url, callback.group(1)),
        _local_url(gateway_url, history.group(1)),
    )


def handshake(session: requests.Session, callback_url: str, verify_token: str) -> None:
    challenge = uuid.uuid4().hex
    r = session.get(
        callback_url,
        params={
            "hub.mode": "subscribe",
            "hub.challenge": challenge,
            "hub.verify_token": verify_token,
        },
        timeout=TIMEOUT,
    )
    _check(r, 200, "handshake")

    if r.text != challenge:
        raise SmokeFailure(f"handshake: challenge not echoed, got {r.text[:200]!r}")


def deliver(session: requests.Session, callback_url: str, payload: Dict[str, Any]) -> None:
    r = session.post(callback_url, json=payload, timeout=TIMEOUT)
    _check(r, 200, "deliver")


def fetch_history(session: requests.Session, history_url: str) -> str:
    r = session.get(history_url, timeout=TIMEOUT)
    _check(r, 200, "history")
    return r.text


def run(
    session: requests.Session,
    gateway_url: str,
    verify_token: str,
    key: Optional[str] = None,
) -> str:
    callback_url, history_url = register(session, gateway_url, key)
    print(f"Registered callback: {callback_url}")

    handshake(session, callback_url, verify_token)
    print("Handshake OK")

    marker = uuid.uuid4().hex
    deliver(
        session,
        callback_url,
        {
            "object": "smoke_test",
            "marker": marker,
            "sent_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    print("Delivery OK")

    page = fetch_history(session, history_url)
    if marker not in page:
        raise SmokeFailure("history: delivered event not found")
    print(f"History OK: {history_url}")

    return history_url


# -----------------------------
# MAIN
# -----------------------------


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("gateway_url", help="e.g. http://localhost:3000")
    parser.add_argument("--verify-token", required=True)
    parser.add_argument("--key", help="registration secret, if enforced")
    args = parser.parse_args(argv)

    session = requests.Session()
    session.headers.update({"Accept": "text/plain, text/html, application/json"})

    try:
        run(session, args.gateway_url, args.verify_token, args.key)
    except (SmokeFailure, requests.RequestException) as e:
        print(f"SMOKE FAILED: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Walk a running Rovel server through the ad-gated unlock flow."""

from __future__ import annotations

import json
import os
import sys
import time
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class HttpClient:
    def __init__(self, base_url: str, admin_key: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        if admin_key:
            self.headers["Authorization"] = f"Bearer {admin_key}"

    def request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> tuple[int, Any]:
        """Send a request; returns (status, decoded body) even for error statuses."""
        url = f"{self.base_url}{path}"
        if query:
            query = {k: v for k, v in query.items() if v is not None}
            if query:
                url = f"{url}?{urlencode(query)}"

        data = None
        if payload is not None:
            data = json.dumps(payload, default=str).encode("utf-8")

        req = Request(url, data=data, method=method)
        for key, value in self.headers.items():
            req.add_header(key, value)

        try:
            with urlopen(req, timeout=timeout) as response:
                status, raw = response.status, response.read()
        except HTTPError as exc:
            status, raw = exc.code, exc.read()

        if not raw:
            return status, {}
        return status, json.loads(raw.decode("utf-8"))

    def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        status, body = self.request(method, path, **kwargs)
        if status >= 400:
            raise RuntimeError(f"{method} {path} failed: {status}: {body}")
        return body


def main() -> int:
    rovel_url = _env("ROVEL_URL", "http://localhost:3000")
    admin_key = _env("ROVEL_ADMIN_API_KEY")
    title = _env("ROVEL_DEMO_TITLE", "Walkthrough Demo")
    timer_delay_ms = int(_env("ROVEL_DEMO_TIMER_MS", "2000"))

    client = HttpClient(rovel_url, admin_key=admin_key)

    print("Checking health...")
    health = client.request_json("GET", "/health")
    if health.get("status") != "healthy":
        raise RuntimeError(f"Unexpected health response: {health}")

    print("Creating guest user...")
    user_id = client.request_json("POST", "/api/guest-user")["user"]["id"]
    print(f"Guest: {user_id}")

    print("Creating demo content...")
    content = client.request_json("POST", "/api/manga", payload={"title": title})
    content_id = content["id"]
    manga = content["normalized_title"]
    client.request_json(
        "POST",
        f"/api/manga/{content_id}/chapters",
        payload={"chapterId": "1", "pages": ["page-1.jpg", "page-2.jpg"]},
    )
    client.request_json("POST", f"/api/manga/{content_id}/chapters", payload={"chapterId": "2"})

    try:
        status, _ = client.request("GET", f"/chapter/{manga}/1", query={"user": user_id})
        if status != 402:
            raise RuntimeError(f"Expected locked chapter (402), got {status}")
        print("Chapter 1 is locked")

        print("Completing ad for chapter 1...")
        client.request_json(
            "POST",
            "/ads-complete",
            payload={"userId": user_id, "manga": manga, "chapterId": "1"},
        )
        chapter = client.request_json("GET", f"/chapter/{manga}/1", query={"user": user_id})
        print(f"Read chapter 1: {chapter['title']} ({len(chapter['pages'])} pages)")

        print(f"Starting {timer_delay_ms}ms unlock timer for chapter 2...")
        client.request_json(
            "POST",
            "/api/start-chapter-timer",
            payload={
                "userId": user_id,
                "contentId": content_id,
                "chapterId": "2",
                "delayMs": timer_delay_ms,
            },
        )
        unlocked = client.request_json("GET", f"/api/check-unlock/{user_id}/{content_id}/2")
        if unlocked.get("unlocked"):
            raise RuntimeError("Chapter 2 unlocked before the timer elapsed")

        time.sleep(timer_delay_ms / 1000.0 + 1.0)
        unlocked = client.request_json("GET", f"/api/check-unlock/{user_id}/{content_id}/2")
        if not unlocked.get("unlocked"):
            raise RuntimeError("Chapter 2 still locked after the timer elapsed")

        locks = client.request_json("GET", f"/api/user-locks/{user_id}")
        held = sorted(lock["chapterId"] for lock in locks)
        if held != ["1", "2"]:
            raise RuntimeError(f"Unexpected active unlocks: {held}")
    finally:
        client.request_json("DELETE", f"/api/manga/{content_id}")
        client.request_json("DELETE", f"/api/users/{user_id}")

    print("Walkthrough complete: ad unlock, timer unlock and gated reads all behaved.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise

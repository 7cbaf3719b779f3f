"""
HTTP API tests for the unlock flow, reader path and catalog routes.
"""

from datetime import datetime, timedelta

import pytest

from rovel.models import ChapterCreate, ContentCreate


@pytest.fixture
async def manga(services):
    content = await services.catalog.create_content(ContentCreate(title="Solo Leveling"))
    await services.catalog.create_chapter(
        content.id, ChapterCreate(chapter_id="3", title="The Hunter", pages=["p1.jpg"])
    )
    return content


# ============================================================================
# Health and admin auth
# ============================================================================


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_admin_route_requires_key(client):
    response = await client.post("/api/refresh-chapter-locks")
    assert response.status_code == 401

    response = await client.post(
        "/api/refresh-chapter-locks", headers={"X-API-Key": "wrong-key"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_route_accepts_either_header(client, admin_headers):
    response = await client.post("/api/refresh-chapter-locks", headers=admin_headers)
    assert response.status_code == 200

    response = await client.post(
        "/api/refresh-chapter-locks", headers={"X-API-Key": admin_headers["Authorization"][7:]}
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_admin_route_fails_closed_without_configured_key(client, services):
    services.settings.admin_api_key = None

    response = await client.get("/api/metrics", headers={"X-API-Key": "anything"})

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_metrics_snapshot(client, admin_headers):
    await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": 7, "chapterId": "3"}
    )

    response = await client.get("/api/metrics", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["counters"]["leases.granted"] == 1
    assert data["histograms"]["db.query.duration_ms"]["count"] > 0


# ============================================================================
# Chapter locks
# ============================================================================


@pytest.mark.asyncio
async def test_unlock_then_check(client, clock):
    response = await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": 7, "chapterId": "3"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    expires_at = datetime.fromisoformat(data["expiresAt"].replace("Z", "+00:00"))
    assert expires_at == clock() + timedelta(minutes=10)

    response = await client.get("/api/check-unlock/u1/7/3")
    assert response.json() == {"unlocked": True}

    clock.advance(minutes=10, seconds=1)
    response = await client.get("/api/check-unlock/u1/7/3")
    assert response.json() == {"unlocked": False}


@pytest.mark.asyncio
async def test_check_unlock_by_normalized_title(client, manga):
    await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": manga.id, "chapterId": 3}
    )

    response = await client.get("/api/check-unlock/u1/solo-leveling/3")
    assert response.json() == {"unlocked": True}

    response = await client.get("/api/check-unlock/u1/unknown-title/3")
    assert response.json() == {"unlocked": False}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"contentId": 7, "chapterId": "3"},
        {"userId": "u1", "chapterId": "3"},
        {"userId": "u1", "contentId": 7},
        {"userId": "", "contentId": 7, "chapterId": "3"},
    ],
)
async def test_unlock_missing_fields(client, body):
    response = await client.post("/api/unlock-chapter", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "BAD_INPUT"


@pytest.mark.asyncio
async def test_user_locks_lists_active_unlocks(client, clock):
    await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": 7, "chapterId": "1"}
    )
    clock.advance(minutes=6)
    await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": 7, "chapterId": "2"}
    )
    clock.advance(minutes=5)

    response = await client.get("/api/user-locks/u1")

    assert response.status_code == 200
    locks = response.json()
    assert len(locks) == 1
    assert locks[0]["userId"] == "u1"
    assert locks[0]["contentId"] == 7
    assert locks[0]["chapterId"] == "2"


@pytest.mark.asyncio
async def test_refresh_chapter_locks_resets_everything(client, admin_headers):
    for chapter in ("1", "2"):
        await client.post(
            "/api/unlock-chapter", json={"userId": "u1", "contentId": 7, "chapterId": chapter}
        )

    response = await client.post("/api/refresh-chapter-locks", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 2
    assert (await client.get("/api/user-locks/u1")).json() == []


@pytest.mark.asyncio
async def test_start_chapter_timer_returns_immediately(client, services):
    response = await client.post(
        "/api/start-chapter-timer", json={"userId": "u1", "contentId": 7, "chapterId": "3"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["timerDuration"] == 40_000
    assert data["message"] == "Chapter unlock timer started (40 seconds)"
    assert services.scheduler.pending_count == 1
    assert (await client.get("/api/check-unlock/u1/7/3")).json() == {"unlocked": False}


@pytest.mark.asyncio
async def test_start_chapter_timer_grants_after_delay(client, services):
    response = await client.post(
        "/api/start-chapter-timer",
        json={"userId": "u1", "contentId": 7, "chapterId": "3", "delayMs": 0},
    )
    assert response.status_code == 200

    await services.scheduler.wait_idle(timeout=5)

    assert (await client.get("/api/check-unlock/u1/7/3")).json() == {"unlocked": True}


@pytest.mark.asyncio
async def test_start_chapter_timer_after_shutdown(client, services):
    await services.scheduler.shutdown()

    response = await client.post(
        "/api/start-chapter-timer", json={"userId": "u1", "contentId": 7, "chapterId": "3"}
    )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_start_chapter_timer_missing_fields(client, services):
    response = await client.post("/api/start-chapter-timer", json={"userId": "u1"})

    assert response.status_code == 400
    assert services.scheduler.pending_count == 0


# ============================================================================
# Ads and the reader path
# ============================================================================


@pytest.mark.asyncio
async def test_ads_complete_unlocks_by_title(client, manga):
    response = await client.post(
        "/ads-complete", json={"userId": "u1", "manga": "solo-leveling", "chapterId": "3"}
    )
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get("/chapter/solo-leveling/3", params={"user": "u1"})
    assert response.status_code == 200
    assert response.json() == {"title": "The Hunter", "pages": ["p1.jpg"], "content": None}


@pytest.mark.asyncio
async def test_all_digit_title_reads_by_title(client, services, manga):
    content = await services.catalog.create_content(ContentCreate(title="86"))
    await services.catalog.create_chapter(
        content.id, ChapterCreate(chapter_id="1", title="Chapter 1", pages=["a.jpg"])
    )
    assert content.id != 86

    response = await client.post(
        "/ads-complete", json={"userId": "u1", "manga": "86", "chapterId": "1"}
    )
    assert response.status_code == 200

    response = await client.get("/chapter/86/1", params={"user": "u1"})
    assert response.status_code == 200
    assert response.json()["title"] == "Chapter 1"

    response = await client.get(f"/api/check-unlock/u1/{content.id}/1")
    assert response.json()["unlocked"] is True


@pytest.mark.asyncio
async def test_create_title_without_letters_or_digits(client, admin_headers):
    response = await client.post("/api/manga", json={"title": "!!!"}, headers=admin_headers)

    assert response.status_code == 400
    assert (await client.get("/api/manga")).json() == []


@pytest.mark.asyncio
async def test_ads_complete_unknown_title(client):
    response = await client.post(
        "/ads-complete", json={"userId": "u1", "manga": "no-such-title", "chapterId": "3"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ads_complete_missing_fields(client):
    response = await client.post("/ads-complete", json={"userId": "u1", "chapterId": "3"})

    assert response.status_code == 400
    assert "manga" in response.json()["detail"]


@pytest.mark.asyncio
async def test_locked_chapter_answers_402(client, manga):
    response = await client.get("/chapter/solo-leveling/3", params={"user": "u1"})

    assert response.status_code == 402
    assert response.json()["detail"] == "Chapter locked. Please watch an ad to unlock."


@pytest.mark.asyncio
async def test_unlocked_missing_chapter_answers_404(client, manga):
    await client.post(
        "/api/unlock-chapter", json={"userId": "u1", "contentId": manga.id, "chapterId": "9"}
    )

    response = await client.get("/chapter/solo-leveling/9", params={"user": "u1"})

    assert response.status_code == 404
    assert response.json()["detail"] == "Chapter not found"


@pytest.mark.asyncio
async def test_anonymous_reader_uses_guest_unlock(client, manga):
    assert (await client.get("/chapter/solo-leveling/3")).status_code == 402

    await client.post(
        "/api/unlock-chapter", json={"userId": "guest", "contentId": manga.id, "chapterId": "3"}
    )

    assert (await client.get("/chapter/solo-leveling/3")).status_code == 200


@pytest.mark.asyncio
async def test_direct_chapter_skips_lock_check(client, manga):
    response = await client.get("/direct-chapter/solo-leveling/3")
    assert response.status_code == 200
    assert response.json()["title"] == "The Hunter"

    response = await client.get("/direct-chapter/solo-leveling/9")
    assert response.status_code == 404


# ============================================================================
# Catalog, users, ads config, uploads
# ============================================================================


@pytest.mark.asyncio
async def test_content_crud(client, admin_headers):
    response = await client.post("/api/manga", json={"title": "Solo Leveling"})
    assert response.status_code == 401

    response = await client.post(
        "/api/manga",
        json={"title": "Solo Leveling", "author": "Chugong"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    content = response.json()
    assert content["normalized_title"] == "solo-leveling"
    assert content["chapters_count"] == 0

    response = await client.post(
        "/api/manga", json={"title": "Solo Leveling"}, headers=admin_headers
    )
    assert response.status_code == 400

    content_id = content["id"]
    response = await client.put(
        f"/api/manga/{content_id}", json={"status": "Completed"}, headers=admin_headers
    )
    assert response.status_code == 200

    response = await client.get(f"/api/manga/{content_id}")
    assert response.json()["status"] == "Completed"
    assert response.json()["author"] == "Chugong"

    listing = (await client.get("/api/manga")).json()
    assert [c["id"] for c in listing] == [content_id]
    assert (await client.get("/api/data")).json() == listing

    response = await client.delete(f"/api/manga/{content_id}", headers=admin_headers)
    assert response.status_code == 200
    assert (await client.get(f"/api/manga/{content_id}")).status_code == 404


@pytest.mark.asyncio
async def test_chapter_routes(client, admin_headers, manga):
    response = await client.post(
        f"/api/manga/{manga.id}/chapters",
        json={"chapterId": 4, "pages": ["a.jpg", "b.jpg"]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Chapter 4"

    response = await client.post(
        f"/api/manga/{manga.id}/chapters", json={"chapterId": "4"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Chapter already exists"

    chapters = (await client.get(f"/api/manga/{manga.id}/chapters")).json()
    assert set(chapters) == {"3", "4"}
    assert chapters["4"]["pages"] == ["a.jpg", "b.jpg"]

    response = await client.delete(f"/api/manga/{manga.id}/chapters/4", headers=admin_headers)
    assert response.status_code == 200
    response = await client.delete(f"/api/manga/{manga.id}/chapters/4", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_guest_user_and_admin_listing(client, admin_headers):
    response = await client.post("/api/guest-user")
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["id"].startswith("guest_")
    assert user["type"] == "guest"

    assert (await client.get("/api/users")).status_code == 401
    users = (await client.get("/api/users", headers=admin_headers)).json()
    assert [u["id"] for u in users] == [user["id"]]

    response = await client.delete(f"/api/users/{user['id']}", headers=admin_headers)
    assert response.status_code == 200
    response = await client.delete(f"/api/users/{user['id']}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_ads_config(client, admin_headers):
    config = (await client.get("/api/ads-config")).json()
    assert config["chapterLockDuration"] == 600_000

    response = await client.post("/api/ads-config", json={"enabled": False})
    assert response.status_code == 401

    response = await client.post(
        "/api/ads-config", json={"enabled": False}, headers=admin_headers
    )
    assert response.status_code == 200
    assert (await client.get("/api/ads-config")).json() == {"enabled": False}


@pytest.mark.asyncio
async def test_upload_and_fetch_image(client):
    response = await client.post(
        "/api/upload",
        content=b"\x89PNG-bytes",
        headers={"Content-Type": "image/png", "X-Filename": "cover.png"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["url"] == f"/api/image/{data['imageId']}"

    response = await client.get(data["url"])
    assert response.status_code == 200
    assert response.content == b"\x89PNG-bytes"
    assert response.headers["content-type"] == "image/png"

    assert (await client.get("/api/image/missing")).status_code == 404


@pytest.mark.asyncio
async def test_upload_limits(client, services):
    response = await client.post("/api/upload", content=b"", headers={"Content-Type": "image/png"})
    assert response.status_code == 400

    services.uploads.max_bytes = 4
    response = await client.post(
        "/api/upload", content=b"12345", headers={"Content-Type": "image/png"}
    )
    assert response.status_code == 413

    async def unsized_body():
        for _ in range(4):
            yield b"12"

    services.uploads.max_bytes = 6
    response = await client.post(
        "/api/upload", content=unsized_body(), headers={"Content-Type": "image/png"}
    )
    assert response.status_code == 413
    assert (await client.get("/api/image/missing")).status_code == 404

"""
Share links over HTTP: issuance, landing payloads, and token-scoped media.
"""
from datetime import timedelta

from dao.album_dao import AlbumDAO
from services.exceptions import INVALID_SHARE_LINK
from services.security import SecurityUtils
from test_api_gallery import create_album, upload

MISSING_ID = "00000000-0000-0000-0000-000000000000"

async def share(client, resource_type, resource_id, **extra):
    response = await client.post(
        "/api/share-links",
        json={"resourceType": resource_type, "resourceId": resource_id, **extra}
    )
    assert response.status_code == 201, response.text
    return response.json()["token"]

class TestIssuance:
    async def test_admin_gets_token_and_expiry(self, admin_client, make_image):
        photo_id = (await upload(admin_client, make_image())).json()["id"]

        response = await admin_client.post(
            "/api/share-links", json={"resourceType": "photo", "resourceId": photo_id}
        )

        assert response.status_code == 201
        body = response.json()
        assert set(body) == {"token", "expiresAt"}
        assert len(body["token"]) == 40

    async def test_viewer_cannot_share(self, admin_client, viewer_client, make_image):
        photo_id = (await upload(admin_client, make_image())).json()["id"]

        response = await viewer_client.post(
            "/api/share-links", json={"resourceType": "photo", "resourceId": photo_id}
        )

        assert response.status_code == 403

    async def test_anonymous_cannot_share(self, client):
        response = await client.post("/api/share-links", json={"resourceType": "photo", "resourceId": MISSING_ID})
        assert response.status_code == 401

    async def test_target_must_exist(self, admin_client):
        response = await admin_client.post(
            "/api/share-links", json={"resourceType": "album", "resourceId": MISSING_ID}
        )
        assert response.status_code == 404

    async def test_bad_resource_type(self, admin_client):
        response = await admin_client.post(
            "/api/share-links", json={"resourceType": "user", "resourceId": MISSING_ID}
        )
        assert response.status_code == 400

class TestPhotoShare:
    async def test_landing_and_media_for_the_shared_photo_only(self, admin_client, client, make_image):
        shared = (await upload(admin_client, make_image(), title="Shared")).json()["id"]
        other = (await upload(admin_client, make_image(), title="Other")).json()["id"]
        token = await share(admin_client, "photo", shared)

        landing = await client.get(f"/api/share/{token}")
        assert landing.status_code == 200
        body = landing.json()
        assert body["resourceType"] == "photo"
        assert body["resource"]["id"] == shared
        assert body["resource"]["sizes"]["768"] == f"/api/share/{token}/media/768/{shared}"

        allowed = await client.get(f"/api/share/{token}/media/768/{shared}")
        assert allowed.status_code == 200
        assert allowed.headers["content-type"].startswith("image/jpeg")

        denied = await client.get(f"/api/share/{token}/media/768/{other}")
        assert denied.status_code == 403
        assert denied.json() == {"error": "Forbidden"}

    async def test_share_routes_ignore_session_cookie(self, admin_client, make_image):
        photo_id = (await upload(admin_client, make_image())).json()["id"]

        # An admin session does not stand in for a token
        response = await admin_client.get(f"/api/share/not-a-real-token/media/320/{photo_id}")

        assert response.status_code == 404

class TestAlbumShare:
    async def test_member_media_follows_current_membership(self, admin_client, client, db_session, make_image):
        album = await create_album(admin_client, "Trip")
        member = (await upload(admin_client, make_image(), albumId=album["id"])).json()["id"]
        outsider = (await upload(admin_client, make_image())).json()["id"]
        token = await share(admin_client, "album", album["id"])

        landing = (await client.get(f"/api/share/{token}")).json()
        assert landing["resourceType"] == "album"
        assert [photo["id"] for photo in landing["resource"]["photos"]] == [member]
        assert landing["resource"]["photos"][0]["thumbUrl"] == f"/api/share/{token}/media/320/{member}"

        assert (await client.get(f"/api/share/{token}/media/320/{member}")).status_code == 200
        assert (await client.get(f"/api/share/{token}/media/320/{outsider}")).status_code == 403

        await AlbumDAO(db_session).remove_member(album["id"], member)

        assert (await client.get(f"/api/share/{token}/media/320/{member}")).status_code == 403

class TestInvalidTokens:
    async def test_expired_and_unknown_tokens_are_indistinguishable(self, admin_client, client, make_image):
        album = await create_album(admin_client)
        photo_id = (await upload(admin_client, make_image(), albumId=album["id"])).json()["id"]
        past = (SecurityUtils.get_utc_now() - timedelta(hours=1)).isoformat()
        expired = await share(admin_client, "album", album["id"], expiresAt=past)

        expired_landing = await client.get(f"/api/share/{expired}")
        unknown_landing = await client.get(f"/api/share/{'0' * 40}")
        assert expired_landing.status_code == unknown_landing.status_code == 404
        assert expired_landing.json() == unknown_landing.json() == {"error": INVALID_SHARE_LINK}

        expired_media = await client.get(f"/api/share/{expired}/media/320/{photo_id}")
        unknown_media = await client.get(f"/api/share/{'0' * 40}/media/320/{photo_id}")
        assert expired_media.status_code == unknown_media.status_code == 404
        assert expired_media.json() == unknown_media.json()

    async def test_size_is_checked_before_token(self, client):
        response = await client.get(f"/api/share/{'0' * 40}/media/640/{MISSING_ID}")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid size"}

    async def test_share_rate_limit(self, client):
        statuses = [(await client.get(f"/api/share/{'0' * 40}")).status_code for _ in range(31)]

        assert set(statuses[:30]) == {404}
        assert statuses[30] == 429
        assert (await client.get(f"/api/share/{'0' * 40}")).headers["retry-after"]

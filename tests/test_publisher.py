import base64
from datetime import timedelta

import pytest

from conftest import GRAPH, LINKEDIN_API, facebook_pages_route, json_body
from socialhub.clock import utcnow
from socialhub.db import crud
from socialhub.db.models import Platform, PostStatus
from socialhub.errors import ValidationError
from socialhub.services.publisher import Publisher, parse_platforms, parse_schedule

UGC = f"{LINKEDIN_API}/v2/ugcPosts"


@pytest.fixture
def publisher(db, facebook_client, linkedin_client, media_fetcher):
    return Publisher(db, facebook_client, linkedin_client, media_fetcher)


def counter_ids(prefix):
    seen = []

    def respond(request):
        seen.append(request)
        return {"id": f"{prefix}{len(seen)}"}

    return respond


@pytest.mark.parametrize("platform", list(Platform))
def test_missing_credential_yields_one_error(db, user, publisher, providers, platform):
    result = publisher.create_post(user.id, "hello", [platform.value])

    assert result.created == []
    assert [(e.platform, e.message) for e in result.errors] == [(platform, "Platform not connected")]
    assert result.failed
    assert providers.requests == []
    assert crud.list_posts(db, user.id) == []


@pytest.mark.parametrize("platforms", [["FACEBOOK"], ["LINKEDIN"], ["FACEBOOK", "LINKEDIN"]])
@pytest.mark.parametrize("offset", [timedelta(seconds=0), timedelta(minutes=-5), timedelta(days=-30)])
def test_past_or_now_schedule_rejected(db, user, publisher, providers, platforms, offset):
    when = utcnow() + offset
    with pytest.raises(ValidationError):
        publisher.create_post(user.id, "later", platforms, scheduled_at=when)
    assert providers.requests == []
    assert crud.list_posts(db, user.id) == []


def test_facebook_id_is_stored_as_platform_id(db, facebook_connected, publisher, providers):
    facebook_pages_route(providers)
    providers.add("POST", f"{GRAPH}/page-1/feed", json={"id": "page-1_555"})

    result = publisher.create_post(facebook_connected.id, "hello fb", ["FACEBOOK"])

    assert result.errors == []
    (post,) = result.created
    assert post.platform_id == "page-1_555"
    assert post.status == PostStatus.PUBLISHED
    stored = crud.list_posts(db, facebook_connected.id)
    assert [p.platform_id for p in stored] == ["page-1_555"]
    # page token, not the user token, authorises the feed post
    assert providers.calls("POST", f"{GRAPH}/page-1/feed")[0].url.params["access_token"] == "page-token-1"


def test_duplicate_calls_create_two_posts(db, facebook_connected, publisher, providers):
    facebook_pages_route(providers)
    providers.add("POST", f"{GRAPH}/page-1/feed", json=counter_ids("page-1_"))

    first = publisher.create_post(facebook_connected.id, "same", ["FACEBOOK"])
    second = publisher.create_post(facebook_connected.id, "same", ["FACEBOOK"])

    rows = crud.list_posts(db, facebook_connected.id)
    assert len(rows) == 2
    assert len({p.id for p in rows}) == 2
    assert {p.platform_id for p in rows} == {"page-1_1", "page-1_2"}
    assert first.created[0].id != second.created[0].id


def test_linkedin_only_connected(db, linkedin_connected, publisher, providers):
    providers.add("POST", UGC, status=201, json={}, headers={"x-restli-id": "urn:li:share:42"})

    result = publisher.create_post(linkedin_connected.id, "hello", ["FACEBOOK", "LINKEDIN"])

    assert [(p.platform, p.platform_id) for p in result.created] == [(Platform.LINKEDIN, "urn:li:share:42")]
    assert [e.to_dict() for e in result.errors] == [{"platform": "FACEBOOK", "message": "Platform not connected"}]
    assert not result.failed
    assert json_body(providers.calls("POST", UGC)[0])["author"] == "urn:li:person:li-member-1"


def test_failure_on_one_platform_does_not_stop_the_next(db, facebook_connected, linkedin_connected, publisher, providers):
    facebook_pages_route(providers)
    providers.add("POST", f"{GRAPH}/page-1/feed", status=403, json={
        "error": {"message": "(#200) The user hasn't authorized the application to perform this action", "code": 200},
    })
    providers.add("POST", UGC, status=201, json={"id": "urn:li:share:7"})

    result = publisher.create_post(facebook_connected.id, "both", ["FACEBOOK", "LINKEDIN"])

    assert [p.platform for p in result.created] == [Platform.LINKEDIN]
    assert result.errors[0].platform == Platform.FACEBOOK
    assert "hasn't authorized" in result.errors[0].message


def test_expired_credential_reported_per_platform(db, facebook_connected, publisher, providers):
    facebook_connected.facebook_token_expiry = utcnow() - timedelta(days=1)
    db.commit()

    result = publisher.create_post(facebook_connected.id, "late", ["FACEBOOK"])

    assert result.errors[0].message == "Facebook token expired, please reconnect your account"
    assert providers.requests == []


def test_future_schedule_records_first_platform_only(db, facebook_connected, linkedin_connected, publisher, providers):
    when = utcnow() + timedelta(days=2)

    result = publisher.create_post(
        facebook_connected.id, "soon", ["LINKEDIN", "FACEBOOK"], media_url="https://img.example/a.png", scheduled_at=when,
    )

    assert result.scheduled
    (post,) = result.created
    assert (post.platform, post.status, post.platform_id) == (Platform.LINKEDIN, PostStatus.SCHEDULED, None)
    assert post.published_at == when
    assert post.media_url == "https://img.example/a.png"
    assert providers.requests == []


def test_image_url_fetched_once_and_uploaded_everywhere(db, facebook_connected, linkedin_connected, publisher, providers):
    upload_url = "https://api.linkedin.com/mediaUpload/xyz"
    providers.add("GET", "https://img.example/a.png", content=b"PNGDATA", headers={"content-type": "image/png"})
    facebook_pages_route(providers)
    providers.add("POST", f"{GRAPH}/page-1/photos", json={"id": "photo-1"})
    providers.add("POST", f"{GRAPH}/page-1/feed", json={"id": "page-1_9"})
    providers.add("POST", f"{LINKEDIN_API}/v2/assets", json={"value": {
        "asset": "urn:li:digitalmediaAsset:Z",
        "uploadMechanism": {"com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": upload_url}},
    }})
    providers.add("PUT", upload_url, status=201, content=b"")
    providers.add("POST", UGC, status=201, json={"id": "urn:li:share:8"})

    result = publisher.create_post(
        facebook_connected.id, "look", ["FACEBOOK", "LINKEDIN"],
        media_url="https://img.example/a.png", link="https://example.com/ignored",
    )

    assert len(result.created) == 2
    assert len(providers.calls("GET", "https://img.example/a.png")) == 1
    assert "link" not in json_body(providers.calls("POST", f"{GRAPH}/page-1/feed")[0])
    assert providers.calls("PUT", upload_url)[0].content == b"PNGDATA"
    share = json_body(providers.calls("POST", UGC)[0])["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareMediaCategory"] == "IMAGE"
    assert all(p.media_url == "https://img.example/a.png" for p in result.created)


def test_inline_base64_image(db, linkedin_connected, publisher, providers):
    upload_url = "https://api.linkedin.com/mediaUpload/b64"
    providers.add("POST", f"{LINKEDIN_API}/v2/assets", json={"value": {
        "asset": "urn:li:digitalmediaAsset:B",
        "uploadMechanism": {"com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": upload_url}},
    }})
    providers.add("PUT", upload_url, status=201, content=b"")
    providers.add("POST", UGC, status=201, json={"id": "urn:li:share:9"})
    encoded = "data:image/png;base64," + base64.b64encode(b"rawpng").decode()

    publisher.create_post(linkedin_connected.id, "inline", ["LINKEDIN"], image_base64=encoded)

    assert providers.calls("PUT", upload_url)[0].content == b"rawpng"


def test_unreachable_media_fails_whole_request(db, facebook_connected, publisher, providers):
    providers.add("GET", "https://img.example/missing.png", status=404, content=b"")

    with pytest.raises(ValidationError):
        publisher.create_post(facebook_connected.id, "x", ["FACEBOOK"], media_url="https://img.example/missing.png")
    assert crud.list_posts(db, facebook_connected.id) == []


def test_link_only_goes_to_both_platforms(db, facebook_connected, linkedin_connected, publisher, providers):
    facebook_pages_route(providers)
    providers.add("POST", f"{GRAPH}/page-1/feed", json={"id": "page-1_3"})
    providers.add("POST", UGC, status=201, json={"id": "urn:li:share:3"})

    publisher.create_post(facebook_connected.id, "read", ["FACEBOOK", "LINKEDIN"], link="https://example.com/a")

    assert json_body(providers.calls("POST", f"{GRAPH}/page-1/feed")[0])["link"] == "https://example.com/a"
    share = json_body(providers.calls("POST", UGC)[0])["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareMediaCategory"] == "ARTICLE"


def test_content_required(user, publisher):
    with pytest.raises(ValidationError):
        publisher.create_post(user.id, "   ", ["FACEBOOK"])


def test_parse_platforms_reports_all_unknown_values():
    with pytest.raises(ValidationError) as exc:
        parse_platforms(["FACEBOOK", "TWITTER", "myspace"])
    assert exc.value.message == "Invalid platforms: TWITTER, myspace"


def test_parse_platforms_normalises_and_dedupes():
    assert parse_platforms(["linkedin", "FACEBOOK", "LINKEDIN"]) == [Platform.LINKEDIN, Platform.FACEBOOK]
    with pytest.raises(ValidationError):
        parse_platforms([])


def test_parse_schedule_normalises_to_utc():
    assert parse_schedule("2030-01-01T12:00:00+02:00").isoformat() == "2030-01-01T10:00:00"
    assert parse_schedule("2030-01-01T12:00:00Z").isoformat() == "2030-01-01T12:00:00"
    assert parse_schedule(None) is None
    with pytest.raises(ValidationError):
        parse_schedule("next tuesday")

from urllib.parse import parse_qs

import pytest

from conftest import LINKEDIN_API, LINKEDIN_TOKEN, json_body
from socialhub.errors import UpstreamError
from socialhub.services.linkedin_api import LinkedInClient

SHARE = "com.linkedin.ugc.ShareContent"
AUTHOR = "urn:li:person:abc123"


def share_of(request):
    return json_body(request)["specificContent"][SHARE]


def test_auth_url(linkedin_client):
    url = linkedin_client.auth_url("st4te", "http://localhost:3001/api/linkedin/callback")
    assert url.startswith("https://www.linkedin.com/oauth/v2/authorization?response_type=code")
    assert "client_id=li-client-id" in url
    assert "state=st4te" in url
    assert "redirect_uri=http://localhost:3001/api/linkedin/callback" in url
    assert "scope=r_liteprofile%20r_emailaddress%20w_member_social" in url


def test_exchange_code_is_form_encoded(linkedin_client, providers):
    providers.add("POST", LINKEDIN_TOKEN, json={"access_token": "at", "expires_in": 5184000, "refresh_token": "rt"})

    bundle = linkedin_client.exchange_code_for_token("c0de", "http://cb")

    assert (bundle.access_token, bundle.refresh_token, bundle.expires_in) == ("at", "rt", 5184000)
    req = providers.requests[0]
    assert req.headers["content-type"].startswith("application/x-www-form-urlencoded")
    form = parse_qs(req.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["c0de"]
    assert form["redirect_uri"] == ["http://cb"]
    assert form["client_secret"] == ["li-client-secret"]


def test_token_error_surfaces_description(linkedin_client, providers):
    providers.add("POST", LINKEDIN_TOKEN, status=400, json={
        "error": "invalid_request", "error_description": "Unable to retrieve access token: appid/redirect uri/code verifier does not match",
    })
    with pytest.raises(UpstreamError) as exc:
        linkedin_client.exchange_code_for_token("c0de", "http://wrong")
    assert "redirect uri" in exc.value.message
    assert exc.value.provider_code == "invalid_request"


def test_get_profile(linkedin_client, providers):
    providers.add("GET", f"{LINKEDIN_API}/v2/me", json={"id": "abc123"}, headers={"x-restli-request-id": "req-1"})
    assert linkedin_client.get_profile("at").id == "abc123"
    assert providers.requests[0].headers["x-restli-protocol-version"] == "2.0.0"


def test_get_profile_falls_back_to_userinfo(linkedin_client, providers):
    providers.add("GET", f"{LINKEDIN_API}/v2/me", status=403, json={"message": "Not enough permissions", "serviceErrorCode": 100})
    providers.add("GET", f"{LINKEDIN_API}/v2/userinfo", json={"sub": "oidc-sub", "name": "Ada"})
    identity = linkedin_client.get_profile("at")
    assert (identity.id, identity.name) == ("oidc-sub", "Ada")


def test_author_urn_person_or_organization(http):
    assert LinkedInClient(http=http, organization_id="").author_urn("abc") == "urn:li:person:abc"
    assert LinkedInClient(http=http, organization_id="777").author_urn("abc") == "urn:li:organization:777"


def test_publish_text_only(linkedin_client, providers):
    providers.add("POST", f"{LINKEDIN_API}/v2/ugcPosts", status=201, json={}, headers={"x-restli-id": "urn:li:share:1"})

    post = linkedin_client.publish_post(AUTHOR, "at", "hello")

    assert post.id == "urn:li:share:1"
    req = providers.requests[0]
    assert req.headers["authorization"] == "Bearer at"
    assert req.headers["x-restli-protocol-version"] == "2.0.0"
    body = json_body(req)
    assert body["author"] == AUTHOR
    assert body["lifecycleState"] == "PUBLISHED"
    assert share_of(req)["shareMediaCategory"] == "NONE"
    assert share_of(req)["shareCommentary"]["text"] == "hello"


def test_publish_link_is_article(linkedin_client, providers):
    providers.add("POST", f"{LINKEDIN_API}/v2/ugcPosts", status=201, json={"id": "urn:li:share:2"})

    post = linkedin_client.publish_post(AUTHOR, "at", "read", link="https://example.com/a")

    assert post.id == "urn:li:share:2"
    share = share_of(providers.requests[0])
    assert share["shareMediaCategory"] == "ARTICLE"
    assert share["media"][0]["originalUrl"] == "https://example.com/a"


def test_publish_image_uploads_asset(linkedin_client, providers):
    upload_url = "https://api.linkedin.com/mediaUpload/abc"
    providers.add("POST", f"{LINKEDIN_API}/v2/assets", json={"value": {
        "asset": "urn:li:digitalmediaAsset:C4D",
        "uploadMechanism": {
            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": upload_url},
        },
    }})
    providers.add("PUT", upload_url, status=201, content=b"")
    providers.add("POST", f"{LINKEDIN_API}/v2/ugcPosts", status=201, json={}, headers={"x-restli-id": "urn:li:share:3"})

    post = linkedin_client.publish_post(AUTHOR, "at", "pic", image_bytes=b"jpegbytes")

    assert post.id == "urn:li:share:3"
    register = providers.calls("POST", f"{LINKEDIN_API}/v2/assets")[0]
    assert json_body(register)["registerUploadRequest"]["owner"] == AUTHOR
    assert providers.calls("PUT", upload_url)[0].content == b"jpegbytes"
    share = share_of(providers.calls("POST", f"{LINKEDIN_API}/v2/ugcPosts")[0])
    assert share["shareMediaCategory"] == "IMAGE"
    assert share["media"][0]["media"] == "urn:li:digitalmediaAsset:C4D"


def test_publish_rejects_link_and_image_together(linkedin_client, providers):
    with pytest.raises(ValueError):
        linkedin_client.publish_post(AUTHOR, "at", "both", link="https://x", image_bytes=b"img")
    assert providers.requests == []


def test_publish_error_uses_linkedin_message(linkedin_client, providers):
    providers.add("POST", f"{LINKEDIN_API}/v2/ugcPosts", status=422, json={
        "message": "Content is a duplicate of urn:li:share:1", "serviceErrorCode": 65600, "status": 422,
    })
    with pytest.raises(UpstreamError) as exc:
        linkedin_client.publish_post(AUTHOR, "at", "again")
    assert exc.value.message == "Content is a duplicate of urn:li:share:1"
    assert exc.value.provider_code == 65600


def test_get_posts_encodes_author_and_reports_zero_metrics(linkedin_client, providers):
    providers.add("GET", f"{LINKEDIN_API}/v2/ugcPosts", json={"elements": [{
        "id": "urn:li:ugcPost:9",
        "created": {"time": 1700000000000},
        "specificContent": {SHARE: {
            "shareCommentary": {"text": "Launch day"},
            "media": [{"originalUrl": "https://example.com/launch"}],
        }},
    }]})

    (post,) = linkedin_client.get_posts(AUTHOR, "at", limit=5)

    raw_query = providers.requests[0].url.query.decode()
    assert "authors=List(urn%3Ali%3Aperson%3Aabc123)" in raw_query
    assert "count=5" in raw_query
    assert post.text == "Launch day"
    assert post.image_url == "https://example.com/launch"
    assert post.created_time.isoformat() == "2023-11-14T22:13:20"
    assert (post.impressions, post.reactions) == (0, 0)

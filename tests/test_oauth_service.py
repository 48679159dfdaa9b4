# tests/test_oauth_service.py
"""Kakao / Google login: provider HTTP calls and find-or-create by email."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest
from urllib.parse import parse_qs, urlparse
from numberlink.errors import ExternalServiceError, NotFoundError
from numberlink.models.individual import Individual
from numberlink.services import oauth_service
from numberlink.services.oauth_service import (GoogleOAuthProvider, KakaoOAuthProvider,
                                               OAuthProfile, handle_oauth_login)
from numberlink.services.security import PrincipalType, decode_access_token


def kakao(handler=None):
    transport = httpx.MockTransport(handler) if handler else None
    return KakaoOAuthProvider("kakao-client", None, "http://localhost:5000/api/auth/oauth/kakao/callback",
                              timeout=1.0, transport=transport)


class TestProviders:
    def test_authorize_url(self):
        url = urlparse(kakao().authorize_url(state="xyz"))
        params = parse_qs(url.query)
        assert url.netloc == "kauth.kakao.com"
        assert params["client_id"] == ["kakao-client"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["xyz"]

    def test_unconfigured_provider(self):
        provider = GoogleOAuthProvider(None, None, None)
        with pytest.raises(ExternalServiceError):
            provider.authorize_url()

    def test_unknown_provider(self):
        with pytest.raises(NotFoundError):
            oauth_service.get_provider("naver")

    @pytest.mark.asyncio
    async def test_kakao_code_exchange_and_profile(self):
        def handler(request):
            if request.url.host == "kauth.kakao.com":
                assert b"code=abc" in request.content
                return httpx.Response(200, json={"access_token": "tok"})
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={
                "id": 42,
                "kakao_account": {"email": "kim@kakao.com", "profile": {"nickname": "Kim"}},
            })

        profile = await oauth_service.fetch_oauth_profile(kakao(handler), "abc")
        assert profile == OAuthProfile("kakao", "42", "kim@kakao.com", "Kim")

    @pytest.mark.asyncio
    async def test_kakao_profile_without_email_gets_placeholder(self):
        profile = kakao().parse_profile({"id": 7})
        assert profile.email == "7@kakao.com"

    def test_profile_without_id_is_rejected(self):
        with pytest.raises(ExternalServiceError) as exc:
            kakao().parse_profile({"kakao_account": {"email": "kim@kakao.com"}})
        assert exc.value.kind == "rejected"

        with pytest.raises(ExternalServiceError):
            GoogleOAuthProvider(None, None, None).parse_profile({"email": "kim@gmail.com"})

    def test_base_provider_is_abstract(self):
        with pytest.raises(TypeError):
            oauth_service.OAuthProvider(None, None, None)

    @pytest.mark.asyncio
    async def test_provider_timeout(self):
        def handler(request):
            raise httpx.ConnectTimeout("slow", request=request)

        with pytest.raises(ExternalServiceError) as exc:
            await kakao(handler).exchange_code("abc")
        assert exc.value.kind == "timeout"

    @pytest.mark.asyncio
    async def test_rejected_code(self):
        with pytest.raises(ExternalServiceError) as exc:
            await kakao(lambda r: httpx.Response(400, json={"error": "invalid_grant"})).exchange_code("bad")
        assert exc.value.kind == "rejected"


class TestHandleOAuthLogin:
    def test_creates_verified_individual_with_placeholder_phone(self, db):
        session = handle_oauth_login(db, OAuthProfile("kakao", "42", "kim@kakao.com", "Kim"))
        user = session.user
        assert user.phone == "kakao_42"
        assert user.verified is True
        assert decode_access_token(session.token).type is PrincipalType.INDIVIDUAL

    def test_same_email_other_provider_is_same_account(self, db):
        first = handle_oauth_login(db, OAuthProfile("kakao", "42", "kim@example.com", "Kim"))
        second = handle_oauth_login(db, OAuthProfile("google", "g-1", "KIM@example.com", "Kim"))
        assert first.user.id == second.user.id
        assert second.user.phone == "kakao_42"
        assert db.query(Individual).count() == 1

    def test_links_to_password_account_by_email(self, db, make_individual):
        existing = make_individual(email="kim@numberlink.co.kr").user
        session = handle_oauth_login(db, OAuthProfile("google", "g-1", "kim@numberlink.co.kr", "Kim"))
        assert session.user.id == existing.id

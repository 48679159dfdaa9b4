# tests/test_api.py
"""End-to-end flows through the HTTP API."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
from numberlink.database import Base, engine
from numberlink.main import app
from numberlink.services.business_number_service import SimulatedBusinessNumberVerifier
from numberlink.services.payment_service import GatewayResult, SimulatedPaymentGateway
from numberlink.services.security import PrincipalType, decode_access_token
from numberlink.services.verification_cache import InMemoryVerificationCache
from conftest import COMPANY_PHONE, PASSWORD

API = "/api"


@pytest.fixture
def client():
    Base.metadata.create_all(bind=engine)
    app.state.verification_cache = InMemoryVerificationCache()
    app.state.business_verifier = SimulatedBusinessNumberVerifier()
    app.state.payment_gateway = SimulatedPaymentGateway()
    app.state.mail_transport = MagicMock()
    try:
        yield TestClient(app)
    finally:
        Base.metadata.drop_all(bind=engine)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def verify(client, business_number):
    r = client.post(f"{API}/auth/verify-business", json={"business_number": business_number})
    assert r.status_code == 200, r.text
    return r.json()


def register_company(client, business_number, phone=COMPANY_PHONE, contact_phone=None):
    verify(client, business_number)
    r = client.post(f"{API}/auth/register/company", json={
        "business_number": business_number,
        "company_name": f"Company {business_number}",
        "representative": "Park",
        "phone": phone,
        "email": "fleet@numberlink.co.kr",
        "password": PASSWORD,
        "contact_phone": contact_phone,
    })
    assert r.status_code == 201, r.text
    return r.json()


def register_driver(client, phone="010-1234-5678", email="kim@numberlink.co.kr"):
    r = client.post(f"{API}/auth/register/user", json={
        "name": "Kim", "phone": phone, "email": email, "password": PASSWORD,
    })
    assert r.status_code == 201, r.text
    return r.json()


def create_vehicle(client, token, vehicle_number="서울12바3456", monthly_fee=250000):
    r = client.post(f"{API}/vehicles", headers=bearer(token), json={
        "vehicle_number": vehicle_number,
        "vehicle_type": "화물",
        "tonnage": "1톤",
        "region": "서울",
        "insurance_rate": 7.5,
        "monthly_fee": monthly_fee,
        "is_available": True,
    })
    assert r.status_code == 201, r.text
    return r.json()


class TestMultiCompanyScenario:
    def test_fan_out_login_then_switch(self, client):
        assert verify(client, "123-45-67890")["valid"] is True
        first = register_company(client, "123-45-67890")
        second = register_company(client, "222-22-22222")

        r = client.post(f"{API}/auth/login", json={
            "phone": COMPANY_PHONE, "password": PASSWORD, "user_type": "company",
        })
        assert r.status_code == 200, r.text
        body = r.json()
        assert len(body["companies"]) == 2
        assert body["user"]["id"] == first["user"]["id"]
        assert "password" not in body["user"]

        r = client.post(f"{API}/auth/switch-company", headers=bearer(body["token"]), json={
            "phone": COMPANY_PHONE, "company_id": second["user"]["id"], "password": PASSWORD,
        })
        assert r.status_code == 200, r.text
        principal = decode_access_token(r.json()["token"])
        assert principal.id == second["user"]["id"]
        assert principal.type is PrincipalType.COMPANY

    def test_register_without_verification_is_forbidden(self, client):
        r = client.post(f"{API}/auth/register/company", json={
            "business_number": "123-45-67890", "company_name": "NL", "representative": "Park",
            "phone": COMPANY_PHONE, "email": "fleet@numberlink.co.kr", "password": PASSWORD,
        })
        assert r.status_code == 403

    def test_switch_requires_session(self, client):
        r = client.post(f"{API}/auth/switch-company", json={
            "phone": COMPANY_PHONE, "company_id": 1, "password": PASSWORD,
        })
        assert r.status_code == 401

    def test_me_lists_siblings(self, client):
        first = register_company(client, "123-45-67890")
        register_company(client, "222-22-22222")
        r = client.get(f"{API}/auth/me", headers=bearer(first["token"]))
        assert r.status_code == 200
        assert r.json()["token"] is None
        assert len(r.json()["companies"]) == 2


class TestPayToRevealScenario:
    def test_full_flow(self, client):
        driver = register_driver(client)
        company = register_company(client, "123-45-67890")
        vehicle = create_vehicle(client, company["token"], monthly_fee=250000)

        r = client.get(f"{API}/payments/contact/{vehicle['id']}", headers=bearer(driver["token"]))
        assert r.status_code == 403

        r = client.post(f"{API}/payments", headers=bearer(driver["token"]), json={"vehicle_id": vehicle["id"]})
        assert r.status_code == 201, r.text
        assert r.json()["status"] == "completed"

        r = client.get(f"{API}/payments/status/{vehicle['id']}", headers=bearer(driver["token"]))
        assert r.json()["has_paid"] is True

        r = client.get(f"{API}/payments/contact/{vehicle['id']}", headers=bearer(driver["token"]))
        assert r.status_code == 200
        assert r.json()["company"]["contact_phone"] == COMPANY_PHONE

        r = client.post(f"{API}/payments", headers=bearer(driver["token"]), json={"vehicle_id": vehicle["id"]})
        assert r.status_code == 409

        r = client.get(f"{API}/payments/my", headers=bearer(driver["token"]))
        assert len(r.json()) == 1

    def test_contact_phone_preferred_over_account_phone(self, client):
        driver = register_driver(client)
        company = register_company(client, "123-45-67890", contact_phone="02-1234-5678")
        vehicle = create_vehicle(client, company["token"])
        client.post(f"{API}/payments", headers=bearer(driver["token"]), json={"vehicle_id": vehicle["id"]})

        r = client.get(f"{API}/payments/contact/{vehicle['id']}", headers=bearer(driver["token"]))
        assert r.json()["company"]["contact_phone"] == "02-1234-5678"

    def test_companies_cannot_pay(self, client):
        company = register_company(client, "123-45-67890")
        vehicle = create_vehicle(client, company["token"])
        r = client.post(f"{API}/payments", headers=bearer(company["token"]), json={"vehicle_id": vehicle["id"]})
        assert r.status_code == 403

    def test_missing_vehicle_contact_is_404(self, client):
        driver = register_driver(client)
        r = client.get(f"{API}/payments/contact/9999", headers=bearer(driver["token"]))
        assert r.status_code == 404


class TestListings:
    def test_listing_and_detail_never_expose_phones(self, client):
        company = register_company(client, "123-45-67890", contact_phone="02-1234-5678")
        vehicle = create_vehicle(client, company["token"])
        driver = register_driver(client)
        client.post(f"{API}/payments", headers=bearer(driver["token"]), json={"vehicle_id": vehicle["id"]})

        for headers in ({}, bearer(driver["token"]), bearer(company["token"])):
            listing = client.get(f"{API}/vehicles", headers=headers).text
            detail = client.get(f"{API}/vehicles/{vehicle['id']}", headers=headers).text
            for text in (listing, detail):
                assert "02-1234-5678" not in text
                assert COMPANY_PHONE not in text
                assert "contact_phone" not in text

    def test_detail_bumps_view_count(self, client):
        company = register_company(client, "123-45-67890")
        vehicle = create_vehicle(client, company["token"])
        client.get(f"{API}/vehicles/{vehicle['id']}")
        r = client.get(f"{API}/vehicles/{vehicle['id']}")
        assert r.json()["view_count"] >= 1

        mine = client.get(f"{API}/vehicles/my", headers=bearer(company["token"])).json()
        assert mine[0]["view_count"] == 2

    def test_only_owner_can_update(self, client):
        owner = register_company(client, "123-45-67890")
        other = register_company(client, "222-22-22222", phone="010-7777-8888")
        vehicle = create_vehicle(client, owner["token"])

        r = client.put(f"{API}/vehicles/{vehicle['id']}", headers=bearer(other["token"]), json={"monthly_fee": 1})
        assert r.status_code == 403
        r = client.put(f"{API}/vehicles/{vehicle['id']}", headers=bearer(owner["token"]),
                       json={"monthly_fee": 300000})
        assert r.json()["monthly_fee"] == 300000

    def test_duplicate_vehicle_number_conflicts(self, client):
        company = register_company(client, "123-45-67890")
        create_vehicle(client, company["token"], vehicle_number="서울11가1111")
        r = client.post(f"{API}/vehicles", headers=bearer(company["token"]), json={
            "vehicle_number": "서울11가1111", "vehicle_type": "화물", "region": "서울",
            "insurance_rate": 7.5, "monthly_fee": 250000,
        })
        assert r.status_code == 409

    def test_region_stats(self, client):
        company = register_company(client, "123-45-67890")
        create_vehicle(client, company["token"], vehicle_number="A1", monthly_fee=200000)
        create_vehicle(client, company["token"], vehicle_number="A2", monthly_fee=300000)
        stats = client.get(f"{API}/vehicles/stats/region").json()
        assert stats == [{"region": "서울", "count": 2, "average_fee": 250000.0}]


class TestCompanyDashboard:
    def test_stats_count_purchases(self, client):
        company = register_company(client, "123-45-67890")
        vehicle = create_vehicle(client, company["token"])
        driver = register_driver(client)
        client.post(f"{API}/payments", headers=bearer(driver["token"]), json={"vehicle_id": vehicle["id"]})

        stats = client.get(f"{API}/companies/stats", headers=bearer(company["token"])).json()
        assert stats == {"total_vehicles": 1, "available_vehicles": 1, "total_views": 1, "recent_views": 1}

    def test_drivers_cannot_use_company_routes(self, client):
        driver = register_driver(client)
        r = client.get(f"{API}/companies/profile", headers=bearer(driver["token"]))
        assert r.status_code == 403

    def test_contact_phone_update(self, client):
        company = register_company(client, "123-45-67890")
        r = client.put(f"{API}/companies/contact-phone", headers=bearer(company["token"]),
                       json={"contact_phone": "02-9876-5432"})
        assert r.json()["contact_phone"] == "02-9876-5432"

    def test_rejected_password_change_keeps_display_fields(self, client):
        company = register_company(client, "123-45-67890")
        r = client.put(f"{API}/companies/profile", headers=bearer(company["token"]), json={
            "company_name": "Renamed Co", "contact_phone": "02-1111-2222",
            "current_password": "wrong-pass1", "new_password": "newpass123",
        })
        assert r.status_code == 401

        profile = client.get(f"{API}/companies/profile", headers=bearer(company["token"])).json()
        assert profile["company_name"] == "Company 123-45-67890"
        assert profile["contact_phone"] is None

    def test_profile_update_with_account_change_saves_everything(self, client):
        company = register_company(client, "123-45-67890")
        r = client.put(f"{API}/companies/profile", headers=bearer(company["token"]), json={
            "company_name": "Renamed Co", "current_password": PASSWORD, "new_password": "newpass123",
        })
        assert r.status_code == 200
        assert r.json()["company_name"] == "Renamed Co"

        login = client.post(f"{API}/auth/login", json={
            "phone": COMPANY_PHONE, "password": "newpass123", "user_type": "company"})
        assert login.status_code == 200


class TestErrorsAndHealth:
    def test_missing_token_is_401_with_challenge(self, client):
        r = client.get(f"{API}/auth/me")
        assert r.status_code == 401
        assert r.headers["WWW-Authenticate"] == "Bearer"

    def test_garbage_token_is_401(self, client):
        r = client.get(f"{API}/auth/me", headers=bearer("not-a-jwt"))
        assert r.status_code == 401

    def test_login_failures_share_one_message(self, client):
        register_driver(client)
        unknown = client.post(f"{API}/auth/login", json={"phone": "010-0000-0000", "password": PASSWORD})
        wrong = client.post(f"{API}/auth/login", json={"phone": "010-1234-5678", "password": "wrong-pass1"})
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_registry_timeout_is_504(self, client):
        from unittest.mock import AsyncMock
        from numberlink.errors import ExternalServiceError
        verifier = MagicMock()
        verifier.verify = AsyncMock(side_effect=ExternalServiceError("slow", kind="timeout"))
        app.state.business_verifier = verifier
        r = client.post(f"{API}/auth/verify-business", json={"business_number": "123-45-67890"})
        assert r.status_code == 504

    def test_unexpected_error_is_500(self, client):
        with patch("numberlink.routers.vehicles.vehicle_service.region_stats", side_effect=RuntimeError("boom")):
            r = TestClient(app, raise_server_exceptions=False).get(f"{API}/vehicles/stats/region")
        assert r.status_code == 500
        assert r.json()["detail"] == "Internal server error"
        assert r.json()["error"] == "boom"

    def test_oauth_profile_without_id_redirects_to_login(self, client):
        import httpx
        from numberlink.services.oauth_service import KakaoOAuthProvider

        def handler(request):
            if request.url.host == "kauth.kakao.com":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(200, json={"kakao_account": {"email": "kim@kakao.com"}})

        provider = KakaoOAuthProvider("kakao-client", None, "http://localhost/callback",
                                      transport=httpx.MockTransport(handler))
        with patch("numberlink.services.oauth_service.get_provider", return_value=provider):
            r = client.get(f"{API}/auth/oauth/kakao/callback", params={"code": "abc"},
                           follow_redirects=False)
        assert r.status_code == 307
        assert "/login?error=" in r.headers["location"]

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["database"] == "ok"

    def test_lifespan_starts_and_stops_scheduler(self, client):
        with patch("numberlink.main.build_scheduler") as build:
            with TestClient(app) as c:
                assert c.get("/health").status_code == 200
        build.return_value.start.assert_called_once()
        build.return_value.shutdown.assert_called_once_with(wait=False)


class TestPaymentCallback:
    def test_disabled_without_secret(self, client):
        r = client.post(f"{API}/payments/1/callback", json={"status": "completed"})
        assert r.status_code == 404

    def test_confirms_pending_payment(self, client):
        driver = register_driver(client)
        company = register_company(client, "123-45-67890")
        vehicle = create_vehicle(client, company["token"])
        gateway = MagicMock()
        gateway.request_payment.return_value = GatewayResult(confirmed=False)
        app.state.payment_gateway = gateway

        payment = client.post(f"{API}/payments", headers=bearer(driver["token"]),
                              json={"vehicle_id": vehicle["id"]}).json()
        assert payment["status"] == "pending"
        assert client.get(f"{API}/payments/contact/{vehicle['id']}",
                          headers=bearer(driver["token"])).status_code == 403

        with patch("numberlink.routers.payments.settings.PAYMENT_WEBHOOK_SECRET", "hook-secret"):
            bad = client.post(f"{API}/payments/{payment['id']}/callback", json={"status": "completed"},
                              headers={"X-Payment-Webhook-Secret": "nope"})
            ok = client.post(f"{API}/payments/{payment['id']}/callback",
                             json={"status": "completed", "payment_method": "transfer"},
                             headers={"X-Payment-Webhook-Secret": "hook-secret"})
        assert bad.status_code == 401
        assert ok.json()["status"] == "completed"
        assert client.get(f"{API}/payments/contact/{vehicle['id']}",
                          headers=bearer(driver["token"])).status_code == 200


class TestPasswordResetApi:
    def test_request_and_consume(self, client):
        register_driver(client)
        r = client.post(f"{API}/auth/password/reset-request", json={"email": "kim@numberlink.co.kr"})
        token = r.json()["token"]
        app.state.mail_transport.send.assert_called_once()

        r = client.post(f"{API}/auth/password/reset", json={"token": token, "new_password": "newpass123"})
        assert r.status_code == 200
        r = client.post(f"{API}/auth/login", json={"phone": "010-1234-5678", "password": "newpass123"})
        assert r.status_code == 200

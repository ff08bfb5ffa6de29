"""End-to-end tests of the HTTP API."""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from app.main import app

PASSWORD = "Secreta123!"
# far enough ahead to always be a future Friday
BOOKING_DAY = date(2030, 1, 4).isoformat()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def _register(client, slug="bella-vita", email="ana@bellavita.mx", business_type="spa"):
    response = client.post(
        "/register",
        json={
            "business_name": "Bella Vita Spa",
            "slug": slug,
            "business_type": business_type,
            "owner_email": email,
            "owner_password": PASSWORD,
            "owner_first_name": "Ana",
            "owner_last_name": "López",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered(client):
    return _register(client)


@pytest.fixture
def owner_headers(registered):
    return _auth(registered["access_token"])


class TestRegistration:
    def test_register_returns_tenant_and_token(self, client, registered):
        assert registered["role"] == "owner"
        assert registered["token_type"] == "bearer"
        assert registered["tenant"]["slug"] == "bella-vita"
        assert registered["tenant"]["primary_color"] == "#059669"

        listing = client.get("/").json()
        assert [t["slug"] for t in listing] == ["bella-vita"]

    def test_slug_check(self, client, registered):
        taken = client.get("/register/check-slug", params={"slug": "bella-vita"}).json()
        free = client.get("/register/check-slug", params={"slug": "otro-lugar"}).json()

        assert taken["available"] is False
        assert taken["suggestion"] == "bella-vita-2"
        assert free == {"slug": "otro-lugar", "available": True, "error": None, "suggestion": None}

    def test_taken_slug_is_409_and_creates_no_account(self, client, registered):
        response = client.post(
            "/register",
            json={
                "business_name": "Copia",
                "slug": "bella-vita",
                "owner_email": "luis@correo.mx",
                "owner_password": PASSWORD,
                "owner_first_name": "Luis",
                "owner_last_name": "Pérez",
            },
        )

        assert response.status_code == 409
        assert app.state.directory.get_owner_by_email("luis@correo.mx") is None

    def test_reserved_slug_is_400(self, client):
        response = client.post(
            "/register",
            json={
                "business_name": "Docs",
                "slug": "docs",
                "owner_email": "luis@correo.mx",
                "owner_password": PASSWORD,
                "owner_first_name": "Luis",
                "owner_last_name": "Pérez",
            },
        )

        assert response.status_code == 400

    def test_existing_owner_adds_a_second_business(self, client, registered):
        second = _register(client, slug="bella-vita-norte", business_type="salon")

        assert second["tenant"]["slug"] == "bella-vita-norte"
        owner = app.state.directory.get_owner_by_email("ana@bellavita.mx")
        assert len(owner.tenants) == 2

    def test_existing_owner_with_wrong_password(self, client, registered):
        response = client.post(
            "/register",
            json={
                "business_name": "Otro",
                "slug": "otro-lugar",
                "owner_email": "ana@bellavita.mx",
                "owner_password": "Incorrecta1!",
                "owner_first_name": "Ana",
                "owner_last_name": "López",
            },
        )

        assert response.status_code == 401


class TestLogin:
    def test_owner_login(self, client, registered):
        response = client.post("/bella-vita/login", data={"username": "ana@bellavita.mx", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["role"] == "owner"

    def test_wrong_password(self, client, registered):
        response = client.post("/bella-vita/login", data={"username": "ana@bellavita.mx", "password": "nope"})

        assert response.status_code == 401

    def test_unknown_business(self, client):
        response = client.post("/no-existe/login", data={"username": "a", "password": "b"})

        assert response.status_code == 404

    def test_admin_user_login_and_owner_only_creation(self, client, owner_headers):
        created = client.post(
            "/bella-vita/users",
            json={"username": "recepcion", "password": PASSWORD},
            headers=owner_headers,
        )
        assert created.status_code == 201, created.text

        login = client.post("/bella-vita/login", data={"username": "recepcion", "password": PASSWORD})
        assert login.json()["role"] == "admin"

        admin_headers = _auth(login.json()["access_token"])
        denied = client.post(
            "/bella-vita/users",
            json={"username": "otro_admin", "password": PASSWORD},
            headers=admin_headers,
        )
        assert denied.status_code == 403

        attempts = client.get("/bella-vita/login-attempts", headers=owner_headers).json()
        assert attempts[0]["username"] == "recepcion"
        assert attempts[0]["success"] is True


class TestCredentialChanges:
    NEW_PASSWORD = "Nueva456#"

    @pytest.fixture
    def admin_headers(self, client, owner_headers):
        created = client.post(
            "/bella-vita/users",
            json={"username": "recepcion", "password": PASSWORD},
            headers=owner_headers,
        )
        assert created.status_code == 201, created.text
        login = client.post("/bella-vita/login", data={"username": "recepcion", "password": PASSWORD})
        return _auth(login.json()["access_token"])

    def test_password_change_takes_effect_on_next_login(self, client, admin_headers):
        response = client.put(
            "/bella-vita/users/me/password",
            json={"current_password": PASSWORD, "new_password": self.NEW_PASSWORD},
            headers=admin_headers,
        )
        assert response.status_code == 200, response.text

        old = client.post("/bella-vita/login", data={"username": "recepcion", "password": PASSWORD})
        new = client.post("/bella-vita/login", data={"username": "recepcion", "password": self.NEW_PASSWORD})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_wrong_current_password_is_400(self, client, admin_headers):
        response = client.put(
            "/bella-vita/users/me/password",
            json={"current_password": "Incorrecta1!", "new_password": self.NEW_PASSWORD},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_username_change_and_audit_visibility(self, client, owner_headers, admin_headers):
        renamed = client.put(
            "/bella-vita/users/me/username",
            json={"current_password": PASSWORD, "new_username": "Caja_1"},
            headers=admin_headers,
        )
        assert renamed.status_code == 200, renamed.text
        assert renamed.json()["username"] == "caja_1"

        owner_login = client.post("/bella-vita/login", data={"username": "ana@bellavita.mx", "password": PASSWORD})
        changed = client.put(
            "/bella-vita/users/me/password",
            json={"current_password": PASSWORD, "new_password": self.NEW_PASSWORD},
            headers=_auth(owner_login.json()["access_token"]),
        )
        assert changed.status_code == 200, changed.text

        everyone = client.get("/bella-vita/users/credential-updates", headers=owner_headers).json()
        own = client.get("/bella-vita/users/credential-updates", headers=admin_headers).json()
        assert [u["type"] for u in everyone] == ["password", "username"]
        assert [u["type"] for u in own] == ["username"]

    def test_taken_username_is_409(self, client, owner_headers, admin_headers):
        client.post("/bella-vita/users", json={"username": "caja", "password": PASSWORD}, headers=owner_headers)

        response = client.put(
            "/bella-vita/users/me/username",
            json={"current_password": PASSWORD, "new_username": "caja"},
            headers=admin_headers,
        )

        assert response.status_code == 409


class TestTenantIsolation:
    def test_admin_routes_need_a_token(self, client, registered):
        assert client.get("/bella-vita/services/all").status_code == 401

    def test_token_of_another_business_is_403(self, client, registered):
        other = _register(client, slug="otro-lugar", email="luis@correo.mx")

        response = client.get("/bella-vita/services/all", headers=_auth(other["access_token"]))

        assert response.status_code == 403

    def test_unknown_slug_is_404(self, client, owner_headers):
        assert client.get("/no-existe/services").status_code == 404
        assert client.get("/no-existe").status_code == 404

    def test_data_does_not_leak_between_businesses(self, client, owner_headers):
        other = _register(client, slug="otro-lugar", email="luis@correo.mx", business_type="barberia")

        spa = {s["name"] for s in client.get("/bella-vita/services").json()}
        barber = {s["name"] for s in client.get("/otro-lugar/services").json()}

        assert "Masaje Relajante" in spa
        assert "Corte Clásico" in barber
        assert spa.isdisjoint(barber)
        assert other["tenant"]["business_type"] == "barberia"


class TestCatalogApi:
    def test_create_update_and_delete_service(self, client, owner_headers):
        created = client.post(
            "/bella-vita/services",
            json={"name": "Reflexología", "category": "masajes", "price": 500, "duration": 50},
            headers=owner_headers,
        )
        assert created.status_code == 201
        service_id = created.json()["id"]

        updated = client.put(f"/bella-vita/services/{service_id}", json={"price": 550}, headers=owner_headers)
        assert updated.json()["price"] == 550

        history = client.get(
            "/bella-vita/services/price-history", params={"serviceId": service_id}, headers=owner_headers
        ).json()
        assert [(h["oldPrice"], h["newPrice"]) for h in history] == [(500, 550)]

        assert client.delete(f"/bella-vita/services/{service_id}", headers=owner_headers).status_code == 204
        assert client.delete(f"/bella-vita/services/{service_id}", headers=owner_headers).status_code == 404
        public = [s["id"] for s in client.get("/bella-vita/services").json()]
        assert service_id not in public

    def test_hidden_service_stays_in_admin_listing(self, client, owner_headers):
        service = client.get("/bella-vita/services").json()[0]

        client.put(f"/bella-vita/services/{service['id']}", json={"is_active": False}, headers=owner_headers)

        assert service["id"] not in [s["id"] for s in client.get("/bella-vita/services").json()]
        admin = {s["id"]: s for s in client.get("/bella-vita/services/all", headers=owner_headers).json()}
        assert admin[service["id"]]["isActive"] is False

    def test_bulk_prices(self, client, owner_headers):
        services = client.get("/bella-vita/services").json()
        ids = [s["id"] for s in services[:2]]

        response = client.post(
            "/bella-vita/services/bulk-prices",
            json={"service_ids": ids + ["missing"], "percentage": 10},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 2

    def test_invalid_payload_is_422(self, client, owner_headers):
        response = client.post(
            "/bella-vita/services",
            json={"name": "", "category": "masajes", "price": -1, "duration": 0},
            headers=owner_headers,
        )

        assert response.status_code == 422


class TestBookingFlow:
    def _book(self, client, **overrides):
        service = next(s for s in client.get("/bella-vita/services").json() if s["category"] == "masajes")
        payload = {
            "full_name": "María García",
            "phone": "6649876543",
            "service_ids": [service["id"]],
            "date": BOOKING_DAY,
            "time": "10:30",
        }
        payload.update(overrides)
        return client.post("/bella-vita/appointments", json=payload)

    def test_book_complete_and_earn_reward(self, client, owner_headers):
        client.put("/bella-vita/rewards/settings", json={"spendingThreshold": 700}, headers=owner_headers)
        booked = self._book(client)
        assert booked.status_code == 201, booked.text
        appointment = booked.json()
        assert appointment["status"] == "confirmed"

        completed = client.patch(
            f"/bella-vita/appointments/{appointment['id']}/status",
            json={"status": "completed"},
            headers=owner_headers,
        )
        assert completed.json()["status"] == "completed"

        rewards = client.get(f"/bella-vita/clients/{appointment['clientId']}/rewards", headers=owner_headers).json()
        assert rewards["totalSpending"] == 750
        assert rewards["rewardsEarned"] == 1
        [coupon] = rewards["availableCoupons"]

        second = self._book(client, time="12:00").json()
        redeemed = client.post(
            "/bella-vita/rewards/redeem",
            json={"code": coupon["code"], "appointment_id": second["id"]},
            headers=owner_headers,
        )
        assert redeemed.json() == {"success": True, "discount": 150}

        again = client.post(
            "/bella-vita/rewards/redeem",
            json={"code": coupon["code"], "appointment_id": second["id"]},
            headers=owner_headers,
        )
        assert again.status_code == 409

    def test_slot_conflict_is_409(self, client, owner_headers):
        staff = client.post(
            "/bella-vita/staff",
            json={"name": "Isabella", "specialties": ["masajes"]},
            headers=owner_headers,
        ).json()

        assert self._book(client, staff_id=staff["id"]).status_code == 201
        assert self._book(client, staff_id=staff["id"], phone="6641112233").status_code == 409

    def test_unknown_appointment_status_update_is_404(self, client, owner_headers):
        response = client.patch(
            "/bella-vita/appointments/missing/status",
            json={"status": "completed"},
            headers=owner_headers,
        )

        assert response.status_code == 404

    def test_staff_removal_requires_an_action(self, client, owner_headers):
        staff = client.post(
            "/bella-vita/staff",
            json={"name": "Isabella", "specialties": ["masajes"]},
            headers=owner_headers,
        ).json()
        colleague = client.post(
            "/bella-vita/staff",
            json={"name": "Carmen", "specialties": ["masajes"]},
            headers=owner_headers,
        ).json()
        appointment = self._book(client, staff_id=staff["id"]).json()

        refused = client.delete(f"/bella-vita/staff/{staff['id']}", headers=owner_headers)
        assert refused.status_code == 409

        moved = client.delete(
            f"/bella-vita/staff/{staff['id']}",
            params={"action": "reassign", "reassignTo": colleague["id"]},
            headers=owner_headers,
        )
        assert moved.json()["affectedAppointments"] == 1

        listing = client.get(
            "/bella-vita/appointments", params={"staffId": colleague["id"]}, headers=owner_headers
        ).json()
        assert [a["id"] for a in listing] == [appointment["id"]]
        assert [s["id"] for s in client.get("/bella-vita/staff").json()] == [colleague["id"]]


class TestSalonProfile:
    def test_public_profile_and_settings_update(self, client, owner_headers):
        profile = client.get("/bella-vita").json()
        assert profile["tenant"]["slug"] == "bella-vita"
        assert profile["theme"]["id"] == "default"

        updated = client.put("/bella-vita/settings", json={"salon_motto": "Relájate"}, headers=owner_headers)
        assert updated.json()["salonMotto"] == "Relájate"

        rejected = client.put("/bella-vita/settings", json={"email": "nope"}, headers=owner_headers)
        assert rejected.status_code == 400

    def test_theme_activation(self, client, owner_headers):
        theme = client.post("/bella-vita/themes/presets/neutral-professional", headers=owner_headers).json()

        client.post(f"/bella-vita/themes/{theme['id']}/activate", headers=owner_headers)

        assert client.get("/bella-vita/theme").json()["id"] == theme["id"]
        assert client.post("/bella-vita/themes/presets/missing", headers=owner_headers).status_code == 404


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200

    def test_engine_uses_the_service_database_url(self):
        from app.core.database import engine
        from shared import load_service_config

        assert engine.url.render_as_string(hide_password=False) == load_service_config("salon").database.url

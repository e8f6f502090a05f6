"""Integration tests for reservation and agency endpoints."""

from app.auth import AuthenticatedUser, get_current_user
from app.config import Settings
from app.main import install_services
from app.models.rental import UserRole


async def _client_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="user-1", email="client@example.com", role=UserRole.CLIENT)


async def _other_client() -> AuthenticatedUser:
    return AuthenticatedUser(id="user-2", email="other@example.com", role=UserRole.CLIENT)


async def _agency_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="agency-user", email="agency@example.com", role=UserRole.AGENCY)


BOOKING = {"vehicle_id": "veh-1", "start_date": "2025-06-01", "end_date": "2025-06-04"}


def _setup(client, repository, fake_stripe, user=_client_user):
    install_services(client.app, repository, fake_stripe, Settings())
    client.app.dependency_overrides[get_current_user] = user


class TestCreateReservationEndpoint:
    def test_total_computed_server_side(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.post(
            "/api/v1/reservations",
            json={**BOOKING, "total": 1, "days": 99, "price_per_day": "0.01"},
        )

        client.app.dependency_overrides.clear()
        assert response.status_code == 201
        data = response.json()
        assert data["days"] == 3
        assert data["total"] == "450.00"
        assert data["status"] == "pending"
        assert data["user_id"] == "user-1"

    def test_same_day_range_rejected(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.post(
            "/api/v1/reservations", json={**BOOKING, "end_date": "2025-06-01"}
        )

        client.app.dependency_overrides.clear()
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_date_range"

    def test_unknown_vehicle(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.post("/api/v1/reservations", json={**BOOKING, "vehicle_id": "nope"})

        client.app.dependency_overrides.clear()
        assert response.status_code == 404

    def test_agency_cannot_book(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe, user=_agency_user)

        response = client.post("/api/v1/reservations", json=BOOKING)

        client.app.dependency_overrides.clear()
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_malformed_date_is_422(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.post("/api/v1/reservations", json={**BOOKING, "start_date": "soon"})

        client.app.dependency_overrides.clear()
        assert response.status_code == 422


class TestReadReservationEndpoints:
    def test_owner_lists_and_reads(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)
        created = client.post("/api/v1/reservations", json=BOOKING).json()

        listed = client.get("/api/v1/reservations")
        fetched = client.get(f"/api/v1/reservations/{created['id']}")

        client.app.dependency_overrides.clear()
        assert [r["id"] for r in listed.json()] == [created["id"]]
        assert fetched.status_code == 200
        assert fetched.json()["total"] == "450.00"

    def test_other_user_cannot_read(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)
        created = client.post("/api/v1/reservations", json=BOOKING).json()
        client.app.dependency_overrides[get_current_user] = _other_client

        response = client.get(f"/api/v1/reservations/{created['id']}")

        client.app.dependency_overrides.clear()
        assert response.status_code == 403

    def test_agency_sees_fleet_reservations(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)
        created = client.post("/api/v1/reservations", json=BOOKING).json()
        client.app.dependency_overrides[get_current_user] = _agency_user

        response = client.get("/api/v1/agency/reservations")

        client.app.dependency_overrides.clear()
        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == [created["id"]]

    def test_client_listing_includes_vehicle_and_agency(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)
        client.post("/api/v1/reservations", json=BOOKING)

        listed = client.get("/api/v1/reservations").json()

        client.app.dependency_overrides.clear()
        assert listed[0]["vehicle"]["id"] == "veh-1"
        assert listed[0]["vehicle"]["price_per_day"] == "150.00"
        assert listed[0]["vehicle"]["agency"]["id"] == "agency-1"
        assert listed[0]["vehicle"]["agency"]["name"] == "Sunny Rentals"

    def test_agency_listing_includes_vehicle_and_client(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)
        client.post("/api/v1/reservations", json=BOOKING)
        client.app.dependency_overrides[get_current_user] = _agency_user

        listed = client.get("/api/v1/agency/reservations").json()

        client.app.dependency_overrides.clear()
        assert listed[0]["vehicle"]["title"] == "Peugeot 208"
        assert listed[0]["user"]["id"] == "user-1"
        assert listed[0]["user"]["email"] == "client@example.com"
        assert listed[0]["user"]["role"] == "client"

    def test_agency_listing_without_profile(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.get("/api/v1/agency/reservations")

        client.app.dependency_overrides.clear()
        assert response.status_code == 400
        assert response.json()["code"] == "agency_profile_not_found"


class TestAgencyEndpoints:
    def test_vehicle_detail_is_public(self, client, repository, fake_stripe):
        install_services(client.app, repository, fake_stripe, Settings())

        response = client.get("/api/v1/vehicles/veh-1")

        assert response.status_code == 200
        assert response.json()["price_per_day"] == "150.00"

    def test_profile_roundtrip(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe, user=_agency_user)

        response = client.get("/api/v1/agency/profile")

        client.app.dependency_overrides.clear()
        assert response.status_code == 200
        assert response.json()["id"] == "agency-1"

    def test_client_cannot_create_profile(self, client, repository, fake_stripe):
        _setup(client, repository, fake_stripe)

        response = client.post("/api/v1/agency/profile", json={"name": "Nope"})

        client.app.dependency_overrides.clear()
        assert response.status_code == 403


def test_requests_without_auth_service_get_503(client, repository, fake_stripe):
    install_services(client.app, repository, fake_stripe, Settings())
    client.app.state.supabase = None

    response = client.get("/api/v1/reservations", headers={"Authorization": "Bearer token"})

    assert response.status_code == 503


def test_health_echoes_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"

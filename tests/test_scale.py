# tests/test_scale.py
import pytest
import requests

from app.core.exceptions import AlreadyConsumed, InvalidQuantity, NoMatchFound
from app.modules.scale.client import ScaleClient
from app.modules.scale.service import ScaleService

from conftest import at, reading_row


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def scale_service(store, **session_kwargs):
    session = FakeSession(**session_kwargs)
    client = ScaleClient("http://balanza.local:3000/", timeout=1.5, session=session)
    return ScaleService(store, client), session


# ==================== ESTADO DE LA BALANZA ====================

def test_check_scale_reads_weight_with_timeout(store):
    service, session = scale_service(store, response=FakeResponse({"peso": 0.345, "estable": False}))

    status = service.check_scale()

    assert session.requests == [("http://balanza.local:3000/lectura", 1.5)]
    assert status.connected is True
    assert status.weight == 0.345
    assert status.stable is False


@pytest.mark.parametrize("error", [requests.ConnectionError("rechazada"), requests.Timeout("timeout")])
def test_check_scale_unreachable(store, error):
    service, _ = scale_service(store, error=error)

    status = service.check_scale()

    assert status.connected is False
    assert status.url == "http://balanza.local:3000/lectura"


def test_check_scale_http_error(store):
    service, _ = scale_service(store, response=FakeResponse(status_code=503))

    assert service.check_scale().connected is False


def test_check_scale_invalid_payload(store):
    service, _ = scale_service(store, response=FakeResponse(ValueError("no es JSON")))

    assert service.check_scale().connected is False


def test_check_scale_without_weight(store):
    service, _ = scale_service(store, response=FakeResponse({"estado": "ok"}))

    status = service.check_scale()

    assert status.connected is True
    assert status.weight is None


# ==================== LECTURAS ====================

@pytest.mark.anyio
async def test_register_reading_is_unbound_and_unused(store):
    service = ScaleService(store)

    created = await service.register_reading(0.42, at(3))

    assert created.product_id is None
    assert created.consumed is False
    assert store.rows("lecturas_balanza")[0]["peso"] == 0.42


@pytest.mark.anyio
async def test_register_reading_rejects_non_positive_weight(store):
    with pytest.raises(InvalidQuantity):
        await ScaleService(store).register_reading(0)


@pytest.mark.anyio
async def test_list_only_available_readings(store):
    store.seed("lecturas_balanza", [
        reading_row(1, 0, product_id=1),
        reading_row(2, 5, used=True, sale_id=3, product_id=2),
        reading_row(3, 10),
    ])

    listing = await ScaleService(store).list_readings(only_available=True)

    assert [r.id for r in listing.readings] == [3, 1]
    assert listing.total_weight == 1.0
    assert listing.total_value == 2250


@pytest.mark.anyio
async def test_bind_product_errors(store):
    store.seed("lecturas_balanza", [reading_row(1, 0, used=True, sale_id=3), reading_row(2, 1)])
    service = ScaleService(store)

    with pytest.raises(AlreadyConsumed):
        await service.bind_product(1, 1)
    with pytest.raises(NoMatchFound):
        await service.bind_product(99, 1)
    with pytest.raises(NoMatchFound):
        await service.bind_product(2, 99)

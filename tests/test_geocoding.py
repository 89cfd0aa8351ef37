import httpx
import pytest

from weddingplan.adapters.geocoding import nominatim
from weddingplan.adapters.geocoding.nominatim import geocode_address, geocode_addresses


class _FakeClock:
    def __init__(self):
        self.now = 1000.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock(monkeypatch):
    fake = _FakeClock()
    monkeypatch.delenv(nominatim.GEOCODER_STUB_ENABLED_KEY, raising=False)
    monkeypatch.setattr(nominatim, "_clock", fake)
    monkeypatch.setattr(nominatim, "_sleep", fake.sleep)
    monkeypatch.setattr(nominatim, "MIN_REQUEST_INTERVAL", 1.1)
    nominatim.reset_rate_limit()
    yield fake
    nominatim.reset_rate_limit()


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_successful_lookup_sends_expected_query(clock) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"lat": "39.78", "lon": "-89.65", "display_name": "Springfield"}])

    async with _client(handler) as client:
        result = await geocode_address("  12 Oak St, Springfield, IL ", client=client)

    assert result.lat == pytest.approx(39.78)
    assert result.lng == pytest.approx(-89.65)
    assert result.display_name == "Springfield"
    params = seen[0].url.params
    assert params["q"] == "12 Oak St, Springfield, IL"
    assert params["format"] == "json"
    assert params["limit"] == "1"
    assert "User-Agent" in seen[0].headers


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(503, text="busy"),
    httpx.Response(200, json=[]),
    httpx.Response(200, json=[{"display_name": "no coordinates"}]),
    httpx.Response(200, text="<html>"),
])
async def test_failures_return_none(clock, response) -> None:
    async with _client(lambda request: response) as client:
        assert await geocode_address("1 Main St", client=client) is None


@pytest.mark.asyncio
async def test_network_error_returns_none(clock) -> None:
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        assert await geocode_address("1 Main St", client=client) is None


@pytest.mark.asyncio
async def test_blank_address_makes_no_request(clock) -> None:
    calls = []

    async with _client(lambda r: calls.append(r) or httpx.Response(200, json=[])) as client:
        assert await geocode_address("   ", client=client) is None
        assert await geocode_address(None, client=client) is None

    assert calls == []


@pytest.mark.asyncio
async def test_requests_are_spaced_by_minimum_interval(clock) -> None:
    def handler(request):
        clock.now += 0.2  # request latency
        return httpx.Response(200, json=[{"lat": "1", "lon": "2"}])

    async with _client(handler) as client:
        results = await geocode_addresses([("a", "addr 1"), ("b", "addr 2"), ("c", "addr 3")], client=client)

    assert set(results) == {"a", "b", "c"}
    assert clock.sleeps == [pytest.approx(0.9), pytest.approx(0.9)]


@pytest.mark.asyncio
async def test_no_wait_when_interval_already_passed(clock) -> None:
    async with _client(lambda r: httpx.Response(200, json=[{"lat": "1", "lon": "2"}])) as client:
        await geocode_address("first", client=client)
        clock.now += 5
        await geocode_address("second", client=client)

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_batch_leaves_out_failed_lookups(clock) -> None:
    def handler(request):
        if request.url.params["q"] == "nowhere":
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[{"lat": "1", "lon": "2"}])

    async with _client(handler) as client:
        results = await geocode_addresses([("a", "somewhere"), ("b", "nowhere")], client=client)

    assert list(results) == ["a"]


@pytest.mark.asyncio
async def test_stub_mode_is_deterministic_and_offline(monkeypatch) -> None:
    monkeypatch.setenv(nominatim.GEOCODER_STUB_ENABLED_KEY, "1")

    def handler(request):
        raise AssertionError("stub mode must not hit the network")

    async with _client(handler) as client:
        first = await geocode_address("1 Main St", client=client)
        second = await geocode_address("1 Main St", client=client)

    assert first == second
    assert 30.0 <= first.lat <= 45.0
    assert -120.0 <= first.lng <= -75.0


@pytest.mark.asyncio
async def test_any_2xx_response_is_read(clock) -> None:
    async with _client(lambda r: httpx.Response(203, json=[{"lat": "51.5", "lon": "-0.12"}])) as client:
        result = await geocode_address("London", client=client)

    assert result.lat == pytest.approx(51.5)

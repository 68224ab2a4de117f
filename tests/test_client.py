"""
Tests for the async gallery client and its latest-response guard.

Run tests:
    pytest tests/test_client.py -v
"""

import asyncio
import json

import httpx
import pytest

from api.client import BackendError, GalleryClient, RequestSequencer


def _json_transport(handler):
    async def handle(request: httpx.Request) -> httpx.Response:
        return await handler(request)

    return httpx.MockTransport(handle)


class TestRequestSequencer:
    def test_tokens_increase_per_channel(self):
        seq = RequestSequencer()
        assert seq.issue("dbscan") == 1
        assert seq.issue("dbscan") == 2
        assert seq.issue("forest") == 1
        assert seq.is_latest("dbscan", 2)
        assert not seq.is_latest("dbscan", 1)
        assert seq.current("unknown") == 0


class TestGalleryClient:
    def test_request_shape(self):
        seen = {}

        async def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"labels": [0, -1]})

        async def run():
            async with GalleryClient("http://backend/api", transport=_json_transport(handler)) as client:
                return await client.dbscan([(0.0, 0.0), {"x": 1, "y": 1}], 0.2, 5)

        assert asyncio.run(run()) == [0, -1]
        assert seen["url"] == "http://backend/api/dbscan"
        assert seen["body"] == {
            "points": [{"x": 0.0, "y": 0.0}, {"x": 1.0, "y": 1.0}],
            "epsilon": 0.2,
            "minPoints": 5,
        }

    def test_error_status_raises_backend_error(self):
        async def handler(request):
            return httpx.Response(400, json={"detail": "Unsupported dataset: titanic"})

        async def run():
            async with GalleryClient("http://backend/api", transport=_json_transport(handler)) as client:
                await client.build_tree("titanic", max_depth=3)

        with pytest.raises(BackendError) as excinfo:
            asyncio.run(run())
        assert excinfo.value.status_code == 400
        assert excinfo.value.detail == "Unsupported dataset: titanic"

    def test_transport_error_raises_backend_error(self):
        async def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def run():
            async with GalleryClient("http://backend/api", transport=_json_transport(handler)) as client:
                await client.logistic_regression_data()

        with pytest.raises(BackendError) as excinfo:
            asyncio.run(run())
        assert excinfo.value.status_code is None


class TestLatestResponseGuard:
    def test_stale_response_is_dropped(self):
        async def handler(request):
            body = json.loads(request.content)
            # The first request is slow, so it finishes after the second
            if body["minPoints"] == 1:
                await asyncio.sleep(0.2)
            return httpx.Response(200, json={"labels": [body["minPoints"]]})

        async def run():
            async with GalleryClient("http://backend/api", transport=_json_transport(handler)) as client:
                slow = asyncio.create_task(client.latest("dbscan", client.dbscan([(0, 0)], 0.2, 1)))
                await asyncio.sleep(0.01)
                fast = await client.latest("dbscan", client.dbscan([(0, 0)], 0.2, 2))
                return await slow, fast

        stale, latest = asyncio.run(run())
        assert stale is None
        assert latest == [2]

    def test_pending_request_cancelled_when_superseded(self):
        async def run():
            client = GalleryClient("http://backend/api", transport=_json_transport(None))
            release = asyncio.Event()

            async def first():
                await release.wait()
                return "first"

            async def second():
                return "second"

            task = asyncio.create_task(client.latest("channel", first()))
            await asyncio.sleep(0)
            result = await client.latest("channel", second())
            release.set()
            stale = await task
            await client.aclose()
            return stale, result

        assert asyncio.run(run()) == (None, "second")

    def test_errors_of_superseded_requests_are_dropped(self):
        async def run():
            client = GalleryClient("http://backend/api", transport=_json_transport(None))

            async def failing():
                await asyncio.sleep(0.05)
                raise BackendError(500, "boom")

            task = asyncio.create_task(client.latest("channel", failing()))
            await asyncio.sleep(0)
            client.sequencer.issue("channel")
            stale = await task
            await client.aclose()
            return stale

        assert asyncio.run(run()) is None

    def test_channels_are_independent(self):
        async def run():
            client = GalleryClient("http://backend/api", transport=_json_transport(None))

            async def value(v):
                await asyncio.sleep(0.01)
                return v

            results = await asyncio.gather(
                client.latest("a", value(1)),
                client.latest("b", value(2)),
            )
            await client.aclose()
            return results

        assert asyncio.run(run()) == [1, 2]


class TestAgainstApp:
    def test_round_trip_through_asgi(self):
        from main import app

        async def run():
            transport = httpx.ASGITransport(app=app)
            async with GalleryClient("http://gallery/api", transport=transport) as client:
                labels = await client.dbscan([(0, 0), (0.01, 0), (0, 0.01), (5, 5)], 0.1, 3)
                health = await client.health()
                with pytest.raises(BackendError) as excinfo:
                    await client.predict_forest("iris", [1.0])
                return labels, health, excinfo.value.status_code

        labels, health, status = asyncio.run(run())
        assert labels == [0, 0, 0, -1]
        assert health["status"] == "healthy"
        assert status == 400

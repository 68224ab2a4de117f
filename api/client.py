"""
Async HTTP client for the gallery backend.

Pages fire a new request on every slider move, so responses can arrive out
of order. ``GalleryClient.latest`` tags each request with a per-channel
token, cancels the request it supersedes and drops any response that is no
longer the latest for its channel.

Usage:
    async with GalleryClient("http://127.0.0.1:8000/api") as client:
        labels = await client.latest("dbscan", client.dbscan(points, 0.2, 5))
        if labels is not None:
            ...
"""

import asyncio
import threading
from typing import Any, Awaitable, Dict, Iterable, List, Optional, Sequence, Union

import httpx

from .app_config import settings
from .shared.logger import get_logger

logger = get_logger(__name__)

PointLike = Union[Sequence[float], Dict[str, float]]


class BackendError(Exception):
    """A failed backend call.

    ``status_code`` is None when the request never got a response.
    """

    def __init__(self, status_code: Optional[int], detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}" if status_code is not None else str(detail))


class RequestSequencer:
    """Monotonically increasing request tokens, one counter per channel."""

    def __init__(self):
        self._tokens: Dict[str, int] = {}
        self._lock = threading.Lock()

    def issue(self, channel: str) -> int:
        with self._lock:
            token = self._tokens.get(channel, 0) + 1
            self._tokens[channel] = token
            return token

    def current(self, channel: str) -> int:
        with self._lock:
            return self._tokens.get(channel, 0)

    def is_latest(self, channel: str, token: int) -> bool:
        return token == self.current(channel)


def _points(points: Iterable[PointLike]) -> List[Dict[str, float]]:
    out = []
    for p in points:
        if isinstance(p, dict):
            out.append({"x": float(p["x"]), "y": float(p["y"])})
        else:
            out.append({"x": float(p[0]), "y": float(p[1])})
    return out


class GalleryClient:
    """One method per backend route, plus the latest-response guard."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.base_api_url).rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)
        self.sequencer = RequestSequencer()
        self._inflight: Dict[str, asyncio.Future] = {}

    async def __aenter__(self) -> "GalleryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for task in self._inflight.values():
            task.cancel()
        self._inflight.clear()
        await self._client.aclose()

    # ============= Request plumbing =============

    async def request(self, method: str, path: str, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise BackendError(None, f"{type(e).__name__}: {e}") from e

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise BackendError(response.status_code, detail)
        return response.json()

    async def latest(self, channel: str, request: Awaitable[Any]) -> Optional[Any]:
        """Run ``request`` as the newest request on ``channel``.

        The previous in-flight request on the channel is cancelled. Returns
        None when this request is superseded before it completes, including
        when it failed after being superseded.
        """
        token = self.sequencer.issue(channel)
        previous = self._inflight.get(channel)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.ensure_future(request)
        self._inflight[channel] = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self.sequencer.is_latest(channel, token):
                raise
            logger.debug("Dropped cancelled %s request %d", channel, token)
            return None
        except BackendError:
            if self.sequencer.is_latest(channel, token):
                raise
            return None
        finally:
            if self._inflight.get(channel) is task:
                del self._inflight[channel]

        if not self.sequencer.is_latest(channel, token):
            logger.debug("Dropped stale %s response %d", channel, token)
            return None
        return result

    # ============= System =============

    async def health(self) -> Dict[str, Any]:
        return await self.request("GET", "/health")

    # ============= Clustering =============

    async def dbscan(self, points: Iterable[PointLike], epsilon: float, min_points: int) -> List[int]:
        data = await self.request(
            "POST", "/dbscan", json={"points": _points(points), "epsilon": epsilon, "minPoints": min_points}
        )
        return data["labels"]

    async def dbscan_sample(self, num_clusters: int, seed: Optional[int] = None, **options) -> Dict[str, Any]:
        return await self.request("POST", "/dbscan/sample", json={"numClusters": num_clusters, "seed": seed, **options})

    async def dbscan_overlay(self, points: Iterable[PointLike], labels: Sequence[int], **options) -> Dict[str, Any]:
        return await self.request(
            "POST", "/dbscan/overlay", json={"points": _points(points), "labels": list(labels), **options}
        )

    async def kmeans(self, points: Iterable[PointLike], clusters: int) -> Dict[str, Any]:
        return await self.request("POST", "/kmeans", json={"points": _points(points), "clusters": clusters})

    async def kmeans_simulate(self, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None, **options) -> Dict[str, Any]:
        return await self.request("POST", "/kmeans/simulate", json={"params": params or {}, "seed": seed, **options})

    async def kmeans_render(self, points: Iterable[PointLike], centroids: Iterable[PointLike], **options) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/kmeans/render",
            json={"points": _points(points), "centroids": _points(centroids), **options},
        )

    # ============= SOM =============

    async def som_simulate(self, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None) -> Dict[str, Any]:
        return await self.request("POST", "/som/simulate", json={"params": params or {}, "seed": seed})

    async def som_train(self, data: Sequence[Sequence[float]], grid_size_x: int, grid_size_y: int, **options) -> Dict[str, Any]:
        body = {
            "data": [list(map(float, row)) for row in data],
            "grid_size_x": grid_size_x,
            "grid_size_y": grid_size_y,
            "learning_rate": options.pop("learning_rate", 0.1),
            "iterations": options.pop("iterations", 100),
            "sigma": options.pop("sigma", 1.0),
            **options,
        }
        return await self.request("POST", "/som_train", json=body)

    # ============= Classifiers =============

    async def knn(self, X: Sequence[Sequence[float]], y: Sequence[int]) -> List[int]:
        data = await self.request("POST", "/knn", json={"X": X, "y": list(y)})
        return data["predictions"]

    async def knn_sample(self, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None) -> Dict[str, Any]:
        return await self.request("POST", "/knn/sample", json={"params": params or {}, "seed": seed})

    async def knn_classify(self, points: Sequence[Dict[str, Any]], query: Sequence[float], k: int, **options) -> Dict[str, Any]:
        return await self.request(
            "POST", "/knn/classify", json={"points": list(points), "query": list(query), "k": k, **options}
        )

    async def svm(self, X: Sequence[Sequence[float]], y: Sequence[int]) -> List[int]:
        data = await self.request("POST", "/svm", json={"X": X, "y": list(y)})
        return data["predictions"]

    async def svm_sample(self, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None, **options) -> Dict[str, Any]:
        return await self.request("POST", "/svm/sample", json={"params": params or {}, "seed": seed, **options})

    async def svm_decision(self, X: Sequence[Sequence[float]], y: Sequence[int], params: Optional[Dict[str, Any]] = None, **options) -> Dict[str, Any]:
        return await self.request(
            "POST", "/svm/decision", json={"X": X, "y": list(y), "params": params or {}, **options}
        )

    # ============= Trees =============

    async def build_tree(self, dataset: str, **params) -> Dict[str, Any]:
        return await self.request("POST", "/build_tree", json={"dataset": dataset, "params": params})

    async def decision_tree(self, dataset: str, **params) -> Dict[str, Any]:
        return await self.request("POST", "/decision-tree", json={"dataset": dataset, **params})

    async def build_forest(self, dataset: str, **params) -> Dict[str, Any]:
        return await self.request("POST", "/build_forest", json={"dataset": dataset, "params": params})

    async def predict_forest(self, dataset: str, record: Sequence[float], **params) -> Dict[str, Any]:
        return await self.request(
            "POST", "/predict_forest", json={"dataset": dataset, "params": params, "record": list(record)}
        )

    # ============= Regression =============

    async def logistic_regression_data(self) -> Dict[str, Any]:
        return await self.request("GET", "/logistic-regression/data")

    async def logistic_regression_history(self, X, y, learning_rate: float, iterations: int) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/logistic-regression/train-history",
            json={"X": X, "y": list(y), "learning_rate": learning_rate, "iterations": iterations},
        )

    async def linear_regression(self, X, y) -> Dict[str, Any]:
        return await self.request("POST", "/linear-regression", json={"X": X, "y": list(y)})

    async def linear_regression_history(self, X, y, iterations: int, learning_rate: float = 0.01) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/linear-regression-history",
            json={"X": X, "y": list(y), "iterations": iterations, "learning_rate": learning_rate},
        )

    # ============= Neural network =============

    async def initialize(self, config: Dict[str, Any], seed: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self.request("POST", "/initialize", json={"config": config, "seed": seed})

    async def train(self, config: Dict[str, Any], network, inputs, targets) -> Dict[str, Any]:
        return await self.request(
            "POST", "/train", json={"config": config, "network": network, "input": inputs, "target": targets}
        )

    async def predict(self, config: Dict[str, Any], network, x: Sequence[float]) -> Dict[str, Any]:
        return await self.request(
            "POST", "/predict", json={"config": config, "network": network, "input": list(x)}
        )

    # ============= Sessions =============

    async def create_session(self, kind: str, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None) -> Dict[str, Any]:
        return await self.request("POST", "/sessions", json={"kind": kind, "params": params or {}, "seed": seed})

    async def list_sessions(self, kind: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("GET", "/sessions", params={"kind": kind} if kind else None)

    async def get_session(self, session_id: str, scene: bool = False) -> Dict[str, Any]:
        return await self.request("GET", f"/sessions/{session_id}", params={"scene": str(scene).lower()})

    async def step_session(self, session_id: str, count: int = 1) -> Dict[str, Any]:
        return await self.request("POST", f"/sessions/{session_id}/step", json={"count": count})

    async def reset_session(self, session_id: str, params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None) -> Dict[str, Any]:
        return await self.request("POST", f"/sessions/{session_id}/reset", json={"params": params, "seed": seed})

    async def play_session(self, session_id: str) -> Dict[str, Any]:
        return await self.request("POST", f"/sessions/{session_id}/play")

    async def pause_session(self, session_id: str) -> Dict[str, Any]:
        return await self.request("POST", f"/sessions/{session_id}/pause")

    async def delete_session(self, session_id: str) -> Dict[str, Any]:
        return await self.request("DELETE", f"/sessions/{session_id}")

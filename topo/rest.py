"""REST client for the cluster management endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from topo.snapshot import ProductVersion

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 0
STATUS_FAILED = 1
STATUS_AUTH_FAILED = 2
STATUS_SECURITY_CHECK_FAILED = 3

# Clusters older than this have no activation state and are always active
ACTIVATION_SINCE = ProductVersion(2, 0, 0)


class RestError(ValueError):
    """Raised when the REST endpoint returns something we cannot use."""


@dataclass
class RestResult:
    """Decoded response envelope of a REST command."""
    status: int
    error: Optional[str] = None
    data: Optional[str] = None  # JSON text of the "response" member

    @property
    def success(self) -> bool:
        return self.status == STATUS_SUCCESS

    @classmethod
    def from_json(cls, body: Dict[str, Any]) -> "RestResult":
        if not isinstance(body, dict) or "successStatus" not in body:
            raise RestError(f"Unexpected REST response: {body!r}")

        status = int(body["successStatus"])
        response = body.get("response")

        return cls(
            status=status,
            error=body.get("error"),
            data=json.dumps(response) if status == STATUS_SUCCESS else None,
        )

    @classmethod
    def fail(cls, status: int, error: str) -> "RestResult":
        return cls(status=status, error=error)


class RestExecutor:
    """
    Executes REST commands against one cluster node.

    Connection-level failures are raised as ``ConnectionRefusedError`` so
    callers can tell an unreachable cluster apart from other errors.
    """

    def __init__(
        self,
        node_uri: str,
        timeout_s: float = 10.0,
        login: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.node_uri = node_uri.rstrip('/')
        self.timeout_s = timeout_s
        self.login = login
        self.password = password
        self._owns_session = session is None
        self.session = session or requests.Session()

        logger.info(f"RestExecutor initialized for node URI: {self.node_uri}")

    def _execute(self, params: Dict[str, Any]) -> RestResult:
        params = dict(params)
        if self.login:
            params["ignite.login"] = self.login
            params["ignite.password"] = self.password or ""

        url = f"{self.node_uri}/ignite"

        try:
            resp = self.session.get(url, params=params, timeout=self.timeout_s)
        except requests.exceptions.ConnectionError as e:
            raise ConnectionRefusedError(f"Failed to connect to cluster [uri={self.node_uri}]") from e

        if resp.status_code == 401:
            return RestResult.fail(STATUS_AUTH_FAILED, "Failed to authenticate in cluster. "
                                   "Please check agent's login and password or node port.")

        if resp.status_code == 404:
            return RestResult.fail(STATUS_FAILED, "Failed connect to cluster. "
                                   "Please ensure that nodes have [ignite-rest-http] module in classpath.")

        if not resp.ok:
            raise RestError(f"Unexpected HTTP status {resp.status_code} from {url}")

        try:
            body = resp.json()
        except ValueError as e:
            raise RestError(f"Malformed REST response from {url}: {e}") from e

        return RestResult.from_json(body)

    def topology(self, full: bool = False, verbose: bool = False) -> RestResult:
        """
        Request cluster topology.

        Args:
            full: Include cache details for every node
            verbose: Include node metrics
        """
        return self._execute({
            "cmd": "top",
            "attr": "true",
            "mtr": str(verbose).lower(),
            "caches": str(full).lower(),
        })

    def active(self, version: Optional[ProductVersion], node_id: Optional[str]) -> bool:
        """
        Query cluster activation state.

        Raises:
            RestError: if the cluster reports a failure
        """
        if version is not None and version < ACTIVATION_SINCE:
            return True

        params: Dict[str, Any] = {"cmd": "currentState"}
        if node_id:
            params["destId"] = node_id

        res = self._execute(params)

        if not res.success:
            raise RestError(f"Failed to get cluster activation state: {res.error}")

        return bool(json.loads(res.data)) if res.data else False

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

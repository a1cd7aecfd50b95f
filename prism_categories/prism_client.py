import logging
import ssl
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
import urllib3
from requests.adapters import HTTPAdapter

from .exceptions import ApiError, TransportError
from .logging_config import DATA
from .models import CategoryValue, Credential, PageRequest, PageResponse

logger = logging.getLogger(__name__)

# disable insecure HTTPS warnings (self-signed certs)
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

HTTP_METHODS = {"GET", "POST", "PUT", "DELETE"}
DEFAULT_PAGE_SIZE = 100


class TLS12Adapter(HTTPAdapter):
    """Transport adapter that pins the TLS protocol to version 1.2."""

    def __init__(self, verify_ssl: bool = False, **kwargs):
        self.verify_ssl = verify_ssl
        super().__init__(**kwargs)

    def _ssl_context(self) -> ssl.SSLContext:
        ctx = ssl.create_default_context()
        if not self.verify_ssl:
            ctx.check_hostname = False
            ctx.verify_mode = ssl.CERT_NONE
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        ctx.maximum_version = ssl.TLSVersion.TLSv1_2
        return ctx

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context()
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context()
        return super().proxy_manager_for(*args, **kwargs)


def _api_error_from_body(body: Any, payload: Optional[Any]) -> Optional[ApiError]:
    """Return an ApiError if ``body`` is a Prism error document, else None."""
    if not isinstance(body, dict) or "code" not in body:
        return None
    messages = body.get("message_list")
    if not isinstance(messages, list):
        return None

    details: List[str] = []
    for m in messages:
        if not isinstance(m, dict) or "details" not in m:
            continue
        d = m.get("details")
        if isinstance(d, dict):
            details.extend(f"{k}: {v}" for k, v in d.items())
        elif d is not None:
            details.append(str(d))
    if not details:
        return None
    return ApiError(body.get("code"), "; ".join(details), payload=payload)


class PrismClient:
    """Thin wrapper around the Prism Central v3 REST API."""

    def __init__(
        self,
        host: str,
        credential: Credential,
        port: int = 9440,
        verify_ssl: bool = False,
        timeout: int = 60,
        page_size: int = DEFAULT_PAGE_SIZE,
        task_poll_interval: float = 2.0,
        task_poll_attempts: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.host = host
        self.base_url = f"https://{host}:{port}/api/nutanix/v3"
        self.verify_ssl = verify_ssl
        self.default_timeout = timeout
        self.page_size = page_size
        self.task_poll_interval = task_poll_interval
        self.task_poll_attempts = task_poll_attempts

        if session is None:
            session = requests.Session()
            session.mount("https://", TLS12Adapter(verify_ssl=verify_ssl))
        self.session = session
        self.session.auth = credential.as_auth()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        self.logger = logging.getLogger(f"{__name__}.{host}")

    @classmethod
    def from_settings(cls, prism, session: Optional[requests.Session] = None) -> "PrismClient":
        return cls(
            host=prism.host,
            credential=prism.credential,
            port=prism.port,
            verify_ssl=prism.verify_ssl,
            timeout=prism.timeout,
            page_size=prism.page_size,
            task_poll_interval=prism.task_poll_interval,
            task_poll_attempts=prism.task_poll_attempts,
            session=session,
        )

    def execute(
        self,
        method: str,
        resource: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        quiet: bool = False,
    ) -> Dict[str, Any]:
        """
        Issue a single request against ``{base_url}/{resource}``.

        Returns the decoded JSON body. Raises ApiError when the body carries
        ``code`` + ``message_list[].details``, TransportError for any other
        failure. Nothing is retried.
        """
        method = (method or "").upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method!r}")

        url = f"{self.base_url}/{resource.lstrip('/')}"
        log_level = logging.DEBUG if quiet else logging.INFO
        self.logger.log(log_level, "%s %s", method, url)

        try:
            resp = self.session.request(
                method,
                url,
                json=payload,
                verify=self.verify_ssl,
                timeout=self.default_timeout,
            )
        except requests.exceptions.RequestException as exc:
            self.logger.error("%s %s failed: %s", method, url, exc)
            raise TransportError(str(exc), payload=payload) from exc

        body: Any = None
        if resp.content:
            try:
                body = resp.json()
            except ValueError as exc:
                if resp.ok:
                    raise TransportError(
                        f"Invalid JSON in response from {url}: {exc}", payload=payload
                    ) from exc

        api_error = _api_error_from_body(body, payload)
        if api_error is not None:
            self.logger.error("%s %s returned %s", method, url, api_error)
            raise api_error

        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            self.logger.error("%s %s failed: %s", method, url, exc)
            raise TransportError(str(exc), payload=payload) from exc

        if body is not None and not isinstance(body, dict):
            raise TransportError(
                f"Expected a JSON object from {url}, got {type(body).__name__}", payload=payload
            )

        self.logger.log(log_level, "%s %s -> %s", method, url, resp.status_code)
        return body if body is not None else {}

    def list_all(
        self,
        resource: str,
        kind: str,
        page_size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every entity of ``kind`` through ``POST {resource}/list``.

        The offset advances by the number of entities actually returned, so
        short pages are followed by another request. With total_matches == 0
        exactly one request is made.
        """
        page_size = self.page_size if page_size is None else page_size
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        entities: List[Dict[str, Any]] = []
        offset = 0
        total = 0
        first = True

        while True:
            page_req = PageRequest(kind=kind, offset=offset, length=page_size)
            payload = page_req.to_payload()
            self.logger.debug("  Fetching batch: kind=%s offset=%s length=%s", kind, offset, page_size)
            try:
                data = self.execute("POST", f"{resource}/list", payload)
            except (ApiError, TransportError) as exc:
                self.logger.error("Listing %s failed at payload %s: %s", kind, payload, exc)
                raise

            page = PageResponse.from_json(data)
            if first:
                total = page.total_matches
                first = False

            entities.extend(page.entities)
            offset += len(page.entities)

            if offset >= total:
                break
            if not page.entities:
                self.logger.warning(
                    "Empty page for %s at offset %s before reaching total_matches=%s; stopping.",
                    kind,
                    offset,
                    total,
                )
                break

        if len(entities) != total:
            self.logger.warning(
                "Fetched %s %s entities but server reported total_matches=%s "
                "(collection changed during listing?)",
                len(entities),
                kind,
                total,
            )

        self.logger.info("Fetched %s %s entities", len(entities), kind)
        return entities

    def wait_for_task(self, task_uuid: str) -> Dict[str, Any]:
        """Poll ``tasks/{uuid}`` until it SUCCEEDED; raise on FAILED/ABORTED."""
        for attempt in range(self.task_poll_attempts):
            task = self.execute("GET", f"tasks/{task_uuid}", quiet=True)
            status = str(task.get("status") or "").upper()
            if status == "SUCCEEDED":
                self.logger.debug("Task %s succeeded", task_uuid)
                return task
            if status in {"FAILED", "ABORTED"}:
                raise ApiError(
                    task.get("error_code") or status,
                    str(task.get("error_detail") or f"task {task_uuid} {status.lower()}"),
                )
            self.logger.debug(
                "Task %s is %s (attempt %s/%s)",
                task_uuid,
                status or "UNKNOWN",
                attempt + 1,
                self.task_poll_attempts,
            )
            if attempt < self.task_poll_attempts - 1:
                time.sleep(self.task_poll_interval)

        raise TransportError(
            f"Task {task_uuid} did not finish after {self.task_poll_attempts} polls"
        )

    def _wait_if_task(self, response: Dict[str, Any]) -> Dict[str, Any]:
        status = response.get("status")
        ctx = status.get("execution_context") if isinstance(status, dict) else None
        task_uuid = ctx.get("task_uuid") if isinstance(ctx, dict) else None
        if isinstance(task_uuid, str) and task_uuid:
            self.wait_for_task(task_uuid)
        return response

    # Categories

    def upsert_category_key(self, key: str) -> Dict[str, Any]:
        self.logger.log(DATA, "Upserting category key %s", key)
        return self.execute("PUT", f"categories/{quote(key, safe='')}", {"name": key})

    def upsert_category_value(self, value: CategoryValue) -> Dict[str, Any]:
        self.logger.log(DATA, "Upserting category value %s:%s", value.key, value.value)
        return self.execute(
            "PUT",
            f"categories/{quote(value.key, safe='')}/{quote(value.value, safe='')}",
            {"value": value.value, "description": value.description},
        )

    # Network security rules

    def create_security_rule(self, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.execute("POST", "network_security_rules", body)
        return self._wait_if_task(resp)

    def update_security_rule(self, uuid: str, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = self.execute("PUT", f"network_security_rules/{uuid}", body)
        return self._wait_if_task(resp)

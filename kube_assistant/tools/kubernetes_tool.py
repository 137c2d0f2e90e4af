"""
kube_assistant/tools/kubernetes_tool.py

Built-in `kubernetes_api_request` tool.

Read requests (GET) run immediately against the configured API server. Write
requests are never executed by the model's call: they come back as
`pending_confirmation` and are applied later through `apply_confirmed_request`
once the user confirms them in the UI.
"""

import json
from typing import Any

import requests

from kube_assistant.data_models.tools import KubernetesToolContext, ToolResult
from kube_assistant.tools.abstract_tool import AbstractTool
from kube_assistant.utils.exceptions import ToolExecutionError
from kube_assistant.utils.logger import get_logger

logger = get_logger(name=__name__)


KUBERNETES_API_TOOL_NAME = "kubernetes_api_request"

_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

_DESCRIPTION = """Make requests to the Kubernetes API server to fetch, create, update or delete resources.

RESOURCE UPDATE GUIDELINES:
- For UPDATE/MODIFY/CHANGE operations: use PUT with ONLY the fields to change
- PUT bodies are patches merged into the current resource before sending
- Use null values to remove fields (e.g. {"spec": {"livenessProbe": null}})
- Write requests (POST, PUT, PATCH, DELETE) are confirmed by the user before they run

LOG HANDLING FOR MULTI-CONTAINER PODS:
- Before fetching logs, check the pod spec for the number of containers
- With one container, fetch /api/v1/namespaces/<ns>/pods/<pod>/log directly
- With several containers, ask the user which one and pass ?container=<name>"""


def merge_patch(target: Any, patch: Any) -> Any:
    """
    Apply a JSON merge patch (RFC 7386) to `target`.

    Objects are merged recursively, `None` values remove keys, anything else replaces.
    """
    if not isinstance(patch, dict):
        return patch
    result = dict(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def _parse_body(body: str | dict[str, Any] | None) -> dict[str, Any] | None:
    if body is None or body == "":
        return None
    if isinstance(body, dict):
        return body
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as e:
        raise ToolExecutionError(f"Request body is not valid JSON: {e}", tool_name=KUBERNETES_API_TOOL_NAME)
    if not isinstance(parsed, dict):
        raise ToolExecutionError("Request body must be a JSON object", tool_name=KUBERNETES_API_TOOL_NAME)
    return parsed


class KubernetesApiTool(AbstractTool):
    """Requests against the Kubernetes REST API."""

    name = KUBERNETES_API_TOOL_NAME
    description = _DESCRIPTION
    parameters = {
        "type": "object",
        "properties": {
            "url": {
                "type": "string",
                "description": "URL to request, e.g. /api/v1/pods or /api/v1/namespaces/default/pods/pod-name",
            },
            "method": {
                "type": "string",
                "description": "HTTP method: GET, POST, PUT, DELETE. Use PUT to update specific fields.",
            },
            "body": {
                "type": "string",
                "description": (
                    "Optional JSON request body. For PUT, only the fields to change; "
                    "for POST, the complete resource definition."
                ),
            },
        },
        "required": ["url", "method"],
    }

    # Private methods ______________________________________________________________________________________________________

    @staticmethod
    def _resolve_url(url: str, context: KubernetesToolContext) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if not context.api_server:
            raise ToolExecutionError(
                "Kubernetes tool context has no API server configured",
                tool_name=KUBERNETES_API_TOOL_NAME,
            )
        return f"{context.api_server.rstrip('/')}/{url.lstrip('/')}"

    @staticmethod
    def _require_context(context: KubernetesToolContext | None) -> KubernetesToolContext:
        if context is None:
            raise ToolExecutionError("Kubernetes tool context not configured", tool_name=KUBERNETES_API_TOOL_NAME)
        return context

    def _send(
        self,
        method: str,
        url: str,
        context: KubernetesToolContext,
        body: dict[str, Any] | None = None,
    ) -> requests.Response:
        headers = {"Accept": "application/json"}
        if context.token:
            headers["Authorization"] = f"Bearer {context.token}"
        full_url = self._resolve_url(url, context)

        logger.info("Kubernetes API %s %s", method, url)
        try:
            return requests.request(
                method,
                full_url,
                headers=headers,
                json=body,
                verify=context.verify_ssl,
                timeout=context.timeout,
            )
        except requests.RequestException as e:
            logger.error("Kubernetes API %s %s failed: %s", method, url, e)
            raise ToolExecutionError(f"Error executing {method} request: {e}", tool_name=self.name) from e

    @staticmethod
    def _to_result(response: requests.Response, method: str, url: str) -> ToolResult:
        metadata = {"method": method, "url": url, "status_code": response.status_code}
        if response.ok:
            return ToolResult(content=response.text, metadata=metadata)

        # Kubernetes answers errors with a Status object; keep it so the model can explain it
        logger.warning("Kubernetes API %s %s returned %d", method, url, response.status_code)
        try:
            status = response.json()
        except ValueError:
            status = None
        message = status.get("message") if isinstance(status, dict) else None
        error_message = message or f"HTTP {response.status_code}: {response.reason}"
        return ToolResult(
            content=json.dumps({
                "error": True,
                "message": error_message,
                "status_code": response.status_code,
                "request": {"method": method, "url": url},
            }),
            is_error=True,
            error_message=error_message,
            metadata=metadata,
        )

    # Public methods _______________________________________________________________________________________________________

    def execute(
        self,
        arguments: dict[str, Any],
        call_id: str,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        context = self._require_context(context)
        url = arguments["url"]
        method = str(arguments["method"]).upper()
        body = arguments.get("body")

        if method == "GET":
            response = self._send(method, url, context)
            return self._to_result(response, method, url)

        if method not in _WRITE_METHODS:
            raise ToolExecutionError(f"Unsupported HTTP method: {method}", tool_name=self.name)

        logger.info("Deferring %s %s (call %s) until the user confirms it", method, url, call_id)
        content = json.dumps({
            "status": "pending_confirmation",
            "message": f"This {method} request requires confirmation before proceeding.",
            "request": {"method": method, "url": url, "body": body or None},
        })
        return ToolResult(
            content=content,
            should_add_to_history=False,
            should_process_follow_up=False,
            metadata={"requires_confirmation": True, "method": method, "url": url, "body": body},
        )

    def apply_confirmed_request(
        self,
        method: str,
        url: str,
        body: str | dict[str, Any] | None,
        context: KubernetesToolContext | None,
    ) -> ToolResult:
        """
        Run a write request the user confirmed.

        PUT bodies are merge patches: the current resource is fetched and patched
        before the full object is sent back.

        Args:
            method: HTTP method of the deferred request.
            url: API path or absolute URL.
            body: JSON body (string or object).
            context: Cluster context to run against.

        Returns:
            The normalized result, ready for `record_deferred_tool_response`.
        """
        context = self._require_context(context)
        method = method.upper()
        payload = _parse_body(body)

        if method == "PUT" and payload is not None:
            current = self._send("GET", url, context)
            if not current.ok:
                return self._to_result(current, "GET", url)
            try:
                current_resource = current.json()
            except ValueError as e:
                raise ToolExecutionError(f"Current resource at {url} is not JSON", tool_name=self.name) from e
            payload = merge_patch(current_resource, payload)

        response = self._send(method, url, context, body=payload)
        return self._to_result(response, method, url)

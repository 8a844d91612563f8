#!/usr/bin/env python3

import json
import logging
import os
import requests
import sys

from typing import Any
from typing import NamedTuple
from urllib.parse import quote
from urllib.parse import unquote
from urllib.parse import urlencode

GAS_BASE_URL = os.environ.get("GAS_BASE_URL")
GAS_TIMEOUT = float(os.environ["GAS_TIMEOUT"]) if os.environ.get("GAS_TIMEOUT") else None

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Same unescaped characters as JavaScript's encodeURIComponent.
URI_SAFE = "!~*'()"

logger = logging.getLogger(__name__)

class Json(NamedTuple):
    value: Any

class Text(NamedTuple):
    value: str

class Response(NamedTuple):
    status: int
    body: Any = None

def error(status, message, code):
    return Response(status, Json({
        "success": False,
        "error": {"message": message, "code": code},
    }))

def path_segments(pathname, prefix="/api", decode=True):
    """Return path segments of `pathname` following the mount `prefix`."""
    if pathname == prefix or pathname.startswith(f"{prefix}/"):
        pathname = pathname[len(prefix):]
    segments = [x for x in pathname.split("/") if x]
    return [unquote(x) for x in segments] if decode else segments

def gas_path(segments):
    if segments is None:
        return ""
    if isinstance(segments, str):
        segments = segments.split("/")
    return "/".join(x for x in segments if x)

def forward_params(params):
    """Return query parameters as pairs, minus any named "path"."""
    items = params.items() if hasattr(params, "items") else params or []
    pairs = []
    for key, value in items:
        if key == "path": continue
        values = value if isinstance(value, (list, tuple)) else [value]
        pairs.extend((key, x) for x in values)
    return pairs

def build_url(base, segments, params):
    url = f"{base}?path={quote(gas_path(segments), safe=URI_SAFE)}"
    if query := urlencode(forward_params(params)):
        url = f"{url}&{query}"
    return url

def reject_constant(name):
    raise ValueError(f"Invalid JSON constant {name}")

def parse_body(text):
    try:
        return Json(json.loads(text, parse_constant=reject_constant))
    except (ValueError, RecursionError):
        return Text(text)

def fetch(url, timeout=None):
    response = requests.get(url,
                            headers={"Content-Type": "application/json"},
                            timeout=timeout)

    logger.debug("GAS responded %d: %s", response.status_code, response.text)
    return response.status_code, parse_body(response.text)

def handle(method, segments, params, base_url, timeout=None):
    method = method.upper()
    if method == "OPTIONS":
        return Response(200)
    if method != "GET":
        return error(405, "Method not allowed", "METHOD_NOT_ALLOWED")
    if not base_url:
        return error(500, "GAS_BASE_URL is not configured", "MISSING_GAS_BASE_URL")
    logger.info("GAS path: %s", gas_path(segments))
    try:
        url = build_url(base_url, segments, params)
        logger.info("GAS URL: %s", url)
        status, body = fetch(url, timeout)
    except Exception as e:
        logger.error("Proxy error: %s", e)
        return error(500, str(e) or "Proxy request failed", "PROXY_ERROR")
    return Response(status, body)

def render(response):
    """Return headers and body text to send for `response`."""
    headers = dict(CORS_HEADERS)
    if isinstance(response.body, Json):
        headers["Content-Type"] = "application/json"
        return headers, json.dumps(response.body.value)
    if isinstance(response.body, Text):
        headers["Content-Type"] = "text/plain; charset=utf-8"
        return headers, response.body.value
    return headers, ""

def event_method(event):
    if method := event.get("httpMethod"):
        return method
    return event.get("requestContext", {}).get("http", {}).get("method", "GET")

def event_segments(event):
    if proxy := (event.get("pathParameters") or {}).get("proxy"):
        return gas_path(proxy)
    if raw := event.get("rawPath"):
        return path_segments(raw)
    # REST API events carry an already decoded path.
    return path_segments(event.get("path") or "", decode=False)

def lambda_handler(event, context):
    logger.info("Inbound %s %s", event_method(event), event.get("rawPath") or event.get("path"))
    params = (event.get("multiValueQueryStringParameters") or
              event.get("queryStringParameters") or {})

    response = handle(event_method(event),
                      event_segments(event),
                      params,
                      GAS_BASE_URL,
                      GAS_TIMEOUT)

    headers, body = render(response)
    return {
        "statusCode": response.status,
        "headers": headers,
        "body": body,
    }

if __name__ == "__main__":
    print(render(handle("GET", sys.argv[1], [], GAS_BASE_URL, GAS_TIMEOUT))[1])

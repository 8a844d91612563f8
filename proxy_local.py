#!/usr/bin/env python3

import argparse
import logging
import os
import proxy

from http.server import BaseHTTPRequestHandler
from http.server import ThreadingHTTPServer
from urllib.parse import parse_qsl
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

class Handler(BaseHTTPRequestHandler):
    def relay(self):
        url = urlsplit(self.path)
        logger.info("Inbound %s %s", self.command, self.path)
        if url.path != "/api" and not url.path.startswith("/api/"):
            return self.reply(proxy.error(404, "Not found", "NOT_FOUND"))
        self.reply(proxy.handle(self.command,
                                proxy.path_segments(url.path),
                                parse_qsl(url.query, keep_blank_values=True),
                                proxy.GAS_BASE_URL,
                                proxy.GAS_TIMEOUT))

    def reply(self, response):
        headers, body = proxy.render(response)
        body = body.encode()
        self.send_response(response.status)
        for name, value in headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    do_GET = relay
    do_OPTIONS = relay
    do_POST = relay
    do_PUT = relay
    do_PATCH = relay
    do_DELETE = relay

    def log_message(self, format, *args):
        logger.info(format, *args)

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=8001)
    args = parser.parse_args()
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    print(f"Starting proxy at http://localhost:{args.port}/api/")
    ThreadingHTTPServer(("127.0.0.1", args.port), Handler).serve_forever()

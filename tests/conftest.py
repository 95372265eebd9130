import socket
import socketserver
import threading
import time

import pytest


class _CollectingHandler(socketserver.StreamRequestHandler):
    def handle(self):
        payload = self.rfile.read()
        with self.server.lock:
            self.server.received.append(payload.decode('utf-8'))


class CollectorServer(socketserver.ThreadingTCPServer):
    """In-process stand-in for a Graphite plaintext listener."""
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, port=0):
        super().__init__(('127.0.0.1', port), _CollectingHandler)
        self.received = []
        self.lock = threading.Lock()
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)

    @property
    def port(self):
        return self.server_address[1]

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self.shutdown()
        self.server_close()

    def payloads(self):
        with self.lock:
            return list(self.received)

    def wait_for(self, count, timeout=5.0):
        """Block until at least ``count`` payloads arrived or timeout."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if len(self.payloads()) >= count:
                return True
            time.sleep(0.02)
        return False


@pytest.fixture
def collector():
    server = CollectorServer().start()
    yield server
    server.stop()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


@pytest.fixture
def start_collector():
    servers = []

    def _start(port):
        server = CollectorServer(port).start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.stop()

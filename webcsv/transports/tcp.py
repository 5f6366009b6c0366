"""TCP reachability probe using Python sockets."""

from __future__ import annotations

import logging
import socket

LOGGER = logging.getLogger(__name__)


class TCPPinger:
    def reachable(self, host: str, port: int, timeout_s: float = 3.0) -> bool:
        try:
            sock = socket.create_connection((host, port), timeout=timeout_s)
        except socket.gaierror as exc:
            LOGGER.error("Host %s is unknown/can not be resolved: %s", host, exc)
            return False
        except TimeoutError:
            LOGGER.warning("Connect to %s:%s timed out after %ss", host, port, timeout_s)
            return False
        except OSError as exc:
            LOGGER.warning("Host %s is not reachable on port %s: %s", host, port, exc)
            return False
        sock.close()
        return True

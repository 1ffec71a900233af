"""
Helper functions (network address lookup).
"""

import socket


def get_local_ip() -> str:
    """
    LAN address of this machine, the one a phone on the same network can reach.

    No packet is sent: connecting a UDP socket only selects a route.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        return "127.0.0.1"

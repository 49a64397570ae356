"""
Source ids tag every write with the actor that made it.

Clients compare the source id of a change with their own: changes carrying a
different id are "foreign" and trigger a re-sync. Script runs write with the
server's id so every connected client refreshes.
"""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits

SOURCE_ID_LENGTH = 12


def generate_source_id() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(SOURCE_ID_LENGTH))


_server_source_id = generate_source_id()


def get_current_source_id() -> str:
    """Source id of this server process (used for script runs)."""
    return _server_source_id

"""
Query string serialization for outbound requests.

Keys are emitted in sorted order so the serialized form is stable across
attempts. Escaping follows RFC 3986: everything except unreserved
characters is percent-encoded.
"""

from typing import List, Mapping, Union
from urllib.parse import quote

QueryValue = Union[str, List[str], None]


def escape_uri(value: str) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set."""
    return quote(value, safe="-_.~")


def build_query_string(query: Mapping[str, QueryValue]) -> str:
    """
    Serialize query parameters.

    List values repeat the key once per item; a None value renders the key
    alone; an empty string renders ``key=``.

    Returns:
        The serialized query without a leading '?', or "" when there is nothing to send
    """
    parts = []
    for key in sorted(query):
        value = query[key]
        escaped_key = escape_uri(key)
        if isinstance(value, (list, tuple)):
            for item in value:
                parts.append(f"{escaped_key}={escape_uri(item)}")
        elif value is None:
            parts.append(escaped_key)
        else:
            parts.append(f"{escaped_key}={escape_uri(value)}")
    return "&".join(parts)

"""Authentication-related CLI argument helpers."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .auth import AuthConfig, load_auth_from_env, load_auth_from_file


def _cookies_from_arg(value: str) -> Optional[List[dict]]:
    """``--cookies`` is inline JSON (object or list) or a path to a JSON file."""
    if value.lstrip()[:1] in ("[", "{"):
        parsed = json.loads(value)
    elif Path(value).is_file():
        parsed = json.loads(Path(value).read_text(encoding="utf-8"))
    else:
        logging.error("Invalid --cookies value: %s", value)
        return None
    return parsed if isinstance(parsed, list) else [parsed]


def _headers_from_args(values: List[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep:
            logging.warning("Invalid header format (expected 'Key: Value'): %s", raw)
            continue
        headers[name.strip()] = value.strip()
    return headers


def build_cli_auth(
    args: argparse.Namespace,
    auth_loader: Callable[[], Optional[AuthConfig]] = load_auth_from_env,
) -> Optional[AuthConfig]:
    """Credentials from ``--auth-file``, then ``--cookies``/``--header``,
    then *auth_loader* (the ``DOCFETCH_AUTH_*`` variables by default)."""
    auth_file = getattr(args, "auth_file", None)
    if auth_file:
        return load_auth_from_file(auth_file)

    raw_cookies = getattr(args, "cookies", None)
    raw_headers = getattr(args, "header", None)
    cookies = _cookies_from_arg(raw_cookies) if raw_cookies else None
    headers = _headers_from_args(raw_headers) if raw_headers else None

    if cookies or headers:
        return AuthConfig(cookies=cookies, headers=headers)
    return auth_loader()


def add_auth_args(parser: argparse.ArgumentParser) -> None:
    """Add credential options to *parser*."""
    group = parser.add_argument_group(
        "authentication",
        "Sent only with credentialed requests (https by default).",
    )
    group.add_argument(
        "--cookies",
        type=str,
        default=None,
        help="Cookies as a JSON string or a path to a JSON file, e.g. "
             '\'[{"name":"sid","value":"abc","domain":".example.org"}]\'',
    )
    group.add_argument(
        "--header",
        action="append",
        default=None,
        help='Credential header, repeatable, e.g. --header "Authorization: Bearer xyz"',
    )
    group.add_argument(
        "--auth-file",
        type=str,
        default=None,
        help="JSON file with 'cookies' and/or 'headers' keys",
    )

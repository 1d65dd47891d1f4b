"""Payload parser - recognizes TIC data URLs and decodes their JSON body."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from urllib.parse import unquote

from tic_indexer.errors import ErrorKind, PayloadError

log = logging.getLogger(__name__)

TIC_MEDIA_TYPE = "message/vnd.tic+json"
REQUIRED_PARAMS = {"rule": "esip6"}


def parse_media_type(mime_type: str) -> tuple[str, dict[str, str]]:
    """Split ``type/subtype;k=v;...`` into a lower-cased type and params.

    Parameter names are case-insensitive; values are kept verbatim.
    """
    pieces = [p.strip() for p in mime_type.split(";")]
    media_type = pieces[0].lower()
    params: dict[str, str] = {}
    for piece in pieces[1:]:
        if not piece:
            continue
        name, sep, value = piece.partition("=")
        if not sep:
            # A bare token like ";base64" still counts as a parameter
            params[name.strip().lower()] = ""
            continue
        params[name.strip().lower()] = value.strip().strip('"')
    return media_type, params


def data_uri_media_type(uri: str) -> str:
    """Media type of a ``data:`` URI read from its header alone.

    Works when the body cannot be decoded. Returns "" for anything that is
    not a data URI.
    """
    if not uri.startswith("data:"):
        return ""
    params = uri[5:].partition(",")[0].split(";")
    if params[-1].strip().lower() == "base64":
        params = params[:-1]
    return ";".join(params)


def split_data_uri(uri: str) -> tuple[str, str]:
    """Split a ``data:`` URI into ``(mime_type, decoded_body)``.

    The returned mime type keeps every parameter except ``base64``, which
    only describes the transport encoding of the body.
    """
    if not uri.startswith("data:"):
        raise PayloadError("not a data URI", ErrorKind.NOT_TIC)
    header, sep, body = uri[5:].partition(",")
    if not sep:
        raise PayloadError("data URI has no body separator", ErrorKind.MALFORMED_PAYLOAD)

    if header.split(";")[-1].strip().lower() == "base64":
        try:
            decoded = base64.b64decode(body, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise PayloadError(
                f"invalid base64 body: {exc}", ErrorKind.MALFORMED_PAYLOAD,
            ) from exc
    else:
        decoded = unquote(body)

    return data_uri_media_type(uri), decoded


def parse_payload(
    mime_type: str,
    raw_payload: str,
    max_payload_bytes: int | None = None,
) -> dict:
    """Parse a raw inscription payload into a generic JSON object.

    Establishes only that the payload is structurally a TIC candidate.
    Raises PayloadError with one of NOT_TIC, MISSING_MANDATORY_RULE,
    MALFORMED_PAYLOAD or RESOURCE_LIMIT.
    """
    media_type, params = parse_media_type(mime_type or "")
    if media_type != TIC_MEDIA_TYPE:
        raise PayloadError(f"media type {media_type!r} is not TIC", ErrorKind.NOT_TIC)

    if params != REQUIRED_PARAMS:
        raise PayloadError(
            f"parameters {params!r} must be exactly rule=esip6",
            ErrorKind.MISSING_MANDATORY_RULE,
        )

    if max_payload_bytes is not None and len(raw_payload.encode("utf-8")) > max_payload_bytes:
        raise PayloadError(
            f"payload exceeds {max_payload_bytes} bytes", ErrorKind.RESOURCE_LIMIT,
        )

    try:
        obj = json.loads(raw_payload)
    except (json.JSONDecodeError, TypeError) as exc:
        raise PayloadError(f"invalid JSON: {exc}", ErrorKind.MALFORMED_PAYLOAD) from exc

    if not isinstance(obj, dict):
        raise PayloadError(
            f"payload is a JSON {type(obj).__name__}, expected object",
            ErrorKind.MALFORMED_PAYLOAD,
        )
    return obj

"""Decoder for bodies holding a sequence of top-level JSON values.

REST responses carry one JSON document and are parsed in one pass once the
body has been read. The streaming host keeps the connection open and writes
one document per event; those are consumed incrementally from body chunks
so each event is printed as it arrives.
"""

from __future__ import annotations

import codecs
import json
import re
from collections.abc import Iterable, Iterator
from typing import TextIO

from pydantic import ValidationError

from infrastructure.logging.logger import get_logger
from system.ally_api.errors import DecodeError
from system.ally_api.models import APIResponse, decode_error_from_validation

# A syntax error this close to the end of the buffer may just be a value
# split across chunks ("tr" + "ue"), so it waits for more data.
_INCOMPLETE_TAIL = 5
_WHITESPACE = re.compile(r"\s*")


def _decode_bytes(
    text_decoder: codecs.IncrementalDecoder, chunk: bytes | str, final: bool = False
) -> str:
    if isinstance(chunk, str):
        return chunk
    try:
        return text_decoder.decode(chunk, final)
    except UnicodeDecodeError as e:
        raise DecodeError(f"invalid UTF-8 in body: {e.reason}") from e


def iter_json_values(
    chunks: Iterable[bytes | str], incremental: bool = True
) -> Iterator[object]:
    """Yield each top-level JSON value from a chunked body.

    Args:
        chunks: Body fragments in arrival order.
        incremental: Yield each value as soon as its last chunk arrives. If
            False the whole body is read first and parsed in a single pass.

    Yields:
        Parsed JSON values in arrival order.

    Raises:
        DecodeError: On malformed JSON, invalid UTF-8 or a truncated
            trailing value.
    """
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    if not incremental:
        text = "".join(_decode_bytes(text_decoder, chunk) for chunk in chunks)
        text += _decode_bytes(text_decoder, b"", final=True)
        yield from _iter_complete_text(decoder, text)
        return

    buffer = ""
    for chunk in chunks:
        buffer += _decode_bytes(text_decoder, chunk)
        while True:
            buffer = buffer.lstrip()
            if not buffer:
                break
            try:
                value, end = decoder.raw_decode(buffer)
            except json.JSONDecodeError as e:
                if _is_incomplete(e, buffer):
                    break
                raise DecodeError(f"invalid JSON: {e.msg} at position {e.pos}") from e
            buffer = buffer[end:]
            yield value

    buffer += _decode_bytes(text_decoder, b"", final=True)
    buffer = buffer.strip()
    if buffer:
        raise DecodeError(f"truncated JSON at end of body: {buffer[:40]!r}")


def _iter_complete_text(decoder: json.JSONDecoder, text: str) -> Iterator[object]:
    pos = _WHITESPACE.match(text).end()
    while pos < len(text):
        try:
            value, pos = decoder.raw_decode(text, pos)
        except json.JSONDecodeError as e:
            if _is_incomplete(e, text):
                raise DecodeError(
                    f"truncated JSON at end of body: {text[e.pos : e.pos + 40]!r}"
                ) from e
            raise DecodeError(f"invalid JSON: {e.msg} at position {e.pos}") from e
        yield value
        pos = _WHITESPACE.match(text, pos).end()


def _is_incomplete(error: json.JSONDecodeError, buffer: str) -> bool:
    if error.msg.startswith("Unterminated string"):
        return True
    return error.pos >= len(buffer) - _INCOMPLETE_TAIL


class ResponseDecoder:
    """Decodes API response bodies and writes them pretty-printed.

    Attributes:
        logger: Configured logger instance.
    """

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    def decode_value(self, value: object) -> APIResponse:
        """Validate one parsed JSON value into an APIResponse.

        Raises:
            DecodeError: If the value is not an object or a field fails to
                convert (the error names the field).
        """
        if not isinstance(value, dict):
            raise DecodeError(f"expected a JSON object, got {type(value).__name__}")
        try:
            return APIResponse.model_validate(value)
        except ValidationError as e:
            raise decode_error_from_validation(e) from e

    def iter_responses(
        self, chunks: Iterable[bytes | str], incremental: bool = True
    ) -> Iterator[APIResponse]:
        for value in iter_json_values(chunks, incremental=incremental):
            yield self.decode_value(value)

    def decode(
        self,
        chunks: Iterable[bytes | str],
        out: TextIO,
        stream: bool = False,
    ) -> list[APIResponse]:
        """Decode every value in a body and print it to ``out``.

        Args:
            chunks: Body fragments in arrival order.
            out: Text stream receiving one pretty-printed document per value.
            stream: If True each value is written as soon as it decodes.
                Otherwise nothing is written until the whole body decoded,
                so a failing body prints nothing.

        Returns:
            The decoded responses in arrival order.

        Raises:
            DecodeError: On the first value that fails to decode.
        """
        responses: list[APIResponse] = []
        for response in self.iter_responses(chunks, incremental=stream):
            responses.append(response)
            if stream:
                self._write(response, out)

        if not stream:
            for response in responses:
                self._write(response, out)

        self.logger.debug(f"Decoded {len(responses)} response values")
        return responses

    @staticmethod
    def _write(response: APIResponse, out: TextIO) -> None:
        out.write(response.to_json())
        out.write("\n")
        out.flush()

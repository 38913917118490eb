#!/usr/bin/env python3

import sys
import os
import json
import struct
import binascii
from dataclasses import dataclass, asdict
from typing import Dict, Iterator, List, Optional, Any

import sd_params

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

TEXT_CHUNK_TYPE = "tEXt"

LENGTH_SIZE = 4
TYPE_SIZE = 4
CRC_SIZE = 4
HEADER_SIZE = LENGTH_SIZE + TYPE_SIZE


class PNGError(ValueError):
    """Base class for structural problems found while reading a PNG."""


class MalformedContainerError(PNGError):
    pass


class InvalidSignatureError(MalformedContainerError):
    pass


class IntegrityError(PNGError):
    def __init__(self, chunk_type: str, offset: int, expected: int, actual: int):
        self.chunk_type = chunk_type
        self.offset = offset
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid CRC in {chunk_type} chunk at offset {offset}: "
            f"stored {expected:08X}, computed {actual:08X}"
        )


@dataclass(frozen=True)
class Chunk:
    type: str
    length: int
    data: bytes
    crc: int
    offset: int

    @property
    def type_bytes(self) -> bytes:
        return self.type.encode("latin-1")


@dataclass
class ChunkInfo:
    index: int
    offset: int
    length: int
    type: str
    crc_hex: str
    crc_ok: bool
    ancillary: bool
    private: bool
    reserved_upper: bool
    safe_to_copy: bool


def crc32(data: bytes, more: Optional[bytes] = None) -> int:
    """CRC-32 of ``data``, continued over ``more`` when given."""
    crc = binascii.crc32(data)
    if more is not None:
        crc = binascii.crc32(more, crc)
    return crc & 0xffffffff


def is_png(data: bytes) -> bool:
    return data[:len(PNG_SIGNATURE)] == PNG_SIGNATURE


def chunk_flags(chunk_type: str) -> Dict[str, bool]:
    if len(chunk_type) != 4 or not chunk_type.isascii():
        return {"ancillary": False, "private": False, "reserved_upper": False, "safe_to_copy": False}

    def is_lower(c): return "a" <= c <= "z"
    def is_upper(c): return "A" <= c <= "Z"

    return {
        "ancillary": is_lower(chunk_type[0]),
        "private": is_lower(chunk_type[1]),
        "reserved_upper": is_upper(chunk_type[2]),
        "safe_to_copy": is_lower(chunk_type[3]),
    }


def read_exact(data: bytes, offset: int, n: int, what: str) -> bytes:
    end = offset + n
    if end > len(data):
        raise MalformedContainerError(
            f"Unexpected end of data reading {what} at offset {offset}: "
            f"need {n} bytes, {len(data) - offset} left"
        )
    return data[offset:end]


def walk_chunks(data: bytes) -> Iterator[Chunk]:
    """
    Yield every chunk in file order, starting right after the signature.

    Checksums are not checked here; see extract_metadata() and list_chunks().
    Raises InvalidSignatureError before the first chunk if the signature is
    wrong, and MalformedContainerError when a chunk runs past the end.
    """
    data = bytes(data)
    if not is_png(data):
        raise InvalidSignatureError("Invalid PNG signature. This is not a valid PNG file.")

    offset = len(PNG_SIGNATURE)
    while offset < len(data):
        header = read_exact(data, offset, HEADER_SIZE, "chunk header")
        length, type_bytes = struct.unpack(">I4s", header)
        ctype = type_bytes.decode("latin-1")

        payload_start = offset + HEADER_SIZE
        payload = read_exact(data, payload_start, length, f"{ctype} payload")
        crc_bytes = read_exact(data, payload_start + length, CRC_SIZE, f"{ctype} CRC")
        crc = struct.unpack(">I", crc_bytes)[0]

        yield Chunk(type=ctype, length=length, data=payload, crc=crc, offset=offset)

        offset += HEADER_SIZE + length + CRC_SIZE


def verify_chunk(chunk: Chunk, actual: Optional[int] = None) -> None:
    if actual is None:
        actual = crc32(chunk.type_bytes, chunk.data)
    if actual != chunk.crc:
        raise IntegrityError(chunk.type, chunk.offset, chunk.crc, actual)


def decode_text(payload: bytes) -> Optional[tuple]:
    """Split a tEXt payload into (keyword, text); None if it has no keyword."""
    sep = payload.find(b"\x00")
    if sep <= 0:
        return None
    keyword = payload[:sep].decode("utf-8", "replace")
    text = payload[sep + 1:].decode("utf-8", "replace")
    return keyword, text


def _add_text(metadata: Dict[str, str], payload: bytes) -> None:
    pair = decode_text(payload)
    if pair is not None:
        keyword, text = pair
        metadata[keyword] = text


def extract_metadata(data: bytes) -> Dict[str, str]:
    """
    Collect the keyword/text pairs of every tEXt chunk.

    Only tEXt chunks are CRC-checked; a bad one raises IntegrityError and
    aborts the whole read. Later chunks overwrite earlier ones with the same
    keyword. A PNG without text chunks gives an empty dict.
    """
    metadata: Dict[str, str] = {}
    for chunk in walk_chunks(data):
        if chunk.type != TEXT_CHUNK_TYPE:
            continue
        verify_chunk(chunk)
        _add_text(metadata, chunk.data)
    return metadata


def read_parameters(data: bytes) -> Optional[Dict[str, str]]:
    metadata = extract_metadata(data)
    if "parameters" not in metadata:
        return None
    return sd_params.parse_parameters(metadata["parameters"])


def _chunk_info(index: int, chunk: Chunk, crc_ok: bool) -> ChunkInfo:
    flags = chunk_flags(chunk.type)
    return ChunkInfo(
        index=index,
        offset=chunk.offset,
        length=chunk.length,
        type=chunk.type,
        crc_hex=f"{chunk.crc:08X}",
        crc_ok=crc_ok,
        ancillary=flags["ancillary"],
        private=flags["private"],
        reserved_upper=flags["reserved_upper"],
        safe_to_copy=flags["safe_to_copy"],
    )


def list_chunks(data: bytes) -> List[ChunkInfo]:
    """Chunk listing with per-chunk CRC status. Never raises IntegrityError."""
    return [
        _chunk_info(index, chunk, crc32(chunk.type_bytes, chunk.data) == chunk.crc)
        for index, chunk in enumerate(walk_chunks(data))
    ]


def parse_png(data: bytes, name: Optional[str] = None) -> Dict[str, Any]:
    """
    Chunk listing, tEXt metadata and parsed parameters in one pass.

    The listing reports crc_ok for every chunk, so each CRC is computed
    once here and reused for the tEXt integrity check.
    """
    result: Dict[str, Any] = {
        "file": {"path": name, "size": len(data)},
        "valid_signature": is_png(data),
        "metadata": {},
        "parameters": None,
        "chunks": [],
    }
    if not result["valid_signature"]:
        raise InvalidSignatureError("Invalid PNG signature. This is not a valid PNG file.")

    metadata: Dict[str, str] = {}
    for index, chunk in enumerate(walk_chunks(data)):
        actual = crc32(chunk.type_bytes, chunk.data)
        result["chunks"].append(asdict(_chunk_info(index, chunk, actual == chunk.crc)))
        if chunk.type == TEXT_CHUNK_TYPE:
            verify_chunk(chunk, actual)
            _add_text(metadata, chunk.data)

    result["metadata"] = metadata
    if "parameters" in metadata:
        result["parameters"] = sd_params.parse_parameters(metadata["parameters"])
    return result


def read_metadata_from_path(path: str) -> Dict[str, str]:
    with open(path, "rb") as f:
        return extract_metadata(f.read())


def read_image_from_path(path: str) -> dict:
    with open(path, "rb") as f:
        data = f.read()
    return parse_png(data, name=os.fspath(path))


def read_image_from_bytes(data: bytes, name: Optional[str] = None) -> dict:
    return parse_png(data, name=name)


def main(argv: Optional[List[str]] = None) -> int:
    import argparse
    if argv is None:
        argv = sys.argv
    p = argparse.ArgumentParser(description="Read generation parameters embedded in PNG text chunks.")
    p.add_argument("png_path", help="Path to PNG file")
    p.add_argument("--json", action="store_true", help="Output JSON")
    p.add_argument("--chunks", action="store_true", help="Include the chunk listing")
    p.add_argument("--raw", action="store_true", help="Print the raw 'parameters' text as stored")
    args = p.parse_args(argv[1:])

    try:
        info = read_image_from_path(args.png_path)
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except PNGError as e:
        print(f"error: {args.png_path}: {e}", file=sys.stderr)
        return 2

    if args.raw:
        text = info["metadata"].get("parameters")
        if text is None:
            print(f"error: {args.png_path} has no 'parameters' text chunk", file=sys.stderr)
            return 3
        print(text)
        return 0

    if args.json:
        import organize_png_meta
        organized = organize_png_meta.organize_meta(info)
        if not args.chunks:
            organized.pop("chunks", None)
        print(json.dumps(organized, indent=2))
        return 0

    print(f"File: {info['file']['path']}  ({info['file']['size']} bytes)")
    print()

    print("Text chunks:")
    if info["metadata"]:
        for key, value in info["metadata"].items():
            preview = value if len(value) <= 60 else value[:57] + "..."
            preview = preview.replace("\n", "\\n")
            print(f"  {key}: {preview}")
    else:
        print("  none")
    print()

    params = info["parameters"]
    if params is None:
        print("Generation parameters: none")
    else:
        print("Generation parameters:")
        width = max(len(k) for k in params)
        for key, value in params.items():
            print(f"  {key:<{width}}  {value}")
        ident = sd_params.model_identifier(params)
        if ident:
            print()
            print(f"Model identifier: {ident}")
    print()

    if args.chunks:
        print("Chunk listing (in file order):")
        header = f"{'idx':>3}  {'off':>10}  {'len':>8}  {'type':>4}  {'crc_ok':>6}  {'anc':>3}  {'priv':>4}  {'resv':>4}  {'safe':>4}"
        print(header)
        print("-" * len(header))
        for c in info["chunks"]:
            print(f"{c['index']:3d}  {c['offset']:10d}  {c['length']:8d}  {c['type']:>4}  {str(c['crc_ok']):>6}"
                  f"  {('y' if c['ancillary'] else 'n'):>3}  {('y' if c['private'] else 'n'):>4}  {('Y' if c['reserved_upper'] else 'n'):>4}  {('y' if c['safe_to_copy'] else 'n'):>4}")
        print()

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))

from collections import OrderedDict
from typing import Any, Dict, List

import sd_params

PRIORITY_KEYS: List[str] = [
    "summary",
    "parameters",
    "metadata",
    "chunk_counts",
    "chunks",
    "file",
    "valid_signature",
]

PARAMETER_PRIORITY: List[str] = [
    "prompt", "negative", "steps", "sampler",
    "cfg_scale", "seed", "size", "model_hash", "model",
]

TEXT_CHUNKS = ("tEXt", "zTXt", "iTXt")


def _make_safe(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return {"type": "bytes", "length": len(obj)}
    if isinstance(obj, dict):
        return {str(k): _make_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_make_safe(v) for v in obj]
    return obj


def _order_parameters(params: Dict[str, str]) -> Dict[str, str]:
    ordered = OrderedDict()
    for k in PARAMETER_PRIORITY:
        if k in params:
            ordered[k] = params[k]

    for k, v in params.items():
        if k not in ordered:
            ordered[k] = v
    return ordered


def _build_chunk_counts(chunks: List[Dict[str, Any]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for c in chunks or []:
        t = c.get("type")
        if isinstance(t, str):
            counts[t] = counts.get(t, 0) + 1
    return counts


def _build_summary(meta: Dict[str, Any]) -> Dict[str, Any]:
    chunks = meta.get("chunks") or []
    params = meta.get("parameters")
    summary: Dict[str, Any] = OrderedDict()

    summary["has_parameters"] = params is not None
    summary["model_identifier"] = sd_params.model_identifier(params) if params else None
    summary["text_chunks"] = sum(1 for c in chunks if c.get("type") in TEXT_CHUNKS)

    crc_errors: List[Dict[str, Any]] = []
    for c in chunks:
        if not c.get("crc_ok", True):
            crc_errors.append({"index": c.get("index"), "type": c.get("type")})
    summary["crc_errors"] = crc_errors
    return summary


def organize_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    out = OrderedDict()
    out["summary"] = _build_summary(meta)

    params = meta.get("parameters")
    out["parameters"] = _order_parameters(params) if params is not None else None
    out["metadata"] = _make_safe(meta.get("metadata") or {})

    if "chunks" in meta:
        out["chunk_counts"] = _build_chunk_counts(meta["chunks"])
        out["chunks"] = _make_safe(meta["chunks"])

    for k in ("file", "valid_signature"):
        if k in meta:
            out[k] = _make_safe(meta[k])

    for k, v in meta.items():
        if k in out or k in PRIORITY_KEYS:
            continue
        out[k] = _make_safe(v)

    return out


from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

from .paths import PREFIX_MODES


_ALLOWED_STRUCTURE: Dict[str, Any] = {
    "scan": {
        "default_depth",
        "prefix_match",
        "skip_names",
        "video_extensions",
        "image_extensions",
        "subtitle_extensions",
    },
    "catalog": {"db_path"},
    "query": {"default_limit", "max_page_size"},
    "api": {"host", "port", "api_key", "cors_origins", "lan_only"},
    "logging": {"level", "json_file"},
    "working_dir": None,
    "version": None,
}


@dataclass(slots=True)
class SettingsValidator:
    schema: Mapping[str, Any]

    def unknown_keys(self, payload: Mapping[str, Any]) -> Iterable[str]:
        return sorted(self._iter_unknown(payload, self.schema, path=""))

    def invalid_values(self, payload: Mapping[str, Any]) -> List[str]:
        """Return dotted keys whose values would break the scanner or query layer."""

        problems: List[str] = []
        scan = payload.get("scan") if isinstance(payload.get("scan"), Mapping) else {}
        depth = scan.get("default_depth")
        if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
            problems.append("scan.default_depth")
        if scan.get("prefix_match") not in PREFIX_MODES:
            problems.append("scan.prefix_match")
        for key in ("skip_names", "video_extensions", "image_extensions", "subtitle_extensions"):
            if not isinstance(scan.get(key), list):
                problems.append(f"scan.{key}")
        query = payload.get("query") if isinstance(payload.get("query"), Mapping) else {}
        for key in ("default_limit", "max_page_size"):
            value = query.get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                problems.append(f"query.{key}")
        return problems

    def _iter_unknown(self, payload: Mapping[str, Any], schema: Mapping[str, Any], *, path: str) -> Iterable[str]:
        for key, value in payload.items():
            if key not in schema:
                yield f"{path}{key}"
                continue
            rule = schema[key]
            if rule is None:
                continue
            if isinstance(rule, set):
                if not isinstance(value, Mapping):
                    continue
                for sub in value.keys():
                    if sub not in rule:
                        yield f"{path}{key}.{sub}"
                continue
            if isinstance(rule, Mapping) and isinstance(value, Mapping):
                next_path = f"{path}{key}."
                yield from self._iter_unknown(value, rule, path=next_path)


SETTINGS_VALIDATOR = SettingsValidator(_ALLOWED_STRUCTURE)

__all__ = ["SETTINGS_VALIDATOR", "SettingsValidator"]

"""Gateway primitives: build results, target listings and option-overriding clients."""

from __future__ import annotations

import json
import platform as _platform
import posixpath
import sys
from dataclasses import dataclass, field
from typing import Any, Protocol

KEY_TARGET = "target"
KEY_REQUEST_ID = "requestid"
KEY_TOP_LEVEL_TARGET = "dalec.target"
KEY_RESOLVE_SPEC = "frontend.dalec.resolve"
KEY_DEFAULT_PLATFORM = "frontend.dalec.defaultPlatform"

SUBREQUEST_TARGETS = "frontend.targets"
SUBREQUEST_DESCRIBE = "frontend.subrequests.describe"
SUBREQUEST_VERSION = "1.0.0"

_SUBREQUESTS = (
    (SUBREQUEST_TARGETS, SUBREQUEST_VERSION, "List all targets current build supports"),
    (SUBREQUEST_DESCRIBE, SUBREQUEST_VERSION, "List available subrequest types"),
)

_ARCHITECTURES = {
    "x86_64": ("amd64", ""),
    "amd64": ("amd64", ""),
    "aarch64": ("arm64", "v8"),
    "arm64": ("arm64", "v8"),
    "armv7l": ("arm", "v7"),
    "armv6l": ("arm", "v6"),
    "i386": ("386", ""),
    "i686": ("386", ""),
    "ppc64le": ("ppc64le", ""),
    "s390x": ("s390x", ""),
    "riscv64": ("riscv64", ""),
}


class Client(Protocol):
    """Anything that can report the options of the current build."""

    def build_opts(self) -> dict[str, str]: ...


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _path_join(*elems: str) -> str:
    """Join slash-separated path elements, skipping empty ones, and clean the result."""
    parts = [e for e in elems if e]
    if not parts:
        return ""
    cleaned = posixpath.normpath("/".join(parts))
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _format_table(header: tuple[str, ...], rows: list[tuple[str, ...]]) -> str:
    table = [header, *rows]
    widths = [max(len(row[i]) for row in table) for i in range(len(header) - 1)]
    lines = []
    for row in table:
        cells = [cell.ljust(width) for cell, width in zip(row, widths)]
        cells.append(row[-1])
        lines.append("   ".join(cells).rstrip())
    return "\n".join(lines) + "\n"


@dataclass
class Result:
    """The outcome of a build: metadata blobs and an optional reference."""

    metadata: dict[str, bytes] = field(default_factory=dict)
    ref: Any = None

    def add_meta(self, key: str, value: bytes | str) -> None:
        self.metadata[key] = value.encode() if isinstance(value, str) else bytes(value)


@dataclass
class Target:
    """A build target as reported by a targets listing."""

    name: str
    description: str = ""
    default: bool = False
    builder: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.default:
            data["default"] = True
        if self.description:
            data["description"] = self.description
        if self.builder:
            data["builder"] = self.builder
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Target:
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            default=bool(data.get("default", False)),
            builder=data.get("builder", ""),
        )


@dataclass
class TargetList:
    """A list of targets, serialisable to and from a build result."""

    targets: list[Target] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"targets": [t.to_dict() for t in self.targets]}

    def to_text(self) -> str:
        rows = [
            (t.name + (" (default)" if t.default else ""), t.description)
            for t in self.targets
        ]
        return _format_table(("TARGET", "DESCRIPTION"), rows)

    def to_result(self) -> Result:
        res = Result()
        res.add_meta("result.json", json.dumps(self.to_dict(), indent=2))
        res.add_meta("result.txt", self.to_text())
        res.add_meta("version", SUBREQUEST_VERSION)
        return res

    @classmethod
    def from_result(cls, result: Result) -> TargetList:
        try:
            raw = result.metadata["result.json"]
        except KeyError:
            raise ValueError("no result.json metadata in response") from None
        data = json.loads(raw)
        return cls([Target.from_dict(t) for t in data.get("targets") or []])


class ClientWithOpts:
    """A client wrapper that serves a fixed copy of build options."""

    def __init__(self, client: Any, opts: dict[str, str]):
        self.client = client
        self.opts = dict(opts)

    def build_opts(self) -> dict[str, str]:
        return dict(self.opts)

    def __getattr__(self, name: str) -> Any:
        if name in ("client", "opts"):
            raise AttributeError(name)
        return getattr(self.client, name)


class NoSuchHandlerError(LookupError):
    """No registered handler matches the requested target."""

    def __init__(self, target: str, available: list[str]):
        self.target = target
        self.available = list(available)
        super().__init__(target, self.available)

    def __str__(self) -> str:
        return (
            f"no such handler for target {_quote(self.target)}: "
            f"available targets: {', '.join(self.available)}"
        )


def default_platform() -> dict[str, str]:
    """Return the platform of the running host in OCI form."""
    machine = _platform.machine().lower()
    arch, variant = _ARCHITECTURES.get(machine, (machine, ""))
    if sys.platform.startswith("linux"):
        os_name = "linux"
    elif sys.platform == "win32":
        os_name = "windows"
    else:
        os_name = sys.platform
    spec = {"architecture": arch, "os": os_name}
    if variant:
        spec["variant"] = variant
    return spec


def _format_platform(spec: dict[str, str]) -> str:
    parts = [spec.get("os", "unknown"), spec.get("architecture", "unknown")]
    if spec.get("variant"):
        parts.append(spec["variant"])
    return "/".join(parts)


def handle_default_platform() -> Result:
    """Answer the default-platform subrequest."""
    spec = default_platform()
    res = Result()
    res.add_meta("result.json", json.dumps(spec))
    res.add_meta("result.txt", _format_platform(spec))
    return res


def describe_result() -> Result:
    """Answer the describe subrequest with the supported subrequests."""
    res = Result()
    res.add_meta(
        "result.txt",
        _format_table(("NAME", "VERSION", "DESCRIPTION"), list(_SUBREQUESTS)),
    )
    res.add_meta("version", SUBREQUEST_VERSION)
    return res


def get_target_key(client: Client) -> str:
    """Return the top-level target key already recorded on the client, if any."""
    return client.build_opts().get(KEY_TOP_LEVEL_TARGET, "")


def trim_target_opt(client: Client, prefix: str) -> ClientWithOpts:
    """Wrap the client so that its target option no longer starts with prefix."""
    opts = dict(client.build_opts())
    updated = opts.get(KEY_TARGET, "").removeprefix(prefix)
    if updated.startswith("/"):
        updated = updated[1:]
    opts[KEY_TARGET] = updated
    return ClientWithOpts(client, opts)


def set_client_opt(client: Client, key: str, value: str) -> ClientWithOpts:
    """Wrap the client with one build option overridden."""
    opts = dict(client.build_opts())
    opts[key] = value
    return ClientWithOpts(client, opts)


def maybe_set_dalec_target_key(client: Client, key: str) -> Client:
    """Record the top-level target key unless one is already set."""
    opts = client.build_opts()
    if opts.get(KEY_TOP_LEVEL_TARGET):
        return client
    if not isinstance(client, ClientWithOpts):
        client = ClientWithOpts(client, opts)
    return set_client_opt(client, KEY_TOP_LEVEL_TARGET, key)


def _find_not_found(err: BaseException) -> NoSuchHandlerError | None:
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        if isinstance(current, NoSuchHandlerError):
            return current
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return None


def inject_paths_to_not_found_error(
    matched: str, err: BaseException | None
) -> BaseException | None:
    """Prefix the target paths in a not-found error with the matched route."""
    if err is None:
        return None
    found = _find_not_found(err)
    if found is None:
        return err
    found.target = _path_join(matched, found.target)
    found.available = [_path_join(matched, v) for v in found.available]
    return found
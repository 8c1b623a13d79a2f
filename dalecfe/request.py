"""Solve requests and the build options that control package signing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .gateway import Client

GATEWAY_FRONTEND = "gateway.v0"
DOCKERFILE_FRONTEND = "dockerfile.v0"
DEFAULT_CONTEXT_NAME = "context"

KEY_SKIP_SIGNING_ARG = "DALEC_SKIP_SIGNING"
BUILD_ARG_SIGNING_CONFIG_PATH = "DALEC_SIGNING_CONFIG_PATH"
BUILD_ARG_SIGNING_CONFIG_CONTEXT_NAME = "DALEC_SIGNING_CONFIG_CONTEXT_NAME"

BUILD_ARG_PREFIX = "build-arg:"

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


@dataclass(frozen=True)
class Frontend:
    """A custom frontend image and the command line it is started with."""

    image: str
    cmdline: str = ""


@dataclass
class SolveRequest:
    """A request to solve a build, optionally through a frontend."""

    frontend: str = ""
    frontend_opt: dict[str, str] = field(default_factory=dict)
    frontend_inputs: dict[str, Any] = field(default_factory=dict)
    definition: Any = None
    evaluate: bool = False


SolveRequestOpt = Callable[[SolveRequest], None]


def new_solve_request(*args: SolveRequestOpt) -> SolveRequest:
    """Build a solve request by applying each option in order."""
    req = SolveRequest()
    for option in args:
        option(req)
    return req


def to_frontend(frontend: Frontend) -> SolveRequestOpt:
    """Send the request through the given gateway frontend image."""

    def apply(req: SolveRequest) -> None:
        req.frontend = GATEWAY_FRONTEND
        req.frontend_opt["source"] = frontend.image
        req.frontend_opt["cmdline"] = frontend.cmdline

    return apply


def with_target(target: str) -> SolveRequestOpt:
    """Set the build target of the request."""

    def apply(req: SolveRequest) -> None:
        req.frontend_opt["target"] = target

    return apply


def with_build_args(args: dict[str, str] | None) -> SolveRequestOpt:
    """Pass each entry of args to the frontend as a build argument."""

    def apply(req: SolveRequest) -> None:
        for key, value in (args or {}).items():
            req.frontend_opt[BUILD_ARG_PREFIX + key] = value

    return apply


def parse_bool(value: str) -> bool:
    """Parse the boolean spellings accepted for build arguments."""
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f'parsing "{value}": invalid syntax')


def signing_disabled(client: Client) -> bool:
    """Report whether the skip-signing build argument is set to a true value."""
    value = client.build_opts().get(BUILD_ARG_PREFIX + KEY_SKIP_SIGNING_ARG)
    if value is None:
        return False
    try:
        return parse_bool(value)
    except ValueError:
        return False


def get_user_sign_config_path(client: Client) -> str:
    """Return the signing config path given as a build argument, or ''."""
    return client.build_opts().get(BUILD_ARG_PREFIX + BUILD_ARG_SIGNING_CONFIG_PATH, "")


def get_sign_context_name(client: Client) -> str:
    """Return the build context holding the signing config, defaulting to the main one."""
    name = client.build_opts().get(BUILD_ARG_PREFIX + BUILD_ARG_SIGNING_CONFIG_CONTEXT_NAME, "")
    return name or DEFAULT_CONTEXT_NAME


def compound(key: str, value: str) -> str:
    """Join a key and value with a colon, as frontend options expect."""
    return f"{key}:{value}"
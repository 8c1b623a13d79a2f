"""Routing of build requests to registered handlers by target path."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from .gateway import (
    KEY_DEFAULT_PLATFORM,
    KEY_REQUEST_ID,
    KEY_RESOLVE_SPEC,
    KEY_TARGET,
    KEY_TOP_LEVEL_TARGET,
    SUBREQUEST_DESCRIBE,
    SUBREQUEST_TARGETS,
    Client,
    NoSuchHandlerError,
    Result,
    Target,
    TargetList,
    _path_join,
    describe_result,
    get_target_key,
    handle_default_platform,
    inject_paths_to_not_found_error,
    maybe_set_dalec_target_key,
    trim_target_opt,
)

log = logging.getLogger(__name__)

BuildFunc = Callable[[Client], Optional[Result]]
MuxOption = Callable[[Client, "BuildMux"], None]


class HandlerError(Exception):
    """A routed build failed; the original error is the cause."""


@dataclass(frozen=True)
class _Route:
    func: BuildFunc
    info: Optional[Target]


class BuildMux:
    """Routes build requests to handlers registered under target paths.

    A target is matched exactly first, then an empty target falls back to the
    default handler, and finally the longest registered prefix wins. The
    matched prefix is removed from the target before the handler runs, and the
    top-level target key is recorded once on the client.
    """

    def __init__(
        self,
        spec_loader: Optional[Callable[[Client], Any]] = None,
        resolve_spec: Optional[Callable[[Client], Result]] = None,
    ):
        self._routes: dict[str, _Route] = {}
        self._default: Optional[_Route] = None
        self._spec_loader = spec_loader
        self._resolve_spec = resolve_spec
        self._spec: Any = None

    @property
    def routes(self) -> list[str]:
        """The registered target paths, sorted."""
        return sorted(self._routes)

    def add(self, target_path: str, handler: BuildFunc, info: Optional[Target]) -> None:
        """Register handler for target_path, optionally with its target info."""
        route = _Route(handler, info)
        self._routes[target_path] = route
        if info is not None and info.default:
            self._default = route
        log.info("Added handler to router: %s", target_path)

    def describe(self) -> Result:
        """Return the subrequests this router supports."""
        return describe_result()

    def _load_spec(self, client: Client) -> Any:
        if self._spec is None and self._spec_loader is not None:
            self._spec = self._spec_loader(client)
        return self._spec

    def _handle_subrequest(self, client: Client, opts: dict[str, str]) -> tuple[Optional[Result], bool]:
        request_id = opts.get(KEY_REQUEST_ID, "")
        if request_id in ("", KEY_TOP_LEVEL_TARGET):
            return None, False
        if request_id == SUBREQUEST_DESCRIBE:
            return self.describe(), True
        if request_id == SUBREQUEST_TARGETS:
            return self.list_targets(client, opts.get(KEY_TARGET, "")), True
        if request_id == KEY_RESOLVE_SPEC:
            if self._resolve_spec is None:
                raise ValueError("resolving the spec is not configured for this router")
            return self._resolve_spec(client), True
        if request_id == KEY_DEFAULT_PLATFORM:
            return handle_default_platform(), True
        raise ValueError(f"unsupported subrequest {json.dumps(request_id)}")

    def lookup_target(self, target: str) -> tuple[str, _Route]:
        """Find the route for target; return the matched path and the route."""
        route = self._routes.get(target)
        if route is not None:
            return target, route

        if target == "" and self._default is not None:
            log.info("Using default target")
            return target, self._default

        candidates = sorted(k for k in self._routes if target.startswith(k + "/"))
        if candidates:
            key = candidates[-1]
            log.info("Using prefix match %s for target %s", key, target)
            return key, self._routes[key]

        raise NoSuchHandlerError(target, list(self._routes))

    def list_targets(self, client: Client, target: str) -> Result:
        """List the targets reachable through this router, filtered by target."""
        check = sorted(self._routes) if target == "" else [target]
        found: list[Target] = []

        for name in check:
            try:
                matched, route = self.lookup_target(name)
            except NoSuchHandlerError as exc:
                log.warning("Error looking up target %s, skipping: %s", name, exc)
                continue

            if route.info is not None:
                found.append(replace(route.info))
                continue

            sub_client = maybe_set_dalec_target_key(trim_target_opt(client, matched), matched)
            res = route.func(sub_client)
            if res is None:
                raise ValueError("no result.json metadata in response")
            for t in TargetList.from_result(res).targets:
                found.append(replace(t, name=_path_join(matched, t.name)))

        return TargetList(found).to_result()

    def fixup_list_result(self, matched: str, result: Result) -> Result:
        """Prefix the target names in a listing result with the matched route."""
        listing = TargetList.from_result(result)
        listing.targets = [replace(t, name=_path_join(matched, t.name)) for t in listing.targets]
        fresh = listing.to_result()
        for key in ("result.json", "result.txt", "version"):
            result.add_meta(key, fresh.metadata[key])
        return result

    def handle(self, client: Client) -> Optional[Result]:
        """Route the request on client to the matching handler."""
        opts = client.build_opts()
        original = dict(opts)
        target = opts.get(KEY_TARGET, "")
        log.info(
            "Handling request: handlers=%s target=%s requestid=%s targetKey=%s",
            list(self._routes),
            target,
            opts.get(KEY_REQUEST_ID, ""),
            get_target_key(client),
        )
        try:
            return self._route(client, opts)
        except Exception as exc:
            if KEY_TOP_LEVEL_TARGET in original:
                raise
            message = f"error handling requested build target {json.dumps(target)}: {exc}"
            try:
                spec = self._load_spec(client)
            except Exception:
                spec = None
            name = getattr(spec, "name", "") if spec is not None else ""
            if name:
                message = f"spec: {name}: {message}"
            raise HandlerError(message) from exc

    def _route(self, client: Client, opts: dict[str, str]) -> Optional[Result]:
        res, handled = self._handle_subrequest(client, opts)
        if handled:
            return res

        matched, route = self.lookup_target(opts.get(KEY_TARGET, ""))
        sub_client = maybe_set_dalec_target_key(trim_target_opt(client, matched), matched)

        try:
            res = route.func(sub_client)
        except Exception as exc:
            injected = inject_paths_to_not_found_error(matched, exc)
            if injected is exc:
                raise
            raise injected from None

        if opts.get(KEY_REQUEST_ID, "") == SUBREQUEST_TARGETS and res is not None:
            return self.fixup_list_result(matched, res)
        return res

    def handler(self, *args: MuxOption) -> BuildFunc:
        """Return a build function that applies options and then routes."""

        def build(client: Client) -> Optional[Result]:
            for option in args:
                option(client, self)
            return self.handle(client)

        return build
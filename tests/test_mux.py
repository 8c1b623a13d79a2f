import json

import pytest

from dalecfe.gateway import NoSuchHandlerError, Result, Target, TargetList
from dalecfe.mux import BuildMux, HandlerError


class StubClient:
    def __init__(self, opts=None):
        self.opts = dict(opts or {})

    def build_opts(self):
        return dict(self.opts)


def counter(name):
    calls = []

    def handler(client):
        calls.append(client.build_opts())
        res = Result()
        res.add_meta("handler", name)
        return res

    return calls, handler


class Spec:
    def __init__(self, name):
        self.name = name


def test_build_mux_routing_counts():
    mux = BuildMux()
    real_calls, real_h = counter("real")
    mux.add("real", real_h, Target(name="real", default=True))

    client = StubClient({"target": "real"})
    res = mux.handle(client)
    assert res.metadata["handler"] == b"real"
    assert len(real_calls) == 1

    sub = BuildMux()
    sub_calls, sub_h = counter("a")
    sub.add("a", sub_h, Target(name="a"))
    mux.add("real/subroute", sub.handle, None)

    res = mux.handle(client)
    assert res.metadata["handler"] == b"real"
    assert len(real_calls) == 2
    assert len(sub_calls) == 0

    res = mux.handle(StubClient({"target": "real/subroute/a"}))
    assert res.metadata["handler"] == b"a"
    assert len(real_calls) == 2
    assert len(sub_calls) == 1


def test_handler_receives_trimmed_target_and_key():
    mux = BuildMux()
    calls, h = counter("foo")
    mux.add("foo", h, None)
    res = mux.handle(StubClient({"target": "foo/bar"}))
    assert res.metadata["handler"] == b"foo"
    assert calls[0]["target"] == "bar"
    assert calls[0]["dalec.target"] == "foo"


def test_existing_top_level_key_is_kept():
    mux = BuildMux()
    calls, h = counter("foo")
    mux.add("foo", h, None)
    res = mux.handle(StubClient({"target": "foo", "dalec.target": "outer"}))
    assert res.metadata["handler"] == b"foo"
    assert calls[0]["dalec.target"] == "outer"
    assert calls[0]["target"] == ""


def test_default_handler_for_empty_target():
    mux = BuildMux()
    calls, h = counter("deb")
    _, other_h = counter("other")
    mux.add("deb", h, Target(name="deb", default=True))
    mux.add("other", other_h, Target(name="other"))
    res = mux.handle(StubClient({}))
    assert res.metadata["handler"] == b"deb"
    assert len(calls) == 1


def test_lookup_longest_prefix():
    mux = BuildMux()
    mux.add("a", lambda c: None, None)
    mux.add("a/b", lambda c: None, None)
    matched, _ = mux.lookup_target("a/b/c")
    assert matched == "a/b"
    matched, _ = mux.lookup_target("a/x")
    assert matched == "a"


def test_lookup_unknown_raises():
    mux = BuildMux()
    mux.add("a", lambda c: None, None)
    with pytest.raises(NoSuchHandlerError) as info:
        mux.lookup_target("zzz")
    assert info.value.target == "zzz"
    assert info.value.available == ["a"]


def test_unknown_target_is_wrapped():
    mux = BuildMux()
    mux.add("a", lambda c: None, None)
    with pytest.raises(HandlerError) as info:
        mux.handle(StubClient({"target": "zzz"}))
    assert str(info.value) == (
        'error handling requested build target "zzz": '
        'no such handler for target "zzz": available targets: a'
    )
    assert isinstance(info.value.__cause__, NoSuchHandlerError)


def test_error_includes_spec_name():
    mux = BuildMux(spec_loader=lambda client: Spec("mypkg"))
    with pytest.raises(HandlerError) as info:
        mux.handle(StubClient({"target": "zzz"}))
    assert str(info.value).startswith('spec: mypkg: error handling requested build target "zzz"')


def test_not_wrapped_when_forwarded():
    mux = BuildMux()
    with pytest.raises(NoSuchHandlerError):
        mux.handle(StubClient({"target": "zzz", "dalec.target": "x"}))


def test_nested_not_found_has_full_paths():
    mux = BuildMux()
    sub = BuildMux()
    sub.add("a", lambda c: None, Target(name="a"))
    mux.add("real/subroute", sub.handle, None)
    with pytest.raises(HandlerError) as info:
        mux.handle(StubClient({"target": "real/subroute/zzz"}))
    cause = info.value.__cause__
    assert isinstance(cause, NoSuchHandlerError)
    assert cause.target == "real/subroute/zzz"
    assert cause.available == ["real/subroute/a"]


def test_list_targets_through_nested_router():
    mux = BuildMux()
    mux.add("real", lambda c: None, Target(name="real", description="r", default=True))
    sub = BuildMux()
    sub.add("x", lambda c: None, Target(name="x", description="x target"))
    mux.add("sub", sub.handle, None)

    res = mux.handle(StubClient({"requestid": "frontend.targets"}))
    listing = TargetList.from_result(res)
    assert [t.name for t in listing.targets] == ["real", "sub/x"]
    assert listing.targets[0].default is True
    assert res.metadata["version"] == b"1.0.0"


def test_list_targets_with_filter():
    mux = BuildMux()
    mux.add("a", lambda c: None, Target(name="a"))
    mux.add("b", lambda c: None, Target(name="b"))
    res = mux.list_targets(StubClient({}), "b")
    assert [t.name for t in TargetList.from_result(res).targets] == ["b"]


def test_list_targets_skips_unknown_filter():
    mux = BuildMux()
    mux.add("a", lambda c: None, Target(name="a"))
    res = mux.list_targets(StubClient({}), "missing")
    assert TargetList.from_result(res).targets == []


def test_fixup_list_result():
    mux = BuildMux()
    res = TargetList([Target(name="b", description="d")]).to_result()
    fixed = mux.fixup_list_result("a", res)
    data = json.loads(fixed.metadata["result.json"])
    assert data["targets"][0]["name"] == "a/b"
    assert b"a/b" in fixed.metadata["result.txt"]


def test_describe_subrequest():
    mux = BuildMux()
    res = mux.handle(StubClient({"requestid": "frontend.subrequests.describe"}))
    assert res.metadata["version"] == b"1.0.0"
    assert b"frontend.targets" in res.metadata["result.txt"]


def test_default_platform_subrequest():
    mux = BuildMux()
    res = mux.handle(StubClient({"requestid": "frontend.dalec.defaultPlatform"}))
    data = json.loads(res.metadata["result.json"])
    assert set(data) >= {"os", "architecture"}


def test_resolve_spec_subrequest_uses_resolver():
    expected = Result()
    expected.add_meta("result.txt", "spec")
    mux = BuildMux(resolve_spec=lambda client: expected)
    res = mux.handle(StubClient({"requestid": "frontend.dalec.resolve"}))
    assert res.metadata["result.txt"] == b"spec"


def test_unsupported_subrequest():
    mux = BuildMux()
    with pytest.raises(HandlerError) as info:
        mux.handle(StubClient({"requestid": "bogus"}))
    assert 'unsupported subrequest "bogus"' in str(info.value)
    assert isinstance(info.value.__cause__, ValueError)


def test_handler_applies_options():
    mux = BuildMux()
    calls, h = counter("late")

    def option(client, m):
        m.add("late", h, None)

    build = mux.handler(option)
    res = build(StubClient({"target": "late"}))
    assert res.metadata["handler"] == b"late"
    assert len(calls) == 1
    assert mux.routes == ["late"]


def test_handler_option_error_propagates():
    mux = BuildMux()

    def option(client, m):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        mux.handler(option)(StubClient({}))
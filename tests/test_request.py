import pytest

from dalecfe.request import (
    DEFAULT_CONTEXT_NAME,
    GATEWAY_FRONTEND,
    Frontend,
    SolveRequest,
    compound,
    get_sign_context_name,
    get_user_sign_config_path,
    new_solve_request,
    parse_bool,
    signing_disabled,
    to_frontend,
    with_build_args,
    with_target,
)


class StubClient:
    def __init__(self, opts=None):
        self.opts = dict(opts or {})

    def build_opts(self):
        return dict(self.opts)


def test_new_solve_request_without_options_is_empty():
    assert new_solve_request() == SolveRequest()


def test_to_frontend_sets_gateway_and_source():
    req = new_solve_request(to_frontend(Frontend(image="example/frontend:1", cmdline="/run")))
    assert req.frontend == GATEWAY_FRONTEND == "gateway.v0"
    assert req.frontend_opt == {"source": "example/frontend:1", "cmdline": "/run"}


def test_with_target_and_build_args_combine():
    req = new_solve_request(with_target("deb"), with_build_args({"A": "1", "B": "two"}))
    assert req.frontend_opt == {
        "target": "deb",
        "build-arg:A": "1",
        "build-arg:B": "two",
    }


def test_with_empty_build_args_changes_nothing():
    assert new_solve_request(with_build_args({})).frontend_opt == {}
    assert new_solve_request(with_build_args(None)).frontend_opt == {}


def test_option_errors_propagate():
    def broken(req):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        new_solve_request(with_target("x"), broken)


@pytest.mark.parametrize("value", ["1", "t", "T", "TRUE", "true", "True"])
def test_parse_bool_true(value):
    assert parse_bool(value) is True


@pytest.mark.parametrize("value", ["0", "f", "F", "FALSE", "false", "False"])
def test_parse_bool_false(value):
    assert parse_bool(value) is False


@pytest.mark.parametrize("value", ["", "yes", "on", "tRuE", "2"])
def test_parse_bool_rejects(value):
    with pytest.raises(ValueError):
        parse_bool(value)


@pytest.mark.parametrize(
    "opts, expected",
    [
        ({}, False),
        ({"build-arg:DALEC_SKIP_SIGNING": "1"}, True),
        ({"build-arg:DALEC_SKIP_SIGNING": "false"}, False),
        ({"build-arg:DALEC_SKIP_SIGNING": "not-a-bool"}, False),
        ({"DALEC_SKIP_SIGNING": "1"}, False),
    ],
)
def test_signing_disabled(opts, expected):
    assert signing_disabled(StubClient(opts)) is expected


def test_user_sign_config_path():
    assert get_user_sign_config_path(StubClient()) == ""
    client = StubClient({"build-arg:DALEC_SIGNING_CONFIG_PATH": "signing/cfg.yml"})
    assert get_user_sign_config_path(client) == "signing/cfg.yml"


def test_sign_context_name_default_and_override():
    assert get_sign_context_name(StubClient()) == DEFAULT_CONTEXT_NAME == "context"
    client = StubClient({"build-arg:DALEC_SIGNING_CONFIG_CONTEXT_NAME": "signer-ctx"})
    assert get_sign_context_name(client) == "signer-ctx"


def test_compound_joins_with_colon():
    result = compound("input", "context")
    assert result.split(":") == ["input", "context"]
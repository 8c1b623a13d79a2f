# dalecfe

Helpers for turning a declarative package spec into build inputs, and for
routing build requests to the code that handles them.

## What is in the package

- `dalecfe.spec` – the package spec model: `Spec`, `Source`, `Artifacts`,
  `ArtifactConfig`, `SystemdConfiguration`, `PackageDependencies`,
  `PackageConstraints`, `ChangelogEntry` and friends.
- `dalecfe.rpm_template` – renders an RPM `.spec` file from a `Spec`.
  `write_spec(spec, target)` returns the whole text; `SpecWrapper` renders the
  individual sections (`sources()`, `requires()`, `install()`, `files()`,
  `post()`, `preun()`, `postun()`, `changelog()`, ...).
- `dalecfe.rpm_sources` – `build_script(spec)` returns the `build.sh` that runs
  the build steps, `source_files(spec)` lists the file names placed in
  `SOURCES`, and `render_spec_file(spec, target, directory)` validates the spec
  and returns the path (by default `SPECS/<name>/<name>.spec`) and text of the
  generated spec file, headed by an "Automatically generated" comment.
- `dalecfe.rpmbuild` – `validate_spec(spec)` raises `MissingRequiredFieldError`
  naming every missing field among name, version, revision, description and
  license; `rpmbuild_command(spec_path)` returns the `rpmbuild -ba` command line.
- `dalecfe.mux` – `BuildMux` routes a request to a handler registered under a
  target path: exact match first, then the default handler for an empty
  target, then the longest registered prefix. The matched prefix is trimmed
  from the client's `target` option before the handler runs, and the
  `dalec.target` option is recorded once. It answers the describe, targets
  listing and default-platform subrequests itself; listings from nested
  routers come back with full paths.
- `dalecfe.gateway` – `Result`, `Target`, `TargetList`, `ClientWithOpts`,
  `NoSuchHandlerError` and helpers such as `trim_target_opt`,
  `maybe_set_dalec_target_key` and `default_platform`.
- `dalecfe.request` – `SolveRequest`, `Frontend`, option builders
  (`new_solve_request`, `to_frontend`, `with_target`, `with_build_args`) and
  the signing build arguments (`signing_disabled`,
  `get_user_sign_config_path`, `get_sign_context_name`).
- `dalecfe.bkfs` – a read-only file system view (`StateRefFS`, `NullFS`) over
  any object that can stat, list and read files by range.

## Installation

```
pip install dalecfe
```

## Generating an RPM spec

```python
from dalecfe.spec import Spec, Artifacts, ArtifactConfig
from dalecfe.rpm_template import write_spec

spec = Spec(
    name="hello",
    version="1.0.0",
    revision="1",
    description="A friendly greeter",
    license="MIT",
    artifacts=Artifacts(binaries={"src/hello": ArtifactConfig()}),
)

print(write_spec(spec, "mariner2"))
```

## Routing requests

A client is any object with a `build_opts()` method returning a dict of build
options; a handler is any callable taking a client and returning a
`dalecfe.gateway.Result` (or `None`).

```python
from dalecfe.gateway import Result, Target
from dalecfe.mux import BuildMux


class Client:
    def __init__(self, **opts):
        self.opts = opts

    def build_opts(self):
        return dict(self.opts)


def build_rpm(client):
    res = Result()
    res.add_meta("built", client.build_opts()["dalec.target"])
    return res


mux = BuildMux()
mux.add("rpm", build_rpm, Target(name="rpm", description="Build an RPM", default=True))
result = mux.handle(Client(target="rpm"))
print(result.metadata["built"])  # b'rpm'
```

`BuildMux.handle` is itself a handler, so routers can be nested under a
prefix. Errors from a top-level router are raised as `HandlerError` with the
requested target in the message.

## What the package does not do

It does not connect to a build daemon, solve build graphs, fetch or archive
sources, run `rpmbuild`, or sign packages. It produces the text and options
those steps need; resolving a spec for the resolve subrequest works only when
a `resolve_spec` callable is given to `BuildMux`. There are no handlers for
Debian packages or container images, and no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```
"""The files handed to rpmbuild: the build script, source archives and the spec."""

from __future__ import annotations

from .gateway import _path_join
from .rpm_template import BUILD_SCRIPT_NAME, GOMODS_NAME, write_spec, write_step
from .rpmbuild import MissingRequiredFieldError, validate_spec
from .spec import Spec

GENERATOR_NAME = "dalecfe"


def build_script(spec: Spec) -> str:
    """Return the shell script that runs the spec's build steps, or '' if there are none."""
    build = spec.build
    if not build.steps:
        return ""

    out = ["#!/bin/sh\n", "set -e\n"]
    if spec.has_gomods():
        out.append(f'export GOMODCACHE="$(pwd)/{GOMODS_NAME}"\n')
    out.extend(f'export {key}="{build.env[key]}"\n' for key in sorted(build.env))
    out.extend(write_step(step) for step in build.steps)
    out.append("\n")
    return "".join(out)


def source_files(spec: Spec) -> list[str]:
    """Return the names of the files placed in SOURCES, in spec source order.

    Directory sources are shipped as gzipped tarballs, Go module dependencies
    as one shared tarball, and the build steps as a script.
    """
    names = []
    for key in sorted(spec.sources):
        src = spec.sources[key]
        names.append(key + ".tar.gz" if src.is_dir() else key)
    if spec.has_gomods():
        names.append(GOMODS_NAME + ".tar.gz")
    if spec.build.steps:
        names.append(BUILD_SCRIPT_NAME)
    return names


def render_spec_file(spec: Spec, target: str = "", directory: str = "") -> tuple[str, str]:
    """Validate the spec and return the path and text of its generated RPM spec file.

    The file goes to directory, which defaults to SPECS/<name>.
    """
    try:
        validate_spec(spec)
    except MissingRequiredFieldError as exc:
        raise ValueError(f"invalid spec: {exc}") from exc

    content = f"# Automatically generated by {GENERATOR_NAME}\n\n" + write_spec(spec, target)
    if not directory:
        directory = "SPECS/" + spec.name
    path = _path_join(directory, spec.name) + ".spec"
    return path, content
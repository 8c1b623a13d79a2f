"""Validation and the command line for building RPMs with rpmbuild."""

from __future__ import annotations

from .spec import Spec

TOP_DIR = "/build/top"
OUT_DIR = "/build/out"
TMP_DIR = "/build/tmp"

_REQUIRED_FIELDS = ("name", "version", "revision", "description", "license")


class MissingRequiredFieldError(ValueError):
    """The spec lacks fields that rpmbuild needs."""

    def __init__(self, fields: list[str]):
        self.fields = list(fields)
        super().__init__(self.fields)

    def __str__(self) -> str:
        return "\n".join(f"missing required field: {name}" for name in self.fields)


def validate_spec(spec: Spec) -> None:
    """Raise MissingRequiredFieldError naming every field rpmbuild needs but lacks."""
    missing = [name for name in _REQUIRED_FIELDS if not getattr(spec, name)]
    if missing:
        raise MissingRequiredFieldError(missing)


def rpmbuild_command(spec_path: str) -> str:
    """Return the shell command that builds binary and source RPMs from spec_path."""
    return (
        f'rpmbuild --define "_topdir {TOP_DIR}" --define "_srcrpmdir {OUT_DIR}/SRPMS" '
        f'--define "_rpmdir {OUT_DIR}/RPMS" --buildroot {TMP_DIR}/work -ba {spec_path}'
    )
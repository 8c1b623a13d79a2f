"""The package spec model used to generate package build files."""

from __future__ import annotations

import datetime
import posixpath
from dataclasses import dataclass, field
from typing import Optional

from .request import Frontend


@dataclass
class PackageConstraints:
    """Version and architecture constraints on a dependency."""

    version: list[str] = field(default_factory=list)
    arch: list[str] = field(default_factory=list)


@dataclass
class PackageDependencies:
    """Build, runtime and test dependencies of a package."""

    build: dict[str, PackageConstraints] = field(default_factory=dict)
    runtime: dict[str, PackageConstraints] = field(default_factory=dict)
    test: list[str] = field(default_factory=list)


@dataclass
class ArtifactConfig:
    """Where an artifact is installed: a sub-path and an optional new name."""

    sub_path: str = ""
    name: str = ""

    def resolve_name(self, path: str) -> str:
        """Return the configured name, or the base name of path."""
        return self.name or posixpath.basename(path)


@dataclass
class ArtifactDirConfig:
    """A directory created by the package, with its permission bits."""

    mode: int = 0


@dataclass
class SystemdUnitConfig:
    """A systemd unit shipped by the package."""

    name: str = ""
    enable: bool = False

    def artifact(self) -> ArtifactConfig:
        return ArtifactConfig(name=self.name)


@dataclass
class SystemdDropinConfig:
    """A systemd drop-in file for a named unit."""

    unit: str = ""
    name: str = ""

    def artifact(self) -> ArtifactConfig:
        return ArtifactConfig(name=self.name)


@dataclass
class SystemdConfiguration:
    """Systemd units and drop-ins shipped by the package."""

    units: dict[str, SystemdUnitConfig] = field(default_factory=dict)
    dropins: dict[str, SystemdDropinConfig] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.units

    def enabled_units(self) -> dict[str, SystemdUnitConfig]:
        return {path: cfg for path, cfg in self.units.items() if cfg.enable}


@dataclass
class ArtifactDirectories:
    """Directories created under the config and state roots."""

    config: dict[str, ArtifactDirConfig] = field(default_factory=dict)
    state: dict[str, ArtifactDirConfig] = field(default_factory=dict)


@dataclass
class ArtifactSymlink:
    """A symlink installed by the package."""

    source: str
    dest: str


@dataclass
class Artifacts:
    """Everything a package installs."""

    binaries: dict[str, ArtifactConfig] = field(default_factory=dict)
    manpages: dict[str, ArtifactConfig] = field(default_factory=dict)
    data_dirs: dict[str, ArtifactConfig] = field(default_factory=dict)
    directories: Optional[ArtifactDirectories] = None
    config_files: dict[str, ArtifactConfig] = field(default_factory=dict)
    systemd: Optional[SystemdConfiguration] = None
    docs: dict[str, ArtifactConfig] = field(default_factory=dict)
    licenses: dict[str, ArtifactConfig] = field(default_factory=dict)
    libs: dict[str, ArtifactConfig] = field(default_factory=dict)
    links: list[ArtifactSymlink] = field(default_factory=list)

    def is_empty(self) -> bool:
        if self.binaries or self.manpages or self.data_dirs or self.config_files:
            return False
        if self.directories is not None and (self.directories.config or self.directories.state):
            return False
        if self.systemd is not None and (self.systemd.units or self.systemd.dropins):
            return False
        return not (self.docs or self.licenses or self.libs or self.links)


_SOURCE_KINDS = ("context", "docker_image", "git", "http", "inline_file", "inline_dir")


@dataclass
class Source:
    """One package source; exactly one of the kind fields must be set."""

    inline_file: Optional[str] = None
    inline_dir: Optional[dict[str, str]] = None
    http: Optional[str] = None
    git: Optional[str] = None
    git_commit: str = ""
    context: Optional[str] = None
    docker_image: Optional[str] = None
    path: str = ""
    includes: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    gomod: bool = False

    @property
    def kind(self) -> str:
        """Return the name of the kind field that is set."""
        kinds = [k for k in _SOURCE_KINDS if getattr(self, k) is not None]
        if not kinds:
            raise ValueError("no source type specified")
        if len(kinds) > 1:
            raise ValueError(f"multiple source types specified: {', '.join(kinds)}")
        return kinds[0]

    def is_dir(self) -> bool:
        """Report whether the source produces a directory rather than a single file."""
        return self.kind not in ("http", "inline_file")

    def doc(self, name: str) -> str:
        """Describe where the source named name comes from, one line per fact."""
        kind = self.kind
        if kind == "context":
            lines = [
                "Generated from a local docker build context and is unmodified.",
                f"\tContext: {self.context or DEFAULT_SOURCE_CONTEXT}",
            ]
        elif kind == "docker_image":
            lines = ["Generated from a docker image:", f"\tImage: {self.docker_image}"]
        elif kind == "git":
            lines = ["Generated from a git repository:", f"\tRemote: {self.git}"]
            if self.git_commit:
                lines.append(f"\tRef: {self.git_commit}")
        elif kind == "http":
            lines = ["Generated from a http(s) source:", f"\tURL: {self.http}"]
        elif kind == "inline_file":
            lines = ["Generated from an inline source:", f"\tFile: {name}"]
        else:
            lines = ["Generated from an inline source:", f"\tDirectory: {name}"]
            lines.extend(f"\t\t{fname}" for fname in sorted(self.inline_dir or {}))
        if self.path:
            lines.append(f"\tExtracted path: {self.path}")
        if self.includes:
            lines.append(f"\tIncluded files: {', '.join(self.includes)}")
        if self.excludes:
            lines.append(f"\tExcluded files: {', '.join(self.excludes)}")
        return "\n".join(lines) + "\n"


DEFAULT_SOURCE_CONTEXT = "context"


@dataclass
class PatchSpec:
    """A patch taken from a source, applied to another source."""

    source: str
    strip: int = 1
    path: str = ""


@dataclass
class BuildStep:
    """A shell command run during the build, with extra environment."""

    command: str
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class ArtifactBuild:
    """The build steps of a package and the environment shared by all of them."""

    steps: list[BuildStep] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class ChangelogEntry:
    """One dated changelog entry."""

    date: datetime.date
    author: str
    changes: list[str] = field(default_factory=list)


@dataclass
class SpecTarget:
    """Per-target overrides of a spec."""

    dependencies: Optional[PackageDependencies] = None
    frontend: Optional[Frontend] = None


@dataclass
class Spec:
    """A package spec."""

    name: str = ""
    version: str = ""
    revision: str = ""
    description: str = ""
    license: str = ""
    website: str = ""
    vendor: str = ""
    packager: str = ""
    no_arch: bool = False
    sources: dict[str, Source] = field(default_factory=dict)
    patches: dict[str, list[PatchSpec]] = field(default_factory=dict)
    build: ArtifactBuild = field(default_factory=ArtifactBuild)
    artifacts: Artifacts = field(default_factory=Artifacts)
    dependencies: Optional[PackageDependencies] = None
    targets: dict[str, SpecTarget] = field(default_factory=dict)
    conflicts: dict[str, PackageConstraints] = field(default_factory=dict)
    provides: dict[str, PackageConstraints] = field(default_factory=dict)
    replaces: dict[str, PackageConstraints] = field(default_factory=dict)
    changelog: list[ChangelogEntry] = field(default_factory=list)

    def has_gomods(self) -> bool:
        """Report whether any source asks for Go module dependencies."""
        return any(src.gomod for src in self.sources.values())
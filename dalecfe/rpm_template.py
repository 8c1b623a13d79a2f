"""Generation of RPM spec files from a package spec."""

from __future__ import annotations

import json
import posixpath
from dataclasses import dataclass
from typing import Callable, Optional

from .gateway import _path_join
from .spec import (
    ArtifactConfig,
    ArtifactDirConfig,
    BuildStep,
    PackageConstraints,
    Spec,
    SystemdConfiguration,
    SystemdUnitConfig,
)

GOMODS_NAME = "__gomods"
BUILD_SCRIPT_NAME = "build.sh"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_BUILDROOT = "%{buildroot}"


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _dirname(path: str) -> str:
    return _path_join(posixpath.dirname(path)) or "."


def _systemd_empty(cfg: Optional[SystemdConfiguration]) -> bool:
    return cfg is None or cfg.is_empty()


def optional_field(key: str, value: str) -> str:
    """Return a 'key: value' line, or nothing when value is empty."""
    if not value:
        return ""
    return f"{key}: {value}\n"


def write_dep(kind: str, name: str, constraints: PackageConstraints) -> str:
    """Render one dependency line per version constraint, wrapped per architecture."""
    if constraints.version:
        lines = "".join(f"{kind}: {name} {c}\n" for c in constraints.version)
    else:
        lines = f"{kind}: {name}\n"
    if not constraints.arch:
        return lines
    return "".join(f"%ifarch {arch}\n{lines}%endif\n" for arch in constraints.arch)


def systemd_requires(cfg: Optional[SystemdConfiguration]) -> str:
    """Return the systemd requirements implied by shipping systemd units."""
    if _systemd_empty(cfg):
        return ""
    requires = ""
    order_requires = ""
    if cfg.enabled_units():
        requires += "Requires(post): systemd\n"
        order_requires += "OrderWithRequires(post): systemd\n"
    requires += "Requires(preun): systemd\nRequires(postun): systemd\n"
    order_requires += "OrderWithRequires(preun): systemd\nOrderWithRequires(postun): systemd\n"
    return requires + order_requires


def systemd_post_script(unit_name: str, cfg: SystemdUnitConfig) -> str:
    """Return the post-install snippet enabling the unit on first install."""
    if not cfg.enable:
        return ""
    return (
        "\n"
        "if [ $1 -eq 1 ]; then\n"
        "    # initial installation\n"
        f"    systemctl enable {unit_name}\n"
        "fi\n"
    )


def write_step(step: BuildStep) -> str:
    """Render a build step as a subshell with its environment exported."""
    exports = "".join(f'export {k}="{step.env[k]}"\n' for k in sorted(step.env))
    return f"(\n{exports}{step.command})\n"


@dataclass
class SpecWrapper:
    """Renders the sections of an RPM spec for a package spec and target."""

    spec: Spec
    target: str = ""

    def release(self) -> str:
        return self.spec.revision or "1"

    def sources(self) -> str:
        out = []
        keys = sorted(self.spec.sources)
        for idx, name in enumerate(keys):
            src = self.spec.sources[name]
            try:
                ref = name + ".tar.gz" if src.is_dir() else name
                doc = src.doc(name)
            except ValueError as exc:
                raise ValueError(f"error getting doc for source {name}: {exc}") from exc
            out.extend(f"# {line}\n" for line in doc.splitlines())
            out.append(f"Source{idx}: {ref}\n")

        source_idx = len(keys)
        if self.spec.has_gomods():
            out.append(f"Source{source_idx}: {GOMODS_NAME}.tar.gz\n")
            source_idx += 1
        if self.spec.build.steps:
            out.append(f"Source{source_idx}: {BUILD_SCRIPT_NAME}\n")
        if keys:
            out.append("\n")
        return "".join(out)

    def conflicts(self) -> str:
        deps = self.spec.conflicts
        return "".join(write_dep("Conflicts", n, deps[n]) for n in sorted(deps)) + "\n"

    def provides(self) -> str:
        # Constraints are taken from the replaces table, matching existing output.
        return "".join(
            write_dep("Provides", n, self.spec.replaces.get(n, PackageConstraints()))
            for n in sorted(self.spec.provides)
        ) + "\n"

    def replaces(self) -> str:
        deps = self.spec.replaces
        return "".join(write_dep("Replaces", n, deps[n]) for n in sorted(deps))

    def requires(self) -> str:
        out = [systemd_requires(self.spec.artifacts.systemd)]
        target = self.spec.targets.get(self.target)
        deps = target.dependencies if target is not None else None
        if deps is None:
            deps = self.spec.dependencies
        if deps is None:
            return "".join(out)

        out.extend(write_dep("BuildRequires", n, deps.build[n]) for n in sorted(deps.build))
        if deps.build and deps.runtime:
            out.append("\n")
        out.extend(write_dep("Requires", n, deps.runtime[n]) for n in sorted(deps.runtime))
        out.append("\n")
        return "".join(out)

    def prepare_sources(self) -> str:
        if not self.spec.sources:
            return ""
        out = ["%prep\n"]
        keys = sorted(self.spec.sources)
        for key in keys:
            if not self.spec.sources[key].is_dir():
                out.append(f'cp -a "%{{_sourcedir}}/{key}" .\n')
                continue
            out.append(f'mkdir -p "%{{_builddir}}/{key}"\n')
            out.append(f'tar -C "%{{_builddir}}/{key}" -xzf "%{{_sourcedir}}/{key}.tar.gz"\n')

        if self.spec.has_gomods():
            out.append(f'mkdir -p "%{{_builddir}}/{GOMODS_NAME}"\n')
            out.append(
                f'tar -C "%{{_builddir}}/{GOMODS_NAME}" -xzf "%{{_sourcedir}}/{GOMODS_NAME}.tar.gz"\n'
            )

        for key in sorted(self.spec.patches):
            for patch in self.spec.patches[key]:
                source = _path_join(patch.source, patch.path)
                out.append(
                    f'patch -d {_quote(key)} -p{patch.strip} -s --input "%{{_builddir}}/{source}"\n'
                )

        if keys:
            out.append("\n")
        return "".join(out)

    def build_steps(self) -> str:
        if not self.spec.build.steps:
            return ""
        return f"%build\n%{{_sourcedir}}/{BUILD_SCRIPT_NAME}\n\n"

    def install(self) -> str:
        arts = self.spec.artifacts
        out = ["%install\n"]
        if arts.is_empty():
            out.append("\n")
            return "".join(out)

        def copy(root: str, path: str, cfg: ArtifactConfig) -> None:
            target_dir = _path_join(root, cfg.sub_path)
            out.append(f"mkdir -p {target_dir}\n")
            file = cfg.resolve_name(path)
            target = target_dir + "/" if "*" in file else _path_join(target_dir, file)
            out.append(f"cp -r {path} {target}\n")

        def mkdir(root: str, path: str, cfg: ArtifactDirConfig) -> None:
            cmd = "mkdir"
            if cfg.mode & 0o777:
                cmd += f" -m {cfg.mode:o}"
            out.append(f"{cmd} -p {_quote(_path_join(root, path))}\n")

        def each(table: dict, action: Callable, root: str) -> None:
            for key in sorted(table):
                action(root, key, table[key])

        each(arts.binaries, copy, _BUILDROOT + "/%{_bindir}")
        each(arts.manpages, copy, _BUILDROOT + "/%{_mandir}")
        if arts.directories is not None:
            each(arts.directories.config, mkdir, _BUILDROOT + "/%{_sysconfdir}")
            each(arts.directories.state, mkdir, _BUILDROOT + "/%{_sharedstatedir}")
        each(arts.data_dirs, copy, _BUILDROOT + "/%{_datadir}")
        each(arts.config_files, copy, _BUILDROOT + "/%{_sysconfdir}")
        if arts.systemd is not None:
            unit_root = _BUILDROOT + "/%{_unitdir}"
            for path in sorted(arts.systemd.units):
                copy(unit_root, path, arts.systemd.units[path].artifact())
            for path in sorted(arts.systemd.dropins):
                copy(unit_root, path, arts.systemd.dropins[path].artifact())
        name = self.spec.name
        each(arts.docs, copy, _path_join(_BUILDROOT + "/%{_docdir}", name))
        each(arts.licenses, copy, _path_join(_BUILDROOT + "/%{_licensedir}", name))
        each(arts.libs, copy, _path_join(_BUILDROOT + "/%{_libdir}", name))

        for link in arts.links:
            out.append(f"mkdir -p {_dirname(_path_join(_BUILDROOT, link.dest))}\n")
            out.append(f"ln -sf {link.source} {_BUILDROOT}/{link.dest}\n")

        out.append("\n")
        return "".join(out)

    def post(self) -> str:
        systemd = self.spec.artifacts.systemd
        if _systemd_empty(systemd):
            return ""
        enabled = systemd.enabled_units()
        if not enabled:
            return ""
        out = ["%post\n"]
        for path in sorted(enabled):
            unit = systemd.units[path]
            out.append(systemd_post_script(unit.artifact().resolve_name(path), unit))
        out.append("\n")
        return "".join(out)

    def preun(self) -> str:
        systemd = self.spec.artifacts.systemd
        if _systemd_empty(systemd):
            return ""
        lines = "".join(
            f"%systemd_preun {posixpath.basename(path)}\n" for path in sorted(systemd.units)
        )
        return f"%preun\n{lines}\n"

    def postun(self) -> str:
        systemd = self.spec.artifacts.systemd
        if _systemd_empty(systemd):
            return ""
        lines = "".join(
            f"%systemd_postun {systemd.units[path].artifact().resolve_name(path)}\n"
            for path in sorted(systemd.units)
        )
        return "%postun\n" + lines

    def files(self) -> str:
        arts = self.spec.artifacts
        name = self.spec.name
        out = ["%files\n"]
        if arts.is_empty():
            out.append("\n")
            return "".join(out)

        for path in sorted(arts.binaries):
            cfg = arts.binaries[path]
            out.append(_path_join("%{_bindir}/", cfg.sub_path, cfg.resolve_name(path)) + "\n")

        if arts.manpages:
            out.append("%{_mandir}/*/*\n")

        if arts.directories is not None:
            for path in sorted(arts.directories.config):
                out.append("%dir " + _path_join("%{_sysconfdir}", path) + "\n")
            for path in sorted(arts.directories.state):
                out.append("%dir " + _path_join("%{_sharedstatedir}", path) + "\n")

        for key in sorted(arts.data_dirs):
            cfg = arts.data_dirs[key]
            out.append(_path_join("%{_datadir}", cfg.sub_path, cfg.resolve_name(key)) + "\n")

        for key in sorted(arts.config_files):
            cfg = arts.config_files[key]
            full = _path_join("%{_sysconfdir}", cfg.sub_path, cfg.resolve_name(key))
            out.append(f"%config(noreplace) {full}\n")

        if arts.systemd is not None:
            for path in sorted(arts.systemd.units):
                art = arts.systemd.units[path].artifact()
                out.append(_path_join("%{_unitdir}/", art.sub_path, art.resolve_name(path)) + "\n")

            dropins: dict[str, list[str]] = {}
            for path in sorted(arts.systemd.dropins):
                cfg = arts.systemd.dropins[path]
                file = _path_join("%{_unitdir}", f"{cfg.unit}.d", cfg.artifact().resolve_name(path))
                dropins.setdefault(cfg.unit, []).append(file)
            for unit in sorted(dropins):
                out.append("%dir " + _path_join("%{_unitdir}", f"{unit}.d") + "\n")
                out.extend(f"{file}\n" for file in dropins[unit])

        for key in sorted(arts.docs):
            cfg = arts.docs[key]
            out.append("%doc " + _path_join("%{_docdir}", name, cfg.sub_path, cfg.resolve_name(key)) + "\n")

        for key in sorted(arts.licenses):
            cfg = arts.licenses[key]
            out.append(
                "%license "
                + _path_join("%{_licensedir}", name, cfg.sub_path, cfg.resolve_name(key))
                + "\n"
            )

        for key in sorted(arts.libs):
            cfg = arts.libs[key]
            out.append(_path_join("%{_libdir}", name, cfg.sub_path, cfg.resolve_name(key)) + "\n")

        out.extend(f"{link.dest}\n" for link in arts.links)
        out.append("\n")
        return "".join(out)

    def changelog(self) -> str:
        if not self.spec.changelog:
            return ""
        out = ["%changelog\n"]
        for entry in self.spec.changelog:
            d = entry.date
            stamp = f"{_WEEKDAYS[d.weekday()]} {_MONTHS[d.month - 1]} {d.day} {d.year}"
            out.append(f"* {stamp} {entry.author}\n")
            out.extend(f"- {change}\n" for change in entry.changes)
        out.append("\n")
        return "".join(out)

    def render(self) -> str:
        """Render the complete RPM spec."""
        s = self.spec
        parts = [
            f"Name: {s.name}\n",
            f"Version: {s.version}\n",
            f"Release: {self.release()}%{{?dist}}\n",
            f"License: {s.license}\n",
            f"Summary: {s.description}\n",
            optional_field("URL", s.website),
            optional_field("Vendor", s.vendor),
            optional_field("Packager", s.packager),
            "\nBuildArch: noarch\n" if s.no_arch else "",
            self.sources(),
            self.conflicts(),
            self.provides(),
            self.replaces(),
            self.requires(),
            f"%description\n{s.description}\n\n",
            self.prepare_sources(),
            self.build_steps(),
            self.install(),
            self.post(),
            self.preun(),
            self.postun(),
            self.files(),
            self.changelog(),
        ]
        return "".join(parts)


def write_spec(spec: Spec, target: str) -> str:
    """Generate the RPM spec text for spec and the given distro target."""
    try:
        return SpecWrapper(spec, target).render()
    except ValueError as exc:
        raise ValueError(f"error executing spec template: {exc}") from exc
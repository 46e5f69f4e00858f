from __future__ import annotations

from pathlib import Path

import pytest

from trellis.catalog import SkeletonCache
from trellis.config import EngineConfig
from trellis.errors import ConditionalStackError, SkeletonRenderError, UnknownCondition
from trellis.flags import FileFlags
from trellis.model import Package, PackageKind, Project
from trellis.pipeline import RenderState, render_files, render_package, render_project, skeleton_flags
from trellis.skeleton import Skeleton
from trellis.template import Postpone
from trellis.writer import LocalFileWriter


@pytest.fixture()
def project() -> Project:
    return Project(name="demo", skip=["docs"], ci_systems=["github"])


def _state(project: Project, config: EngineConfig, **kwargs) -> RenderState:
    return RenderState(project=project, skeletons=SkeletonCache(config), **kwargs)


def test_skeleton_flags_defaults_and_exec_bits():
    skeleton = Skeleton(
        name="demo",
        flags_by_file={
            "declared.txt": FileFlags(target_path="out.txt", permission_bits=0o600),
            "tool.sh": FileFlags(permission_bits=0o600),
        },
    )

    plain = skeleton_flags(skeleton, "plain.txt", 0o644)
    assert plain.target_path == "plain.txt"
    assert plain.permission_bits == 0o644

    declared = skeleton_flags(skeleton, "declared.txt", 0o644)
    assert declared.target_path == "out.txt"
    assert declared.permission_bits == 0o600

    assert skeleton_flags(skeleton, "tool.sh", 0o644).permission_bits == 0o711
    assert skeleton_flags(skeleton, "other.sh", 0o644).permission_bits == 0o755


def test_skeleton_flags_returns_fresh_copies():
    declared = FileFlags(skip_tags=["ci"])
    skeleton = Skeleton(name="demo", flags_by_file={"a.txt": declared})

    flags = skeleton_flags(skeleton, "a.txt", 0o644)
    flags.skip_tags.append("docs")
    flags.conditional_skip_stack.append(True)

    assert declared.skip_tags == ["ci"]
    assert declared.conditional_skip_stack == []


def test_render_project_hands_files_to_writer(make_skeleton, engine_config, project, recording_writer):
    make_skeleton(
        "program",
        {
            "README.md": "# {{ name }}\n{% if:skip:docs %}no docs{% else %}docs{% fi %}\n",
            "build.sh": "#!/bin/sh\n",
            "raw.txt": "{{ untouched }} {% skip %}",
            "tmpl.txt": "{% file:{{ name }}.cfg %}{% create %}{% no-record %}{% skip:ci %}{% perm:600 %}x",
        },
        flags='[file."raw.txt"]\nsubst = false\n',
    )

    render_project(recording_writer, _state(project, engine_config))

    calls = recording_writer.by_path()
    assert recording_writer.paths == ["README.md", "build.sh", "raw.txt", "demo.cfg"]

    readme = calls["README.md"]
    assert readme["content"] == "# demo\nno docs\n"
    assert readme["skip"] is False
    assert readme["record"] is True
    assert readme["permission_bits"] == 0o644

    assert calls["build.sh"]["permission_bits"] == 0o755
    assert calls["raw.txt"]["content"] == "{{ untouched }} {% skip %}"
    assert calls["raw.txt"]["skip"] is False

    cfg = calls["demo.cfg"]
    assert cfg["content"] == "x"
    assert cfg["create_once"] is True
    assert cfg["record"] is False
    assert cfg["skip_tags"] == ("ci",)
    assert cfg["permission_bits"] == 0o600


def test_render_project_backs_up_every_source(make_skeleton, engine_config, project, recording_writer):
    make_skeleton(
        "program",
        {"skipped.txt": "{% skip %}gone", "nested/tool.sh": "#!/bin/sh\n"},
        perms={"nested/tool.sh": 0o750},
    )

    render_project(recording_writer, _state(project, engine_config))

    backup = engine_config.backup_dir
    assert (backup / "skipped.txt").read_text(encoding="utf-8") == "{% skip %}gone"
    assert (backup / "nested" / "tool.sh").stat().st_mode & 0o777 == 0o750
    assert recording_writer.by_path()["skipped.txt"]["skip"] is True


def test_unclosed_false_condition_skips_file(make_skeleton, engine_config, project, recording_writer):
    make_skeleton("program", {"gitlab.yml": "{% if:ci:gitlab %}\nstages: []\n"})

    render_project(recording_writer, _state(project, engine_config))

    call = recording_writer.by_path()["gitlab.yml"]
    assert call["skip"] is True
    assert call["content"] == ""


def test_project_skeleton_inherits_parent_files(make_skeleton, engine_config, recording_writer):
    make_skeleton("program", {"a.txt": "base {{ name }}", "b.txt": "base b"})
    make_skeleton("library", {"b.txt": "library b"}, inherits="program")

    render_project(recording_writer, _state(Project(name="lib", skeleton="library"), engine_config))

    assert [(call["path"], call["content"]) for call in recording_writer.calls] == [
        ("a.txt", "base lib"),
        ("b.txt", "library b"),
    ]


def test_postponed_files_are_rendered_last(make_skeleton, engine_config, project, recording_writer):
    make_skeleton(
        "program",
        {
            "FILES.txt": "{{ generated_files|lines }}\n",
            "a.txt": "a",
            "hidden.txt": "{% skip %}",
            "tagged.txt": "{% skip:docs %}",
            "z.txt": "z",
        },
    )

    render_project(recording_writer, _state(project, engine_config))

    assert recording_writer.paths == ["a.txt", "hidden.txt", "tagged.txt", "z.txt", "FILES.txt"]
    assert recording_writer.by_path()["FILES.txt"]["content"] == "a.txt\nz.txt\n"


def test_second_postponement_is_fatal(make_skeleton, engine_config, project, recording_writer):
    make_skeleton("program", {"a.txt": "a"})

    def always_postpone(template, context, **kwargs):
        raise Postpone()

    state = _state(project, engine_config, substitute=always_postpone)
    with pytest.raises(SkeletonRenderError, match="postponed twice"):
        render_project(recording_writer, state)
    assert recording_writer.calls == []


def test_missing_placeholder_names_the_file(make_skeleton, engine_config, project, recording_writer):
    make_skeleton("program", {"broken.txt": "{{ nope }}"})

    with pytest.raises(SkeletonRenderError, match="broken.txt"):
        render_project(recording_writer, _state(project, engine_config))


def test_directives_resolve_embedded_placeholders(make_skeleton, engine_config, recording_writer):
    make_skeleton(
        "program",
        {
            "owner.txt": (
                "{% if:field:owner:{{ name }} %}mine{% else %}theirs{% fi %}"
                "{% perm:{{ fields.mode }} %}"
            ),
        },
    )
    project = Project(name="demo", fields={"owner": "demo", "mode": "640"})

    render_project(recording_writer, _state(project, engine_config))

    call = recording_writer.by_path()["owner.txt"]
    assert call["content"] == "mine"
    assert call["permission_bits"] == 0o640


def test_unknown_condition_aborts(make_skeleton, engine_config, project, recording_writer):
    make_skeleton("program", {"a.txt": "{% if:weather:sunny %}{% fi %}"})

    with pytest.raises(UnknownCondition, match="weather:sunny") as excinfo:
        render_project(recording_writer, _state(project, engine_config))
    assert excinfo.value.file == "a.txt"
    assert str(excinfo.value).startswith("a.txt: ")


def test_stray_fi_aborts(make_skeleton, engine_config, project, recording_writer):
    make_skeleton("program", {"a.txt": "{% fi %}"})

    with pytest.raises(ConditionalStackError, match="^a.txt: fi without if$"):
        render_project(recording_writer, _state(project, engine_config))


def test_render_package_places_files_in_package_dir(make_skeleton, engine_config, project, recording_writer):
    make_skeleton(
        "library",
        {
            "main.py": (
                "{% file:{{ name }}.py %}"
                "{% if:project:ci:github %}gh {% fi %}"
                "{% if:kind:is:library %}lib {% fi %}"
                "{{ project.name }}/{{ name }}"
            ),
        },
        kind="package",
    )
    package = Package(name="core", dir="src/core", kind=PackageKind.LIBRARY)

    render_package(recording_writer, _state(project, engine_config, package=package))

    assert recording_writer.calls[0]["path"] == "src/core/core.py"
    assert recording_writer.calls[0]["content"] == "gh lib demo/core"


def test_render_package_requires_package(engine_config, project, recording_writer):
    with pytest.raises(ValueError):
        render_package(recording_writer, _state(project, engine_config))


def test_render_files_renders_project_then_packages(make_skeleton, engine_config, recording_writer):
    make_skeleton("program", {"README.md": "{{ name }}"})
    make_skeleton("library", {"lib.txt": "{{ name }} in {{ project.name }}"}, kind="package")
    make_skeleton("program", {"bin.txt": "{{ name }}"}, kind="package")
    project = Project(
        name="demo",
        packages=[
            Package(name="core", dir="core"),
            Package(name="cli", dir="cli", kind=PackageKind.PROGRAM),
        ],
    )

    render_files(recording_writer, _state(project, engine_config))

    assert [(call["path"], call["content"]) for call in recording_writer.calls] == [
        ("README.md", "demo"),
        ("core/lib.txt", "core in demo"),
        ("cli/bin.txt", "cli"),
    ]


def test_unsubstituted_files_round_trip_bytes(make_skeleton, engine_config, project, tmp_path: Path):
    directory = make_skeleton("program", flags='[file."logo.bin"]\nsubst = false\n')
    payload = bytes(range(256)) + b"{{ name }}"
    (directory / "logo.bin").write_bytes(payload)
    (directory / "logo.bin").chmod(0o644)

    output = tmp_path / "out"
    writer = LocalFileWriter(output)
    render_project(writer, _state(project, engine_config))

    assert (output / "logo.bin").read_bytes() == payload

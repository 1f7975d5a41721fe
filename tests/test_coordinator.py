"""End-to-end tests of the create and apply workflows with in-process fakes."""

import shutil
import warnings

import pytest

from core.config import Config, DiffConfig
from core.exceptions import EmptyDiffWarning, PackageNotFoundError, ProvisionError
from core.types import ApplyResult, ApplyStatus, PackageIdentity
from coordinator import PatchCoordinator
from fakes import (
    FakeInstaller,
    ScriptedPatchTool,
    requires_gnu_diff,
    requires_gnu_patch,
    write_package,
)
from patching.patch_applicator import PatchApplicator
from provisioning.baseline import BaselineProvisioner

PACKAGE = "@scope/name"
VERSION = "1.2.3"
FILES = {
    "index.js": "const a = 1;\nmodule.exports = a;\n",
    "lib/util.js": "module.exports = () => 1;\n",
}


@pytest.fixture
def project(tmp_path):
    """Create a project with an installed package and a pristine copy for the fake installer."""
    root = tmp_path / "project"
    live = write_package(root / "node_modules" / "@scope" / "name", PACKAGE, VERSION, FILES)
    pristine = write_package(tmp_path / "pristine", PACKAGE, VERSION, FILES)
    return root, live, pristine


def make_coordinator(root, pristine, installer=None, applicator=None, diff_tool="python"):
    config = Config(project_root=str(root), diff=DiffConfig(tool=diff_tool))
    provisioner = BaselineProvisioner(
        config.get_project_root(), [installer or FakeInstaller(pristine)]
    )
    return PatchCoordinator(config, provisioner=provisioner, applicator=applicator)


class TestCreatePatch:
    """Test suite for capturing local edits as patch files."""

    def test_scoped_package_patch(self, project):
        """Test the full create flow for a scoped package with a one-line edit."""
        root, live, pristine = project
        (live / "index.js").write_text("const a = 2;\nmodule.exports = a;\n")
        coordinator = make_coordinator(root, pristine)

        metadata = coordinator.create_patch(PACKAGE)

        expected = root.resolve() / "patches" / "@scope+name+1.2.3.patch"
        assert metadata.path == expected
        text = expected.read_text(encoding="utf-8")
        assert "--- a/node_modules/@scope/name/index.js\n" in text
        assert "+++ b/node_modules/@scope/name/index.js\n" in text
        assert "-const a = 1;\n+const a = 2;\n" in text
        assert ".depatch-tmp" not in text
        assert metadata.line_count == len(text.splitlines())
        assert not (root / ".depatch-tmp").exists()

    def test_patch_overwritten_on_recreate(self, project):
        root, live, pristine = project
        coordinator = make_coordinator(root, pristine)

        (live / "index.js").write_text("const a = 2;\nmodule.exports = a;\n")
        first = coordinator.create_patch(PACKAGE)
        (live / "index.js").write_text("const a = 3;\nmodule.exports = a;\n")
        second = coordinator.create_patch(PACKAGE)

        assert first.path == second.path
        assert first.sha256 != second.sha256
        assert "+const a = 3;" in second.path.read_text()
        assert len(list((root / "patches").iterdir())) == 1

    def test_no_changes_warns_and_writes_nothing(self, project):
        """Test that an unmodified package yields a warning and no patch file."""
        root, _, pristine = project
        coordinator = make_coordinator(root, pristine)

        with pytest.warns(EmptyDiffWarning, match="No changes detected for @scope/name@1.2.3"):
            metadata = coordinator.create_patch(PACKAGE)

        assert metadata is None
        assert not (root / "patches").exists()
        assert not (root / ".depatch-tmp").exists()

    def test_excluded_changes_only(self, project):
        root, live, pristine = project
        (live / "android" / "build").mkdir(parents=True)
        (live / "android" / "build" / "out.txt").write_text("generated\n")
        coordinator = make_coordinator(root, pristine)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            assert coordinator.create_patch(PACKAGE) is None

        assert [w.category for w in caught] == [EmptyDiffWarning]

    def test_missing_package(self, project):
        root, _, pristine = project
        installer = FakeInstaller(pristine)
        coordinator = make_coordinator(root, pristine, installer=installer)

        with pytest.raises(PackageNotFoundError):
            coordinator.create_patch("left-pad")

        assert installer.calls == []
        assert not (root / "patches").exists()

    def test_provision_failure_writes_nothing(self, project):
        """Test that an install failure aborts without a patch or scratch leftovers."""
        root, live, pristine = project
        (live / "index.js").write_text("changed\n")
        coordinator = make_coordinator(
            root, pristine, installer=FakeInstaller(pristine, fail_with="registry unreachable")
        )

        with pytest.raises(ProvisionError, match="registry unreachable"):
            coordinator.create_patch(PACKAGE)

        assert not (root / "patches").exists()
        assert not (root / ".depatch-tmp").exists()

    def test_list_patches(self, project):
        root, live, pristine = project
        (live / "index.js").write_text("changed\n")
        coordinator = make_coordinator(root, pristine)
        coordinator.create_patch(PACKAGE)
        (root / "patches" / "notes.patch").write_text("")

        listed = coordinator.list_patches()

        assert [meta.path.name for _, meta in listed] == [
            "@scope+name+1.2.3.patch",
            "notes.patch",
        ]
        assert listed[0][0] == PackageIdentity(name=PACKAGE, version=VERSION)
        assert listed[1][0] is None


class TestApplyPatches:
    """Test suite for replaying stored patches through the coordinator."""

    def test_apply_uses_store_and_project_root(self, project):
        root, _, pristine = project
        patches_dir = root / "patches"
        patches_dir.mkdir()
        for name in ["a+1.0.0.patch", "b+2.0.0.patch"]:
            (patches_dir / name).write_text("")
        tool = ScriptedPatchTool(
            {"b+2.0.0.patch": ApplyResult(status=ApplyStatus.FAILED, detail="conflict")}
        )
        coordinator = make_coordinator(root, pristine, applicator=PatchApplicator(tool))

        summary = coordinator.apply_patches()

        assert (summary.applied, summary.failed) == (1, 1)
        assert all(call[1] == root.resolve() for call in tool.calls)

    def test_apply_without_patches_dir(self, project):
        root, _, pristine = project
        tool = ScriptedPatchTool()
        coordinator = make_coordinator(root, pristine, applicator=PatchApplicator(tool))

        assert coordinator.apply_patches().total == 0
        assert tool.calls == []

    @requires_gnu_patch
    def test_create_then_apply_on_fresh_install(self, project):
        """Test that a created patch restores the edits on a clean reinstall."""
        root, live, pristine = project
        edited = "const a = 42;\nmodule.exports = a;\n"
        (live / "index.js").write_text(edited)
        (live / "lib" / "added.js").write_text("module.exports = 'added';\n")
        coordinator = make_coordinator(root, pristine)
        coordinator.create_patch(PACKAGE)

        shutil.rmtree(live)
        shutil.copytree(pristine, live)

        first = coordinator.apply_patches()
        second = coordinator.apply_patches()

        assert first.outcomes[0].status is ApplyStatus.APPLIED
        assert second.outcomes[0].status is ApplyStatus.ALREADY_APPLIED
        assert (live / "index.js").read_text() == edited
        assert (live / "lib" / "added.js").read_text() == "module.exports = 'added';\n"


@requires_gnu_patch
class TestRoundTrip:
    """Test suite replaying created patches onto a clean install with GNU patch."""

    CRLF_BEFORE = b"one\r\ntwo\r\nthree\r\n"
    CRLF_AFTER = b"one\r\nTWO\r\nthree\r\n"

    @pytest.fixture
    def edited_project(self, project):
        root, live, pristine = project
        for tree in (live, pristine):
            (tree / "crlf.js").write_bytes(self.CRLF_BEFORE)
            (tree / "lib" / "gone.js").write_text("module.exports = 'gone';\n")

        (live / "index.js").write_text("const a = 7;\nmodule.exports = a;\n")
        (live / "lib" / "added.js").write_text("module.exports = 'added';\n")
        (live / "lib" / "gone.js").unlink()
        (live / "crlf.js").write_bytes(self.CRLF_AFTER)
        return root, live, pristine

    @pytest.mark.parametrize(
        "diff_tool",
        [pytest.param("gnu", marks=requires_gnu_diff), "python"],
    )
    def test_modified_added_removed_and_crlf_files(self, edited_project, diff_tool):
        """Test that every kind of change survives create followed by apply."""
        root, live, pristine = edited_project
        coordinator = make_coordinator(root, pristine, diff_tool=diff_tool)

        metadata = coordinator.create_patch(PACKAGE)
        assert b"-two\r\n+TWO\r\n" in metadata.path.read_bytes()

        shutil.rmtree(live)
        shutil.copytree(pristine, live)
        summary = coordinator.apply_patches()

        assert summary.outcomes[0].status is ApplyStatus.APPLIED
        assert (live / "index.js").read_text() == "const a = 7;\nmodule.exports = a;\n"
        assert (live / "lib" / "added.js").read_text() == "module.exports = 'added';\n"
        assert not (live / "lib" / "gone.js").exists()
        assert (live / "crlf.js").read_bytes() == self.CRLF_AFTER

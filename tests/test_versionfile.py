"""Tests for version files and the SemVer steps"""
import json
import pytest
from cherry.errors import InvalidVersion, ValidationError
from cherry.semver import SemanticVersion
from cherry.versionfile import SemVerRead, SemVerUpdate, VersionFile


PACKAGE_JSON = """{
  "name": "hello",
  "version": "1.4.2",
  "scripts": {
    "test": "jest"
  }
}
"""


class TestVersionFile:
    """Test VersionFile"""

    def test_detects_text_file(self, temp_dir):
        """Test VERSION is preferred when no filename is given"""
        (temp_dir / "VERSION").write_text("0.2.0\n")
        (temp_dir / "package.json").write_text(PACKAGE_JSON)
        vf = VersionFile(str(temp_dir))
        assert vf.read() == SemanticVersion(0, 2, 0)
        assert vf.filename == "VERSION"

    def test_detects_package_json(self, temp_dir):
        """Test package.json is used when there is no VERSION file"""
        (temp_dir / "package.json").write_text(PACKAGE_JSON)
        vf = VersionFile(str(temp_dir))
        assert vf.read() == SemanticVersion(1, 4, 2)
        assert vf.is_json

    def test_missing(self, temp_dir):
        """Test a missing version file is a validation error"""
        with pytest.raises(ValidationError):
            VersionFile(str(temp_dir)).read()
        with pytest.raises(ValidationError):
            VersionFile(str(temp_dir), "VERSION").read()

    def test_empty(self, temp_dir):
        """Test an empty version file is an invalid version"""
        (temp_dir / "VERSION").write_text("\n")
        with pytest.raises(InvalidVersion):
            VersionFile(str(temp_dir)).read()

    def test_garbage(self, temp_dir):
        """Test unparseable content is an invalid version"""
        (temp_dir / "VERSION").write_text("one point two\n")
        with pytest.raises(InvalidVersion):
            VersionFile(str(temp_dir)).read()

    def test_render_json_keeps_formatting(self, temp_dir):
        """Test only the version member of package.json changes"""
        (temp_dir / "package.json").write_text(PACKAGE_JSON)
        out = VersionFile(str(temp_dir), "package.json").render("1.5.0")
        assert out == PACKAGE_JSON.replace('"version": "1.4.2"', '"version": "1.5.0"')
        assert json.loads(out)["scripts"] == {"test": "jest"}

    def test_render_json_without_version(self, temp_dir):
        """Test a manifest without a version member cannot be rendered"""
        (temp_dir / "package.json").write_text('{"name": "hello"}')
        with pytest.raises(InvalidVersion):
            VersionFile(str(temp_dir), "package.json").render("1.0.0")


class TestSemVerSteps:
    """Test SemVerRead and SemVerUpdate"""

    def test_read(self, ctx, temp_dir):
        """Test dry and run both read the version"""
        (temp_dir / "VERSION").write_text("0.2.0-0\n")
        step = SemVerRead(VersionFile(str(temp_dir)))
        step.dry(ctx)
        assert step.result.filename == "VERSION"
        assert step.result.version == SemanticVersion(0, 2, 0, ("0",))

    def test_update_and_revert(self, ctx, temp_dir):
        """Test run writes the version and revert restores the old content"""
        path = temp_dir / "VERSION"
        path.write_text("0.2.0-0\n")
        step = SemVerUpdate(VersionFile(str(temp_dir)), "0.2.0")
        step.run(ctx)
        assert path.read_text() == "0.2.0\n"
        step.revert(ctx)
        assert path.read_text() == "0.2.0-0\n"

    def test_update_dry(self, ctx, temp_dir):
        """Test dry validates without writing"""
        path = temp_dir / "VERSION"
        path.write_text("0.2.0\n")
        SemVerUpdate(VersionFile(str(temp_dir)), "0.3.0").dry(ctx)
        assert path.read_text() == "0.2.0\n"

    def test_update_invalid_version(self, ctx, temp_dir):
        """Test an invalid target version leaves the file alone"""
        path = temp_dir / "VERSION"
        path.write_text("0.2.0\n")
        with pytest.raises(InvalidVersion):
            SemVerUpdate(VersionFile(str(temp_dir)), "0.3").run(ctx)
        assert path.read_text() == "0.2.0\n"

    def test_revert_without_run(self, ctx, temp_dir):
        """Test reverting before run changes nothing"""
        path = temp_dir / "VERSION"
        path.write_text("0.2.0\n")
        SemVerUpdate(VersionFile(str(temp_dir)), "0.3.0").revert(ctx)
        assert path.read_text() == "0.2.0\n"

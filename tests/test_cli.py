import json
import zipfile

from skillforge.cli import main


def _write_skill_set(path, metadata, skills):
    path.write_text(
        json.dumps({"metadata": metadata.to_wire(), "skills": [s.to_wire() for s in skills]}),
        encoding="utf-8",
    )


def test_build_writes_archive(tmp_path, metadata, skills, capsys):
    source = tmp_path / "skills.json"
    _write_skill_set(source, metadata, skills)
    archive = tmp_path / "out.zip"

    assert main(["build", str(source), "-o", str(archive)]) == 0
    assert "2 skills" in capsys.readouterr().out
    with zipfile.ZipFile(archive) as zf:
        assert "skillset.py" in zf.namelist()


def test_build_then_restore(tmp_path, metadata, skills):
    source = tmp_path / "skills.json"
    _write_skill_set(source, metadata, skills)
    archive = tmp_path / "calc-tools.zip"
    restored = tmp_path / "restored.json"

    assert main(["build", str(source), "-o", str(archive)]) == 0
    assert main(["restore", str(archive), "-o", str(restored)]) == 0

    data = json.loads(restored.read_text(encoding="utf-8"))
    assert data["metadata"]["packageName"] == "calc-tools"
    assert data["metadata"]["idea"] == "Restored project from calc-tools.zip"
    assert [s["name"] for s in data["skills"]] == ["addNumbers", "formatReport"]


def test_restore_of_invalid_archive_reports_code(tmp_path, capsys):
    bogus = tmp_path / "bogus.zip"
    bogus.write_bytes(b"not a zip")
    assert main(["restore", str(bogus)]) == 1
    assert "Error [INVALID_ARCHIVE]" in capsys.readouterr().err


def test_missing_input_file_fails(tmp_path, capsys):
    assert main(["build", str(tmp_path / "nope.json")]) == 1
    assert "Error:" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage: skillforge" in capsys.readouterr().out

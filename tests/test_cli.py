import logging

import pytest

from macdist import cli


@pytest.fixture(autouse=True)
def restore_logging():
    logger = logging.getLogger("macdist")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_package_command(tools, project, capsys):
    artifacts = cli.main([str(project), "--app", "prebuilt/Acme.app", "--target", "7z",
                          "--arch", "arm64"])

    out = capsys.readouterr().out
    assert "Packaging Acme v1.2.0" in out
    [artifact] = artifacts
    assert artifact.path == project / "dist" / "Acme-darwin-arm64" / "Acme-1.2.0-osx.7z"
    assert str(artifact.path) in out


def test_debug_turns_on_verbose_archiver(tools, project):
    cli.main([str(project), "--app", "prebuilt/Acme.app", "--target", "zip", "--debug"])
    [cmd] = tools.commands("7za")
    assert "-bb3" in cmd


def test_unknown_target_exits_with_error(tools, project, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main([str(project), "--target", "msi"])
    assert exc.value.code == 1
    assert "ERROR: Unknown target: msi" in capsys.readouterr().out
    assert tools.calls == []


def test_missing_project_directory(tmp_path, capsys):
    with pytest.raises(SystemExit):
        cli.main([str(tmp_path / "nope")])
    assert "not found" in capsys.readouterr().out

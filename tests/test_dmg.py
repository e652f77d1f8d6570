import asyncio
import subprocess

import pytest

from macdist import dmg


@pytest.fixture
def specification(tmp_path):
    bundle = tmp_path / "Acme.app"
    bundle.mkdir()
    background = tmp_path / "background.png"
    background.write_bytes(b"png")
    icon = tmp_path / "icon.icns"
    icon.write_bytes(b"icns")
    return {
        "title": "Acme",
        "icon": str(icon),
        "icon-size": 96,
        "window": {"position": {"x": 200, "y": 120}, "size": {"width": 660, "height": 400}},
        "background": str(background),
        "contents": [
            {"x": 410, "y": 220, "type": "link", "path": "/Applications"},
            {"x": 130, "y": 220, "type": "file", "path": str(bundle)},
        ],
    }


def test_finder_layout_script(specification):
    script = dmg.finder_layout_script("Acme", specification)

    assert 'tell disk "Acme"' in script
    assert "set the bounds of container window to {200, 120, 860, 520}" in script
    assert "set icon size of viewOptions to 96" in script
    assert 'file ".background:background.png"' in script
    assert 'set position of item "Applications" of container window to {410, 220}' in script
    assert 'set position of item "Acme.app" of container window to {130, 220}' in script


def test_finder_layout_script_without_background():
    script = dmg.finder_layout_script("Acme", {"title": "Acme", "contents": []})
    assert "background picture" not in script
    assert "{400, 100, 940, 480}" in script


def test_parse_mount_point():
    output = "/dev/disk4\tGUID_partition_scheme\t\n/dev/disk4s1\tApple_HFS\t/Volumes/Acme 1\n"
    assert dmg.parse_mount_point(output) == "/Volumes/Acme 1"
    assert dmg.parse_mount_point("/dev/disk4\t\t\n") is None


def test_write_disk_image_sequence(tools, specification, tmp_path):
    target = tmp_path / "out" / "Acme-1.0.0.dmg"
    target.parent.mkdir()

    asyncio.run(dmg.write_disk_image(specification, target, "NONE"))

    steps = [args[0] if args[0] != "hdiutil" else f"hdiutil {args[1]}" for args, _ in tools.calls]
    assert steps == ["ditto", "hdiutil create", "hdiutil attach", "SetFile", "osascript",
                     "hdiutil detach", "hdiutil convert"]
    [convert] = tools.commands("hdiutil", "convert")
    assert convert[convert.index("-format") + 1] == "UDRO"
    assert target.exists()
    # staging and writable image are gone
    assert [p.name for p in target.parent.iterdir()] == [target.name]


def test_volume_is_detached_when_layout_fails(tools, specification, tmp_path):
    tools.fail("osascript")
    target = tmp_path / "Acme.dmg"

    with pytest.raises(subprocess.CalledProcessError):
        asyncio.run(dmg.write_disk_image(specification, target))

    assert len(tools.commands("hdiutil", "detach")) == 1
    assert tools.commands("hdiutil", "convert") == []
    assert not any(p.name.startswith(".dmg-") for p in tmp_path.iterdir())

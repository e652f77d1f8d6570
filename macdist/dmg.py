"""Disk image writer driven by an appdmg-style specification.

The specification is a plain dict:

    title        volume name
    icon         volume icon (.icns), optional
    icon-size    Finder icon size
    window       {"position": {"x", "y"}, "size": {"width", "height"}}
    background   background image, optional
    contents     [{"x", "y", "type": "file" | "link" | "position", "path"}]

The image is staged into a writable UDRW image, laid out through Finder with
osascript, then converted to the requested read-only format.
"""

import asyncio
import logging
import os
import secrets
import shutil
from pathlib import Path

from . import util
from .errors import PackagingError

log = logging.getLogger(__name__)

# specification compression -> hdiutil format
FORMATS = {
    "NONE": "UDRO",
    "UDBZ": "UDBZ",
    "UDZO": "UDZO",
}
DEFAULT_WINDOW_POSITION = {"x": 400, "y": 100}


def _item_name(entry: dict) -> str:
    return entry.get("name") or os.path.basename(str(entry["path"]).rstrip("/"))


def finder_layout_script(volume_name: str, specification: dict) -> str:
    """AppleScript that applies window geometry, icon size, background and positions."""
    window = specification.get("window") or {}
    pos = {**DEFAULT_WINDOW_POSITION, **(window.get("position") or {})}
    size = window.get("size") or {"width": 540, "height": 380}
    left, top = pos["x"], pos["y"]
    right, bottom = left + size["width"], top + size["height"]

    lines = [
        'tell application "Finder"',
        f'    tell disk "{volume_name}"',
        '        open',
        '        set current view of container window to icon view',
        '        set toolbar visible of container window to false',
        '        set statusbar visible of container window to false',
        f'        set the bounds of container window to {{{left}, {top}, {right}, {bottom}}}',
        '        set viewOptions to the icon view options of container window',
        '        set arrangement of viewOptions to not arranged',
        f'        set icon size of viewOptions to {specification.get("icon-size", 80)}',
    ]
    background = specification.get("background")
    if background:
        name = Path(background).name
        lines.append(f'        set background picture of viewOptions to file ".background:{name}"')
    for entry in specification.get("contents", []):
        if entry.get("path") is None:
            continue
        lines.append(
            f'        set position of item "{_item_name(entry)}" of container window '
            f'to {{{entry["x"]}, {entry["y"]}}}')
    lines += [
        '        close',
        '        open',
        '        update without registering applications',
        '        delay 2',
        '        close',
        '    end tell',
        'end tell',
    ]
    return "\n".join(lines)


def parse_mount_point(hdiutil_output: str):
    mount_point = None
    for line in hdiutil_output.splitlines():
        if "/Volumes/" in line:
            mount_point = line.split("\t")[-1].strip()
    return mount_point


def _stage(stage: Path, specification: dict):
    stage.mkdir(parents=True)
    for entry in specification.get("contents", []):
        kind = entry.get("type")
        path = entry.get("path")
        if path is None or kind == "position":
            continue
        dst = stage / _item_name(entry)
        if kind == "link":
            dst.symlink_to(path)
    background = specification.get("background")
    if background:
        bg_dir = stage / ".background"
        bg_dir.mkdir()
        shutil.copy2(background, bg_dir / Path(background).name)
    icon = specification.get("icon")
    if icon and Path(icon).is_file():
        shutil.copy2(icon, stage / ".VolumeIcon.icns")


async def write_disk_image(specification: dict, target: Path, compression: str = "UDBZ"):
    """Build `target` from the specification. Tool failures propagate."""
    work_dir = target.parent
    token = secrets.token_hex(4)
    stage = work_dir / f".dmg-stage-{token}"
    rw_image = work_dir / f".dmg-rw-{token}.dmg"
    volume_name = specification["title"]

    try:
        await asyncio.to_thread(_stage, stage, specification)
        # ditto keeps the embedded signature intact
        for entry in specification.get("contents", []):
            if entry.get("type") == "file" and entry.get("path") is not None:
                await util.run(["ditto", str(entry["path"]), str(stage / _item_name(entry))])

        await util.run(["hdiutil", "create", "-volname", volume_name, "-srcfolder", str(stage),
                        "-ov", "-format", "UDRW", str(rw_image)])
        attached = await util.run(["hdiutil", "attach", "-readwrite", "-noverify", "-noautoopen",
                                   str(rw_image)], capture=True)
        mount_point = parse_mount_point(attached.stdout)
        if mount_point is None:
            raise PackagingError(f"Cannot find mount point of {rw_image.name}")

        try:
            if (stage / ".VolumeIcon.icns").exists():
                await util.run(["SetFile", "-a", "C", mount_point], check=False)
            await util.run(["osascript", "-e",
                            finder_layout_script(Path(mount_point).name, specification)])
        finally:
            detached = await util.run(["hdiutil", "detach", mount_point, "-quiet"], check=False)
            if detached.returncode != 0:
                await util.run(["hdiutil", "detach", mount_point, "-force", "-quiet"], check=False)

        await util.run(["hdiutil", "convert", str(rw_image), "-format", FORMATS[compression],
                        "-ov", "-o", str(target)])
    finally:
        rw_image.unlink(missing_ok=True)
        if stage.exists():
            shutil.rmtree(stage)
    return target

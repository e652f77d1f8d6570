import pytest

from macdist.errors import InvalidTargetError
from macdist.targets import TargetSet, resolve_targets


@pytest.mark.parametrize("raw", [None, [], ""])
def test_unspecified_targets_resolve_to_default(raw):
    assert list(resolve_targets(raw)) == ["default"]


def test_aliases_map_to_canonical_ids():
    targets = resolve_targets(["disk-image", "archive", "store-package", "light-archive"])
    assert list(targets) == ["dmg", "zip", "mas", "7z"]


def test_tokens_are_normalized_and_deduplicated():
    targets = resolve_targets([" DMG ", "zip", "dmg", "Disk-Image"])
    assert list(targets) == ["dmg", "zip"]


def test_single_string_is_accepted():
    assert list(resolve_targets("mas")) == ["mas"]


def test_unknown_token_is_named_in_error():
    with pytest.raises(InvalidTargetError) as exc:
        resolve_targets(["dmg", "msi"])
    assert exc.value.target == "msi"
    assert "msi" in str(exc.value)


def test_branch_predicates():
    only_store = resolve_targets(["mas"])
    assert only_store.needs_store
    assert not only_store.needs_direct
    assert not only_store.needs_disk_image

    mixed = resolve_targets(["mas", "default", "7z"])
    assert mixed.needs_store and mixed.needs_direct and mixed.needs_disk_image
    assert mixed.archive_targets() == ["default", "7z"]


def test_dmg_is_not_an_archive_target():
    assert resolve_targets(["dmg"]).archive_targets() == []


def test_empty_target_set_falls_back_to_default():
    assert list(TargetSet([])) == ["default"]
    assert TargetSet(["zip"]) == resolve_targets("archive")


@pytest.mark.parametrize("raw", [["dmg", ""], ["", " "], [" "]])
def test_blank_entry_in_target_list_is_rejected(raw):
    with pytest.raises(InvalidTargetError) as exc:
        resolve_targets(raw)
    assert exc.value.target == ""


def test_blank_string_resolves_to_default():
    assert list(resolve_targets("  ")) == ["default"]

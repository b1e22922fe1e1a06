import json
from datetime import datetime

import pytest

from scene_snapshot.config import Config, SnapshotOptions
from scene_snapshot.core import CategoryIOError, FatalSnapshotError, Scope
from scene_snapshot.core.serializers import SERIALIZERS, EntitySerializer
from scene_snapshot.services import SnapshotWriter


def _read(path):
    return json.loads(path.read_text(encoding='utf-8'))


def _category_files(folder):
    return {p.name for p in folder.iterdir()} - {Config.MANIFEST_FILE}


def test_three_node_scenario(scenario_corpus, options):
    avatar = scenario_corpus.roots[0]

    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(avatar))

    nodes = _read(result.folder / 'hierarchy.json')['nodes']
    assert len(nodes) == 3
    assert [n['isActive'] for n in nodes].count(False) == 1

    materials = _read(result.folder / 'materials.json')['materials']
    assert len(materials) == 1
    assert materials[0]['assetPath'] == 'Assets/Materials/Body.mat'
    assert materials[0]['shaderName'] == 'Standard'
    assert {p['key']: p['value'] for p in materials[0]['properties']} == {
        '_Cutoff': '0.5',
        '_Color': '1,0,0,1',
    }
    assert result.success


def test_manifest_lists_exactly_the_files_written(rich_corpus, options):
    avatar = rich_corpus.roots[0]

    result = SnapshotWriter(rich_corpus, options).write(Scope.subtree(avatar))

    manifest = _read(result.folder / Config.MANIFEST_FILE)
    expected = {Config.category_file(c) for c in manifest['categoriesPresent']}
    assert expected == _category_files(result.folder)
    assert manifest['scopeKind'] == 'EntitySubtree'
    assert manifest['targetIdentity'] == 'Avatar'
    assert manifest['formatVersion'] == Config.FORMAT_VERSION
    assert manifest['hostEnvironmentInfo']['projectName'] == 'rich'


def test_requested_empty_category_still_gets_a_file(scenario_corpus, options):
    avatar = scenario_corpus.roots[0]

    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(avatar))

    assert _read(result.folder / 'behaviors.json') == {'behaviors': []}
    assert _read(result.folder / 'textures.json') == {'textures': []}
    assert result.counts['behaviors'] == 0


def test_unrequested_category_has_no_file(scenario_corpus, snapshot_location):
    avatar = scenario_corpus.roots[0]
    options = SnapshotOptions(location=snapshot_location, behaviors=False, assets=False)

    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(avatar))

    assert not (result.folder / 'behaviors.json').exists()
    assert not (result.folder / 'assets.csv').exists()
    assert 'behaviors' not in _read(result.folder / Config.MANIFEST_FILE)['categoriesPresent']


def test_folder_name_uses_label_and_timestamp(scenario_corpus, snapshot_location, fixed_clock):
    options = SnapshotOptions(location=snapshot_location, label='pre-swap')
    writer = SnapshotWriter(scenario_corpus, options, clock=fixed_clock)
    avatar = scenario_corpus.roots[0]

    first = writer.write(Scope.subtree(avatar))
    second = writer.write(Scope.subtree(avatar))

    assert first.folder.name == 'pre-swap_2026-10-19_14-03-22'
    assert second.folder.name == 'pre-swap_2026-10-19_14-03-22_1'


def test_label_is_sanitized(scenario_corpus, snapshot_location):
    options = SnapshotOptions(location=snapshot_location, label='before: "swap"')
    writer = SnapshotWriter(scenario_corpus, options)
    assert writer.folder_name(datetime(2026, 1, 2, 3, 4, 5)) == 'before_ _swap__2026-01-02_03-04-05'


def test_folder_name_without_label(scenario_corpus, options):
    writer = SnapshotWriter(scenario_corpus, options)
    assert writer.folder_name(datetime(2026, 1, 2, 3, 4, 5)) == '2026-01-02_03-04-05'


def test_progress_is_non_decreasing_and_ends_at_one(rich_corpus, options):
    calls = []
    avatar = rich_corpus.roots[0]

    SnapshotWriter(rich_corpus, options).write(
        Scope.subtree(avatar),
        progress_callback=lambda message, fraction: calls.append((message, fraction)),
    )

    fractions = [f for _m, f in calls]
    assert fractions == sorted(fractions)
    assert all(0.0 <= f <= 1.0 for f in fractions)
    assert fractions[-1] == 1.0
    assert len(calls) > len(Config.CATEGORY_FILES)


class _BrokenSerializer(EntitySerializer):
    category = 'behaviors'

    def capture(self, scope):
        raise CategoryIOError("disk full", category=self.category)


def test_failing_category_does_not_stop_the_others(rich_corpus, options, monkeypatch):
    monkeypatch.setitem(SERIALIZERS, 'behaviors', _BrokenSerializer)
    avatar = rich_corpus.roots[0]

    result = SnapshotWriter(rich_corpus, options).write(Scope.subtree(avatar))

    assert not result.success
    assert 'behaviors' in result.failed_categories
    assert not (result.folder / 'behaviors.json').exists()
    manifest = _read(result.folder / Config.MANIFEST_FILE)
    assert 'behaviors' not in manifest['categoriesPresent']
    assert {'materials', 'textures', 'hierarchy', 'assets'} <= set(manifest['categoriesPresent'])
    expected = {Config.category_file(c) for c in manifest['categoriesPresent']}
    assert expected == _category_files(result.folder)


def test_uncreatable_location_is_fatal(scenario_corpus, tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("file", encoding='utf-8')
    options = SnapshotOptions(location=blocker / "snapshots")

    with pytest.raises(FatalSnapshotError):
        SnapshotWriter(scenario_corpus, options).write(Scope.entire_corpus())


def test_entire_corpus_snapshot(rich_corpus, options):
    result = SnapshotWriter(rich_corpus, options).write(Scope.entire_corpus())

    manifest = _read(result.folder / Config.MANIFEST_FILE)
    assert manifest['targetIdentity'] == Config.ALL_ASSETS_TARGET
    assert manifest['scopeKind'] == 'EntireCorpus'
    assert _read(result.folder / 'hierarchy.json') == {'nodes': []}
    assert result.counts['materials'] == 1


def test_default_location_is_under_user_data(scenario_corpus, isolated_user_data):
    result = SnapshotWriter(scenario_corpus, SnapshotOptions()).write(
        Scope.single(scenario_corpus.roots[0])
    )
    assert result.folder.parent == isolated_user_data / 'snapshots'


def test_lock_is_released_after_write(scenario_corpus, options, snapshot_location, isolated_user_data):
    result = SnapshotWriter(scenario_corpus, options).write(Scope.single(scenario_corpus.roots[0]))
    assert list((isolated_user_data / 'locks').iterdir()) == []
    assert [p.name for p in snapshot_location.iterdir()] == [result.folder.name]


# =============================================================================
# Host errors
# =============================================================================

def _fail_reads_of(corpus, monkeypatch, name, error):
    original = corpus.get_property

    def get_property(handle, prop):
        if prop == name:
            raise error
        return original(handle, prop)

    monkeypatch.setattr(corpus, 'get_property', get_property)


def test_host_read_error_skips_only_that_property(scenario_corpus, options, monkeypatch):
    _fail_reads_of(scenario_corpus, monkeypatch, '_Color', RuntimeError("host read failed"))

    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(scenario_corpus.roots[0]))

    assert result.success
    assert result.skipped_properties['materials'] == 1
    materials = _read(result.folder / 'materials.json')['materials']
    assert [p['key'] for p in materials[0]['properties']] == ['_Cutoff']
    assert (result.folder / Config.MANIFEST_FILE).is_file()


def test_host_error_in_texture_and_node_reads(rich_corpus, options, monkeypatch):
    _fail_reads_of(rich_corpus, monkeypatch, 'maxSize', KeyError('maxSize'))
    _fail_reads_of(rich_corpus, monkeypatch, 'localScale', RuntimeError("transform locked"))

    result = SnapshotWriter(rich_corpus, options).write(Scope.subtree(rich_corpus.roots[0]))

    assert result.success
    assert result.counts['textures'] == 1
    assert result.counts['hierarchy'] == 4
    assert result.skipped_properties['textures'] == 1


class _ExplodingSerializer(EntitySerializer):
    category = 'materials'

    def capture(self, scope):
        raise RuntimeError("host went away")


def test_unexpected_category_error_is_isolated(scenario_corpus, options, monkeypatch):
    monkeypatch.setitem(SERIALIZERS, 'materials', _ExplodingSerializer)

    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(scenario_corpus.roots[0]))

    assert 'materials' in result.failed_categories
    assert 'host went away' in result.failed_categories['materials']
    manifest = _read(result.folder / Config.MANIFEST_FILE)
    assert 'materials' not in manifest['categoriesPresent']
    assert 'hierarchy' in manifest['categoriesPresent']


def test_build_manifest_describes_the_run(scenario_corpus, options, fixed_clock, tmp_path):
    writer = SnapshotWriter(scenario_corpus, options, clock=fixed_clock)
    scope = Scope.subtree(scenario_corpus.roots[0])

    manifest = writer.build_manifest(scope, fixed_clock(), tmp_path / 'x.json')

    assert manifest.timestamp == '2026-10-19T14:03:22'
    assert manifest.target_identity == 'Avatar'
    assert manifest.location == str(tmp_path / 'x.json')
    assert manifest.categories_present == set()

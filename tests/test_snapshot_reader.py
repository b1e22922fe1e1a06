import json
import os

import pytest

from scene_snapshot.config import Config
from scene_snapshot.core import FatalSnapshotError, InvalidSnapshotError, PropertyTag, Scope
from scene_snapshot.services import SnapshotReader, SnapshotWriter


def _write_json(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


def test_round_trip_through_folder(rich_corpus, options):
    result = SnapshotWriter(rich_corpus, options).write(Scope.subtree(rich_corpus.roots[0]))

    snapshot = SnapshotReader.load(result.folder)

    assert snapshot.manifest.scope_kind == 'EntitySubtree'
    assert snapshot.manifest.categories_present == {
        'materials', 'behaviors', 'textures', 'hierarchy', 'assets'
    }
    assert snapshot.categories() == {'materials', 'behaviors', 'textures', 'hierarchy'}
    assert len(snapshot.nodes) == 4
    assert snapshot.textures[0].max_size == 1024
    assert snapshot.failed_categories == {}


def test_only_requested_categories_are_loaded(scenario_corpus, options):
    result = SnapshotWriter(scenario_corpus, options).write(Scope.subtree(scenario_corpus.roots[0]))

    snapshot = SnapshotReader.load(result.folder, categories=['hierarchy'])

    assert snapshot.materials is None
    assert len(snapshot.nodes) == 3


def test_folder_without_manifest_is_still_valid(tmp_path):
    folder = tmp_path / 'crashed'
    folder.mkdir()
    _write_json(folder / 'hierarchy.json', {'nodes': [{'path': 'Avatar', 'isActive': False}]})

    assert SnapshotReader.is_valid_snapshot(folder)
    snapshot = SnapshotReader.load(folder)
    assert snapshot.manifest is None
    assert snapshot.nodes[0].is_active is False
    assert snapshot.nodes[0].local_rotation == [0.0, 0.0, 0.0, 1.0]


def test_required_manifest_missing_is_fatal(tmp_path):
    folder = tmp_path / 'crashed'
    folder.mkdir()
    _write_json(folder / 'materials.json', {'materials': []})

    with pytest.raises(FatalSnapshotError):
        SnapshotReader.load(folder, require_manifest=True)


def test_required_manifest_unreadable_is_fatal(tmp_path):
    folder = tmp_path / 'broken'
    folder.mkdir()
    (folder / Config.MANIFEST_FILE).write_text('{', encoding='utf-8')

    with pytest.raises(FatalSnapshotError):
        SnapshotReader.load(folder, require_manifest=True)

    snapshot = SnapshotReader.load(folder)
    assert 'manifest' in snapshot.failed_categories


def test_not_a_snapshot(tmp_path):
    empty = tmp_path / 'empty'
    empty.mkdir()
    assert not SnapshotReader.is_valid_snapshot(empty)
    with pytest.raises(InvalidSnapshotError):
        SnapshotReader.load(empty)


def test_category_without_record_list_fails(tmp_path):
    folder = tmp_path / 'odd'
    folder.mkdir()
    _write_json(folder / 'materials.json', {'unexpected': 1})
    _write_json(folder / 'hierarchy.json', {'nodes': []})

    snapshot = SnapshotReader.load(folder)

    assert 'materials' in snapshot.failed_categories
    assert snapshot.nodes == []


def test_legacy_folder_layout(tmp_path):
    folder = tmp_path / 'Avatar_2024-05-01_10-00-00'
    folder.mkdir()
    _write_json(folder / 'backup.json', {
        'backupName': 'Avatar',
        'timestamp': '2024-05-01T10:00:00',
        'scope': 2,
        'targetPath': 'Avatar',
        'version': '1.0',
    })
    _write_json(folder / 'components.json', {'components': [
        {'gameObjectPath': 'Avatar/Body', 'componentType': 'Blink', 'componentData': '{"speed": 1}'},
    ]})
    _write_json(folder / 'hierarchy.json', {'gameObjects': [
        {'gameObjectPath': 'Avatar', 'localPosition': {'x': 1, 'y': 2, 'z': 3}, 'activeSelf': True},
    ]})

    snapshot = SnapshotReader.load(folder)

    assert snapshot.manifest.scope_kind == 'EntitySubtree'
    assert snapshot.manifest.label == 'Avatar'
    assert snapshot.manifest.categories_present == {'behaviors', 'hierarchy'}
    assert snapshot.behaviors[0].owner_path == 'Avatar/Body'
    assert snapshot.behaviors[0].properties == []
    assert snapshot.nodes[0].local_position == [1.0, 2.0, 3.0]


def test_legacy_bundle_file(tmp_path):
    bundle = _write_json(tmp_path / 'avatar_backup.json', {
        'avatarRootPath': 'Avatar',
        'materials': [{
            'materialPath': 'Assets/Body.mat',
            'shaderName': 'Standard',
            'materialProperties': [
                {'propertyName': '_Cutoff', 'propertyType': 'Range', 'propertyValue': '0.5'},
                {'propertyName': '_Color', 'propertyType': 'Color', 'propertyValue': 'RGBA(1, 0, 0, 1)'},
            ],
        }],
        'components': [
            {'gameObjectPath': 'Avatar/Body', 'componentType': 'Blink', 'componentData': '{}'},
        ],
    })

    assert SnapshotReader.is_valid_snapshot(bundle)
    snapshot = SnapshotReader.load(bundle)

    assert snapshot.manifest.target_identity == 'Avatar'
    assert snapshot.categories() == {'materials', 'behaviors'}
    entries = snapshot.materials[0].properties
    assert [(e.key, e.type) for e in entries] == [
        ('_Cutoff', PropertyTag.FLOAT),
        ('_Color', PropertyTag.COLOR),
    ]


def test_json_file_without_records_is_not_a_snapshot(tmp_path):
    path = _write_json(tmp_path / 'settings.json', {'theme': 'dark'})
    assert not SnapshotReader.is_valid_snapshot(path)


def test_list_snapshots_newest_first(scenario_corpus, options, snapshot_location):
    writer = SnapshotWriter(scenario_corpus, options)
    first = writer.write(Scope.single(scenario_corpus.roots[0])).folder
    second = writer.write(Scope.single(scenario_corpus.roots[0])).folder
    os.utime(first, (1_000_000, 1_000_000))
    os.utime(second, (2_000_000, 2_000_000))
    (snapshot_location / 'notes').mkdir()

    assert SnapshotReader.list_snapshots(snapshot_location) == [second, first]
    assert SnapshotReader.list_snapshots(snapshot_location / 'missing') == []


def test_snapshot_info(scenario_corpus, options, tmp_path):
    folder = SnapshotWriter(scenario_corpus, options).write(
        Scope.subtree(scenario_corpus.roots[0])
    ).folder

    info = SnapshotReader.get_snapshot_info(folder)

    assert info['valid'] is True
    assert info['targetIdentity'] == 'Avatar'
    assert SnapshotReader.get_snapshot_info(tmp_path / 'nowhere') == {
        'path': str(tmp_path / 'nowhere'),
        'valid': False,
    }

"""Shared pytest configuration and fixtures for the Scene Snapshot test suite."""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scene_snapshot.config import SnapshotOptions
from scene_snapshot.core import AssetRef, InMemoryCorpus, PropertyRemapper, PropertyTag


# =============================================================================
# Environment
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_user_data(tmp_path, monkeypatch):
    """Keep default snapshot and log locations inside the test's tmp dir."""
    home = tmp_path / "user_data"
    monkeypatch.setenv("SCENE_SNAPSHOT_HOME", str(home))
    return home


@pytest.fixture
def snapshot_location(tmp_path) -> Path:
    location = tmp_path / "snapshots"
    location.mkdir()
    return location


@pytest.fixture
def options(snapshot_location) -> SnapshotOptions:
    return SnapshotOptions(location=snapshot_location)


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 10, 19, 14, 3, 22)


@pytest.fixture
def remapper() -> PropertyRemapper:
    """Remapper with the built-in rule set"""
    return PropertyRemapper()


# =============================================================================
# Scenes
# =============================================================================

@pytest.fixture
def scenario_corpus():
    """
    Avatar with two children (Hidden is inactive) and one material
    carrying a Float `_Cutoff` and a Color `_Color`.
    """
    corpus = InMemoryCorpus()
    corpus.register_shader('Standard', {
        '_Cutoff': (PropertyTag.FLOAT, 0.0),
        '_Color': (PropertyTag.COLOR, (1.0, 1.0, 1.0, 1.0)),
    })
    corpus.register_shader('Toon', {
        '_AlphaCutoff': (PropertyTag.FLOAT, 0.25),
        '_Color': (PropertyTag.COLOR, (0.5, 0.5, 0.5, 1.0)),
    })

    root = corpus.add_root('Avatar')
    body = corpus.add_child(root, 'Body')
    corpus.add_child(root, 'Hidden', active=False)

    material = corpus.add_material(
        'Assets/Materials/Body.mat',
        'Standard',
        {'_Cutoff': 0.5, '_Color': (1.0, 0.0, 0.0, 1.0)},
    )
    corpus.assign_material(body, material)
    return corpus


@pytest.fixture
def rich_corpus(tmp_path):
    """
    Scene exercising every category: a shared material, a texture referenced
    by a material, behaviors and asset files on disk.
    """
    asset_root = tmp_path / "project"
    (asset_root / "Assets" / "Textures").mkdir(parents=True)
    (asset_root / "Assets" / "Materials").mkdir(parents=True)
    (asset_root / "Assets" / "Materials" / "Skin.mat").write_bytes(b"skin material")
    (asset_root / "Assets" / "Textures" / "Skin.png").write_bytes(b"\x89PNG skin")

    corpus = InMemoryCorpus(asset_root=asset_root, project_name="rich")
    corpus.register_shader('Standard', {
        '_Color': (PropertyTag.COLOR, (1.0, 1.0, 1.0, 1.0)),
        '_Glossiness': (PropertyTag.FLOAT, 0.5),
        '_MainTex': (PropertyTag.ASSET_REFERENCE, None),
        '_Mode': (PropertyTag.ENUM, 'Opaque'),
    })

    root = corpus.add_root('Avatar')
    head = corpus.add_child(root, 'Head')
    hair = corpus.add_child(head, 'Hair', active=False)
    body = corpus.add_child(root, 'Body')

    texture = corpus.add_texture('Assets/Textures/Skin.png', max_size=1024)
    skin = corpus.add_material(
        'Assets/Materials/Skin.mat',
        'Standard',
        {'_MainTex': AssetRef(path=texture.asset_path), '_Glossiness': 0.8},
    )
    corpus.assign_material(head, skin)
    corpus.assign_material(body, skin)
    corpus.assign_material(hair, corpus.add_material(None, 'Standard', name='HairInstance'))

    corpus.add_behavior(body, 'Blink', {
        'interval': (PropertyTag.FLOAT, 3.5),
        'enabled': (PropertyTag.BOOLEAN, True),
    })
    corpus.add_behavior(hair, 'Physics', {
        'stiffness': (PropertyTag.FLOAT, 0.2),
        'curve': (PropertyTag.UNSUPPORTED, object()),
    })
    return corpus

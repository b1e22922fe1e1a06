import json

import pytest

from scene_snapshot.core import (
    InMemoryCorpus,
    PropertyEntry,
    PropertyError,
    PropertyRemapper,
    PropertyTag,
    serialize_properties,
)
from scene_snapshot.core.remapper import get_property_remapper


# =============================================================================
# Name resolution
# =============================================================================

def test_skip_prefix_wins_over_synonym():
    remapper = PropertyRemapper(
        synonyms={'fooPrefix_x': '_Target'},
        ignored=[],
        ignored_prefixes=['fooPrefix_*'],
        ignored_suffixes=[],
    )
    schema = ['_Target', 'fooPrefix_x']
    assert remapper.resolve_target_property('fooPrefix_x', schema) is None


def test_exact_match_fallback_when_synonym_target_missing():
    remapper = PropertyRemapper(synonyms={'_A': '_B'}, ignored=[], ignored_prefixes=[], ignored_suffixes=[])
    assert remapper.resolve_target_property('_A', ['_A', '_C']) == '_A'


def test_synonym_used_when_target_has_it(remapper):
    assert remapper.resolve_target_property('_Smoothness', ['_Glossiness', '_Smoothness']) == '_Glossiness'
    assert remapper.resolve_target_property('_Cutoff', ['_AlphaCutoff']) == '_AlphaCutoff'


def test_matching_is_case_insensitive_and_returns_target_spelling(remapper):
    assert remapper.resolve_target_property('_maincolor', ['_MainColor']) == '_MainColor'
    assert remapper.resolve_target_property('SHADER_LOCALE', ['shader_locale']) is None


def test_no_target(remapper):
    assert remapper.resolve_target_property('_Unknown', ['_Color']) is None
    assert remapper.resolve_target_property('', ['']) is None


@pytest.mark.parametrize("name", [
    'shader_master_label',
    'm_start_Main',
    'footer_discord',
    '_MainTexPan',
    '_EmissionUV',
    '_OutlineToggle',
])
def test_default_skip_rules(remapper, name):
    assert remapper.should_skip(name)


def test_rules_load_from_json(tmp_path):
    rules = tmp_path / "mappings.json"
    rules.write_text(json.dumps({
        'universalMappings': [{'source': '_Tint', 'target': '_Color'}],
        'ignoredProperties': ['_Debug'],
        'ignoredPropertyPrefixes': ['dbg_'],
        'ignoredPropertySuffixes': ['_Internal'],
    }), encoding='utf-8')
    remapper = PropertyRemapper.from_json(rules)
    assert remapper.resolve_target_property('_Tint', ['_Color']) == '_Color'
    assert remapper.should_skip('_debug')
    assert remapper.should_skip('dbg_value')
    assert remapper.should_skip('speed_internal')
    # Built-in defaults are replaced, not merged
    assert not remapper.should_skip('shader_locale')


@pytest.mark.parametrize("content", [None, "{ not json"])
def test_missing_or_broken_rules_fall_back_to_defaults(tmp_path, content):
    rules = tmp_path / "mappings.json"
    if content is not None:
        rules.write_text(content, encoding='utf-8')
    remapper = PropertyRemapper.from_json(rules)
    assert remapper.should_skip('shader_locale')
    assert remapper.resolve_target_property('_NormalMap', ['_BumpMap']) == '_BumpMap'


def test_bundled_rules_are_loaded():
    remapper = get_property_remapper()
    assert remapper is get_property_remapper()
    assert remapper.resolve_target_property('_BaseColor', ['_Color']) == '_Color'
    assert remapper.should_skip('_MainTexStochastic')


# =============================================================================
# Transfer
# =============================================================================

@pytest.fixture
def three_property_corpus():
    corpus = InMemoryCorpus()
    corpus.register_shader('Lit', {
        '_Color': (PropertyTag.COLOR, (1.0, 1.0, 1.0, 1.0)),
        '_Metallic': (PropertyTag.FLOAT, 0.0),
        '_Glossiness': (PropertyTag.FLOAT, 0.5),
    })
    return corpus


def test_partial_failure_isolation(three_property_corpus, remapper):
    corpus = three_property_corpus
    source = corpus.add_material('Assets/A.mat', 'Lit', {'_Metallic': 1.0, '_Glossiness': 0.9})
    target = corpus.add_material('Assets/B.mat', 'Lit')
    target.unwritable.add('_Metallic')

    entries, _skipped = serialize_properties(corpus, source)
    result = remapper.transfer_entries(corpus, target, entries)

    assert result.failed == 1
    assert result.transferred == len(entries) - 1
    assert target.get('_Glossiness') == 0.9
    assert target.get('_Metallic') == 0.0
    assert result.failed_properties[0].startswith('_Metallic')


def test_malformed_value_counts_as_failed(three_property_corpus, remapper):
    target = three_property_corpus.add_material('Assets/B.mat', 'Lit')
    entries = [
        PropertyEntry('_Color', PropertyTag.COLOR, '1,0,0'),
        PropertyEntry('_Metallic', PropertyTag.FLOAT, '0.25'),
    ]
    result = remapper.transfer_entries(three_property_corpus, target, entries)
    assert (result.transferred, result.failed) == (1, 1)
    assert target.get('_Metallic') == 0.25


def test_runtime_only_reference_is_not_resolved(remapper):
    corpus = InMemoryCorpus()
    corpus.register_shader('Tex', {'_MainTex': (PropertyTag.ASSET_REFERENCE, None)})
    target = corpus.add_material('Assets/T.mat', 'Tex')
    entries = [PropertyEntry('_MainTex', PropertyTag.ASSET_REFERENCE, '987654321')]

    result = remapper.transfer_entries(corpus, target, entries)

    assert result.failed == 1
    assert result.transferred == 0
    assert target.get('_MainTex') is None


def test_unsupported_and_unmapped_entries_are_skipped(three_property_corpus, remapper):
    target = three_property_corpus.add_material('Assets/B.mat', 'Lit')
    entries = [
        PropertyEntry('_Curve', PropertyTag.UNSUPPORTED, ''),
        PropertyEntry('_Outline', PropertyTag.FLOAT, '1'),
        PropertyEntry('_MainTexPan', PropertyTag.VECTOR4, '0,0,0,0'),
    ]
    result = remapper.transfer_entries(three_property_corpus, target, entries)
    assert (result.transferred, result.failed, result.skipped) == (0, 0, 3)


def test_exact_name_transfer_without_remap(three_property_corpus, remapper):
    target = three_property_corpus.add_material('Assets/B.mat', 'Lit')
    entries = [
        PropertyEntry('_Smoothness', PropertyTag.FLOAT, '0.7'),
        PropertyEntry('_Metallic', PropertyTag.FLOAT, '0.3'),
    ]
    result = remapper.transfer_entries(three_property_corpus, target, entries, remap=False)
    assert result.transferred == 1
    assert result.skipped == 1
    assert target.get('_Glossiness') == 0.5


def test_swap_schema_carries_values_across(scenario_corpus, remapper):
    material = scenario_corpus.materials['Assets/Materials/Body.mat']

    result = remapper.swap_schema(scenario_corpus, material, 'Toon')

    assert material.shader_name == 'Toon'
    assert material.get('_AlphaCutoff') == 0.5
    assert material.get('_Color') == (1.0, 0.0, 0.0, 1.0)
    assert result.transferred == 2
    assert result.failed == 0


def test_swap_to_unknown_schema(scenario_corpus, remapper):
    material = scenario_corpus.materials['Assets/Materials/Body.mat']
    with pytest.raises(PropertyError):
        remapper.swap_schema(scenario_corpus, material, 'DoesNotExist')
    assert material.shader_name == 'Standard'


def test_transfer_live_between_entities(scenario_corpus, remapper):
    source = scenario_corpus.materials['Assets/Materials/Body.mat']
    target = scenario_corpus.add_material('Assets/Materials/Toon.mat', 'Toon')

    result = remapper.transfer_live(scenario_corpus, source, target)

    assert result.transferred == 2
    assert target.get('_AlphaCutoff') == 0.5


# =============================================================================
# Reverse synonyms
# =============================================================================

@pytest.fixture
def cutoff_corpus():
    corpus = InMemoryCorpus()
    both = {
        '_Cutoff': (PropertyTag.FLOAT, 0.0),
        '_AlphaCutoff': (PropertyTag.FLOAT, 0.0),
    }
    corpus.register_shader('ClipA', dict(both))
    corpus.register_shader('ClipB', dict(both, _Color=(PropertyTag.COLOR, (1.0, 1.0, 1.0, 1.0))))
    return corpus


def test_reverse_synonyms_keep_their_own_values_on_swap(cutoff_corpus, remapper):
    material = cutoff_corpus.add_material('Assets/Clip.mat', 'ClipA', {'_Cutoff': 0.5, '_AlphaCutoff': 0.1})

    result = remapper.swap_schema(cutoff_corpus, material, 'ClipB')

    assert material.get('_Cutoff') == 0.5
    assert material.get('_AlphaCutoff') == 0.1
    assert sorted(result.transferred_properties) == [
        '_AlphaCutoff -> _AlphaCutoff',
        '_Cutoff -> _Cutoff',
    ]


def test_reverse_synonyms_with_bundled_rules(cutoff_corpus):
    source = cutoff_corpus.add_material('Assets/A.mat', 'ClipA', {'_Cutoff': 0.5, '_AlphaCutoff': 0.1})
    target = cutoff_corpus.add_material('Assets/B.mat', 'ClipB')

    PropertyRemapper.default().transfer_live(cutoff_corpus, source, target)

    assert (target.get('_Cutoff'), target.get('_AlphaCutoff')) == (0.5, 0.1)


def test_verbatim_match_claims_a_target_name(remapper):
    resolved = remapper.resolve_targets(['_BaseColor', '_Color', '_Cutoff'], ['_Color', '_AlphaCutoff'])
    assert resolved == {'_BaseColor': None, '_Color': '_Color', '_Cutoff': '_AlphaCutoff'}

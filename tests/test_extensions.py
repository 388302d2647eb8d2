# tests/test_extensions.py
# Tests for extension registries and their per-material records.
# Exists to check declaration, attachment and disposal of extension side-data.
# RELEVANT FILES:python/pbrconvert/extensions.py,python/pbrconvert/graph.py

import pytest

from pbrconvert import (
    EXTENSION_TYPES,
    Document,
    MaterialsIOR,
    MaterialsPBRSpecularGlossiness,
    MaterialsSpecular,
)
from pbrconvert.extensions import extension_type


def _used(doc):
    return [ext.extension_name for ext in doc.root.list_extensions_used()]


def test_specular_record_attaches():
    doc = Document()
    specular_extension = doc.create_extension(MaterialsSpecular)
    specular = specular_extension.create_specular()
    specular.specular_factor = 0.9
    specular.specular_color_factor = [0.9, 0.5, 0.8]
    specular.specular_texture = doc.create_texture()

    mat = doc.create_material("MyMaterial")
    mat.base_color_factor = [1.0, 0.5, 0.5, 1.0]
    mat.set_extension("KHR_materials_specular", specular)

    assert mat.get_extension("KHR_materials_specular") is specular
    assert specular.specular_color_factor == (0.9, 0.5, 0.8)
    assert _used(doc) == ["KHR_materials_specular"]
    assert specular.list_parents() == [mat]

    specular_extension.dispose()
    assert mat.get_extension("KHR_materials_specular") is None
    assert specular.is_disposed
    assert _used(doc) == []


def test_create_extension_returns_existing_registry():
    doc = Document()
    first = doc.create_extension(MaterialsIOR)
    assert doc.create_extension(MaterialsIOR) is first
    assert _used(doc) == ["KHR_materials_ior"]


def test_spec_gloss_defaults():
    doc = Document()
    spec_gloss = doc.create_extension(MaterialsPBRSpecularGlossiness).create_pbr_specular_glossiness()
    assert spec_gloss.diffuse_factor == (1.0, 1.0, 1.0, 1.0)
    assert spec_gloss.specular_factor == (1.0, 1.0, 1.0)
    assert spec_gloss.glossiness_factor == 1.0
    assert spec_gloss.diffuse_texture is None
    assert spec_gloss.specular_glossiness_texture is None


def test_spec_gloss_factor_lengths_are_validated():
    doc = Document()
    spec_gloss = doc.create_extension(MaterialsPBRSpecularGlossiness).create_pbr_specular_glossiness()
    with pytest.raises(ValueError, match="diffuse_factor"):
        spec_gloss.diffuse_factor = [1.0, 1.0, 1.0]
    with pytest.raises(ValueError, match="specular_factor"):
        spec_gloss.specular_factor = [1.0, 1.0, 1.0, 1.0]


def test_ior_default():
    doc = Document()
    assert doc.create_extension(MaterialsIOR).create_ior().ior == pytest.approx(1.5)


def test_mismatched_extension_name_is_rejected():
    doc = Document()
    ior = doc.create_extension(MaterialsIOR).create_ior()
    mat = doc.create_material()
    with pytest.raises(ValueError, match="KHR_materials_ior"):
        mat.set_extension("KHR_materials_specular", ior)


def test_disposed_registry_cannot_create_records():
    doc = Document()
    ext = doc.create_extension(MaterialsSpecular)
    ext.dispose()
    with pytest.raises(RuntimeError, match="disposed"):
        ext.create_specular()
    # a fresh registry can be declared again afterwards
    assert doc.create_extension(MaterialsSpecular) is not ext


def test_registry_dispose_detaches_from_every_material():
    doc = Document()
    ext = doc.create_extension(MaterialsPBRSpecularGlossiness)
    shared = ext.create_pbr_specular_glossiness()
    own = ext.create_pbr_specular_glossiness()
    a = doc.create_material("A").set_extension(ext.extension_name, shared)
    b = doc.create_material("B").set_extension(ext.extension_name, shared)
    c = doc.create_material("C").set_extension(ext.extension_name, own)
    assert shared.list_parents() == [a, b]

    ext.dispose()
    for mat in (a, b, c):
        assert mat.get_extension(ext.extension_name) is None
    assert ext.list_properties() == []


def test_extension_types_is_closed():
    assert set(EXTENSION_TYPES) == {
        "KHR_materials_pbrSpecularGlossiness",
        "KHR_materials_ior",
        "KHR_materials_specular",
    }
    assert extension_type("KHR_materials_ior") is MaterialsIOR
    with pytest.raises(KeyError, match="Unsupported extension: KHR_materials_sheen"):
        extension_type("KHR_materials_sheen")

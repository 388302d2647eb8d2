# python/pbrconvert/extensions.py
# Registries and per-material records for the three glTF material extensions we touch.
# Exists to keep extension side-data typed and to scope its lifetime to one document.
# RELEVANT FILES:python/pbrconvert/graph.py,python/pbrconvert/metal_rough.py,tests/test_extensions.py

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Type

from .graph import Color3, Color4, Document, ExtensionProperty, Texture, _to_floats


class PBRSpecularGlossiness(ExtensionProperty):
    """``KHR_materials_pbrSpecularGlossiness`` data for one material."""

    EXTENSION_NAME = "KHR_materials_pbrSpecularGlossiness"
    SLOTS = ("diffuse", "specularGlossiness")

    def __init__(self, extension: "Extension", name: str = ""):
        super().__init__(extension, name)
        self._diffuse_factor: Color4 = (1.0, 1.0, 1.0, 1.0)
        self._specular_factor: Color3 = (1.0, 1.0, 1.0)
        self.glossiness_factor = 1.0

    @property
    def diffuse_factor(self) -> Color4:
        return self._diffuse_factor

    @diffuse_factor.setter
    def diffuse_factor(self, value: Sequence[float]) -> None:
        self._diffuse_factor = _to_floats(value, 4, "diffuse_factor")  # type: ignore[assignment]

    @property
    def specular_factor(self) -> Color3:
        return self._specular_factor

    @specular_factor.setter
    def specular_factor(self, value: Sequence[float]) -> None:
        self._specular_factor = _to_floats(value, 3, "specular_factor")  # type: ignore[assignment]

    @property
    def diffuse_texture(self) -> Optional[Texture]:
        return self.get_texture("diffuse")

    @diffuse_texture.setter
    def diffuse_texture(self, texture: Optional[Texture]) -> None:
        self.set_texture("diffuse", texture)

    @property
    def specular_glossiness_texture(self) -> Optional[Texture]:
        return self.get_texture("specularGlossiness")

    @specular_glossiness_texture.setter
    def specular_glossiness_texture(self, texture: Optional[Texture]) -> None:
        self.set_texture("specularGlossiness", texture)


class IOR(ExtensionProperty):
    """``KHR_materials_ior``: a single index of refraction."""

    EXTENSION_NAME = "KHR_materials_ior"

    def __init__(self, extension: "Extension", name: str = ""):
        super().__init__(extension, name)
        self.ior = 1.5


class Specular(ExtensionProperty):
    """``KHR_materials_specular`` strength, F0 color and optional RGB texture."""

    EXTENSION_NAME = "KHR_materials_specular"
    SLOTS = ("specular",)

    def __init__(self, extension: "Extension", name: str = ""):
        super().__init__(extension, name)
        self.specular_factor = 1.0
        self._specular_color_factor: Color3 = (1.0, 1.0, 1.0)

    @property
    def specular_color_factor(self) -> Color3:
        return self._specular_color_factor

    @specular_color_factor.setter
    def specular_color_factor(self, value: Sequence[float]) -> None:
        self._specular_color_factor = _to_floats(value, 3, "specular_color_factor")  # type: ignore[assignment]

    @property
    def specular_texture(self) -> Optional[Texture]:
        return self.get_texture("specular")

    @specular_texture.setter
    def specular_texture(self, texture: Optional[Texture]) -> None:
        self.set_texture("specular", texture)


class Extension:
    """Document-scoped registry for one extension.

    Creating a registry declares the extension as used on the document.
    Disposing it disposes every record it created, detaching them from their
    materials, and removes the declaration.
    """

    EXTENSION_NAME = ""
    RECORD_TYPE: Type[ExtensionProperty] = ExtensionProperty

    def __init__(self, doc: Document):
        self._doc = doc
        self._records: List[ExtensionProperty] = []
        self._disposed = False
        doc._declare_extension(self)

    @property
    def extension_name(self) -> str:
        return self.EXTENSION_NAME

    @property
    def document(self) -> Document:
        if self._disposed:
            raise RuntimeError(f"Extension {self.EXTENSION_NAME} has been disposed")
        return self._doc

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def _create(self, name: str = "") -> ExtensionProperty:
        record = self.RECORD_TYPE(self, name)
        self._records.append(record)
        return record

    def _forget(self, record: ExtensionProperty) -> None:
        if record in self._records:
            self._records.remove(record)

    def list_properties(self) -> List[ExtensionProperty]:
        return list(self._records)

    def dispose(self) -> None:
        doc = self.document
        for record in list(self._records):
            record.dispose()
        doc._remove_extension(self)
        self._disposed = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}(records={len(self._records)})"


class MaterialsPBRSpecularGlossiness(Extension):
    EXTENSION_NAME = PBRSpecularGlossiness.EXTENSION_NAME
    RECORD_TYPE = PBRSpecularGlossiness

    def create_pbr_specular_glossiness(self, name: str = "") -> PBRSpecularGlossiness:
        return self._create(name)  # type: ignore[return-value]


class MaterialsIOR(Extension):
    EXTENSION_NAME = IOR.EXTENSION_NAME
    RECORD_TYPE = IOR

    def create_ior(self, name: str = "") -> IOR:
        return self._create(name)  # type: ignore[return-value]


class MaterialsSpecular(Extension):
    EXTENSION_NAME = Specular.EXTENSION_NAME
    RECORD_TYPE = Specular

    def create_specular(self, name: str = "") -> Specular:
        return self._create(name)  # type: ignore[return-value]


EXTENSION_TYPES: Dict[str, Type[Extension]] = {
    cls.EXTENSION_NAME: cls
    for cls in (MaterialsPBRSpecularGlossiness, MaterialsIOR, MaterialsSpecular)
}


def extension_type(name: str) -> Type[Extension]:
    try:
        return EXTENSION_TYPES[name]
    except KeyError:
        raise KeyError(f"Unsupported extension: {name}") from None

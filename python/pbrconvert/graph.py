# python/pbrconvert/graph.py
# In-memory scene graph: materials, textures and extension records held in one arena.
# Exists to give the converter id-keyed ownership with parent counts derived on demand.
# RELEVANT FILES:python/pbrconvert/extensions.py,python/pbrconvert/metal_rough.py,tests/test_graph.py
"""Scene graph arena.

Every material, texture and extension record belongs to exactly one
:class:`Document` and carries a stable integer ``id``. Texture slots store the
texture id rather than the object, so the set of parents referencing a texture
is derived by scanning the arena instead of being maintained by back-links.

The document root counts as a parent of every live texture. A texture whose
only parent is the root is therefore unused.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

from .textures import PixelBuffer, decode_image, encode_image

if TYPE_CHECKING:
    from .extensions import Extension

Color3 = Tuple[float, float, float]
Color4 = Tuple[float, float, float, float]

# glTF sampler enums
NEAREST = 9728
LINEAR = 9729
NEAREST_MIPMAP_NEAREST = 9984
LINEAR_MIPMAP_NEAREST = 9985
NEAREST_MIPMAP_LINEAR = 9986
LINEAR_MIPMAP_LINEAR = 9987
CLAMP_TO_EDGE = 33071
MIRRORED_REPEAT = 33648
REPEAT = 10497

_WRAP_MODES = {CLAMP_TO_EDGE, MIRRORED_REPEAT, REPEAT}
_MAG_FILTERS = {NEAREST, LINEAR}
_MIN_FILTERS = {
    NEAREST,
    LINEAR,
    NEAREST_MIPMAP_NEAREST,
    LINEAR_MIPMAP_NEAREST,
    NEAREST_MIPMAP_LINEAR,
    LINEAR_MIPMAP_LINEAR,
}

ALPHA_MODES = ("OPAQUE", "MASK", "BLEND")


def _to_floats(value: Any, count: int, label: str) -> Tuple[float, ...]:
    if isinstance(value, (list, tuple)) and len(value) == count:
        return tuple(float(v) for v in value)
    raise ValueError(f"{label} must be a sequence of {count} numeric values")


@dataclass
class TextureInfo:
    tex_coord: int = 0

    def copy_from(self, other: "TextureInfo") -> "TextureInfo":
        self.tex_coord = other.tex_coord
        return self


@dataclass
class TextureSampler:
    wrap_s: int = REPEAT
    wrap_t: int = REPEAT
    mag_filter: Optional[int] = None
    min_filter: Optional[int] = None

    def validate(self) -> None:
        if self.wrap_s not in _WRAP_MODES or self.wrap_t not in _WRAP_MODES:
            raise ValueError(f"Unknown wrap mode: ({self.wrap_s}, {self.wrap_t})")
        if self.mag_filter is not None and self.mag_filter not in _MAG_FILTERS:
            raise ValueError(f"Unknown magFilter: {self.mag_filter}")
        if self.min_filter is not None and self.min_filter not in _MIN_FILTERS:
            raise ValueError(f"Unknown minFilter: {self.min_filter}")

    def is_default(self) -> bool:
        return self == TextureSampler()

    def copy_from(self, other: "TextureSampler") -> "TextureSampler":
        self.wrap_s = other.wrap_s
        self.wrap_t = other.wrap_t
        self.mag_filter = other.mag_filter
        self.min_filter = other.min_filter
        return self


class TextureBinding:
    """A material slot pointing at a texture, with its own coord set and sampler."""

    __slots__ = ("texture_id", "info", "sampler")

    def __init__(self) -> None:
        self.texture_id: Optional[int] = None
        self.info = TextureInfo()
        self.sampler = TextureSampler()

    def copy_from(self, other: "TextureBinding") -> "TextureBinding":
        """Copy coordinate set and sampler settings; the texture itself is not touched."""
        self.info.copy_from(other.info)
        self.sampler.copy_from(other.sampler)
        return self

    def __repr__(self) -> str:
        return f"TextureBinding(texture_id={self.texture_id}, info={self.info}, sampler={self.sampler})"


class Property:
    """Base class for everything owned by a :class:`Document`."""

    def __init__(self, doc: "Document", name: str = ""):
        self._doc = doc
        self.name = name
        self.id = doc._allocate_id()
        self._disposed = False

    @property
    def document(self) -> "Document":
        if self._disposed:
            raise RuntimeError(f"{type(self).__name__} {self.name!r} (id={self.id}) has been disposed")
        return self._doc

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def __repr__(self) -> str:
        state = ", disposed" if self._disposed else ""
        return f"{type(self).__name__}(id={self.id}, name={self.name!r}{state})"


class TextureSlots:
    """Mixin for properties with named texture bindings."""

    SLOTS: Tuple[str, ...] = ()

    def _init_slots(self) -> None:
        self._bindings: Dict[str, TextureBinding] = {slot: TextureBinding() for slot in self.SLOTS}

    def get_binding(self, slot: str) -> TextureBinding:
        try:
            return self._bindings[slot]
        except KeyError:
            raise KeyError(f"{type(self).__name__} has no texture slot {slot!r}") from None

    def get_texture(self, slot: str) -> Optional["Texture"]:
        texture_id = self.get_binding(slot).texture_id
        if texture_id is None:
            return None
        return self.document.get_texture(texture_id)

    def set_texture(self, slot: str, texture: Optional["Texture"]) -> None:
        binding = self.get_binding(slot)
        if texture is None:
            binding.texture_id = None
            return
        doc = self.document
        if texture.document is not doc:
            raise ValueError(f"Texture {texture.name!r} belongs to a different document")
        binding.texture_id = texture.id

    def list_textures(self) -> List["Texture"]:
        out = []
        for slot in self.SLOTS:
            texture = self.get_texture(slot)
            if texture is not None and texture not in out:
                out.append(texture)
        return out

    def references(self, texture_id: int) -> bool:
        return any(b.texture_id == texture_id for b in self._bindings.values())

    def _unbind(self, texture_id: int) -> None:
        for binding in self._bindings.values():
            if binding.texture_id == texture_id:
                binding.texture_id = None


class Texture(Property):
    """Encoded image data; pixels are decoded on request."""

    def __init__(self, doc: "Document", name: str = ""):
        super().__init__(doc, name)
        self.uri = ""
        self.mime_type = ""
        self.image: Optional[bytes] = None

    def set_image(self, data: bytes, mime_type: str) -> "Texture":
        self.image = bytes(data)
        self.mime_type = mime_type
        return self

    def get_pixels(self) -> PixelBuffer:
        if self.image is None:
            raise RuntimeError(f"Texture {self.name!r} has no image data")
        return decode_image(self.image)

    def set_pixels(self, pixels: Union[PixelBuffer, Any], mime_type: str = "image/png") -> "Texture":
        if not isinstance(pixels, PixelBuffer):
            pixels = PixelBuffer(pixels)
        return self.set_image(encode_image(pixels, mime_type), mime_type)

    def list_parents(self) -> List[object]:
        return self.document.list_parents(self)

    def dispose(self) -> None:
        self.document._dispose_texture(self)


class ExtensionProperty(Property, TextureSlots):
    """Per-material record of one extension; concrete variants live in ``extensions``."""

    EXTENSION_NAME = ""

    def __init__(self, extension: "Extension", name: str = ""):
        doc = extension.document
        super().__init__(doc, name)
        self._extension = extension
        self._init_slots()
        doc._records[self.id] = self

    @property
    def extension(self) -> "Extension":
        return self._extension

    def list_parents(self) -> List["Material"]:
        doc = self.document
        return [m for m in doc.root.list_materials() if self in m.list_extensions()]

    def dispose(self) -> None:
        self.document._dispose_record(self)


class Material(Property, TextureSlots):
    SLOTS = ("baseColor", "metallicRoughness", "normal", "occlusion", "emissive")

    def __init__(self, doc: "Document", name: str = ""):
        super().__init__(doc, name)
        self._init_slots()
        self._base_color_factor: Color4 = (1.0, 1.0, 1.0, 1.0)
        self._emissive_factor: Color3 = (0.0, 0.0, 0.0)
        self._metallic_factor = 1.0
        self._roughness_factor = 1.0
        self.normal_scale = 1.0
        self.occlusion_strength = 1.0
        self._alpha_mode = "OPAQUE"
        self.alpha_cutoff = 0.5
        self.double_sided = False
        self._extensions: Dict[str, ExtensionProperty] = {}

    # ----- factors -----

    @property
    def base_color_factor(self) -> Color4:
        return self._base_color_factor

    @base_color_factor.setter
    def base_color_factor(self, value: Sequence[float]) -> None:
        self._base_color_factor = _to_floats(value, 4, "base_color_factor")  # type: ignore[assignment]

    @property
    def emissive_factor(self) -> Color3:
        return self._emissive_factor

    @emissive_factor.setter
    def emissive_factor(self, value: Sequence[float]) -> None:
        self._emissive_factor = _to_floats(value, 3, "emissive_factor")  # type: ignore[assignment]

    @property
    def metallic_factor(self) -> float:
        return self._metallic_factor

    @metallic_factor.setter
    def metallic_factor(self, value: float) -> None:
        self._metallic_factor = float(value)

    @property
    def roughness_factor(self) -> float:
        return self._roughness_factor

    @roughness_factor.setter
    def roughness_factor(self, value: float) -> None:
        self._roughness_factor = float(value)

    @property
    def alpha_mode(self) -> str:
        return self._alpha_mode

    @alpha_mode.setter
    def alpha_mode(self, value: str) -> None:
        mode = str(value).upper()
        if mode not in ALPHA_MODES:
            raise ValueError(f"Unknown alpha mode: {value!r}")
        self._alpha_mode = mode

    # ----- common slots -----

    @property
    def base_color_texture(self) -> Optional[Texture]:
        return self.get_texture("baseColor")

    @base_color_texture.setter
    def base_color_texture(self, texture: Optional[Texture]) -> None:
        self.set_texture("baseColor", texture)

    @property
    def metallic_roughness_texture(self) -> Optional[Texture]:
        return self.get_texture("metallicRoughness")

    @metallic_roughness_texture.setter
    def metallic_roughness_texture(self, texture: Optional[Texture]) -> None:
        self.set_texture("metallicRoughness", texture)

    # ----- extensions -----

    def get_extension(self, name: str) -> Optional[ExtensionProperty]:
        return self._extensions.get(name)

    def set_extension(self, name: str, record: Optional[ExtensionProperty]) -> "Material":
        if record is None:
            self._extensions.pop(name, None)
            return self
        if not isinstance(record, ExtensionProperty):
            raise TypeError(f"extension record must be an ExtensionProperty, got {type(record).__name__}")
        if record.EXTENSION_NAME != name:
            raise ValueError(f"Cannot attach {record.EXTENSION_NAME} record as {name!r}")
        if record.document is not self.document:
            raise ValueError(f"{name} record belongs to a different document")
        self._extensions[name] = record
        return self

    def list_extensions(self) -> List[ExtensionProperty]:
        return list(self._extensions.values())

    def dispose(self) -> None:
        self.document._dispose_material(self)


class Root:
    """Document-level listings, in creation order."""

    def __init__(self, doc: "Document"):
        self._doc = doc

    def list_materials(self) -> List[Material]:
        return list(self._doc._materials.values())

    def list_textures(self) -> List[Texture]:
        return list(self._doc._textures.values())

    def list_extensions_used(self) -> List["Extension"]:
        return list(self._doc._extensions.values())

    def __repr__(self) -> str:
        return "Root()"


class Document:
    """Arena owning every material, texture and extension record of one asset."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger if logger is not None else logging.getLogger("pbrconvert")
        self._last_id = 0
        self._materials: Dict[int, Material] = {}
        self._textures: Dict[int, Texture] = {}
        self._records: Dict[int, ExtensionProperty] = {}
        self._extensions: Dict[str, "Extension"] = {}
        self.root = Root(self)

    def _allocate_id(self) -> int:
        self._last_id += 1
        return self._last_id

    # ----- creation -----

    def create_material(self, name: str = "") -> Material:
        material = Material(self, name)
        self._materials[material.id] = material
        return material

    def create_texture(self, name: str = "") -> Texture:
        texture = Texture(self, name)
        self._textures[texture.id] = texture
        return texture

    def create_extension(self, extension_type: type) -> "Extension":
        """Declare an extension as used, returning the existing registry if already declared."""
        existing = self._extensions.get(extension_type.EXTENSION_NAME)
        if existing is not None:
            return existing
        return extension_type(self)

    # ----- lookup -----

    def get_texture(self, texture_id: int) -> Optional[Texture]:
        return self._textures.get(texture_id)

    def list_parents(self, texture: Texture) -> List[object]:
        """Root plus every material and live extension record bound to ``texture``."""
        if texture.id not in self._textures:
            raise RuntimeError(f"Texture {texture.name!r} (id={texture.id}) is not part of this document")
        parents: List[object] = [self.root]
        parents.extend(m for m in self._materials.values() if m.references(texture.id))
        parents.extend(r for r in self._records.values() if r.references(texture.id))
        return parents

    # ----- disposal -----

    def _dispose_texture(self, texture: Texture) -> None:
        for material in self._materials.values():
            material._unbind(texture.id)
        for record in self._records.values():
            record._unbind(texture.id)
        self._textures.pop(texture.id, None)
        texture._disposed = True

    def _dispose_material(self, material: Material) -> None:
        self._materials.pop(material.id, None)
        material._extensions.clear()
        material._disposed = True

    def _dispose_record(self, record: ExtensionProperty) -> None:
        for material in self._materials.values():
            for name, attached in list(material._extensions.items()):
                if attached is record:
                    del material._extensions[name]
        self._records.pop(record.id, None)
        record.extension._forget(record)
        record._disposed = True

    def _declare_extension(self, extension: "Extension") -> None:
        name = extension.extension_name
        if name in self._extensions:
            raise ValueError(f"Extension {name} is already declared on this document")
        self._extensions[name] = extension

    def _remove_extension(self, extension: "Extension") -> None:
        if self._extensions.get(extension.extension_name) is extension:
            del self._extensions[extension.extension_name]

    # ----- copying -----

    def clone(self) -> "Document":
        """Deep copy of the whole arena; the logger is shared, not copied."""
        memo = {id(self.logger): self.logger}
        return copy.deepcopy(self, memo)

    def __repr__(self) -> str:
        return (
            f"Document(materials={len(self._materials)}, textures={len(self._textures)}, "
            f"extensions={list(self._extensions)})"
        )

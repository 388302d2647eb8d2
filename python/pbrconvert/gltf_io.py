# python/pbrconvert/gltf_io.py
# Moves materials and textures between pygltflib GLTF2 objects and a Document.
# Exists so callers can load a glTF with pygltflib, convert it, and save it back.
# RELEVANT FILES:python/pbrconvert/graph.py,python/pbrconvert/extensions.py,tests/test_gltf_io.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pygltflib

from .extensions import (
    EXTENSION_TYPES,
    IOR,
    MaterialsIOR,
    MaterialsPBRSpecularGlossiness,
    PBRSpecularGlossiness,
    Specular,
    extension_type,
)
from .graph import REPEAT, Document, ExtensionProperty, Material, Texture, TextureBinding, TextureSlots

GENERATOR = "pbrconvert"

GltfSource = Union[pygltflib.GLTF2, Mapping[str, Any]]

_MIME_BY_SUFFIX = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


def _guess_mime_type(uri: str) -> str:
    lower = uri.lower()
    for suffix, mime_type in _MIME_BY_SUFFIX.items():
        if lower.endswith(suffix):
            return mime_type
    return ""


def _info_fields(info: Any) -> Tuple[int, int]:
    # Core slots arrive as pygltflib TextureInfo objects, extension slots as plain dicts.
    if isinstance(info, Mapping):
        index, tex_coord = info["index"], info.get("texCoord")
    else:
        index, tex_coord = info.index, info.texCoord
    return int(index), int(tex_coord or 0)


# ========== reading ==========

class _Reader:
    def __init__(self, gltf: pygltflib.GLTF2, resources: Mapping[str, bytes], doc: Document):
        self.gltf = gltf
        self.resources = resources
        self.doc = doc
        self.images: List[Texture] = []

    def image_bytes(self, index: int, image: pygltflib.Image) -> Tuple[bytes, str]:
        if image.uri is not None:
            if image.uri.startswith("data:"):
                raise ValueError(
                    f"images[{index}] is a data URI; convert it first with "
                    "GLTF2.convert_images(ImageFormat.BUFFERVIEW)"
                )
            if image.uri not in self.resources:
                raise ValueError(f"Missing resource for images[{index}] uri {image.uri!r}")
            return self.resources[image.uri], image.mimeType or _guess_mime_type(image.uri)

        if image.bufferView is None:
            raise ValueError(f"images[{index}] has neither uri nor bufferView")
        view = self.gltf.bufferViews[image.bufferView]
        buffer = self.gltf.buffers[view.buffer]
        if buffer.uri is None:
            data = self.gltf.binary_blob()
        elif buffer.uri in self.resources:
            data = self.resources[buffer.uri]
        else:
            data = self.gltf.get_data_from_buffer_uri(buffer.uri)
        if data is None:
            raise ValueError(f"images[{index}] points at buffer {view.buffer}, which has no data")
        offset = view.byteOffset or 0
        return bytes(data[offset:offset + view.byteLength]), image.mimeType or ""

    def read_images(self) -> None:
        for index, image in enumerate(self.gltf.images or []):
            texture = self.doc.create_texture(image.name or "")
            payload, mime_type = self.image_bytes(index, image)
            texture.uri = image.uri or ""
            texture.set_image(payload, mime_type)
            self.images.append(texture)

    def read_binding(self, owner: TextureSlots, slot: str, info: Any) -> None:
        if info is None:
            return
        index, tex_coord = _info_fields(info)
        texture_def = self.gltf.textures[index]
        if texture_def.source is None:
            raise ValueError(f"textures[{index}] has no source image")
        owner.set_texture(slot, self.images[texture_def.source])

        binding = owner.get_binding(slot)
        binding.info.tex_coord = tex_coord
        if texture_def.sampler is not None:
            sampler_def = self.gltf.samplers[texture_def.sampler]
            sampler = binding.sampler
            sampler.wrap_s = REPEAT if sampler_def.wrapS is None else int(sampler_def.wrapS)
            sampler.wrap_t = REPEAT if sampler_def.wrapT is None else int(sampler_def.wrapT)
            sampler.mag_filter = sampler_def.magFilter
            sampler.min_filter = sampler_def.minFilter
            sampler.validate()

    def read_material(self, material_def: pygltflib.Material) -> Material:
        material = self.doc.create_material(material_def.name or "")
        pbr = material_def.pbrMetallicRoughness
        if pbr is not None:
            if pbr.baseColorFactor is not None:
                material.base_color_factor = pbr.baseColorFactor
            if pbr.metallicFactor is not None:
                material.metallic_factor = pbr.metallicFactor
            if pbr.roughnessFactor is not None:
                material.roughness_factor = pbr.roughnessFactor
            self.read_binding(material, "baseColor", pbr.baseColorTexture)
            self.read_binding(material, "metallicRoughness", pbr.metallicRoughnessTexture)

        normal = material_def.normalTexture
        self.read_binding(material, "normal", normal)
        if normal is not None and normal.scale is not None:
            material.normal_scale = float(normal.scale)
        occlusion = material_def.occlusionTexture
        self.read_binding(material, "occlusion", occlusion)
        if occlusion is not None and occlusion.strength is not None:
            material.occlusion_strength = float(occlusion.strength)
        self.read_binding(material, "emissive", material_def.emissiveTexture)

        if material_def.emissiveFactor is not None:
            material.emissive_factor = material_def.emissiveFactor
        if material_def.alphaMode:
            material.alpha_mode = material_def.alphaMode
        if material_def.alphaCutoff is not None:
            material.alpha_cutoff = float(material_def.alphaCutoff)
        material.double_sided = bool(material_def.doubleSided)

        for name, ext_def in (material_def.extensions or {}).items():
            try:
                extension = self.doc.create_extension(extension_type(name))
            except KeyError:
                self.doc.logger.warning(f"Ignoring unsupported material extension {name}.")
                continue
            material.set_extension(name, self.read_extension(extension, ext_def))
        return material

    def read_extension(self, extension: Any, ext_def: Mapping[str, Any]) -> ExtensionProperty:
        if isinstance(extension, MaterialsPBRSpecularGlossiness):
            spec_gloss = extension.create_pbr_specular_glossiness()
            if "diffuseFactor" in ext_def:
                spec_gloss.diffuse_factor = ext_def["diffuseFactor"]
            if "specularFactor" in ext_def:
                spec_gloss.specular_factor = ext_def["specularFactor"]
            if "glossinessFactor" in ext_def:
                spec_gloss.glossiness_factor = float(ext_def["glossinessFactor"])
            self.read_binding(spec_gloss, "diffuse", ext_def.get("diffuseTexture"))
            self.read_binding(spec_gloss, "specularGlossiness", ext_def.get("specularGlossinessTexture"))
            return spec_gloss
        if isinstance(extension, MaterialsIOR):
            ior = extension.create_ior()
            if "ior" in ext_def:
                ior.ior = float(ext_def["ior"])
            return ior
        specular = extension.create_specular()
        if "specularFactor" in ext_def:
            specular.specular_factor = float(ext_def["specularFactor"])
        if "specularColorFactor" in ext_def:
            specular.specular_color_factor = ext_def["specularColorFactor"]
        self.read_binding(specular, "specular", ext_def.get("specularTexture"))
        return specular


def read_gltf(
    source: GltfSource,
    resources: Optional[Mapping[str, bytes]] = None,
    logger: Optional[logging.Logger] = None,
) -> Document:
    """Build a :class:`Document` from the materials and textures of a glTF asset.

    Parameters
    ----------
    source : pygltflib.GLTF2 or Mapping[str, Any]
        A loaded ``GLTF2`` (for example from ``GLTF2().load(path)``) or parsed
        glTF JSON, which is passed through ``GLTF2.from_dict``.
    resources : Optional[Mapping[str, bytes]]
        Bytes for images and buffers referenced by relative uri. Images stored
        in the GLB binary chunk need no entry. Data-URI images are rejected.
    logger : Optional[logging.Logger]
        Logger attached to the new document.
    """
    gltf = source if isinstance(source, pygltflib.GLTF2) else pygltflib.GLTF2.from_dict(dict(source))
    doc = Document(logger=logger)
    for name in gltf.extensionsUsed or []:
        if name in EXTENSION_TYPES:
            doc.create_extension(EXTENSION_TYPES[name])
        else:
            doc.logger.warning(f"Ignoring unsupported extension {name}.")

    reader = _Reader(gltf, resources or {}, doc)
    reader.read_images()
    for material_def in gltf.materials or []:
        reader.read_material(material_def)
    return doc


# ========== writing ==========

class _Writer:
    def __init__(self, doc: Document):
        self.doc = doc
        self.gltf = pygltflib.GLTF2(
            asset=pygltflib.Asset(generator=GENERATOR, version="2.0"),
            extensionsUsed=[ext.extension_name for ext in doc.root.list_extensions_used()],
            buffers=[],
            bufferViews=[],
            images=[],
            samplers=[],
            textures=[],
            materials=[],
        )
        self.blob = bytearray()
        self.image_index: Dict[int, int] = {}
        self.sampler_index: Dict[Tuple[Any, ...], int] = {}
        self.texture_index: Dict[Tuple[int, Optional[int]], int] = {}

    def write_images(self) -> None:
        for texture in self.doc.root.list_textures():
            if texture.image is None:
                raise ValueError(f"Texture {texture.name!r} has no image data to write")
            image = pygltflib.Image(name=texture.name or None, mimeType=texture.mime_type or None)
            if texture.uri:
                image.uri = texture.uri
            else:
                image.bufferView = len(self.gltf.bufferViews)
                self.gltf.bufferViews.append(
                    pygltflib.BufferView(buffer=0, byteOffset=len(self.blob), byteLength=len(texture.image))
                )
                self.blob.extend(texture.image)
                # 4-byte alignment for the next view
                while len(self.blob) % 4 != 0:
                    self.blob.append(0)
            self.image_index[texture.id] = len(self.gltf.images)
            self.gltf.images.append(image)

        if self.blob:
            self.gltf.buffers.append(pygltflib.Buffer(byteLength=len(self.blob)))
            self.gltf.set_binary_blob(bytes(self.blob))

    def sampler_for(self, binding: TextureBinding) -> Optional[int]:
        sampler = binding.sampler
        if sampler.is_default():
            return None
        key = (sampler.wrap_s, sampler.wrap_t, sampler.mag_filter, sampler.min_filter)
        if key not in self.sampler_index:
            self.sampler_index[key] = len(self.gltf.samplers)
            self.gltf.samplers.append(
                pygltflib.Sampler(
                    wrapS=sampler.wrap_s,
                    wrapT=sampler.wrap_t,
                    magFilter=sampler.mag_filter,
                    minFilter=sampler.min_filter,
                )
            )
        return self.sampler_index[key]

    def texture_for(self, owner: TextureSlots, slot: str) -> Optional[Tuple[int, int]]:
        texture = owner.get_texture(slot)
        if texture is None:
            return None
        binding = owner.get_binding(slot)
        key = (self.image_index[texture.id], self.sampler_for(binding))
        if key not in self.texture_index:
            self.texture_index[key] = len(self.gltf.textures)
            self.gltf.textures.append(pygltflib.Texture(source=key[0], sampler=key[1]))
        return self.texture_index[key], binding.info.tex_coord

    def texture_info(self, owner: TextureSlots, slot: str) -> Optional[pygltflib.TextureInfo]:
        fields = self.texture_for(owner, slot)
        if fields is None:
            return None
        return pygltflib.TextureInfo(index=fields[0], texCoord=fields[1])

    def texture_info_dict(self, owner: TextureSlots, slot: str) -> Optional[Dict[str, int]]:
        fields = self.texture_for(owner, slot)
        if fields is None:
            return None
        return {"index": fields[0], "texCoord": fields[1]}

    def write_extension(self, record: ExtensionProperty) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if isinstance(record, PBRSpecularGlossiness):
            out["diffuseFactor"] = list(record.diffuse_factor)
            out["specularFactor"] = list(record.specular_factor)
            out["glossinessFactor"] = record.glossiness_factor
            for slot, key in (("diffuse", "diffuseTexture"), ("specularGlossiness", "specularGlossinessTexture")):
                info = self.texture_info_dict(record, slot)
                if info is not None:
                    out[key] = info
        elif isinstance(record, IOR):
            out["ior"] = record.ior
        elif isinstance(record, Specular):
            out["specularFactor"] = record.specular_factor
            out["specularColorFactor"] = list(record.specular_color_factor)
            info = self.texture_info_dict(record, "specular")
            if info is not None:
                out["specularTexture"] = info
        return out

    def write_material(self, material: Material) -> pygltflib.Material:
        normal = self.texture_for(material, "normal")
        occlusion = self.texture_for(material, "occlusion")
        return pygltflib.Material(
            name=material.name or None,
            pbrMetallicRoughness=pygltflib.PbrMetallicRoughness(
                baseColorFactor=list(material.base_color_factor),
                metallicFactor=material.metallic_factor,
                roughnessFactor=material.roughness_factor,
                baseColorTexture=self.texture_info(material, "baseColor"),
                metallicRoughnessTexture=self.texture_info(material, "metallicRoughness"),
            ),
            normalTexture=None if normal is None else pygltflib.NormalMaterialTexture(
                index=normal[0], texCoord=normal[1], scale=material.normal_scale
            ),
            occlusionTexture=None if occlusion is None else pygltflib.OcclusionTextureInfo(
                index=occlusion[0], texCoord=occlusion[1], strength=material.occlusion_strength
            ),
            emissiveTexture=self.texture_info(material, "emissive"),
            emissiveFactor=list(material.emissive_factor),
            alphaMode=material.alpha_mode,
            alphaCutoff=material.alpha_cutoff if material.alpha_mode == "MASK" else None,
            doubleSided=material.double_sided,
            extensions={
                record.EXTENSION_NAME: self.write_extension(record) for record in material.list_extensions()
            },
        )


def write_gltf(doc: Document) -> pygltflib.GLTF2:
    """Write the materials and textures of ``doc`` into a new ``GLTF2``.

    Images with a uri keep it; the rest are packed into the binary chunk, so
    the result saves as GLB (``gltf.save_binary(path)``). ``extensionsUsed``
    lists exactly the extensions declared on the document.
    """
    writer = _Writer(doc)
    writer.write_images()
    for material in doc.root.list_materials():
        writer.gltf.materials.append(writer.write_material(material))
    return writer.gltf

# python/pbrconvert/__init__.py
# Public API for the spec/gloss to metal/rough material converter
# Exists to re-export the scene graph, extensions and conversion entry points
# RELEVANT FILES: python/pbrconvert/metal_rough.py, python/pbrconvert/graph.py, tests/test_metal_rough.py
from .config import MetalRoughOptions, load_options
from .extensions import (
    EXTENSION_TYPES,
    IOR,
    Extension,
    MaterialsIOR,
    MaterialsPBRSpecularGlossiness,
    MaterialsSpecular,
    PBRSpecularGlossiness,
    Specular,
)
from .gltf_io import read_gltf, write_gltf
from .graph import (
    CLAMP_TO_EDGE,
    LINEAR,
    MIRRORED_REPEAT,
    NEAREST,
    REPEAT,
    Document,
    ExtensionProperty,
    Material,
    Root,
    Texture,
    TextureBinding,
    TextureInfo,
    TextureSampler,
)
from .metal_rough import (
    IOR_VALUE,
    SPECULAR_FACTOR,
    MetalRoughReport,
    convert_metal_rough,
    metal_rough,
)
from .recode import recode_image, rewrite_pixels, rewrite_texture
from .textures import PixelBuffer, decode_image, encode_image, gltf_mr_channels

__version__ = "0.1.0"

__all__ = [
    "CLAMP_TO_EDGE",
    "EXTENSION_TYPES",
    "IOR",
    "IOR_VALUE",
    "LINEAR",
    "MIRRORED_REPEAT",
    "NEAREST",
    "REPEAT",
    "SPECULAR_FACTOR",
    "Document",
    "Extension",
    "ExtensionProperty",
    "MaterialsIOR",
    "MaterialsPBRSpecularGlossiness",
    "MaterialsSpecular",
    "Material",
    "MetalRoughOptions",
    "MetalRoughReport",
    "PBRSpecularGlossiness",
    "PixelBuffer",
    "Root",
    "Specular",
    "Texture",
    "TextureBinding",
    "TextureInfo",
    "TextureSampler",
    "convert_metal_rough",
    "decode_image",
    "encode_image",
    "gltf_mr_channels",
    "load_options",
    "metal_rough",
    "read_gltf",
    "recode_image",
    "rewrite_pixels",
    "rewrite_texture",
    "write_gltf",
]

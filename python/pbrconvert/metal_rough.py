# python/pbrconvert/metal_rough.py
# Converts KHR_materials_pbrSpecularGlossiness materials to the metal/rough workflow.
# Exists to rewrite spec/gloss data as base color + KHR_materials_specular + KHR_materials_ior.
# RELEVANT FILES:python/pbrconvert/recode.py,python/pbrconvert/extensions.py,tests/test_metal_rough.py
"""Spec/gloss to metal/rough conversion.

Each converted material becomes a dielectric (``metallic = 0``) with an index
of refraction of 1000 and a full-strength ``KHR_materials_specular`` whose
color carries the old specular factor. That combination reproduces the
spec/gloss response exactly instead of guessing a metalness value.

When a combined specular/glossiness texture is bound, it is split into a
specular texture (RGB kept, alpha forced to 255) and a metallic-roughness
texture (G = inverted, scaled glossiness). Without one, glossiness folds into
``roughness_factor``. Textures left referenced by nothing but the document root
are disposed afterwards.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import numpy as np

from .config import MetalRoughOptions, OptionsSource, load_options
from .extensions import (
    MaterialsIOR,
    MaterialsPBRSpecularGlossiness,
    MaterialsSpecular,
    PBRSpecularGlossiness,
)
from .graph import Document, Material, Texture
from .recode import OUTPUT_MIME_TYPE, PixelFn, recode_image

NAME = "metalRough"

IOR_VALUE = 1000.0
SPECULAR_FACTOR = 1.0


@dataclass
class MetalRoughReport:
    materials_converted: int = 0
    textures_created: int = 0
    textures_disposed: int = 0


def strip_glossiness(src: np.ndarray, dst: np.ndarray) -> None:
    """Specular texture: keep RGB, drop the glossiness stored in alpha."""
    dst[..., 3] = 255


def glossiness_to_roughness(glossiness_factor: float) -> PixelFn:
    """Metallic-roughness texture: G = 255 - round(alpha * glossiness), R = B = 0, A = 255."""
    factor = float(glossiness_factor)

    def fn(src: np.ndarray, dst: np.ndarray) -> None:
        # round half up
        gloss = np.floor(src[..., 3].astype(np.float64) * factor + 0.5)
        dst[..., 0] = 0
        dst[..., 1] = np.clip(255.0 - gloss, 0.0, 255.0)
        dst[..., 2] = 0
        dst[..., 3] = 255

    return fn


def _derived_name(texture: Texture, suffix: str) -> str:
    return f"{texture.name}_{suffix}" if texture.name else suffix


class _Registries:
    """Output registries, declared on first use so untouched documents stay clean."""

    def __init__(self, doc: Document):
        self._doc = doc
        self._ior: Optional[MaterialsIOR] = None
        self._specular: Optional[MaterialsSpecular] = None

    @property
    def ior(self) -> MaterialsIOR:
        if self._ior is None:
            self._ior = self._doc.create_extension(MaterialsIOR)  # type: ignore[assignment]
        return self._ior

    @property
    def specular(self) -> MaterialsSpecular:
        if self._specular is None:
            self._specular = self._doc.create_extension(MaterialsSpecular)  # type: ignore[assignment]
        return self._specular


async def _convert_material(
    doc: Document,
    material: Material,
    spec_gloss: PBRSpecularGlossiness,
    registries: _Registries,
    candidates: Dict[int, Texture],
    report: MetalRoughReport,
    options: MetalRoughOptions,
    executor: Executor,
) -> None:
    sg_texture = spec_gloss.specular_glossiness_texture

    # Recode before touching the graph so a bad image leaves this material as it was.
    specular_image = metal_rough_image = None
    if sg_texture is not None:
        specular_image, _ = await recode_image(
            sg_texture, strip_glossiness, vectorized=options.vectorized, executor=executor
        )
        metal_rough_image, _ = await recode_image(
            sg_texture,
            glossiness_to_roughness(spec_gloss.glossiness_factor),
            vectorized=options.vectorized,
            executor=executor,
        )

    specular = registries.specular.create_specular()
    specular.specular_factor = SPECULAR_FACTOR
    specular.specular_color_factor = spec_gloss.specular_factor

    # Textures that may end up unused once this material is rewritten.
    for texture in (
        sg_texture,
        material.base_color_texture,
        material.metallic_roughness_texture,
    ):
        if texture is not None:
            candidates.setdefault(texture.id, texture)

    ior = registries.ior.create_ior()
    ior.ior = IOR_VALUE

    material.base_color_factor = spec_gloss.diffuse_factor
    material.metallic_factor = 0.0
    material.roughness_factor = 1.0
    material.set_extension(MaterialsIOR.EXTENSION_NAME, ior)
    material.set_extension(MaterialsSpecular.EXTENSION_NAME, specular)

    diffuse_texture = spec_gloss.diffuse_texture
    if diffuse_texture is not None:
        material.base_color_texture = diffuse_texture
        material.get_binding("baseColor").copy_from(spec_gloss.get_binding("diffuse"))

    if sg_texture is not None:
        sg_binding = spec_gloss.get_binding("specularGlossiness")

        specular_texture = doc.create_texture(_derived_name(sg_texture, "specular"))
        specular_texture.set_image(specular_image, OUTPUT_MIME_TYPE)
        specular.specular_texture = specular_texture
        specular.get_binding("specular").copy_from(sg_binding)

        metal_rough_texture = doc.create_texture(_derived_name(sg_texture, "metalRough"))
        metal_rough_texture.set_image(metal_rough_image, OUTPUT_MIME_TYPE)
        material.metallic_roughness_texture = metal_rough_texture
        material.get_binding("metallicRoughness").copy_from(sg_binding)
        report.textures_created += 2
    else:
        specular.specular_color_factor = spec_gloss.specular_factor
        material.roughness_factor = 1.0 - spec_gloss.glossiness_factor

    # Detach only; the registry disposes the record at the end of the run.
    material.set_extension(PBRSpecularGlossiness.EXTENSION_NAME, None)
    report.materials_converted += 1


def metal_rough(options: OptionsSource = None) -> Callable[[Document], Awaitable[MetalRoughReport]]:
    """Build an async transform converting spec/gloss materials to metal/rough.

    Args:
        options: ``MetalRoughOptions``, mapping, JSON path or ``None``; see
            :func:`pbrconvert.config.load_options`.

    Returns:
        Coroutine function taking a :class:`Document`, mutating it in place and
        returning a :class:`MetalRoughReport`.

    A failure while recoding a texture propagates. Materials converted before
    it keep their metal/rough data; the failing material and those after it
    keep their spec/gloss data. Re-run on a :meth:`Document.clone` taken beforehand.
    """
    opts = load_options(options)

    async def transform(doc: Document) -> MetalRoughReport:
        log = doc.logger
        report = MetalRoughReport()

        extension_name = MaterialsPBRSpecularGlossiness.EXTENSION_NAME
        extensions_used = [ext.extension_name for ext in doc.root.list_extensions_used()]
        if extension_name not in extensions_used:
            log.warning(f"{NAME}: Extension {extension_name} not found on given document.")
            return report

        spec_gloss_extension = doc.create_extension(MaterialsPBRSpecularGlossiness)
        registries = _Registries(doc)
        candidates: Dict[int, Texture] = {}

        executor = ThreadPoolExecutor(max_workers=opts.max_workers)
        try:
            for material in doc.root.list_materials():
                spec_gloss = material.get_extension(extension_name)
                if spec_gloss is None:
                    continue
                await _convert_material(
                    doc, material, spec_gloss, registries, candidates, report, opts, executor
                )
        finally:
            executor.shutdown(wait=True)

        if report.materials_converted == 0:
            log.info(f"{NAME}: No materials use {extension_name}; removing unused extension.")

        # Drops every spec/gloss record and the extensionsUsed entry.
        spec_gloss_extension.dispose()

        if opts.prune_textures:
            for texture in candidates.values():
                if texture.is_disposed:
                    continue
                if len(texture.list_parents()) == 1:
                    log.debug(f"{NAME}: Disposing unused texture {texture.name!r}.")
                    texture.dispose()
                    report.textures_disposed += 1

        log.debug(
            f"{NAME}: Complete. materials={report.materials_converted} "
            f"created={report.textures_created} disposed={report.textures_disposed}"
        )
        return report

    return transform


def convert_metal_rough(doc: Document, options: OptionsSource = None) -> MetalRoughReport:
    """Run :func:`metal_rough` to completion on ``doc``."""
    return asyncio.run(metal_rough(options)(doc))

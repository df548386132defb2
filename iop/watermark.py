import os

import numpy as np
from path import Path
from PIL import Image, ImageColor, ImageDraw

from core.datatypes import ImageDimensions, RenderError
from iop.geometry import fill_style
from utils.font_loader import load_font, measure_text


class TextWatermark:
    """
    Draws a text watermark onto an image file and writes the result.

    Geometry (anchor, font, rotation) is computed beforehand by
    iop.geometry.compute_placement; this class only touches pixels.
    """
    def __init__(self, **kwargs):
        """
        Initializes the renderer.

        Args:
            **kwargs: Keyword arguments for the output encoding.
                - output_format (str): Pillow format name used for every output. Default: 'JPEG'.
                - quality (int): JPEG/WebP quality, 1-100. Default: 95.
        """
        self.params = {
            'output_format': 'JPEG',
            'quality': 95,
        }
        self.params.update(kwargs)
        self.name = 'watermark'

    def probe(self, image_path):
        """
        Reads the image size from the file header without decoding pixels.

        Returns:
            ImageDimensions: width and height in pixels.
        """
        try:
            with Image.open(image_path) as im:
                width, height = im.size
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise RenderError(f"could not read the size of '{image_path}': {e}") from e
        return ImageDimensions(width, height)

    def measure(self, text, font):
        return measure_text(text, font)

    def process(self, image, spec, placement):
        """
        Applies the watermark to an in-memory image.

        Args:
            image (PIL.Image.Image): Source image, any mode.
            spec (WatermarkSpec): Text, colour and transparency.
            placement (PlacementResult): Anchor, effective font and transform.

        Returns:
            PIL.Image.Image: RGBA image with the text composited on top.
        """
        base = image.convert('RGBA')

        # Draw unrotated text on its own layer, then warp the layer
        layer = Image.new('RGBA', base.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        fill = ImageColor.getcolor(fill_style(spec.color, spec.transparency), 'RGBA')
        draw.text(placement.anchor, spec.text, font=load_font(placement.font), fill=fill, anchor='ls')

        if placement.angle % 360 != 0:
            # Image.transform wants the output -> input mapping
            inverse = np.linalg.inv(placement.transform)
            coeffs = tuple(float(v) for v in inverse[:2].ravel())
            layer = layer.transform(
                base.size, Image.Transform.AFFINE, data=coeffs,
                resample=Image.Resampling.BICUBIC,
            )

        return Image.alpha_composite(base, layer)

    def render(self, source_path, destination_path, spec, placement):
        """
        Load -> draw -> encode -> write, for one file.

        Raises:
            RenderError: on any decode, draw or encode failure.
        """
        try:
            with Image.open(source_path) as im:
                im.load()
                result = self.process(im, spec, placement)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise RenderError(f"could not watermark '{source_path}': {e}") from e

        destination_path = Path(os.fspath(destination_path))
        try:
            if destination_path.parent:
                destination_path.parent.makedirs_p()
            self._save(result, destination_path)
        except (OSError, ValueError) as e:
            raise RenderError(f"could not write '{destination_path}': {e}") from e

    def _save(self, image, output_path):
        fmt = self.params['output_format'].upper()
        if fmt == 'JPEG':
            # JPEG has no alpha channel
            image.convert('RGB').save(output_path, 'JPEG', quality=self.params['quality'])
        elif fmt == 'WEBP':
            image.save(output_path, 'WEBP', quality=self.params['quality'])
        else:
            image.save(output_path, fmt)

"""
Watermark config loading.

The YAML document has a `data` section describing the watermark and a few
top-level switches for the progress log:

    data:
      font: "bold 40px DejaVuSans"
      base_width: 1000
      relative_font_size: true
      color: "#ffffff"
      transparency: 50
      text: "(c) Example"
      position: "bottom right"
      horizontal_padding: 20
      vertical_padding: 20
      x_offset: 0
      y_offset: 0
      rotation: auto
      source_directory: input
      destination_directory: output
    output:
      format: JPEG
      quality: 95
    reset_logs: false
    override_files: false
    files: []
"""

import math
import numbers

import yaml
from path import Path

from core.datatypes import (
    ConfigInvalidError, ConfigMissingError, RotationSpec, RunOptions, WatermarkSpec,
)

_REQUIRED = ('text', 'source_directory', 'destination_directory')


def read_yaml(config_path):
    """ Instantiation from a yaml file. """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigMissingError(
            f"Config file not found, please make sure '{config_path}' exists."
        )
    try:
        with open(config_path, 'r', encoding='utf-8') as fp:
            cfg = yaml.safe_load(fp)
    except yaml.YAMLError as e:
        raise ConfigInvalidError(f"could not parse '{config_path}': {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigInvalidError(f"'{config_path}' must contain a mapping")
    return cfg


def _number(data, key, default):
    value = data.get(key, default)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigInvalidError(f"data.{key} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigInvalidError(f"data.{key} must be a finite number, got {value!r}")
    return float(value)


def _flag(cfg, key):
    value = cfg.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigInvalidError(f"{key} must be true or false, got {value!r}")
    return value


def _string(data, key, default=None):
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ConfigInvalidError(f"data.{key} must be a string, got {value!r}")
    return value


def parse_rotation(value):
    """'auto' (any case) -> Auto, a number -> Fixed(degrees)"""
    if value is None:
        return RotationSpec.fixed(0)
    if isinstance(value, str):
        if value.strip().lower() == 'auto':
            return RotationSpec.auto()
        try:
            degrees = float(value)
        except ValueError:
            raise ConfigInvalidError(f"rotation must be a number or 'auto', got {value!r}") from None
        if not math.isfinite(degrees):
            raise ConfigInvalidError(f"rotation must be a finite number, got {value!r}")
        return RotationSpec.fixed(degrees)
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigInvalidError(f"rotation must be a number or 'auto', got {value!r}")
    if not math.isfinite(value):
        raise ConfigInvalidError(f"rotation must be a finite number, got {value!r}")
    return RotationSpec.fixed(value)


def parse_position(value):
    """'bottom right' or ['bottom', 'right'] -> ('bottom', 'right')"""
    if value is None:
        return ('center',)
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise ConfigInvalidError(f"position must be a string or a list of keywords, got {value!r}")


def build_spec(data, base_dir=None):
    """
    Builds the immutable WatermarkSpec from the `data` section.

    Relative source / destination directories resolve against base_dir.
    """
    if not isinstance(data, dict):
        raise ConfigInvalidError("config is missing its 'data' section")
    for key in _REQUIRED:
        if key not in data:
            raise ConfigInvalidError(f"data.{key} is required")

    relative = data.get('relative_font_size', False)
    if not isinstance(relative, bool):
        raise ConfigInvalidError(f"data.relative_font_size must be true or false, got {relative!r}")
    base_width = _number(data, 'base_width', 1000.0)
    if relative and base_width <= 0:
        raise ConfigInvalidError("data.base_width must be positive when relative_font_size is on")

    source_dir = Path(_string(data, 'source_directory'))
    destination_dir = Path(_string(data, 'destination_directory'))
    if base_dir is not None:
        source_dir = Path(base_dir) / source_dir
        destination_dir = Path(base_dir) / destination_dir

    return WatermarkSpec(
        text=_string(data, 'text'),
        font=_string(data, 'font', '40px DejaVuSans'),
        base_width=base_width,
        color=_string(data, 'color', '#ffffff'),
        transparency=_number(data, 'transparency', 0.0),
        position=parse_position(data.get('position')),
        x_offset=_number(data, 'x_offset', 0.0),
        y_offset=_number(data, 'y_offset', 0.0),
        horizontal_padding=_number(data, 'horizontal_padding', 0.0),
        vertical_padding=_number(data, 'vertical_padding', 0.0),
        rotation=parse_rotation(data.get('rotation')),
        relative_font_size=relative,
        source_directory=str(source_dir),
        destination_directory=str(destination_dir),
    )


def build_options(cfg):
    output = cfg.get('output') or {}
    if not isinstance(output, dict):
        raise ConfigInvalidError("'output' must be a mapping")
    files = cfg.get('files') or []
    if not isinstance(files, list):
        raise ConfigInvalidError("'files' must be a list of file names")
    quality = output.get('quality', 95)
    if isinstance(quality, bool) or not isinstance(quality, int) or not 1 <= quality <= 100:
        raise ConfigInvalidError(f"output.quality must be an integer in [1, 100], got {quality!r}")
    return RunOptions(
        reset_logs=_flag(cfg, 'reset_logs'),
        override_files=_flag(cfg, 'override_files'),
        files=tuple(str(f) for f in files),
        output_format=str(output.get('format', 'JPEG')).upper(),
        quality=quality,
        extension=str(output.get('extension', '.jpg')),
    )


def load_config(config_path):
    """
    Loads the config file.

    Returns:
        tuple[WatermarkSpec, RunOptions]

    Raises:
        ConfigMissingError: the file does not exist.
        ConfigInvalidError: the file cannot be parsed or a field is invalid.
    """
    config_path = Path(config_path).absolute()
    cfg = read_yaml(config_path)
    spec = build_spec(cfg.get('data'), base_dir=config_path.parent)
    return spec, build_options(cfg)

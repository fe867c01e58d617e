
"""
noiselab.py
===========

A small Gaussian noise tile generator. It renders a 256 × 256 grayscale tile
whose per-pixel luminance is drawn from N(mean, std_dev), applies a uniform
alpha from an opacity percentage, and returns the tile as a PNG data URI that
can be dropped straight into a CSS ``background-image`` and repeated.

Key features
------------
- Box–Muller sampler on top of a seedable ``random.Random`` (deterministic
  output with a seed).
- Lossless PNG encoding; every RGBA value round-trips exactly.
- Memoisation by the rounded (mean, std_dev, opacity) triple. Requests that
  round to the same integers share one byte-identical pattern, and the
  synthesizer runs at most once per key.
- Parsing of the ``"mean,stdDev,opacity"`` strings used by presets and
  ``noise-[...]`` utilities, with a fallback to the default pattern on bad
  input.

Quick start
-----------
>>> from noiselab import NoisePatternCache
>>> cache = NoisePatternCache(seed=42)
>>> url = cache.get_pattern(128, 50, 5)
>>> url.startswith("data:image/png;base64,")
True

Command line
------------
$ noiselab --params 128,20,20 --out /tmp/grain.png --seed 7
$ noiselab --preset strong --css

License: MIT
"""

import argparse
import base64
import io
import json
import logging
import math
import numbers
import random
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

try:
    from PIL import Image
except Exception as e:  # pragma: no cover
    raise SystemExit("This module requires Pillow. Try: pip install pillow") from e

try:
    import numpy as np
except Exception as e:  # pragma: no cover
    raise SystemExit("This module requires NumPy. Try: pip install numpy") from e


logger = logging.getLogger(__name__)

CANVAS_SIZE = 256

DEFAULT_MEAN = 128
DEFAULT_STD_DEV = 50
DEFAULT_OPACITY = 5

DEFAULT_PRESETS: Dict[str, str] = {
    "subtle": "100,20,5",
    "medium": "128,50,5",
    "strong": "128,100,10",
}

DATA_URL_PREFIX = "data:image/png;base64,"

KEY_DELIMITER = ","


# ---------------------------- Errors ----------------------------------------

class NoiseParamError(ValueError):
    """Base class for rejected noise parameters."""


class MalformedParameterString(NoiseParamError):
    """The value is not of the form 'mean,stdDev,opacity'."""


class NonNumericParameter(NoiseParamError):
    """A field is not a number."""


class OpacityOutOfRange(NoiseParamError):
    """Opacity lies outside [0, 100]."""


# ---------------------------- Utilities -------------------------------------

def rng_from_seed(seed: Optional[int]) -> random.Random:
    """Return a Random instance from seed (or system)."""
    r = random.Random()
    if seed is not None:
        r.seed(int(seed))
    else:
        r.seed()
    return r


def round_half_up(x: float) -> int:
    # 2.5 -> 3, -2.5 -> -2
    return int(math.floor(x + 0.5))


def alpha_from_opacity(opacity: float) -> int:
    """Map an opacity percentage to an 8-bit alpha value (half to even)."""
    return int(round(255 * opacity / 100))


_HEX_PREFIX = re.compile(r"([+-]?)0[xX]([0-9a-fA-F]*)")
_INT_PREFIX = re.compile(r"[+-]?[0-9]+")


def parse_int_field(text: str) -> int:
    """Parse the leading integer of a trimmed field ('12px' -> 12, '0x10' -> 16).

    Only ASCII digits count; a bare '0x' is not a number.
    """
    text = text.strip()
    hex_m = _HEX_PREFIX.match(text)
    if hex_m is not None:
        if hex_m.group(2):
            return int(hex_m.group(1) + hex_m.group(2), 16)
    else:
        m = _INT_PREFIX.match(text)
        if m is not None:
            return int(m.group(0))
    raise NonNumericParameter(
        f"Mean, standard deviation and opacity must be valid numbers, got {text!r}"
    )


# ---------------------------- Parameters ------------------------------------

@dataclass(frozen=True)
class NoiseParams:
    mean: float = DEFAULT_MEAN
    std_dev: float = DEFAULT_STD_DEV
    opacity: float = DEFAULT_OPACITY

    @classmethod
    def from_string(cls, value: str) -> "NoiseParams":
        """Parse 'mean,stdDev,opacity' (e.g., '128,50,5')."""
        if not isinstance(value, str):
            raise MalformedParameterString(
                f"Expected a 'mean,stdDev,opacity' string, got {type(value).__name__} {value!r}"
            )
        if not value or KEY_DELIMITER not in value:
            raise MalformedParameterString(
                f"Invalid format {value!r}. Usage: noise-[mean,dev,opacity]"
            )
        fields = value.split(KEY_DELIMITER)
        if len(fields) != 3:
            raise MalformedParameterString(
                f"Expected 3 comma-separated fields, got {len(fields)} in {value!r}"
            )
        mean, std_dev, opacity = (parse_int_field(f) for f in fields)
        return validate_params(cls(mean, std_dev, opacity))

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.mean, self.std_dev, self.opacity)

    def cache_key(self) -> str:
        """Rounded 'mean,stdDev,opacity' used to deduplicate near-identical requests."""
        return KEY_DELIMITER.join(str(round_half_up(v)) for v in self.as_tuple())

    def __str__(self) -> str:
        return KEY_DELIMITER.join(f"{v:g}" for v in self.as_tuple())


def validate_params(params: NoiseParams) -> NoiseParams:
    """Reject non-finite values and opacity outside [0, 100]. Returns params unchanged."""
    for name, v in zip(("mean", "std_dev", "opacity"), params.as_tuple()):
        if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
            raise NonNumericParameter(f"{name} must be a finite number, got {v!r}")
    if params.opacity < 0 or params.opacity > 100:
        raise OpacityOutOfRange(f"Opacity must be between 0 and 100, got {params.opacity!r}")
    return params


def parse_noise_value(value: str) -> NoiseParams:
    return NoiseParams.from_string(value)


@dataclass(frozen=True)
class ParseResult:
    """Either parsed params or the reason they were rejected."""
    params: Optional[NoiseParams] = None
    error: Optional[NoiseParamError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def try_parse_noise_value(value: str) -> ParseResult:
    try:
        return ParseResult(params=parse_noise_value(value))
    except NoiseParamError as err:
        return ParseResult(error=err)


# ---------------------------- Sampler ---------------------------------------

class NoiseSampler:
    """Standard normal samples via the Box–Muller transform.

    One sample per two uniform draws; the paired sine sample is dropped so
    that each call maps to a fixed slice of the uniform stream.
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else rng_from_seed(seed)

    def sample(self) -> float:
        u = 0.0
        v = 0.0
        while u == 0.0:
            u = self.rng.random()
        while v == 0.0:
            v = self.rng.random()
        return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)

    __call__ = sample


# ---------------------------- Synthesis -------------------------------------

def synthesize_pixels(
    mean: float,
    std_dev: float,
    opacity: float,
    sampler: Callable[[], float],
) -> "np.ndarray":
    """Fill a CANVAS_SIZE x CANVAS_SIZE RGBA buffer (row-major) with Gaussian grain.

    Each pixel draws one sample Z independently: luminance is
    floor(Z * std_dev + mean) clamped to [0, 255] and copied to R, G and B.
    Alpha is uniform. Raises NoiseParamError on invalid input instead of
    clamping it.
    """
    validate_params(NoiseParams(mean, std_dev, opacity))
    n = CANVAS_SIZE * CANVAS_SIZE
    z = np.fromiter((sampler() for _ in range(n)), dtype=np.float64, count=n)
    lum = np.clip(np.floor(z * std_dev + mean), 0, 255).astype(np.uint8)

    pixels = np.empty((CANVAS_SIZE, CANVAS_SIZE, 4), dtype=np.uint8)
    pixels[..., :3] = lum.reshape(CANVAS_SIZE, CANVAS_SIZE, 1)
    pixels[..., 3] = alpha_from_opacity(opacity)
    return pixels


def encode_data_url(pixels: "np.ndarray") -> str:
    """PNG-encode an RGBA buffer and wrap it as a base64 data URI."""
    if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected an (H, W, 4) uint8 buffer, got {pixels.dtype} {pixels.shape}")
    img = Image.fromarray(pixels)
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return DATA_URL_PREFIX + base64.b64encode(buf.getvalue()).decode("ascii")


def data_url_to_png(url: str) -> bytes:
    if not url.startswith(DATA_URL_PREFIX):
        raise ValueError(f"Not a PNG data URI: {url[:40]!r}")
    return base64.b64decode(url[len(DATA_URL_PREFIX):])


def decode_data_url(url: str) -> Image.Image:
    """Inverse of encode_data_url; returns a loaded RGBA image."""
    img = Image.open(io.BytesIO(data_url_to_png(url)))
    img.load()
    return img


def generate_noise_pattern(
    mean: float = DEFAULT_MEAN,
    std_dev: float = DEFAULT_STD_DEV,
    opacity: float = DEFAULT_OPACITY,
    sampler: Optional[Callable[[], float]] = None,
) -> str:
    """Synthesize one tile and return it as a PNG data URI. The pixel buffer is not kept."""
    if sampler is None:
        sampler = NoiseSampler()
    pixels = synthesize_pixels(mean, std_dev, opacity, sampler)
    return encode_data_url(pixels)


# ---------------------------- Cache -----------------------------------------

Synthesizer = Callable[[float, float, float, Callable[[], float]], str]


class NoisePatternCache:
    """Get-or-create store of encoded patterns keyed by the rounded triple.

    The lock is held across synthesis, so a key is synthesized at most once
    even with concurrent callers. ``max_entries=None`` never evicts; otherwise
    the least recently used entry goes first.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        max_entries: Optional[int] = None,
        synthesizer: Optional[Synthesizer] = None,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1 or None, got {max_entries!r}")
        self.sampler = NoiseSampler(seed)
        self.max_entries = max_entries
        self._synthesize = synthesizer if synthesizer is not None else generate_noise_pattern
        self._patterns: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def key_for(mean: float, std_dev: float, opacity: float) -> str:
        return NoiseParams(mean, std_dev, opacity).cache_key()

    def get_pattern(self, mean: float, std_dev: float, opacity: float) -> str:
        params = validate_params(NoiseParams(mean, std_dev, opacity))
        key = params.cache_key()
        with self._lock:
            pattern = self._patterns.get(key)
            if pattern is not None:
                self._patterns.move_to_end(key)
                logger.debug("Noise cache hit for %s", key)
                return pattern

            logger.debug("Noise cache miss for %s; synthesizing %s", key, params)
            pattern = self._synthesize(mean, std_dev, opacity, self.sampler)
            self._patterns[key] = pattern
            if self.max_entries is not None and len(self._patterns) > self.max_entries:
                evicted, _ = self._patterns.popitem(last=False)
                logger.debug("Noise cache evicted %s", evicted)
            return pattern

    def clear(self) -> None:
        with self._lock:
            self._patterns.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._patterns)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._patterns


# ---------------------------- Utilities API ---------------------------------

@dataclass
class NoiseConfig:
    presets: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PRESETS))
    seed: Optional[int] = None
    max_entries: Optional[int] = None


def load_presets(path: str) -> Dict[str, str]:
    """Read a JSON object of name -> 'mean,stdDev,opacity' and merge it over the defaults.

    Values are not parsed here; a bad entry falls back to the default pattern
    when it is resolved.
    """
    with open(path, "r") as jf:
        data = json.load(jf)
    if not isinstance(data, dict):
        raise ValueError(f"Preset file {path!r} must contain a JSON object")
    for name, value in data.items():
        if not isinstance(value, str):
            raise ValueError(f"Preset {name!r} must be a 'mean,stdDev,opacity' string, got {value!r}")
    return {**DEFAULT_PRESETS, **data}


def css_declarations(pattern: str) -> Dict[str, str]:
    return {
        "background-image": f"url('{pattern}')",
        "background-repeat": "repeat",
    }


def css_rule(selector: str, declarations: Mapping[str, str]) -> str:
    body = "".join(f"  {prop}: {val};\n" for prop, val in declarations.items())
    return f"{selector} {{\n{body}}}"


class NoiseUtilities:
    """Caller-facing wrapper: always yields a valid pattern.

    Invalid values are logged and replaced by the precomputed default
    (mean=128, std_dev=50, opacity=5).
    """

    def __init__(self, config: Optional[NoiseConfig] = None, cache: Optional[NoisePatternCache] = None):
        self.config = config if config is not None else NoiseConfig()
        if cache is None:
            cache = NoisePatternCache(seed=self.config.seed, max_entries=self.config.max_entries)
        self.cache = cache
        self.default_params = NoiseParams(DEFAULT_MEAN, DEFAULT_STD_DEV, DEFAULT_OPACITY)
        self.default_pattern = self.cache.get_pattern(*self.default_params.as_tuple())

    @property
    def presets(self) -> Dict[str, str]:
        return self.config.presets

    def resolve(self, value: str) -> str:
        result = try_parse_noise_value(value)
        if not result.ok:
            logger.warning("Noise pattern error for %r: %s. Using default pattern.", value, result.error)
            return self.default_pattern
        return self.cache.get_pattern(*result.params.as_tuple())

    def preset(self, name: str) -> str:
        if name not in self.presets:
            raise KeyError(f"Unknown noise preset {name!r}. Choose from {sorted(self.presets)}")
        return self.resolve(self.presets[name])

    def base_declarations(self) -> Dict[str, str]:
        """Declarations for the plain '.noise' class."""
        return css_declarations(self.default_pattern)

    def declarations(self, value: str) -> Dict[str, str]:
        """Declarations for 'noise-[value]' or 'noise-<preset>'."""
        if isinstance(value, str) and value in self.presets:
            return css_declarations(self.preset(value))
        return css_declarations(self.resolve(value))


# ---------------------------- CLI -------------------------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Generate tileable Gaussian noise PNGs")
    src = ap.add_mutually_exclusive_group()
    src.add_argument("--params", default=None, help="mean,stdDev,opacity (e.g., '128,50,5')")
    src.add_argument("--preset", default=None, help="Preset name (e.g., subtle, medium, strong)")
    ap.add_argument("--presets", default=None, help="Path to JSON file mapping preset names to 'mean,stdDev,opacity'")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--out", default=None, help="Output PNG path")
    ap.add_argument("--css", action="store_true", help="Print a CSS rule embedding the tile")
    ap.add_argument("--strict", action="store_true", help="Fail on invalid parameters instead of using the default")
    ap.add_argument("--verbose", "-v", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not args.out and not args.css:
        ap.error("nothing to do: pass --out and/or --css")

    presets = dict(DEFAULT_PRESETS)
    if args.presets:
        try:
            presets = load_presets(args.presets)
        except ValueError as err:
            ap.error(str(err))

    selector = ".noise"
    value = args.params
    if args.preset:
        if args.preset not in presets:
            ap.error(f"unknown preset {args.preset!r}; choose from {sorted(presets)}")
        value = presets[args.preset]
        selector = f".noise-{args.preset}"

    if args.strict and value is not None:
        result = try_parse_noise_value(value)
        if not result.ok:
            ap.error(str(result.error))

    utils = NoiseUtilities(NoiseConfig(presets=presets, seed=args.seed))
    pattern = utils.default_pattern if value is None else utils.resolve(value)

    if args.out:
        with open(args.out, "wb") as fh:
            fh.write(data_url_to_png(pattern))
    if args.css:
        print(css_rule(selector, css_declarations(pattern)))
    else:
        print(args.out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

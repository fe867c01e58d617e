"""
Tests for the command line entry point.
"""
import json

import numpy as np
import pytest
from PIL import Image

from noiselab import CANVAS_SIZE, main


def read_png(path):
    with Image.open(path) as img:
        img.load()
        return img.mode, img.size, np.asarray(img)


def test_writes_png(tmp_path, capsys):
    out = tmp_path / "grain.png"
    assert main(["--params", "128,20,20", "--out", str(out), "--seed", "3"]) == 0
    assert capsys.readouterr().out.strip() == str(out)
    mode, size, pixels = read_png(out)
    assert mode == "RGBA"
    assert size == (CANVAS_SIZE, CANVAS_SIZE)
    assert np.all(pixels[..., 3] == 51)


def test_same_seed_same_file(tmp_path):
    a, b = tmp_path / "a.png", tmp_path / "b.png"
    main(["--params", "100,20,5", "--out", str(a), "--seed", "9"])
    main(["--params", "100,20,5", "--out", str(b), "--seed", "9"])
    assert a.read_bytes() == b.read_bytes()


def test_css_output(capsys):
    assert main(["--css", "--seed", "1"]) == 0
    out = capsys.readouterr().out
    assert out.startswith(".noise {")
    assert "background-image: url('data:image/png;base64," in out
    assert "background-repeat: repeat;" in out


def test_preset_css(capsys):
    main(["--preset", "strong", "--css"])
    assert capsys.readouterr().out.startswith(".noise-strong {")


def test_invalid_params_fall_back(tmp_path):
    out = tmp_path / "fallback.png"
    assert main(["--params", "128,50,150", "--out", str(out)]) == 0
    _, _, pixels = read_png(out)
    assert np.all(pixels[..., 3] == 13)


def test_strict_rejects_invalid_params(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--params", "abc,50,5", "--out", str(tmp_path / "x.png"), "--strict"])
    assert exc.value.code == 2


def test_requires_an_output():
    with pytest.raises(SystemExit) as exc:
        main(["--params", "128,50,5"])
    assert exc.value.code == 2


def test_unknown_preset():
    with pytest.raises(SystemExit) as exc:
        main(["--preset", "loud", "--css"])
    assert exc.value.code == 2


def test_presets_file(tmp_path, capsys):
    presets = tmp_path / "presets.json"
    presets.write_text(json.dumps({"film": "110,35,80"}))
    out = tmp_path / "film.png"
    main(["--presets", str(presets), "--preset", "film", "--out", str(out)])
    _, _, pixels = read_png(out)
    assert np.all(pixels[..., 3] == 204)
